from .base import BaseEntity, PyObjectId
from .ci_build import BuildOutcome, CiBuild
from .retrieve_request import RequestStatus, RetrieveRequest
from .workflow import Workflow
from .workflow_run import Actor, WorkflowRun

__all__ = [
    "Actor",
    "BaseEntity",
    "BuildOutcome",
    "CiBuild",
    "PyObjectId",
    "RequestStatus",
    "RetrieveRequest",
    "Workflow",
    "WorkflowRun",
]
