from .project_store import ProjectStore
from .retrieve_request import RetrieveRequestRepository

__all__ = ["ProjectStore", "RetrieveRequestRepository"]
