from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import Field

from ghminer.utils.datetime import utc_now

from .base import BaseEntity


class RequestStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"


class RetrieveRequest(BaseEntity):
    request_id: str
    owner: Optional[str] = None
    repo: Optional[str] = None
    status: RequestStatus = RequestStatus.QUEUED
    data: Optional[Any] = None
    error: Optional[str] = None
    updated_at: datetime = Field(default_factory=utc_now)

    class Config:
        collection = "retrieve_requests"
        use_enum_values = True
