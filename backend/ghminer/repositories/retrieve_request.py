from __future__ import annotations

from typing import Any, Optional

from pymongo import ReturnDocument

from ghminer.entities.retrieve_request import RequestStatus, RetrieveRequest
from ghminer.repositories.base import BaseRepository
from ghminer.utils.datetime import utc_now


class RetrieveRequestRepository(BaseRepository[RetrieveRequest]):
    """Status records for submitted retrieve-and-extract requests."""

    def __init__(self, db) -> None:
        super().__init__(db, "retrieve_requests", RetrieveRequest)

    def find_by_request_id(self, request_id: str) -> Optional[RetrieveRequest]:
        return self.find_one({"request_id": request_id})

    def mark(
        self,
        request_id: str,
        status: RequestStatus,
        data: Any = None,
        error: Optional[str] = None,
        **extra: Any,
    ) -> RetrieveRequest:
        fields = {
            "status": RequestStatus(status).value,
            "data": data,
            "error": error,
            "updated_at": utc_now(),
        }
        fields.update(extra)
        doc = self.collection.find_one_and_update(
            {"request_id": request_id},
            {"$set": fields},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return RetrieveRequest(**doc)
