from __future__ import annotations

from typing import Any, Dict, Generic, Optional, Type, TypeVar

from pymongo.collection import Collection

from ghminer.entities.base import BaseEntity

T = TypeVar("T", bound=BaseEntity)


class BaseRepository(Generic[T]):
    """Typed access to one MongoDB collection."""

    def __init__(self, db, collection_name: str, model: Type[T]) -> None:
        self.db = db
        self.collection: Collection = db[collection_name]
        self.model = model

    def find_one(self, query: Dict[str, Any]) -> Optional[T]:
        doc = self.collection.find_one(query)
        return self.model(**doc) if doc else None

