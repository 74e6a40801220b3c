"""Storage interface for GitHub resources, keyed by collection name."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

Document = Dict[str, Any]


class BasePersister(ABC):
    """
    find/store/upsert over named collections.

    ``find`` matches by equality on flat or dotted field paths. ``store`` is
    append-only: callers check existence with ``find`` first. ``upsert``
    replaces the fields of the matching document and keeps its store id.
    """

    @abstractmethod
    def find(self, entity: str, query: Document) -> List[Document]:
        ...

    @abstractmethod
    def store(self, entity: str, doc: Document) -> None:
        ...

    @abstractmethod
    def upsert(self, entity: str, query: Document, doc: Document) -> None:
        ...

    def count(self, entity: str, query: Document) -> int:
        return len(self.find(entity, query))

    def close(self) -> None:
        pass
