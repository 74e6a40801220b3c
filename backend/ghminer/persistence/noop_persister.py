from typing import List

from ghminer.persistence.base import BasePersister, Document


class NoopPersister(BasePersister):
    """Discards writes and finds nothing. Used for dry runs."""

    def find(self, entity: str, query: Document) -> List[Document]:
        return []

    def store(self, entity: str, doc: Document) -> None:
        return None

    def upsert(self, entity: str, query: Document, doc: Document) -> None:
        return None
