"""
MongoDB-backed persister.

Each resource kind lives in a collection of the same name. Natural-key
indexes are created on demand so existence checks stay cheap on large
mirrors.
"""

import logging
from typing import Dict, List, Sequence

from pymongo import ASCENDING
from pymongo.database import Database
from pymongo.errors import PyMongoError

from ghminer.persistence.base import BasePersister, Document

logger = logging.getLogger(__name__)

ENTITY_INDEXES: Dict[str, Sequence[Sequence[str]]] = {
    "users": [("login",)],
    "organization_members": [("org",)],
    "followers": [("follows", "login")],
    "repos": [("name", "owner.login")],
    "repo_labels": [("repo", "owner")],
    "repo_collaborators": [("repo", "owner", "login")],
    "topics": [("owner", "repo")],
    "watchers": [("repo", "owner", "login")],
    "forks": [("repo", "owner", "id")],
    "commits": [("sha",)],
    "commit_comments": [("commit_id", "id")],
    "pull_requests": [("repo", "owner", "number")],
    "pull_request_comments": [("repo", "owner", "pullreq_id", "id")],
    "issues": [("repo", "owner", "number")],
    "issue_events": [("repo", "owner", "issue_id", "id")],
    "issue_comments": [("repo", "owner", "issue_id", "id")],
    "events": [("id",), ("repo.name",)],
    "workflows": [("github_id",), ("owner", "repo")],
    "workflow_runs": [("github_id",), ("owner", "repo", "workflow_id")],
    "ci_builds": [("gh_project_name", "git_all_built_commits", "git_branch")],
}


class MongoPersister(BasePersister):
    def __init__(self, db: Database):
        self.db = db

    def ensure_indexes(self) -> None:
        for entity, indexes in ENTITY_INDEXES.items():
            for fields in indexes:
                try:
                    self.db[entity].create_index([(f, ASCENDING) for f in fields])
                except PyMongoError as exc:
                    logger.warning(f"Could not create index {fields} on {entity}: {exc}")

    def find(self, entity: str, query: Document) -> List[Document]:
        return list(self.db[entity].find(query))

    def store(self, entity: str, doc: Document) -> None:
        self.db[entity].insert_one(doc)

    def upsert(self, entity: str, query: Document, doc: Document) -> None:
        replacement = {k: v for k, v in doc.items() if k != "_id"}
        self.db[entity].replace_one(query, replacement, upsert=True)

    def count(self, entity: str, query: Document) -> int:
        return self.db[entity].count_documents(query)
