import copy
import json
import os
import subprocess
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import httpx

from ghminer.config import Settings
from ghminer.persistence.base import BasePersister, Document


def make_settings(**overrides) -> Settings:
    values = {
        "GITHUB_TOKEN": "test-token",
        "PERSISTER": "noop",
        "SQL_DATABASE_URL": "",
        "REQ_LIMIT": 10,
        "EXTRACTOR_THREADS": 2,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def _lookup(doc: Document, dotted: str) -> Any:
    value: Any = doc
    for part in dotted.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


_MISSING = object()


class InMemoryPersister(BasePersister):
    """Dict-of-lists persister with Mongo-like equality matching on dotted paths."""

    def __init__(self):
        self.collections: Dict[str, List[Document]] = defaultdict(list)
        self._next_id = 1

    def _matches(self, doc: Document, query: Document) -> bool:
        return all(_lookup(doc, key) == value for key, value in query.items())

    def find(self, entity: str, query: Document) -> List[Document]:
        return [copy.deepcopy(d) for d in self.collections[entity] if self._matches(d, query)]

    def store(self, entity: str, doc: Document) -> None:
        stored = copy.deepcopy(doc)
        stored["_id"] = self._next_id
        self._next_id += 1
        self.collections[entity].append(stored)

    def upsert(self, entity: str, query: Document, doc: Document) -> None:
        replacement = {k: v for k, v in copy.deepcopy(doc).items() if k != "_id"}
        for i, existing in enumerate(self.collections[entity]):
            if self._matches(existing, query):
                replacement["_id"] = existing["_id"]
                self.collections[entity][i] = replacement
                return
        self.store(entity, replacement)

    def sizes(self) -> Dict[str, int]:
        return {entity: len(docs) for entity, docs in self.collections.items() if docs}


class FakeGithub:
    """
    Route table for httpx.MockTransport keyed by URL path.

    A route value is either a JSON payload or a callable taking the request
    and returning a payload (or an httpx.Response). Unknown paths answer 404.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes: Dict[str, Any] = dict(routes or {})
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"message": "Not Found"})
        payload = route(request) if callable(route) else route
        if isinstance(payload, httpx.Response):
            return payload
        return httpx.Response(200, content=json.dumps(payload), headers={"content-type": "application/json"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]


def api_url(path: str) -> str:
    return f"https://api.github.com/{path}"


def path_of(url: str) -> str:
    return urlparse(url).path


class GitRepoBuilder:
    """Throwaway git repository driven through the git command line."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.mkdir(parents=True, exist_ok=True)
        self.git("init")
        self.git("checkout", "-b", "main")
        self.identity("Test User", "test@example.com")

    def git(self, *args: str, env: Optional[Dict[str, str]] = None) -> str:
        return subprocess.run(
            ["git", *args], cwd=self.path, check=True, capture_output=True, text=True, env=env
        ).stdout.strip()

    def identity(self, name: str, email: str) -> None:
        self.git("config", "user.name", name)
        self.git("config", "user.email", email)

    def write(self, relpath: str, content: str) -> None:
        target = self.path / relpath
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)

    def commit(self, message: str, files: Optional[Dict[str, str]] = None, date: Optional[str] = None,
               remove: Optional[List[str]] = None) -> str:
        for relpath, content in (files or {}).items():
            self.write(relpath, content)
            self.git("add", relpath)
        for relpath in remove or []:
            self.git("rm", "-q", relpath)

        env = None
        if date:
            env = dict(os.environ, GIT_AUTHOR_DATE=date, GIT_COMMITTER_DATE=date)
        self.git("commit", "--allow-empty", "-q", "-m", message, env=env)
        return self.git("rev-parse", "HEAD")
