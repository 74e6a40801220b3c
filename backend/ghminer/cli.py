"""
Command line entry point.

Usage::

    ghminer retrieve-repo OWNER REPO [-t TOKEN] [-l REQ_LIMIT]
    ghminer extract-builds OWNER REPO [-t TOKEN]
    ghminer process-request URL [-t TOKEN] [--request-id ID]
"""

from __future__ import annotations

import logging
import signal
import sys
from argparse import ArgumentParser, Namespace
from contextlib import ExitStack
from typing import Any, Dict, List, Optional

from ghminer.config import Settings, load_settings
from ghminer.core.logging import setup_logging
from ghminer.database.mongo import close_client, get_database
from ghminer.database.sql import get_engine
from ghminer.persistence import BasePersister, connect
from ghminer.pipeline.runner import BuildExtractionRunner
from ghminer.repositories import ProjectStore, RetrieveRequestRepository
from ghminer.services.github.exceptions import GithubAuthError
from ghminer.services.github.http_client import GithubClient
from ghminer.services.github.rate_limiter import RateLimiter
from ghminer.services.pipeline_exceptions import ConfigurationError, GitCloneError, ProjectNotFoundError
from ghminer.services.request_service import RequestService, extract_owner_repo
from ghminer.services.retriever import RepoRetriever

logger = logging.getLogger(__name__)


class Session:
    """Clients and stores for one command, closed together on exit."""

    def __init__(self, settings: Settings, token: Optional[str] = None):
        self.settings = settings
        self.token = token
        self._stack = ExitStack()
        self._stack.callback(close_client)
        self._persister: Optional[BasePersister] = None
        self._project_store: Optional[ProjectStore] = None
        self.runners: List[BuildExtractionRunner] = []
        self.rate_limiter = RateLimiter(settings.REQ_LIMIT)

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, *exc_info) -> None:
        self._stack.close()

    @property
    def persister(self) -> BasePersister:
        if self._persister is None:
            self._persister = connect(self.settings.PERSISTER, self.settings)
            self._stack.callback(self._persister.close)
        return self._persister

    @property
    def project_store(self) -> Optional[ProjectStore]:
        if self._project_store is None and self.settings.SQL_DATABASE_URL:
            engine = get_engine(self.settings)
            self._stack.callback(engine.dispose)
            self._project_store = ProjectStore(engine)
        return self._project_store

    def retriever(self, token: Optional[str] = None) -> RepoRetriever:
        client = GithubClient(self.settings, rate_limiter=self.rate_limiter, token=token or self.token)
        self._stack.callback(client.close)
        return RepoRetriever(self.settings, client, self.persister, self.project_store)

    def runner(self, token: Optional[str] = None) -> BuildExtractionRunner:
        self.settings.require_sql()
        runner = BuildExtractionRunner(
            self.settings, self.project_store, self.persister, retriever=self.retriever(token)
        )
        self.runners.append(runner)
        return runner

    def stop(self) -> None:
        for runner in self.runners:
            runner.stop()
        self.rate_limiter.interrupt()

    def retrieve(self, owner: str, repo: str, token: Optional[str] = None) -> bool:
        return self.retriever(token).retrieve_full_repo(owner, repo)

    def extract(self, owner: str, repo: str, token: Optional[str] = None) -> Dict[str, Any]:
        return self.runner(token).run(owner, repo)


def _install_interrupt_handler(session: Session) -> None:
    def handler(signum, frame):
        logger.warning("Interrupted, stopping after in-flight work (press Ctrl-C again to abort)")
        session.stop()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    signal.signal(signal.SIGINT, handler)


def cmd_retrieve_repo(args: Namespace, settings: Settings) -> int:
    with Session(settings, args.token) as session:
        _install_interrupt_handler(session)
        ok = session.retrieve(args.owner, args.repo)
    if not ok:
        logger.error(f"Repository {args.owner}/{args.repo} could not be retrieved")
        return 1
    return 0


def cmd_extract_builds(args: Namespace, settings: Settings) -> int:
    with Session(settings, args.token) as session:
        _install_interrupt_handler(session)
        result = session.extract(args.owner, args.repo)
    logger.info(result["message"])
    return 0 if result["status"] == "success" else 1


def cmd_process_request(args: Namespace, settings: Settings) -> int:
    try:
        owner, repo = extract_owner_repo(args.url)
    except ValueError as exc:
        logger.error(str(exc))
        return 2

    with Session(settings, args.token) as session:
        _install_interrupt_handler(session)
        service = RequestService(
            RetrieveRequestRepository(get_database(settings)),
            retrieve=session.retrieve,
            extract=session.extract,
        )
        request_id = service.submit(owner, repo, args.token, args.request_id)
        result = service.process(owner, repo, args.token, request_id)
    logger.info(f"Request {request_id}: {result['status']} ({result['message']})")
    return 0 if result["status"] == "success" else 1


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(prog="ghminer", description="Mirror GitHub repositories and extract CI build metrics")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    retrieve = subparsers.add_parser("retrieve-repo", help="Mirror one repository from the GitHub API")
    retrieve.add_argument("owner")
    retrieve.add_argument("repo")
    retrieve.add_argument("-t", "--token", help="GitHub API token")
    retrieve.add_argument(
        "-l", "--req-limit", type=int, help="Pause when fewer requests than this remain"
    )
    retrieve.set_defaults(func=cmd_retrieve_repo)

    extract = subparsers.add_parser("extract-builds", help="Compute build metrics for one repository")
    extract.add_argument("owner")
    extract.add_argument("repo")
    extract.add_argument("-t", "--token", help="GitHub API token")
    extract.set_defaults(func=cmd_extract_builds)

    process = subparsers.add_parser(
        "process-request", help="Retrieve a repository by URL, then extract its builds"
    )
    process.add_argument("url")
    process.add_argument("-t", "--token", help="GitHub API token")
    process.add_argument("--request-id", help="Identifier to record the request under")
    process.set_defaults(func=cmd_process_request)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    overrides: Dict[str, Any] = {}
    if args.verbose:
        overrides["LOG_LEVEL"] = "DEBUG"
    if getattr(args, "req_limit", None) is not None:
        overrides["REQ_LIMIT"] = args.req_limit

    try:
        settings = load_settings(**overrides)
    except ConfigurationError as exc:
        print(f"ghminer: {exc}", file=sys.stderr)
        return 1

    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    try:
        return args.func(args, settings)
    except (ConfigurationError, GitCloneError, GithubAuthError, ProjectNotFoundError) as exc:
        logger.error(str(exc))
        return 1


if __name__ == "__main__":
    sys.exit(main())
