"""
Retrieve-and-extract requests.

A request names a GitHub repository URL. Its lifecycle is recorded in the
``retrieve_requests`` collection: queued -> processing -> success | error.
"""

import logging
import uuid
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import urlparse

from ghminer.core.tracing import TracingContext
from ghminer.entities import RequestStatus
from ghminer.repositories.retrieve_request import RetrieveRequestRepository
from ghminer.services.github.exceptions import GithubError
from ghminer.services.pipeline_exceptions import PipelineError

logger = logging.getLogger(__name__)

GITHUB_HOSTS = ("github.com", "www.github.com")


def extract_owner_repo(url: str) -> Tuple[str, str]:
    """Split ``https://github.com/<owner>/<repo>[...]`` into (owner, repo)."""
    parsed = urlparse(url.strip())
    if parsed.netloc.lower() not in GITHUB_HOSTS:
        raise ValueError(f"Not a GitHub repository URL: {url}")

    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) < 2:
        raise ValueError(f"Repository URL must name an owner and a repository: {url}")

    owner, repo = parts[0], parts[1]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    return owner, repo


class RequestService:
    """
    Runs full retrieval and build extraction for one repository and keeps its
    request record current.

    ``retrieve`` and ``extract`` are callables so the wiring of clients,
    persisters and stores stays with the caller (the CLI builds them from
    settings).
    """

    def __init__(
        self,
        requests: RetrieveRequestRepository,
        retrieve: Callable[[str, str, Optional[str]], bool],
        extract: Callable[[str, str, Optional[str]], Dict[str, Any]],
    ):
        self.requests = requests
        self.retrieve = retrieve
        self.extract = extract

    def submit(
        self,
        owner: str,
        repo: str,
        token: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> str:
        request_id = request_id or uuid.uuid4().hex
        self.requests.mark(request_id, RequestStatus.QUEUED, owner=owner, repo=repo)
        logger.info(f"Queued request {request_id} for {owner}/{repo}")
        return request_id

    def process(
        self, owner: str, repo: str, token: Optional[str], request_id: str
    ) -> Dict[str, Any]:
        TracingContext.set(request_id=request_id, repo=f"{owner}/{repo}")
        self.requests.mark(request_id, RequestStatus.PROCESSING, owner=owner, repo=repo)

        try:
            if not self.retrieve(owner, repo, token):
                result = {
                    "status": "error",
                    "message": f"Repository {owner}/{repo} could not be retrieved",
                }
                self.requests.mark(request_id, RequestStatus.ERROR, error=result["message"])
                return result

            result = self.extract(owner, repo, token)
        except (GithubError, PipelineError) as exc:
            logger.error(f"Request {request_id} for {owner}/{repo} failed: {exc}")
            self.requests.mark(request_id, RequestStatus.ERROR, error=str(exc))
            return {"status": "error", "message": str(exc)}
        except Exception as exc:
            logger.exception(f"Unexpected failure processing request {request_id}")
            self.requests.mark(request_id, RequestStatus.ERROR, error=str(exc))
            return {"status": "error", "message": str(exc)}

        if result.get("status") == "success":
            self.requests.mark(request_id, RequestStatus.SUCCESS, data=result)
        else:
            self.requests.mark(request_id, RequestStatus.ERROR, data=result, error=result.get("message"))
        logger.info(f"Request {request_id} finished: {result.get('message')}")
        return result

    def submit_url(
        self, url: str, token: Optional[str] = None, request_id: Optional[str] = None
    ) -> Dict[str, Any]:
        owner, repo = extract_owner_repo(url)
        request_id = self.submit(owner, repo, token, request_id)
        result = self.process(owner, repo, token, request_id)
        return {**result, "request_id": request_id}
