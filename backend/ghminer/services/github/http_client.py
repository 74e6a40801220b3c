"""
Rate-limited GitHub REST client.

Expected outcomes (found, absent, rate limited, skipped after transient
failures) are reported as ApiStatus values on an ApiResponse. Only fatal
outcomes (bad credentials, server errors) turn into exceptions, and only when
the caller asks for them through ``request``/``api_request``.
"""

from __future__ import annotations

import json
import logging
import ssl
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

import httpx

from ghminer.services.github.exceptions import GithubAuthError, GithubError, GithubRequestError
from ghminer.services.github.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "application/json"
MAX_ATTEMPTS = 3

# Statuses GitHub uses for "this resource is not there for you"
ABSENT_STATUSES = frozenset({400, 403, 404, 409, 422})
UNAVAILABLE_FOR_LEGAL_REASONS = 451

TRANSIENT_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    ssl.SSLError,
)


class ApiStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    SKIPPED = "skipped"
    FATAL = "fatal"


@dataclass
class ApiResponse:
    status: ApiStatus
    url: str
    status_code: Optional[int] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    text: str = ""
    error: Optional[Exception] = None

    @property
    def found(self) -> bool:
        return self.status == ApiStatus.FOUND

    def header(self, name: str) -> Optional[str]:
        # httpx.Headers lookups are case-insensitive, plain dicts are not
        if isinstance(self.headers, httpx.Headers):
            return self.headers.get(name)
        for key, value in self.headers.items():
            if key.lower() == name.lower():
                return value
        return None

    def json(self) -> Any:
        """Parsed body, or None when absent or malformed."""
        if not self.found or not self.text:
            return None
        try:
            return json.loads(self.text)
        except ValueError as exc:
            logger.warning(f"Cannot parse response body from {self.url}: {exc}")
            return None

    def raise_for_fatal(self) -> None:
        if self.status == ApiStatus.FATAL:
            if isinstance(self.error, GithubError):
                raise self.error
            raise GithubRequestError(str(self.error), status_code=self.status_code, url=self.url)


def encode_brackets(url: str) -> str:
    """Percent-encode literal square brackets in the path part of a URL."""
    path, sep, query = url.partition("?")
    return path.replace("[", "%5B").replace("]", "%5D") + sep + query


def format_etag(etag: str) -> str:
    return etag.replace("W/", "").replace('"', "")


class GithubClient:
    """Synchronous httpx client sharing one RateLimiter across worker threads."""

    def __init__(
        self,
        settings,
        rate_limiter: Optional[RateLimiter] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.settings = settings
        self.rate_limiter = rate_limiter or RateLimiter(settings.REQ_LIMIT)
        token = token if token is not None else settings.GITHUB_TOKEN

        headers = {"User-Agent": settings.USER_AGENT}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.Client(
            headers=headers,
            timeout=settings.REQUEST_TIMEOUT,
            transport=transport,
            follow_redirects=True,
        )

    def __enter__(self) -> "GithubClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def fetch(self, url: str, media_type: str = "") -> ApiResponse:
        url = encode_brackets(url)
        headers = {"Accept": media_type or DEFAULT_MEDIA_TYPE}
        last_error: Optional[Exception] = None

        for attempt in range(1, MAX_ATTEMPTS + 1):
            if not self.rate_limiter.wait_for_quota():
                return ApiResponse(ApiStatus.RATE_LIMITED, url)

            started = time.monotonic()
            try:
                response = self._client.get(url, headers=headers)
            except TRANSIENT_ERRORS as exc:
                last_error = exc
                logger.warning(f"Request {url} failed (attempt {attempt}/{MAX_ATTEMPTS}): {exc!r}")
                self.rate_limiter.wait_for_quota()
                continue
            except httpx.HTTPError as exc:
                logger.error(f"Request {url} failed: {exc!r}")
                self.rate_limiter.wait_for_quota()
                return ApiResponse(
                    ApiStatus.FATAL, url, error=GithubRequestError(str(exc), url=url)
                )

            elapsed_ms = int((time.monotonic() - started) * 1000)
            self.rate_limiter.update(response.headers)
            self.rate_limiter.wait_for_quota()
            result = self._classify(url, response)
            logger.debug(
                f"Request: {url} -> {response.status_code} "
                f"({self.rate_limiter.snapshot().remaining} remaining), Total: {elapsed_ms} ms"
            )
            return result

        logger.error(f"[SKIP] Failed after {MAX_ATTEMPTS} attempts: {url}")
        return ApiResponse(ApiStatus.SKIPPED, url, error=last_error)

    def _classify(self, url: str, response: httpx.Response) -> ApiResponse:
        code = response.status_code
        base = dict(url=url, status_code=code, headers=response.headers)

        if response.is_success:
            return ApiResponse(ApiStatus.FOUND, text=response.text, **base)

        if code == 401:
            logger.error(f"Unauthorised request with token for {url}")
            return ApiResponse(
                ApiStatus.FATAL, error=GithubAuthError(f"Bad credentials requesting {url}"), **base
            )

        if code == UNAVAILABLE_FOR_LEGAL_REASONS:
            logger.warning(f"Repository unavailable for legal reasons (DMCA): {url}")
            return ApiResponse(ApiStatus.NOT_FOUND, **base)

        if code == 403 and response.headers.get("x-ratelimit-remaining") == "0":
            logger.warning(f"Rate limit exhausted while requesting {url}")
            return ApiResponse(ApiStatus.RATE_LIMITED, **base)

        if code in ABSENT_STATUSES:
            logger.warning(f"Request {url} returned {code}, treating as not found")
            return ApiResponse(ApiStatus.NOT_FOUND, **base)

        logger.error(f"Request {url} failed with status {code}")
        return ApiResponse(
            ApiStatus.FATAL,
            error=GithubRequestError(f"GitHub returned {code} for {url}", status_code=code, url=url),
            **base,
        )

    def request(self, url: str, media_type: str = "") -> ApiResponse:
        """Like fetch, but raises GithubAuthError / GithubRequestError on fatal outcomes."""
        result = self.fetch(url, media_type)
        result.raise_for_fatal()
        return result

    def api_request(self, url: str, media_type: str = "") -> Any:
        """Parsed JSON for a single resource, or None when absent."""
        result = self.request(url, media_type)
        data = result.json()
        etag = result.header("etag")
        if isinstance(data, dict) and etag:
            data["etag"] = format_etag(etag)
        return data
