"""GitHub REST access: rate-limited client and link-header pagination."""

from ghminer.services.github.http_client import ApiResponse, ApiStatus, GithubClient
from ghminer.services.github.pagination import PagedResult, paged_request
from ghminer.services.github.rate_limiter import RateLimiter, RateState

__all__ = [
    "ApiResponse",
    "ApiStatus",
    "GithubClient",
    "PagedResult",
    "RateLimiter",
    "RateState",
    "paged_request",
]
