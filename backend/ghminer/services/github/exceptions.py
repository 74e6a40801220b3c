"""Exceptions raised by the GitHub HTTP layer."""

from __future__ import annotations


class GithubError(Exception):
    """Base exception for GitHub API failures."""


class GithubAuthError(GithubError):
    """Raised on 401 responses: the token is missing, wrong or revoked."""


class GithubRequestError(GithubError):
    """Raised for server errors and unexpected statuses."""

    def __init__(self, message: str, status_code: int | None = None, url: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url
