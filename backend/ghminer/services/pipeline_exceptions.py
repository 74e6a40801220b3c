"""Custom exceptions for the retrieval and extraction pipeline."""
from __future__ import annotations


class PipelineError(Exception):
    """Base exception for pipeline failures."""


class ConfigurationError(PipelineError):
    """Raised when required configuration is missing or invalid."""


class ProjectNotFoundError(PipelineError):
    """Raised when a repository is absent from the relational project database."""

    def __init__(self, owner: str, repo: str):
        super().__init__(f"Project {owner}/{repo} not found in the project database")
        self.owner = owner
        self.repo = repo


class MissingGitObjectError(PipelineError):
    """Raised when a commit cannot be found in the local git mirror."""

    def __init__(self, sha: str, message: str | None = None):
        super().__init__(message or f"Commit {sha} not found in local clone")
        self.sha = sha


class GitCloneError(PipelineError):
    """Raised when a repository cannot be cloned or reopened."""
