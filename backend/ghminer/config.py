"""
Application configuration
"""
from functools import lru_cache
from typing import Optional

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings

from ghminer.services.pipeline_exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings"""

    # GitHub
    GITHUB_TOKEN: Optional[str] = None
    GITHUB_API_URL: str = "https://api.github.com/"
    USER_AGENT: str = "ghminer"
    REQUEST_TIMEOUT: float = 20.0
    REQ_LIMIT: int = 10
    MAX_PAGES_BACK: int = 1000
    COMMIT_HANDLING: str = "full"

    # Document store (MongoDB)
    PERSISTER: str = "mongo"
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "github"

    # Relational project database
    SQL_DATABASE_URL: str = ""

    # Local git mirrors
    REPOS_DIR: str = "repos"
    GIT_CLONE_URL_BASE: str = "https://github.com/"

    # Build extraction
    EXTRACTOR_THREADS: int = 2
    MONTHS_BACK: int = 3

    # Logging
    LOG_FORMAT: str = "text"
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @field_validator("GITHUB_API_URL", "GIT_CLONE_URL_BASE")
    @classmethod
    def _trailing_slash(cls, value: str) -> str:
        return value if value.endswith("/") else value + "/"

    @field_validator("COMMIT_HANDLING")
    @classmethod
    def _commit_handling(cls, value: str) -> str:
        if value not in ("full", "trim"):
            raise ValueError("COMMIT_HANDLING must be 'full' or 'trim'")
        return value

    @field_validator("EXTRACTOR_THREADS")
    @classmethod
    def _threads(cls, value: int) -> int:
        if value < 1:
            raise ValueError("EXTRACTOR_THREADS must be at least 1")
        return value

    def require_sql(self) -> str:
        if not self.SQL_DATABASE_URL:
            raise ConfigurationError("SQL_DATABASE_URL is not configured")
        return self.SQL_DATABASE_URL

    def require_mongo(self) -> str:
        if not self.MONGODB_URI or not self.MONGODB_DB_NAME:
            raise ConfigurationError("MONGODB_URI and MONGODB_DB_NAME must be configured")
        return self.MONGODB_URI


def load_settings(**overrides) -> Settings:
    """Build a fresh settings object, turning validation failures into ConfigurationError."""
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


@lru_cache
def get_settings() -> Settings:
    return load_settings()
