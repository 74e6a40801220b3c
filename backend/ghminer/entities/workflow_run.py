from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, field_validator

from .base import TimestampedEntity, naive_utc


class Actor(BaseModel):
    login: Optional[str] = None
    avatar_url: Optional[str] = None
    html_url: Optional[str] = None

    @classmethod
    def from_api(cls, payload: Optional[Dict[str, Any]]) -> Optional["Actor"]:
        if not payload:
            return None
        return cls(
            login=payload.get("login"),
            avatar_url=payload.get("avatar_url"),
            html_url=payload.get("html_url"),
        )


class WorkflowRun(TimestampedEntity):
    github_id: int
    workflow_id: int
    name: Optional[str] = None
    head_branch: Optional[str] = None
    head_sha: str
    run_number: Optional[int] = None
    run_attempt: Optional[int] = None
    status: Optional[str] = None
    conclusion: Optional[str] = None
    event: Optional[str] = None
    path: Optional[str] = None
    display_title: Optional[str] = None
    run_started_at: Optional[datetime] = None
    owner: str
    repo: str
    html_url: Optional[str] = None
    actor: Optional[Actor] = None
    triggering_actor: Optional[Actor] = None

    class Config:
        collection = "workflow_runs"

    @field_validator("run_started_at", mode="before")
    @classmethod
    def _started_naive_utc(cls, value: Any) -> Optional[datetime]:
        return naive_utc(value)

    @classmethod
    def from_api(cls, payload: Dict[str, Any], owner: str, repo: str) -> "WorkflowRun":
        return cls(
            github_id=payload["id"],
            workflow_id=payload["workflow_id"],
            name=payload.get("name"),
            head_branch=payload.get("head_branch"),
            head_sha=payload["head_sha"],
            run_number=payload.get("run_number"),
            run_attempt=payload.get("run_attempt"),
            status=payload.get("status"),
            conclusion=payload.get("conclusion"),
            event=payload.get("event"),
            path=payload.get("path"),
            display_title=payload.get("display_title"),
            created_at=payload.get("created_at"),
            run_started_at=payload.get("run_started_at"),
            updated_at=payload.get("updated_at"),
            owner=owner,
            repo=repo,
            html_url=payload.get("html_url"),
            actor=Actor.from_api(payload.get("actor")),
            triggering_actor=Actor.from_api(payload.get("triggering_actor")),
        )
