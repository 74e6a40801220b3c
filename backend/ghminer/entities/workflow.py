from typing import Any, Dict, Optional

from pydantic import Field

from .base import TimestampedEntity


class Workflow(TimestampedEntity):
    github_id: int
    name: str
    path: str = ""
    state: str = ""
    owner: str
    repo: str
    html_url: Optional[str] = None
    project_id: Optional[int] = Field(None, description="Relational project id, when known")

    class Config:
        collection = "workflows"

    @classmethod
    def from_api(
        cls, payload: Dict[str, Any], owner: str, repo: str, project_id: Optional[int] = None
    ) -> "Workflow":
        return cls(
            github_id=payload["id"],
            name=payload.get("name") or "",
            path=payload.get("path") or "",
            state=payload.get("state") or "",
            created_at=payload.get("created_at"),
            updated_at=payload.get("updated_at"),
            owner=owner,
            repo=repo,
            html_url=payload.get("html_url"),
            project_id=project_id,
        )
