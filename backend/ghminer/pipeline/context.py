from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

from ghminer.pipeline.file_types import FileTypeCache
from ghminer.pipeline.languages import LanguageProfile

if TYPE_CHECKING:
    from ghminer.persistence.base import BasePersister
    from ghminer.pipeline.build_metrics import StrippedFileCache
    from ghminer.pipeline.git_history import GitHistoryWalker
    from ghminer.repositories.project_store import ProjectStore
    from ghminer.services.retriever import RepoRetriever


@dataclass
class ExtractionContext:
    """
    Everything one workflow-run task needs, built at task start.

    ``walker``, ``stripped_cache`` and the stores are shared across tasks and
    thread-safe; ``file_types`` and ``warnings`` belong to this task only.
    """

    owner: str
    repo: str
    project_id: int
    language: Optional[str]
    profile: LanguageProfile
    walker: "GitHistoryWalker"
    project_store: "ProjectStore"
    persister: "BasePersister"
    stripped_cache: "StrippedFileCache"
    retriever: Optional["RepoRetriever"] = None
    months_back: int = 3
    file_types: FileTypeCache = field(default_factory=FileTypeCache)
    warnings: List[str] = field(default_factory=list)

    @property
    def project_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def warn(self, message: str) -> None:
        self.warnings.append(message)
