"""
Build extraction for one repository.

Loads the latest workflow run per (branch, sha) from the project database and
computes a metrics record for each on a small thread pool. The git clone, the
stripped-file cache and the rate limiter are shared by all workers; every
task gets its own ExtractionContext.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Mapping, Optional

from pymongo.errors import PyMongoError

from ghminer.core.tracing import TracingContext
from ghminer.persistence.base import BasePersister
from ghminer.pipeline.build_metrics import BuildMetricsExtractor, StrippedFileCache
from ghminer.pipeline.context import ExtractionContext
from ghminer.pipeline.git_history import GitHistoryWalker
from ghminer.pipeline.languages import LanguageProfile, select_profile
from ghminer.repositories.project_store import ProjectStore
from ghminer.services.github.exceptions import GithubAuthError
from ghminer.services.pipeline_exceptions import ProjectNotFoundError
from ghminer.services.retriever import RepoRetriever

logger = logging.getLogger(__name__)

CI_BUILDS = "ci_builds"


def build_key(record: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "gh_project_name": record["gh_project_name"],
        "git_all_built_commits": record["git_all_built_commits"],
        "git_branch": record["git_branch"],
    }


class BuildExtractionRunner:
    def __init__(
        self,
        settings,
        project_store: ProjectStore,
        persister: BasePersister,
        retriever: Optional[RepoRetriever] = None,
        extractor: Optional[BuildMetricsExtractor] = None,
        update_clone: bool = True,
    ):
        self.settings = settings
        self.project_store = project_store
        self.persister = persister
        self.retriever = retriever
        self.extractor = extractor or BuildMetricsExtractor()
        self.update_clone = update_clone
        self._stop = threading.Event()

    def stop(self) -> None:
        """Stop taking new runs; runs already being processed finish normally."""
        if not self._stop.is_set():
            logger.warning("Stop requested, finishing in-flight builds")
        self._stop.set()
        if self.retriever is not None:
            self.retriever.client.rate_limiter.interrupt()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def walker_for(self, owner: str, repo: str) -> GitHistoryWalker:
        return GitHistoryWalker(
            self.settings.REPOS_DIR, owner, repo, clone_url_base=self.settings.GIT_CLONE_URL_BASE
        )

    def run(self, owner: str, repo: str) -> Dict[str, Any]:
        project = self.project_store.find_project(owner, repo)
        if project is None:
            raise ProjectNotFoundError(owner, repo)

        language = project.get("language")
        profile = select_profile(language)
        logger.info(f"Extracting builds for {owner}/{repo} ({language}, using {profile.name} profile)")

        walker = self.walker_for(owner, repo)
        walker.clone_or_update(update=self.update_clone)

        runs = self.project_store.latest_workflow_runs(project["id"])
        logger.info(f"{len(runs)} workflow runs to process for {owner}/{repo}")

        records = self.process_runs(owner, repo, project["id"], language, profile, walker, runs)
        if not records:
            return {"status": "error", "message": "No data extracted"}

        saved = self.save(records)
        return {"status": "success", "message": f"Extracted and saved {saved} builds"}

    def process_runs(
        self,
        owner: str,
        repo: str,
        project_id: int,
        language: Optional[str],
        profile: LanguageProfile,
        walker: GitHistoryWalker,
        runs: List[Mapping[str, Any]],
    ) -> List[Dict[str, Any]]:
        stripped_cache = StrippedFileCache()
        tracing = TracingContext.copy()

        def task(run: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
            if self.stopped:
                return None
            TracingContext.restore(tracing)
            TracingContext.set(run_id=str(run["github_id"]), task_name="extract_build")
            ctx = ExtractionContext(
                owner=owner,
                repo=repo,
                project_id=project_id,
                language=language,
                profile=profile,
                walker=walker,
                project_store=self.project_store,
                persister=self.persister,
                stripped_cache=stripped_cache,
                retriever=self.retriever,
                months_back=self.settings.MONTHS_BACK,
            )
            try:
                return self.extractor.process_run(run, ctx)
            finally:
                TracingContext.clear()

        records: List[Dict[str, Any]] = []
        with ThreadPoolExecutor(max_workers=self.settings.EXTRACTOR_THREADS) as pool:
            futures = {pool.submit(task, run): run for run in runs}
            for future in as_completed(futures):
                run = futures[future]
                try:
                    record = future.result()
                except GithubAuthError:
                    self.stop()
                    raise
                except Exception as exc:
                    logger.error(
                        f"Failed to extract run {run.get('github_id')} ({run.get('head_sha')}): {exc}",
                        exc_info=True,
                    )
                    continue
                if record is not None:
                    records.append(record)

        if self.stopped:
            logger.warning(f"Interrupted: {len(records)} of {len(runs)} runs extracted")
        return records

    def save(self, records: List[Dict[str, Any]]) -> int:
        saved = 0
        for record in records:
            try:
                self.persister.upsert(CI_BUILDS, build_key(record), record)
                saved += 1
            except PyMongoError as exc:
                logger.error(
                    f"Failed to save build {record.get('github_run_id')} "
                    f"for {record.get('gh_project_name')}: {exc}"
                )
        logger.info(f"Saved {saved}/{len(records)} builds")
        return saved
