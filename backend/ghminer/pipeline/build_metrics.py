"""
Per workflow run build metrics.

For one workflow run row from the project database, joins the local git
mirror, the relational store and mirrored commit documents into a single
``ci_builds`` record. Runs whose trigger commit cannot be found are skipped
(``process_run`` returns None) and never abort the batch.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from ghminer.entities import BuildOutcome, CiBuild
from ghminer.pipeline.context import ExtractionContext
from ghminer.pipeline.file_types import FileType, is_doc
from ghminer.pipeline.git_history import TreeFile
from ghminer.services.pipeline_exceptions import MissingGitObjectError
from ghminer.utils.datetime import format_build_started_at, parse_datetime

logger = logging.getLogger(__name__)

MAX_BUILD_DURATION = 86400
UNKNOWN_BRANCH = "unknown"
DEFAULT_CACHE_ENTRIES = 20000


class StrippedFileCache:
    """
    Comment-stripped blob contents, shared by all workers of one run.

    Loaders run outside the lock, so two workers may strip the same blob
    concurrently; the first result stored wins. Least recently used entries
    are evicted beyond ``max_entries``.
    """

    def __init__(self, max_entries: int = DEFAULT_CACHE_ENTRIES) -> None:
        self.max_entries = max_entries
        self._lock = threading.Lock()
        self._contents: OrderedDict[str, str] = OrderedDict()

    def get(self, key: str, loader: Callable[[], str]) -> str:
        with self._lock:
            if key in self._contents:
                self._contents.move_to_end(key)
                return self._contents[key]

        value = loader()

        with self._lock:
            value = self._contents.setdefault(key, value)
            self._contents.move_to_end(key)
            while len(self._contents) > self.max_entries:
                self._contents.popitem(last=False)
            return value

    def __len__(self) -> int:
        with self._lock:
            return len(self._contents)


def build_duration(started_at: Any, updated_at: Any) -> int:
    """Seconds from run start to last update, zero when missing or outside one day."""
    started = parse_datetime(started_at, default_now=False)
    updated = parse_datetime(updated_at, default_now=False)
    if started is None or updated is None:
        return 0
    seconds = int((updated - started).total_seconds())
    if seconds < 0 or seconds > MAX_BUILD_DURATION:
        logger.warning(f"Build duration {seconds}s out of range, recording 0")
        return 0
    return seconds


def per_kloc(count: int, sloc: int) -> float:
    if sloc <= 0:
        return 0.0
    return count / sloc * 1000


class BuildMetricsExtractor:
    def process_run(self, run: Mapping[str, Any], ctx: ExtractionContext) -> Optional[Dict[str, Any]]:
        sha = run["head_sha"]
        run_id = run["github_id"]

        commit = self.resolve_commit(ctx, sha)
        if commit is None:
            logger.warning(f"Skipping run {run_id}: commit {sha} not found in database or clone")
            return None

        if not ctx.walker.commit_exists(sha):
            logger.warning(f"Skipping run {run_id}: commit {sha} missing from local clone")
            return None

        commit_time = commit.get("created_at") or ctx.walker.commit_time(sha)
        started_at = parse_datetime(run.get("run_started_at"), default_now=False)

        stats = self.calc_build_stats(ctx, [sha])
        tests = ctx.walker.diff_test_counts(ctx.walker.first_parent(sha), sha, ctx.profile)
        source = self.source_metrics(ctx, sha)
        team = self.team_metrics(ctx, commit, commit_time)
        pr = self.pr_metrics(ctx, sha, commit_time)

        # Repository-level confounds, recomputed for every run
        repo_age = ctx.walker.commit_age(sha)
        repo_num_commits = ctx.walker.commit_count(sha)

        record = CiBuild(
            git_branch=run.get("head_branch") or UNKNOWN_BRANCH,
            git_all_built_commits=sha,
            git_num_all_built_commits=1,
            git_trigger_commit=sha,
            git_diff_src_churn=stats["src_lines_added"] + stats["src_lines_deleted"],
            git_diff_test_churn=stats["test_lines_added"] + stats["test_lines_deleted"],
            gh_project_name=ctx.project_name,
            gh_lang=ctx.language or ctx.profile.name,
            gh_diff_files_added=stats["files_added"],
            gh_diff_files_deleted=stats["files_deleted"],
            gh_diff_files_modified=stats["files_modified"],
            gh_diff_tests_added=tests["tests_added"],
            gh_diff_tests_deleted=tests["tests_deleted"],
            gh_diff_src_files=stats["src_files"],
            gh_diff_doc_files=stats["doc_files"],
            gh_diff_other_files=stats["other_files"],
            gh_num_commits_on_files_touched=ctx.walker.commits_on_files_touched(sha, ctx.months_back),
            gh_repo_age=repo_age,
            gh_repo_num_commits=repo_num_commits,
            build_duration=build_duration(started_at, run.get("updated_at")),
            build_failed=BuildOutcome.from_conclusion(run.get("conclusion")),
            gh_build_started_at=format_build_started_at(started_at),
            github_run_id=run_id,
            **source,
            **team,
            **pr,
        )
        logger.info(f"Extracted build {run_id} ({sha[:8]}, {record.build_failed})")
        return record.to_mongo()

    # Commit resolution

    def resolve_commit(self, ctx: ExtractionContext, sha: str) -> Optional[Dict[str, Any]]:
        """Commit facts from the project database, else from the local clone."""
        row = ctx.project_store.find_commit(sha)
        if row is not None:
            return {
                "sha": sha,
                "created_at": row.get("created_at"),
                "author_login": ctx.project_store.github_login_by_id(row.get("author_id")),
            }

        try:
            _, email = ctx.walker.commit_author(sha)
            created_at = ctx.walker.commit_time(sha)
        except MissingGitObjectError:
            return None
        return {
            "sha": sha,
            "created_at": created_at,
            "author_login": ctx.project_store.github_login(email),
        }

    # Churn

    def _commit_entry(self, ctx: ExtractionContext, sha: str) -> Optional[Dict[str, Any]]:
        stored = ctx.persister.find("commits", {"sha": sha})
        if stored and stored[0].get("files") is not None:
            return stored[0]
        if ctx.retriever is not None:
            fetched = ctx.retriever.retrieve_commit(ctx.owner, ctx.repo, sha)
            if fetched and fetched.get("files") is not None:
                return fetched
        try:
            return {"sha": sha, "parents": [], "files": ctx.walker.commit_file_patches(sha)}
        except MissingGitObjectError:
            ctx.warn(f"No file list for commit {sha}")
            return None

    def calc_build_stats(self, ctx: ExtractionContext, shas: Iterable[str]) -> Dict[str, int]:
        stats = dict.fromkeys(
            [
                "src_lines_added",
                "src_lines_deleted",
                "test_lines_added",
                "test_lines_deleted",
                "files_added",
                "files_deleted",
                "files_modified",
                "src_files",
                "doc_files",
                "other_files",
            ],
            0,
        )

        entries = [e for e in (self._commit_entry(ctx, sha) for sha in shas) if e is not None]
        entries = [e for e in entries if "parents" in e]

        for entry in entries:
            for f in entry.get("files") or []:
                filename = f.get("filename") or ""
                status = f.get("status")
                if status == "added":
                    stats["files_added"] += 1
                elif status == "removed":
                    stats["files_deleted"] += 1
                elif status == "modified":
                    stats["files_modified"] += 1

                file_type = ctx.file_types.classify(filename)
                if file_type == FileType.PROGRAMMING:
                    stats["src_files"] += 1
                elif is_doc(file_type):
                    stats["doc_files"] += 1
                else:
                    stats["other_files"] += 1

                if file_type != FileType.PROGRAMMING or not f.get("patch"):
                    continue

                added, deleted = count_patch_lines(f["patch"])
                if ctx.profile.is_test_file(filename):
                    stats["test_lines_added"] += added
                    stats["test_lines_deleted"] += deleted
                else:
                    stats["src_lines_added"] += added
                    stats["src_lines_deleted"] += deleted

        return stats

    # Source and test density at the trigger commit

    def _stripped(self, ctx: ExtractionContext, tree_file: TreeFile) -> str:
        key = f"{ctx.profile.name}:{tree_file.blob_sha}"
        return ctx.stripped_cache.get(
            key, lambda: ctx.profile.strip_comments(ctx.walker.read_blob(tree_file.blob_sha))
        )

    def source_metrics(self, ctx: ExtractionContext, sha: str) -> Dict[str, Any]:
        profile = ctx.profile
        src_files: List[TreeFile] = ctx.walker.files_at_commit(sha, profile.is_source_file)
        test_files: List[TreeFile] = ctx.walker.files_at_commit(sha, profile.is_test_file)

        sloc = sum(profile.count_lines(self._stripped(ctx, f)) for f in src_files)
        test_lines = test_cases = asserts = 0
        for f in test_files:
            text = self._stripped(ctx, f)
            test_lines += profile.count_lines(text)
            test_cases += profile.count_test_cases(text)
            asserts += profile.count_assertions(text)

        return {
            "gh_sloc": sloc,
            "gh_test_lines_per_kloc": per_kloc(test_lines, sloc),
            "gh_test_cases_per_kloc": per_kloc(test_cases, sloc),
            "gh_asserts_cases_per_kloc": per_kloc(asserts, sloc),
        }

    # Team and pull request context

    def team_metrics(
        self, ctx: ExtractionContext, commit: Mapping[str, Any], commit_time: datetime
    ) -> Dict[str, Any]:
        team = ctx.project_store.main_team(ctx.owner, ctx.repo, commit_time, ctx.months_back)
        author = commit.get("author_login")
        return {
            "gh_team_size": len(team),
            "gh_by_core_team_member": bool(author) and author in team,
        }

    def pr_metrics(self, ctx: ExtractionContext, sha: str, commit_time: datetime) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "gh_is_pr": False,
            "gh_pr_created_at": None,
            "gh_num_issue_comments": 0,
            "gh_num_pr_comments": 0,
            "gh_num_commit_comments": ctx.project_store.num_commit_comments(ctx.owner, ctx.repo, [sha]),
        }
        pr = ctx.project_store.pr_info_for_commit(sha, ctx.project_id)
        if pr is None:
            return result

        opened_at = pr["created_at"]
        result["gh_is_pr"] = True
        result["gh_pr_created_at"] = opened_at.isoformat() if opened_at else None
        if opened_at is not None:
            result["gh_num_issue_comments"] = ctx.project_store.num_issue_comments(
                pr["id"], opened_at, commit_time
            )
            result["gh_num_pr_comments"] = ctx.project_store.num_pr_comments(
                pr["id"], opened_at, commit_time
            )
        return result


def count_patch_lines(patch: str) -> Tuple[int, int]:
    """Added and deleted lines of a unified diff hunk text."""
    added = deleted = 0
    for line in patch.splitlines():
        if line.startswith("+") and not line.startswith("+++"):
            added += 1
        elif line.startswith("-") and not line.startswith("---"):
            deleted += 1
    return added, deleted
