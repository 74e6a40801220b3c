"""
Local git mirror access for build metrics.

One GitHistoryWalker is opened per repository and extraction run and shared by
all worker tasks. GitPython keeps long-lived ``git cat-file`` processes per
Repo object which are not safe for concurrent use, so every object access is
serialised behind the walker's lock. Clone, pull and log walks run as plain
git subprocesses and need no locking.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Tuple

from git import Repo, Tree
from git.exc import BadName, BadObject, GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from ghminer.pipeline.languages import LanguageProfile
from ghminer.services.pipeline_exceptions import GitCloneError, MissingGitObjectError
from ghminer.utils.git import git_log_files, rev_list_oldest_first, run_git

logger = logging.getLogger(__name__)

CLONE_TIMEOUT = 1800
PULL_TIMEOUT = 600
DAYS_PER_MONTH = 30
SECONDS_PER_DAY = 86400
GIT_UTC_DATE_FORMAT = "%Y-%m-%d %H:%M:%S +0000"

LOOKUP_ERRORS = (BadName, BadObject, ValueError)

# git resolves the empty tree object without it being stored
EMPTY_TREE_SHA = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"


@dataclass(frozen=True)
class TreeFile:
    path: str
    blob_sha: str


def _to_naive_utc(epoch: int) -> datetime:
    return datetime.fromtimestamp(epoch, tz=timezone.utc).replace(tzinfo=None)


class GitHistoryWalker:
    def __init__(
        self,
        repos_dir: str | Path,
        owner: str,
        repo: str,
        clone_url_base: str = "https://github.com/",
        max_clone_retries: int = 2,
    ):
        self.owner = owner
        self.repo_name = repo
        self.path = Path(repos_dir) / owner / repo
        self.clone_url = f"{clone_url_base}{owner}/{repo}.git"
        self.max_clone_retries = max_clone_retries
        self._lock = threading.RLock()
        self._repo: Optional[Repo] = None

    @property
    def repo(self) -> Repo:
        with self._lock:
            if self._repo is None:
                self._repo = Repo(self.path)
            return self._repo

    # Clone and update

    def clone_or_update(self, update: bool = True) -> Repo:
        """Clone on first use, pull when a checkout exists, then open it."""
        with self._lock:
            if self.path.exists():
                if update:
                    self._pull()
            else:
                self._clone()

            try:
                self._repo = Repo(self.path)
            except (InvalidGitRepositoryError, NoSuchPathError) as exc:
                logger.warning(f"Checkout at {self.path} is unusable ({exc!r}), cloning afresh")
                shutil.rmtree(self.path, ignore_errors=True)
                self._clone()
                self._repo = Repo(self.path)
            return self._repo

    def _pull(self) -> None:
        logger.info(f"Updating {self.owner}/{self.repo_name} in {self.path}")
        try:
            run_git(self.path, ["pull", "--ff-only"], timeout=PULL_TIMEOUT)
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired) as exc:
            stderr = getattr(exc, "stderr", "") or ""
            logger.warning(f"git pull failed for {self.owner}/{self.repo_name}: {stderr.strip() or exc}")

    def _clone(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        for attempt in range(self.max_clone_retries + 1):
            logger.info(f"Cloning {self.clone_url} to {self.path} (attempt {attempt + 1})")
            try:
                subprocess.run(
                    ["git", "clone", self.clone_url, str(self.path)],
                    check=True,
                    capture_output=True,
                    text=True,
                    timeout=CLONE_TIMEOUT,
                )
                logger.info(f"Successfully cloned {self.owner}/{self.repo_name}")
                return
            except (subprocess.CalledProcessError, subprocess.TimeoutExpired) as exc:
                logger.warning(f"Clone attempt {attempt + 1} failed for {self.clone_url}: {exc}")
                shutil.rmtree(self.path, ignore_errors=True)

        raise GitCloneError(
            f"Failed to clone {self.clone_url} after {self.max_clone_retries + 1} attempts"
        )

    # Commit lookup

    def lookup(self, sha: str):
        with self._lock:
            try:
                return self.repo.commit(sha)
            except LOOKUP_ERRORS as exc:
                raise MissingGitObjectError(sha) from exc

    def commit_exists(self, sha: str) -> bool:
        try:
            self.lookup(sha)
            return True
        except MissingGitObjectError:
            return False

    def commit_time(self, sha: str) -> datetime:
        with self._lock:
            return _to_naive_utc(self.lookup(sha).committed_date)

    def commit_author(self, sha: str) -> Tuple[Optional[str], Optional[str]]:
        with self._lock:
            author = self.lookup(sha).author
            return author.name, author.email

    # Repository-level confounds

    def _oldest_first(self, sha: str) -> List[str]:
        try:
            return rev_list_oldest_first(self.path, sha)
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired) as exc:
            raise MissingGitObjectError(sha, f"Cannot walk history from {sha}: {exc}") from exc

    def commit_age(self, sha: str) -> float:
        """Days between the first commit in the history of ``sha`` and ``sha`` itself."""
        try:
            walk = self._oldest_first(sha)
            if not walk:
                return 0.0
            delta = self.commit_time(sha) - self.commit_time(walk[0])
        except MissingGitObjectError as exc:
            logger.warning(f"Cannot compute repository age at {sha}: {exc}")
            return 0.0
        return round(abs(delta.total_seconds()) / SECONDS_PER_DAY, 2)

    def commit_count(self, sha: str) -> int:
        """Number of commits reachable from ``sha``, never less than one."""
        try:
            return max(len(self._oldest_first(sha)), 1)
        except MissingGitObjectError as exc:
            logger.warning(f"Cannot count commits at {sha}: {exc}")
            return 1

    # Diffs

    def _diff(self, base, commit, create_patch: bool = False):
        """Diff from ``base`` (a commit, or None for the empty tree) to ``commit``."""
        with self._lock:
            if base is None:
                base = Tree(self.repo, bytes.fromhex(EMPTY_TREE_SHA))
            return base.diff(commit, create_patch=create_patch)

    def _first_parent_diff(self, sha: str, create_patch: bool = False):
        with self._lock:
            commit = self.lookup(sha)
            return self._diff(commit.parents[0] if commit.parents else None, commit, create_patch)

    def first_parent(self, sha: str) -> Optional[str]:
        with self._lock:
            parents = self.lookup(sha).parents
            return parents[0].hexsha if parents else None

    def commit_file_patches(self, sha: str) -> List[Dict[str, Optional[str]]]:
        """Per-file ``{filename, status, patch}`` entries shaped like the commits API."""
        files = []
        with self._lock:
            for d in self._first_parent_diff(sha, create_patch=True):
                if d.new_file:
                    status = "added"
                elif d.deleted_file:
                    status = "removed"
                elif d.renamed_file:
                    status = "renamed"
                else:
                    status = "modified"
                patch = d.diff.decode("utf-8", errors="replace") if isinstance(d.diff, bytes) else d.diff
                files.append({"filename": d.b_path or d.a_path, "status": status, "patch": patch})
        return files

    def files_changed(self, sha: str) -> Set[str]:
        """Old and new paths of every file changed by ``sha`` against its first parent."""
        paths: Set[str] = set()
        for d in self._first_parent_diff(sha):
            for path in (d.a_path, d.b_path):
                if path:
                    paths.add(path)
        return paths

    def diff_test_counts(
        self, from_sha: Optional[str], to_sha: str, profile: LanguageProfile
    ) -> Dict[str, int]:
        """Test-case declarations added and deleted in test files between two commits."""
        counts = {"tests_added": 0, "tests_deleted": 0}
        try:
            with self._lock:
                to_commit = self.lookup(to_sha)
                from_commit = self.lookup(from_sha) if from_sha else None
                diffs = self._diff(from_commit, to_commit, create_patch=True)
        except (MissingGitObjectError, GitCommandError) as exc:
            logger.warning(f"Cannot diff {from_sha}..{to_sha}: {exc}")
            return counts

        for d in diffs:
            path = d.b_path or d.a_path
            if not path or not profile.is_test_file(path):
                continue
            patch = d.diff.decode("utf-8", errors="replace") if isinstance(d.diff, bytes) else d.diff
            for line in patch.splitlines():
                if line.startswith("+") and not line.startswith("+++"):
                    if profile.is_test_case_declaration(line[1:]):
                        counts["tests_added"] += 1
                elif line.startswith("-") and not line.startswith("---"):
                    if profile.is_test_case_declaration(line[1:]):
                        counts["tests_deleted"] += 1
        return counts

    def commits_on_files_touched(self, sha: str, months_back: int) -> int:
        """
        Commits within ``months_back`` months before ``sha`` (inclusive) that
        touched any file ``sha`` itself changed.
        """
        try:
            files = sorted(self.files_changed(sha))
            if not files:
                return 0
            since = self.commit_time(sha) - timedelta(days=DAYS_PER_MONTH * months_back)
        except (MissingGitObjectError, GitCommandError) as exc:
            logger.warning(f"Cannot compute file touch history at {sha}: {exc}")
            return 0
        return len(git_log_files(self.path, sha, since.strftime(GIT_UTC_DATE_FORMAT), files))

    # Trees and blobs

    def files_at_commit(self, sha: str, predicate: Callable[[str], bool]) -> List[TreeFile]:
        with self._lock:
            tree = self.lookup(sha).tree
            return [
                TreeFile(item.path, item.hexsha)
                for item in tree.traverse()
                if item.type == "blob" and predicate(item.path)
            ]

    def read_blob(self, blob_sha: str) -> str:
        with self._lock:
            data = self.repo.odb.stream(bytes.fromhex(blob_sha)).read()
        return data.decode("utf-8", errors="replace")
