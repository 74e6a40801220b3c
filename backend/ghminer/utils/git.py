"""
Git Utilities using subprocess.

Clone, pull and log walks run as git subprocesses; object access (trees,
blobs, diffs) goes through GitPython in ``ghminer.pipeline.git_history``.
"""

import logging
import subprocess
from pathlib import Path
from typing import List, Set

logger = logging.getLogger(__name__)


def run_git(
    repo_path: Path,
    args: List[str],
    timeout: int = 60,
) -> str:
    """Run a git command and return stdout."""
    result = subprocess.run(
        ["git"] + args,
        cwd=str(repo_path),
        capture_output=True,
        text=True,
        timeout=timeout,
    )
    if result.returncode != 0:
        raise subprocess.CalledProcessError(
            result.returncode, ["git"] + args, result.stdout, result.stderr
        )
    return result.stdout.strip()


def rev_list_oldest_first(repo_path: Path, sha: str) -> List[str]:
    """Ancestry of ``sha`` in date order, oldest commit first."""
    output = run_git(repo_path, ["rev-list", "--date-order", "--reverse", sha], timeout=300)
    return output.splitlines() if output else []


def git_log_files(
    repo_path: Path,
    sha: str,
    since: str,
    file_paths: List[str],
    chunk_size: int = 50,
) -> Set[str]:
    """
    Commit SHAs reachable from ``sha`` since a date that touched any of the files.

    Paths are passed in chunks to stay under argument length limits.
    """
    all_shas: Set[str] = set()

    for i in range(0, len(file_paths), chunk_size):
        chunk = file_paths[i : i + chunk_size]
        try:
            output = run_git(
                repo_path,
                ["log", sha, "--since", since, "--format=%H", "--"] + chunk,
            )
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired) as exc:
            logger.warning(f"git log failed for {len(chunk)} paths at {sha}: {exc}")
            continue
        if output:
            all_shas.update(output.splitlines())

    return all_shas
