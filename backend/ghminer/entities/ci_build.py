from enum import Enum
from typing import Optional

from pydantic import Field

from .base import BaseEntity


class BuildOutcome(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    OTHERS = "others"

    @classmethod
    def from_conclusion(cls, conclusion: Optional[str]) -> "BuildOutcome":
        if conclusion == "success":
            return cls.PASSED
        if conclusion == "failure":
            return cls.FAILED
        return cls.OTHERS


class CiBuild(BaseEntity):
    """
    Metrics for one workflow run.

    Keyed by (gh_project_name, git_all_built_commits, git_branch); a later
    extraction pass overwrites the earlier record.
    """

    git_branch: str
    git_all_built_commits: str
    git_num_all_built_commits: int = 1
    git_trigger_commit: str
    git_diff_src_churn: int = 0
    git_diff_test_churn: int = 0

    gh_project_name: str
    gh_is_pr: bool = False
    gh_pr_created_at: Optional[str] = None
    gh_lang: str
    gh_team_size: int = 0
    gh_num_issue_comments: int = 0
    gh_num_pr_comments: int = 0
    gh_num_commit_comments: int = 0

    gh_diff_files_added: int = 0
    gh_diff_files_deleted: int = 0
    gh_diff_files_modified: int = 0
    gh_diff_tests_added: int = 0
    gh_diff_tests_deleted: int = 0
    gh_diff_src_files: int = 0
    gh_diff_doc_files: int = 0
    gh_diff_other_files: int = 0
    gh_num_commits_on_files_touched: int = 0

    gh_sloc: int = 0
    gh_test_lines_per_kloc: float = 0.0
    gh_test_cases_per_kloc: float = 0.0
    gh_asserts_cases_per_kloc: float = 0.0

    gh_by_core_team_member: bool = False
    gh_repo_age: float = 0.0
    gh_repo_num_commits: int = 1

    build_duration: int = Field(0, ge=0, le=86400)
    build_failed: BuildOutcome
    gh_build_started_at: Optional[str] = None
    github_run_id: int

    class Config:
        collection = "ci_builds"
        use_enum_values = True

    def business_key(self) -> dict:
        return {
            "gh_project_name": self.gh_project_name,
            "git_all_built_commits": self.git_all_built_commits,
            "git_branch": self.git_branch,
        }
