"""
Read access to the relational project database (plus workflow ingestion).

All queries go through one pooled SQLAlchemy engine; each call checks a
connection out for its own duration, so worker threads never share one.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import and_, func, select
from sqlalchemy.engine import Engine

from ghminer.database.schema import (
    commit_comments,
    commits,
    issue_comments,
    issues,
    project_commits,
    projects,
    pull_request_comments,
    pull_request_commits,
    pull_request_history,
    pull_requests,
    users,
    workflow_runs,
    workflows,
)
from ghminer.entities import Workflow, WorkflowRun

logger = logging.getLogger(__name__)

DAYS_PER_MONTH = 30


def window_start(until: datetime, months_back: int) -> datetime:
    return until - timedelta(days=DAYS_PER_MONTH * months_back)


class ProjectStore:
    def __init__(self, engine: Engine):
        self.engine = engine

    def _one(self, stmt) -> Optional[Dict[str, Any]]:
        with self.engine.connect() as conn:
            row = conn.execute(stmt).first()
        return dict(row._mapping) if row is not None else None

    def _scalar(self, stmt) -> Any:
        with self.engine.connect() as conn:
            return conn.execute(stmt).scalar()

    def _owner_project(self):
        return projects.join(users, projects.c.owner_id == users.c.id)

    # Lookups

    def find_project(self, owner: str, repo: str) -> Optional[Dict[str, Any]]:
        stmt = (
            select(projects.c.id, projects.c.language)
            .select_from(self._owner_project())
            .where(users.c.login == owner, projects.c.name == repo)
        )
        return self._one(stmt)

    def find_commit(self, sha: str) -> Optional[Dict[str, Any]]:
        return self._one(select(commits).where(commits.c.sha == sha))

    def github_login(self, email: Optional[str]) -> Optional[str]:
        if not email:
            return None
        return self._scalar(
            select(users.c.login)
            .where(users.c.email == email, users.c.fake.is_(False))
            .limit(1)
        )

    def github_login_by_id(self, user_id: Optional[int]) -> Optional[str]:
        if user_id is None:
            return None
        return self._scalar(
            select(users.c.login).where(users.c.id == user_id, users.c.fake.is_(False))
        )

    # Team

    def main_team(self, owner: str, repo: str, until: datetime, months_back: int) -> Set[str]:
        """
        Logins that authored commits in, or merged pull requests into, the project
        within ``months_back`` months before ``until``. Fake users are ignored.
        """
        since = window_start(until, months_back)
        owner_user = users.alias("owner_user")
        project_filter = and_(
            projects.c.owner_id == owner_user.c.id,
            owner_user.c.login == owner,
            projects.c.name == repo,
        )

        authors = (
            select(users.c.login)
            .distinct()
            .select_from(
                commits.join(users, commits.c.author_id == users.c.id)
                .join(project_commits, project_commits.c.commit_id == commits.c.id)
                .join(projects, projects.c.id == project_commits.c.project_id)
                .join(owner_user, projects.c.owner_id == owner_user.c.id)
            )
            .where(
                project_filter,
                users.c.fake.is_(False),
                commits.c.created_at.between(since, until),
            )
        )
        mergers = (
            select(users.c.login)
            .distinct()
            .select_from(
                pull_request_history.join(users, pull_request_history.c.actor_id == users.c.id)
                .join(pull_requests, pull_requests.c.id == pull_request_history.c.pull_request_id)
                .join(projects, projects.c.id == pull_requests.c.base_repo_id)
                .join(owner_user, projects.c.owner_id == owner_user.c.id)
            )
            .where(
                project_filter,
                users.c.fake.is_(False),
                pull_request_history.c.action == "merged",
                pull_request_history.c.created_at.between(since, until),
            )
        )
        with self.engine.connect() as conn:
            team = set(conn.execute(authors).scalars())
            team.update(conn.execute(mergers).scalars())
        return team

    # Pull requests and comments

    def pr_info_for_commit(self, sha: str, project_id: int) -> Optional[Dict[str, Any]]:
        """The pull request (id, opened time) that carried ``sha``, if any."""
        stmt = (
            select(pull_requests.c.id, pull_request_history.c.created_at)
            .select_from(
                pull_request_commits.join(commits, commits.c.id == pull_request_commits.c.commit_id)
                .join(pull_requests, pull_requests.c.id == pull_request_commits.c.pull_request_id)
                .join(
                    pull_request_history,
                    pull_request_history.c.pull_request_id == pull_requests.c.id,
                )
            )
            .where(
                commits.c.sha == sha,
                pull_requests.c.base_repo_id == project_id,
                pull_request_history.c.action == "opened",
            )
            .order_by(pull_request_history.c.created_at)
            .limit(1)
        )
        return self._one(stmt)

    def num_pr_comments(self, pr_id: int, from_time: datetime, to_time: datetime) -> int:
        stmt = select(func.count()).select_from(pull_request_comments).where(
            pull_request_comments.c.pull_request_id == pr_id,
            pull_request_comments.c.created_at.between(from_time, to_time),
        )
        return int(self._scalar(stmt) or 0)

    def num_issue_comments(self, pr_id: int, from_time: datetime, to_time: datetime) -> int:
        stmt = (
            select(func.count())
            .select_from(issue_comments.join(issues, issues.c.id == issue_comments.c.issue_id))
            .where(
                issues.c.pull_request_id == pr_id,
                issue_comments.c.created_at.between(from_time, to_time),
            )
        )
        return int(self._scalar(stmt) or 0)

    def num_commit_comments(self, owner: str, repo: str, shas: Iterable[str]) -> int:
        shas = list(shas)
        if not shas:
            return 0
        stmt = (
            select(func.count())
            .select_from(
                commit_comments.join(commits, commits.c.id == commit_comments.c.commit_id)
                .join(project_commits, project_commits.c.commit_id == commits.c.id)
                .join(projects, projects.c.id == project_commits.c.project_id)
                .join(users, users.c.id == projects.c.owner_id)
            )
            .where(users.c.login == owner, projects.c.name == repo, commits.c.sha.in_(shas))
        )
        return int(self._scalar(stmt) or 0)

    # Workflows

    def latest_workflow_runs(self, project_id: int) -> List[Dict[str, Any]]:
        """Most recently started run for every (head_branch, head_sha) pair."""
        latest = (
            select(
                workflow_runs.c.head_branch,
                workflow_runs.c.head_sha,
                func.max(workflow_runs.c.run_started_at).label("latest_start"),
            )
            .where(workflow_runs.c.project_id == project_id)
            .group_by(workflow_runs.c.head_branch, workflow_runs.c.head_sha)
            .subquery()
        )
        stmt = (
            select(workflow_runs)
            .join(
                latest,
                and_(
                    workflow_runs.c.head_branch.is_not_distinct_from(latest.c.head_branch),
                    workflow_runs.c.head_sha == latest.c.head_sha,
                    workflow_runs.c.run_started_at == latest.c.latest_start,
                ),
            )
            .where(workflow_runs.c.project_id == project_id)
            .order_by(workflow_runs.c.run_started_at)
        )
        with self.engine.connect() as conn:
            return [dict(row._mapping) for row in conn.execute(stmt)]

    def ensure_workflow(self, workflow: Workflow, project_id: Optional[int]) -> int:
        with self.engine.begin() as conn:
            existing = conn.execute(
                select(workflows.c.id).where(workflows.c.github_id == workflow.github_id)
            ).scalar()
            if existing is not None:
                return existing
            result = conn.execute(
                workflows.insert().values(
                    github_id=workflow.github_id,
                    name=workflow.name,
                    path=workflow.path,
                    state=workflow.state,
                    project_id=project_id,
                    created_at=workflow.created_at,
                    updated_at=workflow.updated_at,
                )
            )
            logger.info(f"Added workflow {workflow.name} ({workflow.github_id})")
            return result.inserted_primary_key[0]

    def ensure_workflow_run(
        self, run: WorkflowRun, workflow_row_id: Optional[int], project_id: Optional[int]
    ) -> int:
        with self.engine.begin() as conn:
            existing = conn.execute(
                select(workflow_runs.c.id).where(workflow_runs.c.github_id == run.github_id)
            ).scalar()
            if existing is not None:
                return existing
            result = conn.execute(
                workflow_runs.insert().values(
                    github_id=run.github_id,
                    workflow_id=workflow_row_id,
                    project_id=project_id,
                    head_branch=run.head_branch,
                    head_sha=run.head_sha,
                    run_number=run.run_number,
                    status=run.status,
                    conclusion=run.conclusion,
                    actor_login=run.actor.login if run.actor else None,
                    triggering_actor_login=(
                        run.triggering_actor.login if run.triggering_actor else None
                    ),
                    created_at=run.created_at,
                    run_started_at=run.run_started_at,
                    updated_at=run.updated_at,
                )
            )
            logger.debug(f"Added workflow run {run.github_id}")
            return result.inserted_primary_key[0]

    def find_workflow_id(self, github_id: int) -> Optional[int]:
        return self._scalar(select(workflows.c.id).where(workflows.c.github_id == github_id))
