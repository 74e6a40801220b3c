"""
Relational project database tables.

Mirrors the subset of the GHTorrent schema the extractor reads, plus the
workflow tables written during retrieval.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("login", String(255), nullable=False, unique=True),
    Column("name", String(255)),
    Column("email", String(255)),
    Column("company", String(255)),
    Column("type", String(255), default="USR"),
    Column("fake", Boolean, nullable=False, default=False),
    Column("deleted", Boolean, nullable=False, default=False),
    Column("created_at", DateTime),
)

projects = Table(
    "projects",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("url", String(255)),
    Column("owner_id", Integer, ForeignKey("users.id")),
    Column("name", String(255), nullable=False),
    Column("description", String(255)),
    Column("language", String(255)),
    Column("created_at", DateTime),
    Column("forked_from", Integer, ForeignKey("projects.id")),
    Column("deleted", Boolean, nullable=False, default=False),
    Column("updated_at", DateTime),
    Index("ix_projects_owner_name", "owner_id", "name"),
)

commits = Table(
    "commits",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("sha", String(40), unique=True),
    Column("author_id", Integer, ForeignKey("users.id")),
    Column("committer_id", Integer, ForeignKey("users.id")),
    Column("project_id", Integer, ForeignKey("projects.id")),
    Column("created_at", DateTime),
)

project_commits = Table(
    "project_commits",
    metadata,
    Column("project_id", Integer, ForeignKey("projects.id"), nullable=False),
    Column("commit_id", Integer, ForeignKey("commits.id"), nullable=False),
)

commit_comments = Table(
    "commit_comments",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("commit_id", Integer, ForeignKey("commits.id"), nullable=False),
    Column("user_id", Integer, ForeignKey("users.id")),
    Column("body", String(256)),
    Column("line", Integer),
    Column("position", Integer),
    Column("comment_id", Integer, nullable=False),
    Column("created_at", DateTime),
)

pull_requests = Table(
    "pull_requests",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("head_repo_id", Integer, ForeignKey("projects.id")),
    Column("base_repo_id", Integer, ForeignKey("projects.id"), nullable=False),
    Column("head_commit_id", Integer, ForeignKey("commits.id")),
    Column("base_commit_id", Integer, ForeignKey("commits.id")),
    Column("pullreq_id", Integer, nullable=False),
    Column("intra_branch", Boolean, default=False),
)

pull_request_history = Table(
    "pull_request_history",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("pull_request_id", Integer, ForeignKey("pull_requests.id"), nullable=False),
    Column("created_at", DateTime),
    Column("action", String(255), nullable=False),
    Column("actor_id", Integer, ForeignKey("users.id")),
)

pull_request_commits = Table(
    "pull_request_commits",
    metadata,
    Column("pull_request_id", Integer, ForeignKey("pull_requests.id"), nullable=False),
    Column("commit_id", Integer, ForeignKey("commits.id"), nullable=False),
)

pull_request_comments = Table(
    "pull_request_comments",
    metadata,
    Column("pull_request_id", Integer, ForeignKey("pull_requests.id"), nullable=False),
    Column("user_id", Integer, ForeignKey("users.id")),
    Column("comment_id", String(255), nullable=False),
    Column("position", Integer),
    Column("body", String(256)),
    Column("commit_id", Integer, ForeignKey("commits.id")),
    Column("created_at", DateTime),
)

issues = Table(
    "issues",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("repo_id", Integer, ForeignKey("projects.id")),
    Column("reporter_id", Integer, ForeignKey("users.id")),
    Column("assignee_id", Integer, ForeignKey("users.id")),
    Column("pull_request", Boolean, nullable=False, default=False),
    Column("pull_request_id", Integer, ForeignKey("pull_requests.id")),
    Column("created_at", DateTime),
    Column("issue_id", Integer, nullable=False),
)

issue_comments = Table(
    "issue_comments",
    metadata,
    Column("issue_id", Integer, ForeignKey("issues.id"), nullable=False),
    Column("user_id", Integer, ForeignKey("users.id")),
    Column("comment_id", Text, nullable=False),
    Column("created_at", DateTime),
)

workflows = Table(
    "workflows",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("github_id", Integer, nullable=False, unique=True),
    Column("name", String(255)),
    Column("path", String(255)),
    Column("state", String(50)),
    Column("project_id", Integer, ForeignKey("projects.id")),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)

workflow_runs = Table(
    "workflow_runs",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("github_id", Integer, nullable=False, unique=True),
    Column("workflow_id", Integer, ForeignKey("workflows.id")),
    Column("project_id", Integer, ForeignKey("projects.id")),
    Column("head_branch", String(255)),
    Column("head_sha", String(40)),
    Column("run_number", Integer),
    Column("status", String(50)),
    Column("conclusion", String(50)),
    Column("actor_login", String(255)),
    Column("triggering_actor_login", String(255)),
    Column("created_at", DateTime),
    Column("run_started_at", DateTime),
    Column("updated_at", DateTime),
    Index("ix_workflow_runs_head_sha", "head_sha"),
)


def create_schema(engine) -> None:
    metadata.create_all(engine)
