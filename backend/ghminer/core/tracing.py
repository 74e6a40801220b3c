"""
Tracing Context - Thread-safe context management for log correlation.

Usage:
    # Set context at the start of a command or worker task
    TracingContext.set(request_id="req-1", repo="octo/hello", task_name="extract")

    # Get context (automatically added to JSONFormatter logs)
    ctx = TracingContext.get()

    # Clear context at the end
    TracingContext.clear()

contextvars are per-thread, so worker tasks must set their own context
(see TracingContext.copy / TracingContext.restore).
"""

import uuid
from contextvars import ContextVar
from typing import Dict

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")
_request_id: ContextVar[str] = ContextVar("request_id", default="")
_repo: ContextVar[str] = ContextVar("repo", default="")
_run_id: ContextVar[str] = ContextVar("run_id", default="")
_task_name: ContextVar[str] = ContextVar("task_name", default="")

_VARS = {
    "correlation_id": _correlation_id,
    "request_id": _request_id,
    "repo": _repo,
    "run_id": _run_id,
    "task_name": _task_name,
}


class TracingContext:
    """Thread-safe tracing context."""

    @staticmethod
    def set(
        correlation_id: str = "",
        request_id: str = "",
        repo: str = "",
        run_id: str = "",
        task_name: str = "",
    ) -> None:
        """Set tracing context for current execution."""
        if correlation_id:
            _correlation_id.set(correlation_id)
        if request_id:
            _request_id.set(request_id)
        if repo:
            _repo.set(repo)
        if run_id:
            _run_id.set(str(run_id))
        if task_name:
            _task_name.set(task_name)

    @staticmethod
    def get() -> Dict[str, str]:
        """Get current tracing context as dict."""
        return {name: var.get() for name, var in _VARS.items()}

    @staticmethod
    def get_or_create_correlation_id() -> str:
        corr_id = _correlation_id.get()
        if not corr_id:
            corr_id = str(uuid.uuid4())
            _correlation_id.set(corr_id)
        return corr_id

    @staticmethod
    def get_log_prefix() -> str:
        """Get a formatted prefix for manual logging."""
        corr_id = _correlation_id.get()
        if corr_id:
            return f"[corr={corr_id[:8]}]"
        return ""

    @staticmethod
    def clear() -> None:
        """Clear all tracing context."""
        for var in _VARS.values():
            var.set("")

    @staticmethod
    def copy() -> Dict[str, str]:
        """Copy current context for handing over to worker threads."""
        return TracingContext.get()

    @staticmethod
    def restore(values: Dict[str, str]) -> None:
        TracingContext.set(**{k: v for k, v in values.items() if k in _VARS})
