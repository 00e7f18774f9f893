"""Request context management using contextvars.

HTTP requests and background jobs each get their own id so log lines from
one unit of work can be correlated without passing parameters around.
"""

from contextvars import ContextVar
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
job_var: ContextVar[str | None] = ContextVar("job", default=None)


def generate_request_id() -> str:
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context, generating one if absent."""
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_user_id() -> str | None:
    return user_id_var.get()


def set_user_id(user_id: str | UUID | None) -> None:
    user_id_var.set(str(user_id) if user_id is not None else None)


def get_context() -> dict[str, Any]:
    """Get the populated context variables as a dictionary."""
    context: dict[str, Any] = {}
    if request_id := request_id_var.get():
        context["request_id"] = request_id
    if user_id := user_id_var.get():
        context["user_id"] = user_id
    if job := job_var.get():
        context["job"] = job
    return context


def clear_context() -> None:
    """Clear all context variables at the end of a request."""
    request_id_var.set("")
    user_id_var.set(None)
    job_var.set(None)


class JobContext:
    """Context manager giving a background job run its own log context.

    Usage:
        with JobContext("reconcile"):
            logger.info("reconcile_started")  # includes job and request_id
    """

    def __init__(self, job: str, request_id: str | None = None) -> None:
        self.job = job
        self.request_id = request_id
        self._tokens: list[tuple[ContextVar[Any], Any]] = []

    def __enter__(self) -> "JobContext":
        self._tokens.append(
            (request_id_var, request_id_var.set(self.request_id or generate_request_id()))
        )
        self._tokens.append((job_var, job_var.set(self.job)))
        return self

    def __exit__(self, *_: object) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
