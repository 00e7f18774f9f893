# Core infrastructure
from inkpress.core.context import (
    JobContext,
    clear_context,
    get_context,
    get_request_id,
    get_user_id,
    set_request_id,
    set_user_id,
)
from inkpress.core.logging import configure_structlog, get_logger
from inkpress.core.middleware import RequestContextMiddleware


__all__ = [
    "JobContext",
    "RequestContextMiddleware",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_request_id",
    "get_user_id",
    "set_request_id",
    "set_user_id",
]
