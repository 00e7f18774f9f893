"""FastAPI dependencies for comments."""

from typing import Annotated

from fastapi import Depends, Request

from inkpress.comments.service import CommentService
from inkpress.core.errors import ServiceUnavailableError


async def get_comment_service(request: Request) -> CommentService:
    """Get comment service from app state."""
    comment_service = getattr(request.app.state, "comment_service", None)
    if comment_service is None:
        raise ServiceUnavailableError("Comment service not available")
    return comment_service


CommentServiceDep = Annotated[CommentService, Depends(get_comment_service)]
