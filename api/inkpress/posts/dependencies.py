"""FastAPI dependencies for posts, tags and the AI collaborator."""

from typing import Annotated

from fastapi import Depends, Request

from inkpress.ai.service import TextGenerationService
from inkpress.core.errors import ServiceUnavailableError
from inkpress.posts.service import PostService
from inkpress.tags.service import TagService


async def get_post_service(request: Request) -> PostService:
    """Get post service from app state."""
    post_service = getattr(request.app.state, "post_service", None)
    if post_service is None:
        raise ServiceUnavailableError("Post service not available")
    return post_service


async def get_tag_service(request: Request) -> TagService:
    tag_service = getattr(request.app.state, "tag_service", None)
    if tag_service is None:
        raise ServiceUnavailableError("Tag service not available")
    return tag_service


async def get_text_generation_service(request: Request) -> TextGenerationService:
    """Get the AI collaborator; 503 when it is not configured."""
    service = getattr(request.app.state, "text_generation", None)
    if service is None or not service.is_available:
        raise ServiceUnavailableError(
            "AI service is currently unavailable", "ai_unavailable"
        )
    return service


PostServiceDep = Annotated[PostService, Depends(get_post_service)]
TagServiceDep = Annotated[TagService, Depends(get_tag_service)]
TextGenerationDep = Annotated[
    TextGenerationService, Depends(get_text_generation_service)
]
