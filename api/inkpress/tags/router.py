"""Tag API endpoints."""

from fastapi import APIRouter

from inkpress.posts.dependencies import TagServiceDep
from inkpress.posts.schemas import TagResponse


router = APIRouter(prefix="/v1/tags", tags=["tags"])


@router.get("", response_model=list[TagResponse], summary="List tags")
async def list_tags(
    tag_service: TagServiceDep,
    include_empty: bool = False,
) -> list[TagResponse]:
    """Tags ordered by how many posts use them; unused tags are hidden by default."""
    return [TagResponse.from_tag(t) for t in await tag_service.list_tags(include_empty)]


@router.get("/{slug}", response_model=TagResponse, summary="Get tag by slug")
async def get_tag(slug: str, tag_service: TagServiceDep) -> TagResponse:
    return TagResponse.from_tag(await tag_service.get_by_slug(slug))
