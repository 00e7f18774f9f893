"""Post API endpoints.

Provides routes for:
- Public listing and reading (views counted on read)
- Admin create / update / delete
- Likes
- AI summary and draft generation
"""

from typing import Annotated

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from inkpress.auth.dependencies import (
    AdminClaims,
    CurrentClaims,
    LiveAdmin,
    OptionalClaims,
)
from inkpress.auth.schemas import MessageResponse
from inkpress.core.errors import NotFoundError
from inkpress.posts.dependencies import PostServiceDep, TextGenerationDep
from inkpress.posts.models import Post
from inkpress.posts.schemas import (
    LikeResponse,
    PostCreateRequest,
    PostListResponse,
    PostResponse,
    PostSort,
    PostUpdateRequest,
    SummaryResponse,
)
from inkpress.posts.service import MAX_PAGE_SIZE, PostService


router = APIRouter(prefix="/v1/posts", tags=["posts"])


class GeneratePostRequest(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    tone: str = Field("informative", max_length=30)
    keywords: list[str] = Field(default_factory=list)


class GeneratedPostResponse(BaseModel):
    content: str


async def _to_response(
    post_service: PostService, post: Post, include_content: bool = True
) -> PostResponse:
    return PostResponse.from_post(
        post, await post_service.tags_for(post), include_content=include_content
    )


@router.get("", response_model=PostListResponse, summary="List published posts")
async def list_posts(
    post_service: PostServiceDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = 10,
    tag: Annotated[str | None, Query(description="Tag slug")] = None,
    search: str | None = None,
    sort: PostSort = "newest",
) -> PostListResponse:
    posts, total = await post_service.list_posts(
        page=page, limit=limit, tag_slug=tag, search=search, sort=sort
    )
    total_pages = post_service.total_pages(total, limit)
    return PostListResponse(
        posts=[await _to_response(post_service, p, include_content=False) for p in posts],
        total_posts=total,
        current_page=page,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )


@router.get("/recent", response_model=list[PostResponse], summary="Recent posts")
async def recent_posts(
    post_service: PostServiceDep,
    limit: Annotated[int, Query(ge=1, le=20)] = 5,
) -> list[PostResponse]:
    return [
        await _to_response(post_service, p, include_content=False)
        for p in await post_service.recent(limit)
    ]


@router.get("/{id_or_slug}", response_model=PostResponse, summary="Read a post")
async def read_post(
    id_or_slug: str,
    post_service: PostServiceDep,
    claims: OptionalClaims,
) -> PostResponse:
    """Get a post by id or slug.

    Published posts count a view; drafts are only visible to admins.
    """
    post = await post_service.read(id_or_slug, claims.role if claims else None)
    return await _to_response(post_service, post)


@router.post(
    "",
    response_model=PostResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create post",
)
async def create_post(
    data: PostCreateRequest,
    post_service: PostServiceDep,
    claims: AdminClaims,
) -> PostResponse:
    post = await post_service.create(claims.subject, data)
    return await _to_response(post_service, post)


@router.put("/{post_id}", response_model=PostResponse, summary="Update post")
async def update_post(
    post_id: str,
    data: PostUpdateRequest,
    post_service: PostServiceDep,
    admin: LiveAdmin,
) -> PostResponse:
    post = await post_service.update(post_id, data)
    return await _to_response(post_service, post)


@router.delete("/{post_id}", response_model=MessageResponse, summary="Delete post")
async def delete_post(
    post_id: str,
    post_service: PostServiceDep,
    admin: LiveAdmin,
) -> MessageResponse:
    await post_service.delete(post_id)
    return MessageResponse(message="Post deleted successfully")


@router.post("/{post_id}/like", response_model=LikeResponse, summary="Like post")
async def like_post(
    post_id: str,
    post_service: PostServiceDep,
    claims: CurrentClaims,
) -> LikeResponse:
    likes = await post_service.like(post_id)
    return LikeResponse(message="Post liked successfully", like_count=likes)


@router.post(
    "/{post_id}/summarize",
    response_model=SummaryResponse,
    summary="AI summary of a published post",
)
async def summarize_post(
    post_id: str,
    post_service: PostServiceDep,
    ai: TextGenerationDep,
) -> SummaryResponse:
    post = await post_service.get_by_id(post_id)
    if post is None or not post.is_published:
        raise NotFoundError("Post not found", "post_not_found")
    return SummaryResponse(summary=await ai.summarize(post.content))


@router.post(
    "/generate",
    response_model=GeneratedPostResponse,
    summary="Generate a draft body with AI",
)
async def generate_post(
    data: GeneratePostRequest,
    ai: TextGenerationDep,
    claims: AdminClaims,
) -> GeneratedPostResponse:
    content = await ai.blog_post(data.title, data.tone, data.keywords)
    return GeneratedPostResponse(content=content)
