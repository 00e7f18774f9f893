"""Pydantic schemas for posts and tags."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from inkpress.posts.models import Post, PostStatus
from inkpress.tags.models import Tag


PostSort = Literal["newest", "oldest", "popular", "trending"]


def _split_tags(v: list[str] | str | None) -> list[str] | None:
    if v is None:
        return None
    if isinstance(v, str):
        v = v.split(",")
    return [name.strip() for name in v if name and name.strip()]


# ==============================================================================
# Request Schemas
# ==============================================================================


class PostCreateRequest(BaseModel):
    """Create a post. ``tags`` accepts a list or a comma-separated string."""

    title: str = Field(..., min_length=3, max_length=200)
    content: str = Field(..., min_length=10)
    excerpt: str | None = Field(None, max_length=500)
    tags: list[str] = Field(default_factory=list)
    status: PostStatus = PostStatus.DRAFT
    cover_image: str | None = Field(None, max_length=500)
    seo_title: str | None = Field(None, max_length=60)
    seo_description: str | None = Field(None, max_length=160)
    featured: bool = False

    @field_validator("title", "content", mode="before")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip() if isinstance(v, str) else v

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v: list[str] | str | None) -> list[str]:
        return _split_tags(v) or []


class PostUpdateRequest(BaseModel):
    """Partial post update.

    ``excerpt`` set to an empty string switches back to a generated excerpt.
    """

    title: str | None = Field(None, min_length=3, max_length=200)
    content: str | None = Field(None, min_length=10)
    excerpt: str | None = Field(None, max_length=500)
    tags: list[str] | None = None
    status: PostStatus | None = None
    cover_image: str | None = Field(None, max_length=500)
    seo_title: str | None = Field(None, max_length=60)
    seo_description: str | None = Field(None, max_length=160)
    featured: bool | None = None

    @field_validator("title", "content", mode="before")
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        return v.strip() if isinstance(v, str) else v

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v: list[str] | str | None) -> list[str] | None:
        return _split_tags(v)


# ==============================================================================
# Response Schemas
# ==============================================================================


class TagSummary(BaseModel):
    id: str
    name: str
    slug: str
    color: str

    @classmethod
    def from_tag(cls, tag: Tag) -> "TagSummary":
        return cls(id=tag.id, name=tag.name, slug=tag.slug, color=tag.color)


class TagResponse(TagSummary):
    description: str | None = None
    post_count: int
    created_at: datetime

    @classmethod
    def from_tag(cls, tag: Tag) -> "TagResponse":
        return cls(
            id=tag.id,
            name=tag.name,
            slug=tag.slug,
            color=tag.color,
            description=tag.description,
            post_count=tag.post_count,
            created_at=tag.created_at,
        )


class PostResponse(BaseModel):
    id: str
    title: str
    slug: str
    content: str | None = None
    excerpt: str
    reading_time: int
    author_id: str
    tags: list[TagSummary]
    status: PostStatus
    published_at: datetime | None
    cover_image: str | None
    seo_title: str | None
    seo_description: str | None
    featured: bool
    view_count: int
    like_count: int
    comment_count: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_post(
        cls, post: Post, tags: list[Tag], include_content: bool = True
    ) -> "PostResponse":
        return cls(
            id=post.id,
            title=post.title,
            slug=post.slug,
            content=post.content if include_content else None,
            excerpt=post.excerpt,
            reading_time=post.reading_time,
            author_id=post.author_id,
            tags=[TagSummary.from_tag(t) for t in tags],
            status=post.status,
            published_at=post.published_at,
            cover_image=post.cover_image,
            seo_title=post.seo_title,
            seo_description=post.seo_description,
            featured=post.featured,
            view_count=post.view_count,
            like_count=post.like_count,
            comment_count=post.comment_count,
            created_at=post.created_at,
            updated_at=post.updated_at,
        )


class PostListResponse(BaseModel):
    posts: list[PostResponse]
    total_posts: int
    current_page: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class LikeResponse(BaseModel):
    message: str
    like_count: int


class SummaryResponse(BaseModel):
    summary: str
