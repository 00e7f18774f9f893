"""Post entity.

Stored in the ``posts`` collection; the slug is reserved in the
``post_slug`` unique namespace. ``view_count``, ``like_count`` and
``comment_count`` are denormalized counters changed only through atomic
deltas.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from inkpress.utils.timestamps import from_iso, to_iso, utcnow


class PostStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


@dataclass
class Post:
    """Post entity with derived and denormalized fields."""

    id: str
    title: str
    content: str
    slug: str
    excerpt: str
    excerpt_generated: bool
    reading_time: int
    author_id: str
    tag_ids: list[str] = field(default_factory=list)
    status: PostStatus = PostStatus.DRAFT
    published_at: datetime | None = None
    cover_image: str | None = None
    seo_title: str | None = None
    seo_description: str | None = None
    featured: bool = False
    view_count: int = 0
    like_count: int = 0
    comment_count: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_published(self) -> bool:
        return self.status == PostStatus.PUBLISHED

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "Post":
        return cls(
            id=document["id"],
            title=document["title"],
            content=document["content"],
            slug=document["slug"],
            excerpt=document.get("excerpt") or "",
            excerpt_generated=document.get("excerpt_generated", True),
            reading_time=document.get("reading_time", 1),
            author_id=document["author_id"],
            tag_ids=list(document.get("tag_ids") or []),
            status=PostStatus(document.get("status", PostStatus.DRAFT.value)),
            published_at=from_iso(document.get("published_at")),
            cover_image=document.get("cover_image"),
            seo_title=document.get("seo_title"),
            seo_description=document.get("seo_description"),
            featured=document.get("featured", False),
            view_count=document.get("view_count", 0),
            like_count=document.get("like_count", 0),
            comment_count=document.get("comment_count", 0),
            created_at=from_iso(document["created_at"]),
            updated_at=from_iso(document.get("updated_at") or document["created_at"]),
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "slug": self.slug,
            "excerpt": self.excerpt,
            "excerpt_generated": self.excerpt_generated,
            "reading_time": self.reading_time,
            "author_id": self.author_id,
            "tag_ids": list(self.tag_ids),
            "status": self.status.value,
            "published_at": to_iso(self.published_at),
            "cover_image": self.cover_image,
            "seo_title": self.seo_title,
            "seo_description": self.seo_description,
            "featured": self.featured,
            "view_count": self.view_count,
            "like_count": self.like_count,
            "comment_count": self.comment_count,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }


def new_post_id() -> str:
    return str(uuid4())
