"""Post service layer.

Business logic for:
- Post creation and update with derived fields (slug, excerpt, reading time,
  publish timestamp)
- Tag reference bookkeeping through the counter engine
- Reader-facing listing, lookup, views and likes
"""

import math
from typing import Any

import structlog

from inkpress.auth.permissions import UserRole, has_permission
from inkpress.core.database.store import (
    COMMENTS,
    POST_SLUG,
    POSTS,
    TAG_SLUG,
    DocumentStore,
)
from inkpress.core.errors import NotFoundError
from inkpress.counters.service import CounterEngine
from inkpress.posts.derived import derive_excerpt, reading_time, slugify, stamp_published_at
from inkpress.posts.models import Post, PostStatus, new_post_id
from inkpress.posts.schemas import PostCreateRequest, PostSort, PostUpdateRequest
from inkpress.posts.slugs import SlugAllocator
from inkpress.tags.models import Tag
from inkpress.tags.service import TagService
from inkpress.utils.timestamps import from_iso, to_iso, utcnow


logger = structlog.get_logger(__name__)

MAX_PAGE_SIZE = 50

_PLAIN_FIELDS = (
    "title",
    "content",
    "cover_image",
    "seo_title",
    "seo_description",
    "featured",
)

_SORT_KEYS = {
    "newest": (lambda p: p.published_at or p.created_at, True),
    "oldest": (lambda p: p.published_at or p.created_at, False),
    "popular": (lambda p: (p.view_count, p.published_at or p.created_at), True),
    "trending": (
        lambda p: (p.like_count, p.view_count, p.published_at or p.created_at),
        True,
    ),
}


class PostService:
    def __init__(
        self,
        store: DocumentStore,
        tags: TagService,
        counters: CounterEngine,
        slugs: SlugAllocator | None = None,
    ):
        self.store = store
        self.tags = tags
        self.counters = counters
        self.slugs = slugs or SlugAllocator(store)

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_by_id(self, post_id: str) -> Post | None:
        document = await self.store.find_by_key(POSTS, post_id)
        return Post.from_document(document) if document else None

    async def get_by_slug(self, slug: str) -> Post | None:
        owner_id = await self.store.lookup_unique(POST_SLUG, slug)
        return await self.get_by_id(owner_id) if owner_id else None

    async def require(self, post_id: str) -> Post:
        post = await self.get_by_id(post_id)
        if post is None:
            raise NotFoundError("Post not found", "post_not_found")
        return post

    async def tags_for(self, post: Post) -> list[Tag]:
        return await self.tags.get_many(post.tag_ids)

    async def read(self, id_or_slug: str, viewer_role: str | None = None) -> Post:
        """Fetch a post for a reader, counting the view.

        Drafts are only visible to admins and are not counted.
        """
        post = await self.get_by_id(id_or_slug) or await self.get_by_slug(id_or_slug)
        if post is None:
            raise NotFoundError("Post not found", "post_not_found")

        if not post.is_published:
            if viewer_role is None or not has_permission(viewer_role, UserRole.ADMIN):
                raise NotFoundError("Post not found", "post_not_found")
            return post

        views = await self.store.atomic_delta(POSTS, post.id, "view_count", 1)
        if views is not None:
            post.view_count = views
        return post

    async def list_posts(
        self,
        page: int = 1,
        limit: int = 10,
        tag_slug: str | None = None,
        search: str | None = None,
        sort: PostSort = "newest",
        status: PostStatus | None = PostStatus.PUBLISHED,
    ) -> tuple[list[Post], int]:
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        where: dict[str, Any] = {}
        if status is not None:
            where["status"] = status.value
        if tag_slug:
            owner_id = await self.store.lookup_unique(TAG_SLUG, tag_slug)
            if owner_id is None:
                return [], 0
            where["tag_ids"] = owner_id

        posts = [Post.from_document(d) for d in await self.store.find_many(POSTS, where)]
        if search:
            needle = search.strip().lower()
            posts = [
                p for p in posts
                if needle in p.title.lower()
                or needle in p.content.lower()
                or needle in p.excerpt.lower()
            ]

        key, reverse = _SORT_KEYS[sort]
        posts.sort(key=key, reverse=reverse)
        start = (max(page, 1) - 1) * limit
        return posts[start : start + limit], len(posts)

    async def recent(self, limit: int = 5) -> list[Post]:
        posts, _ = await self.list_posts(page=1, limit=limit)
        return posts

    async def count_by_author(self, author_id: str) -> int:
        return await self.store.count(POSTS, {"author_id": author_id})

    @staticmethod
    def total_pages(total: int, limit: int) -> int:
        return math.ceil(total / limit) if limit else 0

    # ==========================================================================
    # Mutations
    # ==========================================================================

    async def create(self, author_id: str, data: PostCreateRequest) -> Post:
        tags = await self.tags.resolve(data.tags)
        post_id = new_post_id()
        slug = await self.slugs.allocate(POST_SLUG, slugify(data.title), post_id)

        explicit_excerpt = bool(data.excerpt and data.excerpt.strip())
        now = utcnow()
        post = Post(
            id=post_id,
            title=data.title,
            content=data.content,
            slug=slug,
            excerpt=data.excerpt.strip() if explicit_excerpt else derive_excerpt(data.content),
            excerpt_generated=not explicit_excerpt,
            reading_time=reading_time(data.content),
            author_id=author_id,
            tag_ids=[t.id for t in tags],
            status=data.status,
            published_at=stamp_published_at(data.status.value, None, now),
            cover_image=data.cover_image,
            seo_title=data.seo_title,
            seo_description=data.seo_description,
            featured=data.featured,
            created_at=now,
            updated_at=now,
        )

        try:
            await self.store.insert(POSTS, post.to_document())
        except Exception:
            await self.slugs.release(POST_SLUG, slug, post_id)
            raise

        await self.counters.tags_changed(added=post.tag_ids, removed=[])
        logger.info("post_created", post_id=post.id, slug=post.slug, status=post.status.value)
        return post

    async def update(self, post_id: str, data: PostUpdateRequest) -> Post:
        """Apply a partial update and recompute derived fields.

        The document is rewritten with compare-and-set, so the tag diff is
        always taken against the exact version being replaced.
        """
        current = await self.require(post_id)

        new_tag_ids: list[str] | None = None
        if data.tags is not None:
            new_tag_ids = [t.id for t in await self.tags.resolve(data.tags)]

        new_slug: str | None = None
        if data.title is not None and data.title != current.title:
            new_slug = await self.slugs.allocate(POST_SLUG, slugify(data.title), post_id)

        replaced: dict[str, Any] = {}

        def apply(document: dict[str, Any]) -> dict[str, Any]:
            replaced.clear()
            replaced.update(document)
            content_changed = data.content is not None and data.content != document["content"]

            for field in _PLAIN_FIELDS:
                value = getattr(data, field)
                if value is not None:
                    document[field] = value
            if new_slug is not None:
                document["slug"] = new_slug
            if new_tag_ids is not None:
                document["tag_ids"] = new_tag_ids
            if data.status is not None:
                document["status"] = data.status.value

            if data.excerpt is not None:
                explicit = data.excerpt.strip()
                document["excerpt_generated"] = not explicit
                document["excerpt"] = explicit or derive_excerpt(document["content"])
            elif content_changed and document.get("excerpt_generated", True):
                document["excerpt"] = derive_excerpt(document["content"])

            document["reading_time"] = reading_time(document["content"])
            document["published_at"] = to_iso(
                stamp_published_at(document["status"], from_iso(document.get("published_at")))
            )
            document["updated_at"] = to_iso(utcnow())
            return document

        document = await self.store.transactional_update(POSTS, post_id, apply)
        if document is None:
            if new_slug and new_slug != current.slug:
                await self.slugs.release(POST_SLUG, new_slug, post_id)
            raise NotFoundError("Post not found", "post_not_found")

        old_slug = replaced.get("slug")
        if old_slug and old_slug != document["slug"]:
            await self.slugs.release(POST_SLUG, old_slug, post_id)
        if new_slug and new_slug != document["slug"]:
            await self.slugs.release(POST_SLUG, new_slug, post_id)

        old_tags = set(replaced.get("tag_ids") or [])
        new_tags = set(document.get("tag_ids") or [])
        await self.counters.tags_changed(
            added=sorted(new_tags - old_tags), removed=sorted(old_tags - new_tags)
        )

        post = Post.from_document(document)
        logger.info("post_updated", post_id=post.id, slug=post.slug)
        return post

    async def delete(self, post_id: str) -> Post:
        """Delete a post, its comments and its tag references."""
        document = await self.store.delete(POSTS, post_id)
        if document is None:
            raise NotFoundError("Post not found", "post_not_found")
        post = Post.from_document(document)

        await self.slugs.release(POST_SLUG, post.slug, post.id)
        comments = await self.store.find_many(COMMENTS, {"post_id": post.id})
        for comment in comments:
            await self.store.delete(COMMENTS, comment["id"])
        await self.counters.tags_changed(added=[], removed=post.tag_ids)

        logger.info("post_deleted", post_id=post.id, comments_removed=len(comments))
        return post

    async def delete_by_author(self, author_id: str) -> int:
        documents = await self.store.find_many(POSTS, {"author_id": author_id})
        deleted = 0
        for document in documents:
            try:
                await self.delete(document["id"])
                deleted += 1
            except NotFoundError:
                continue
        return deleted

    async def like(self, post_id: str) -> int:
        """Add a like to a published post; returns the new like count."""
        post = await self.get_by_id(post_id)
        if post is None or not post.is_published:
            raise NotFoundError("Post not found", "post_not_found")
        likes = await self.store.atomic_delta(POSTS, post_id, "like_count", 1)
        if likes is None:
            raise NotFoundError("Post not found", "post_not_found")
        return likes
