"""Tag lookup and find-or-create.

A tag name is claimed in the ``tag_name`` namespace before its document
is written. A writer that loses the claim adopts the winner's tag, so two
posts naming the same new tag at once end up sharing one tag.
"""

import asyncio

import structlog

from inkpress.core.database.store import TAG_NAME, TAG_SLUG, TAGS, DocumentStore
from inkpress.core.errors import ConflictError, NotFoundError, ValidationError
from inkpress.posts.derived import slugify
from inkpress.posts.slugs import SlugAllocator
from inkpress.tags.models import MAX_TAG_NAME_LENGTH, Tag, normalize_tag_name


logger = structlog.get_logger(__name__)

_ADOPT_ATTEMPTS = 5
_ADOPT_BACKOFF_SECONDS = 0.01


class TagService:
    def __init__(self, store: DocumentStore, slugs: SlugAllocator | None = None):
        self.store = store
        self.slugs = slugs or SlugAllocator(store)

    async def get_by_id(self, tag_id: str) -> Tag | None:
        document = await self.store.find_by_key(TAGS, tag_id)
        return Tag.from_document(document) if document else None

    async def get_by_slug(self, slug: str) -> Tag:
        owner_id = await self.store.lookup_unique(TAG_SLUG, slug)
        tag = await self.get_by_id(owner_id) if owner_id else None
        if tag is None:
            raise NotFoundError("Tag not found", "tag_not_found")
        return tag

    async def get_many(self, tag_ids: list[str]) -> list[Tag]:
        tags = []
        for tag_id in tag_ids:
            tag = await self.get_by_id(tag_id)
            if tag is not None:
                tags.append(tag)
        return tags

    async def list_tags(self, include_empty: bool = False) -> list[Tag]:
        tags = [Tag.from_document(d) for d in await self.store.find_many(TAGS)]
        if not include_empty:
            tags = [t for t in tags if t.post_count > 0]
        tags.sort(key=lambda t: (-t.post_count, t.name))
        return tags

    async def find_or_create(self, raw_name: str) -> Tag:
        """Return the tag with this name, creating it if needed."""
        name = normalize_tag_name(raw_name)
        if not name:
            raise ValidationError("Tag name must not be empty", field="tags")
        if len(name) > MAX_TAG_NAME_LENGTH:
            raise ValidationError(
                f"Tag name must be at most {MAX_TAG_NAME_LENGTH} characters",
                field="tags",
            )

        candidate = Tag.create(name=name, slug="")
        if await self.store.insert_unique(TAG_NAME, name, candidate.id):
            return await self._create(candidate)
        return await self._adopt(name)

    async def _create(self, tag: Tag) -> Tag:
        try:
            tag.slug = await self.slugs.allocate(
                TAG_SLUG, slugify(tag.name, fallback="tag"), tag.id
            )
            await self.store.insert(TAGS, tag.to_document())
        except Exception:
            await self.store.release_unique(TAG_NAME, tag.name, tag.id)
            if tag.slug:
                await self.store.release_unique(TAG_SLUG, tag.slug, tag.id)
            raise
        logger.info("tag_created", tag_id=tag.id, name=tag.name, slug=tag.slug)
        return tag

    async def _adopt(self, name: str) -> Tag:
        # The winner may not have written its document yet.
        for attempt in range(_ADOPT_ATTEMPTS):
            owner_id = await self.store.lookup_unique(TAG_NAME, name)
            if owner_id is None:
                return await self.find_or_create(name)
            tag = await self.get_by_id(owner_id)
            if tag is not None:
                return tag
            await asyncio.sleep(_ADOPT_BACKOFF_SECONDS * (attempt + 1))
        raise ConflictError(f"Tag '{name}' is being created, retry", "tag_pending")

    async def resolve(self, names: list[str]) -> list[Tag]:
        """Find-or-create each name, dropping blanks and duplicates."""
        tags: list[Tag] = []
        seen: set[str] = set()
        for raw in names:
            if not raw or not raw.strip():
                continue
            tag = await self.find_or_create(raw)
            if tag.id not in seen:
                seen.add(tag.id)
                tags.append(tag)
        return tags

    async def delete(self, tag: Tag) -> None:
        await self.store.delete(TAGS, tag.id)
        await self.store.release_unique(TAG_NAME, tag.name, tag.id)
        await self.store.release_unique(TAG_SLUG, tag.slug, tag.id)
        logger.info("tag_deleted", tag_id=tag.id, name=tag.name)
