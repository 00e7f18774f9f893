"""Unique slug allocation over the store's unique-key namespaces."""

import structlog

from inkpress.core.database.store import DocumentStore
from inkpress.core.errors import ConflictError


logger = structlog.get_logger(__name__)


class SlugAllocator:
    """Reserves the first free candidate among ``base``, ``base-1``, ``base-2``...

    Each candidate is claimed with ``insert_unique``, which is atomic in the
    store, so two writers racing for one title always end up with distinct
    slugs. A candidate already held by the same owner is reused as-is.
    """

    def __init__(self, store: DocumentStore, max_attempts: int = 1000):
        self.store = store
        self.max_attempts = max_attempts

    @staticmethod
    def candidate(base: str, attempt: int) -> str:
        return base if attempt == 0 else f"{base}-{attempt}"

    async def allocate(self, namespace: str, base: str, owner_id: str) -> str:
        for attempt in range(self.max_attempts):
            slug = self.candidate(base, attempt)
            if await self.store.insert_unique(namespace, slug, owner_id):
                if attempt:
                    logger.info(
                        "slug_collision",
                        namespace=namespace,
                        base=base,
                        slug=slug,
                        attempts=attempt + 1,
                    )
                return slug
        raise ConflictError(f"No free slug for '{base}'", "slug_exhausted")

    async def release(self, namespace: str, slug: str, owner_id: str) -> None:
        released = await self.store.release_unique(namespace, slug, owner_id)
        if not released:
            logger.warning("slug_release_skipped", namespace=namespace, slug=slug)
