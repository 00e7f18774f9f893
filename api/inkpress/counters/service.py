"""Denormalized counter maintenance.

Counters change only as side effects of the writes that own them: a
top-level comment appearing or disappearing, a post gaining or losing a
tag. Every change is a single ``atomic_delta`` against the store, so
concurrent writers converge without read-modify-write races.

A delta that cannot be applied (target gone, store unavailable) does not
undo the primary write. It is logged as ``counter_repair_needed`` and left
for the reconciliation pass.
"""

import structlog

from inkpress.core.database.store import POSTS, TAGS, DocumentStore, StoreError
from inkpress.core.errors import ConsistencyRepairNeededError, ServiceUnavailableError


logger = structlog.get_logger(__name__)


class CounterEngine:
    def __init__(self, store: DocumentStore):
        self.store = store
        self.repairs_pending = 0

    async def _apply(self, collection: str, key: str, field: str, delta: int) -> int | None:
        try:
            value = await self.store.atomic_delta(collection, key, field, delta, floor=0)
        except (ServiceUnavailableError, StoreError) as e:
            self._report(ConsistencyRepairNeededError(collection, key, field, delta), str(e))
            return None

        if value is None:
            self._report(
                ConsistencyRepairNeededError(collection, key, field, delta),
                "target_missing",
            )
        return value

    def _report(self, error: ConsistencyRepairNeededError, reason: str) -> None:
        self.repairs_pending += 1
        logger.warning(
            "counter_repair_needed",
            collection=error.collection,
            key=error.key,
            field=error.field,
            delta=error.delta,
            reason=reason,
        )

    # ==========================================================================
    # Comment lifecycle
    # ==========================================================================

    async def comment_created(self, post_id: str, parent_id: str | None) -> None:
        """Count a new comment if it is top-level; replies are not counted."""
        if parent_id is None:
            await self._apply(POSTS, post_id, "comment_count", 1)

    async def comment_deleted(self, post_id: str, parent_id: str | None) -> None:
        if parent_id is None:
            await self._apply(POSTS, post_id, "comment_count", -1)

    # ==========================================================================
    # Tag references
    # ==========================================================================

    async def tags_changed(self, added: list[str], removed: list[str]) -> None:
        for tag_id in added:
            await self._apply(TAGS, tag_id, "post_count", 1)
        for tag_id in removed:
            await self._apply(TAGS, tag_id, "post_count", -1)

    def acknowledge_repairs(self) -> int:
        """Reset the pending-repair tally after a reconciliation run."""
        pending, self.repairs_pending = self.repairs_pending, 0
        return pending
