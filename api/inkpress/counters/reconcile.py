"""Counter reconciliation.

Recomputes every denormalized counter from source data and repairs drift
left by failed or ambiguous deltas. Also removes orphaned comments (post or
parent gone) and, optionally, tags no post references any more.

Runs on demand (``POST /v1/superadmin/system/reconcile``) and periodically
through ``ReconciliationWorker``.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Any

import structlog

from inkpress.core.context import JobContext
from inkpress.core.database.store import COMMENTS, POSTS, TAGS, DocumentStore
from inkpress.counters.service import CounterEngine
from inkpress.tags.models import Tag
from inkpress.tags.service import TagService


logger = structlog.get_logger(__name__)


@dataclass
class ReconciliationReport:
    posts_checked: int = 0
    tags_checked: int = 0
    comment_counts_fixed: int = 0
    post_counts_fixed: int = 0
    orphans_removed: int = 0
    tags_removed: int = 0
    repairs_acknowledged: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def find_orphans(comments: list[dict[str, Any]], post_ids: set[str]) -> set[str]:
    """Ids of comments whose post is gone or whose ancestor chain is broken."""
    by_id = {c["id"]: c for c in comments}
    orphans: set[str] = set()
    changed = True
    while changed:
        changed = False
        for comment_id, comment in by_id.items():
            if comment_id in orphans:
                continue
            parent_id = comment.get("parent_id")
            if (
                comment["post_id"] not in post_ids
                or (parent_id is not None and (parent_id not in by_id or parent_id in orphans))
            ):
                orphans.add(comment_id)
                changed = True
    return orphans


def _chain_depth(comment_id: str, by_id: dict[str, dict[str, Any]]) -> int:
    depth = 0
    seen = {comment_id}
    parent_id = by_id[comment_id].get("parent_id")
    while parent_id is not None and parent_id in by_id and parent_id not in seen:
        seen.add(parent_id)
        depth += 1
        parent_id = by_id[parent_id].get("parent_id")
    return depth


def top_level_counts(comments: list[dict[str, Any]]) -> Counter[str]:
    return Counter(c["post_id"] for c in comments if c.get("parent_id") is None)


class ReconciliationService:
    """Repairs counters and removes orphans against live traffic.

    Nothing here takes a lock, so every correction is conditional:

    - comments and tags are read before posts, so every post a comment
      names is already visible in the posts snapshot and any tag delta from
      a newer post shows up as a moved counter;
    - an orphan is re-checked against the store right before it is deleted;
    - a counter is only rewritten when two comment snapshots taken around
      the posts read agree and the stored value has not moved since it was
      read. Anything else is left for the next cycle.
    """

    def __init__(
        self,
        store: DocumentStore,
        tags: TagService,
        counters: CounterEngine | None = None,
    ) -> None:
        self.store = store
        self.tags = tags
        self.counters = counters

    async def _set_counter(
        self, collection: str, key: str, field: str, stored: int, expected: int
    ) -> bool:
        """Set ``field`` to ``expected`` unless it changed from ``stored``."""
        applied = False

        def apply(document: dict[str, Any]) -> dict[str, Any]:
            nonlocal applied
            applied = document.get(field, 0) == stored
            if applied:
                document[field] = expected
            return document

        result = await self.store.transactional_update(collection, key, apply)
        if result is not None and not applied:
            logger.info(
                "counter_repair_skipped",
                collection=collection,
                key=key,
                field=field,
                stored=stored,
                current=result.get(field, 0),
            )
        return result is not None and applied

    async def _still_orphaned(self, comment: dict[str, Any]) -> bool:
        if await self.store.find_by_key(POSTS, comment["post_id"]) is None:
            return True
        parent_id = comment.get("parent_id")
        return (
            parent_id is not None
            and await self.store.find_by_key(COMMENTS, parent_id) is None
        )

    async def _remove_orphans(
        self, comments: list[dict[str, Any]], post_ids: set[str]
    ) -> int:
        by_id = {c["id"]: c for c in comments}
        # Ancestors first, so a child sees its parent gone when re-checked.
        candidates = sorted(
            find_orphans(comments, post_ids), key=lambda cid: _chain_depth(cid, by_id)
        )
        removed = 0
        for comment_id in candidates:
            comment = by_id[comment_id]
            if not await self._still_orphaned(comment):
                continue
            if await self.store.delete(COMMENTS, comment_id) is not None:
                removed += 1
                logger.info(
                    "orphan_comment_removed",
                    comment_id=comment_id,
                    post_id=comment["post_id"],
                    parent_id=comment.get("parent_id"),
                )
        return removed

    async def _remove_tag_if_unused(self, document: dict[str, Any]) -> bool:
        if await self.store.count(POSTS, {"tag_ids": document["id"]}) > 0:
            return False
        current = await self.store.find_by_key(TAGS, document["id"])
        if current is None or current.get("post_count", 0) != 0:
            return False
        await self.tags.delete(Tag.from_document(current))
        return True

    async def run(self, remove_empty_tags: bool = False) -> ReconciliationReport:
        """Run a single reconciliation cycle."""
        report = ReconciliationReport()
        if self.counters is not None:
            report.repairs_acknowledged = self.counters.acknowledge_repairs()

        comments = await self.store.find_many(COMMENTS)
        tags = await self.store.find_many(TAGS)
        posts = await self.store.find_many(POSTS)
        post_ids = {p["id"] for p in posts}

        report.orphans_removed = await self._remove_orphans(comments, post_ids)

        before = top_level_counts(comments)
        after = top_level_counts(await self.store.find_many(COMMENTS))
        tag_refs: Counter[str] = Counter()

        for post in posts:
            report.posts_checked += 1
            tag_refs.update(set(post.get("tag_ids") or []))
            expected = after.get(post["id"], 0)
            stored = post.get("comment_count", 0)
            if stored == expected:
                continue
            if before.get(post["id"], 0) != expected:
                logger.info(
                    "counter_repair_deferred",
                    collection=POSTS,
                    key=post["id"],
                    field="comment_count",
                )
                continue
            if await self._set_counter(POSTS, post["id"], "comment_count", stored, expected):
                report.comment_counts_fixed += 1
                logger.info(
                    "counter_repaired",
                    collection=POSTS,
                    key=post["id"],
                    field="comment_count",
                    stored=stored,
                    expected=expected,
                )

        for document in tags:
            report.tags_checked += 1
            expected = tag_refs.get(document["id"], 0)
            if remove_empty_tags and expected == 0:
                if await self._remove_tag_if_unused(document):
                    report.tags_removed += 1
                    continue
            stored = document.get("post_count", 0)
            if stored != expected and await self._set_counter(
                TAGS, document["id"], "post_count", stored, expected
            ):
                report.post_counts_fixed += 1
                logger.info(
                    "counter_repaired",
                    collection=TAGS,
                    key=document["id"],
                    field="post_count",
                    stored=stored,
                    expected=expected,
                )

        logger.info("reconciliation_completed", **report.to_dict())
        return report


class ReconciliationWorker:
    """Background worker running reconciliation on an interval."""

    def __init__(self, service: ReconciliationService, interval_seconds: int = 3600) -> None:
        self.service = service
        self.interval_seconds = interval_seconds
        self._running = False
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        if self._running:
            logger.warning("reconciliation_worker_already_running")
            return

        self._running = True
        self._task = asyncio.create_task(self._worker_loop(), name="reconciliation_worker")
        logger.info("reconciliation_worker_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Stop the background worker."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task

        logger.info("reconciliation_worker_stopped")

    async def _worker_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.interval_seconds)
            with JobContext("reconcile"):
                try:
                    await self.service.run()
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.exception("reconciliation_error")
