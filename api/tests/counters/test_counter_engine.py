"""Tests for CounterEngine delta bookkeeping."""

from unittest.mock import AsyncMock

import pytest

from inkpress.core.database import InMemoryStore
from inkpress.core.database.store import POSTS, TAGS
from inkpress.core.errors import ServiceUnavailableError
from inkpress.counters.service import CounterEngine


class TestCommentCounters:
    @pytest.mark.asyncio
    async def test_top_level_only(self, store: InMemoryStore, counters: CounterEngine) -> None:
        await store.insert(POSTS, {"id": "p1", "comment_count": 0})
        await counters.comment_created("p1", parent_id=None)
        await counters.comment_created("p1", parent_id="c1")
        assert (await store.find_by_key(POSTS, "p1"))["comment_count"] == 1

        await counters.comment_deleted("p1", parent_id="c1")
        await counters.comment_deleted("p1", parent_id=None)
        await counters.comment_deleted("p1", parent_id=None)
        assert (await store.find_by_key(POSTS, "p1"))["comment_count"] == 0


class TestTagCounters:
    @pytest.mark.asyncio
    async def test_added_and_removed(
        self, store: InMemoryStore, counters: CounterEngine
    ) -> None:
        await store.insert(TAGS, {"id": "t1", "post_count": 1})
        await store.insert(TAGS, {"id": "t2", "post_count": 0})
        await counters.tags_changed(added=["t2"], removed=["t1"])
        assert (await store.find_by_key(TAGS, "t1"))["post_count"] == 0
        assert (await store.find_by_key(TAGS, "t2"))["post_count"] == 1


class TestRepairs:
    """Failed deltas are logged for reconciliation, never raised."""

    @pytest.mark.asyncio
    async def test_missing_target_recorded(self, counters: CounterEngine) -> None:
        await counters.comment_created("gone", parent_id=None)
        assert counters.repairs_pending == 1

    @pytest.mark.asyncio
    async def test_store_failure_recorded(self) -> None:
        store = AsyncMock()
        store.atomic_delta.side_effect = ServiceUnavailableError("down")
        engine = CounterEngine(store)

        await engine.tags_changed(added=["t1", "t2"], removed=[])

        assert engine.repairs_pending == 2
        assert engine.acknowledge_repairs() == 2
        assert engine.repairs_pending == 0
