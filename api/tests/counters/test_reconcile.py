"""Tests for counter reconciliation and its background worker."""

import asyncio
from collections.abc import Awaitable, Callable
from unittest.mock import AsyncMock, patch

import pytest

from inkpress.core.database import InMemoryStore
from inkpress.core.database.store import COMMENTS, POSTS, TAGS
from inkpress.counters.reconcile import (
    ReconciliationReport,
    ReconciliationService,
    ReconciliationWorker,
    find_orphans,
)
from inkpress.counters.service import CounterEngine
from inkpress.tags.service import TagService


def run_after_read(
    store: InMemoryStore, collection: str, nth: int, hook: Callable[[], Awaitable[None]]
):
    """Patch ``find_many`` to run ``hook`` right after the nth full scan of a collection."""
    original = store.find_many
    scans = {"n": 0}

    async def find_many(name, where=None):
        result = await original(name, where)
        if name == collection and where is None:
            scans["n"] += 1
            if scans["n"] == nth:
                await hook()
        return result

    return patch.object(store, "find_many", side_effect=find_many)


@pytest.fixture
def reconciler(
    store: InMemoryStore, tag_service: TagService, counters: CounterEngine
) -> ReconciliationService:
    return ReconciliationService(store, tag_service, counters)


class TestFindOrphans:
    def test_missing_post_and_broken_chain(self) -> None:
        comments = [
            {"id": "a", "post_id": "p1", "parent_id": None},
            {"id": "b", "post_id": "p1", "parent_id": "a"},
            {"id": "c", "post_id": "p1", "parent_id": "missing"},
            {"id": "d", "post_id": "p1", "parent_id": "c"},
            {"id": "e", "post_id": "gone", "parent_id": None},
            {"id": "f", "post_id": "p1", "parent_id": "e"},
        ]
        assert find_orphans(comments, {"p1"}) == {"c", "d", "e", "f"}


class TestReconciliationService:
    @pytest.mark.asyncio
    async def test_repairs_drifted_counters(
        self,
        reconciler: ReconciliationService,
        make_post,
        comment_service,
        store: InMemoryStore,
    ) -> None:
        post = await make_post(tags=["drift"])
        root = await comment_service.create(post.id, "reader", "one")
        await comment_service.reply(root.id, "reader", "reply")
        await comment_service.create(post.id, "reader", "two")

        await store.atomic_delta(POSTS, post.id, "comment_count", 40)
        await store.atomic_delta(TAGS, post.tag_ids[0], "post_count", 7)

        report = await reconciler.run()

        assert report.comment_counts_fixed == 1
        assert report.post_counts_fixed == 1
        assert (await store.find_by_key(POSTS, post.id))["comment_count"] == 2
        assert (await store.find_by_key(TAGS, post.tag_ids[0]))["post_count"] == 1

    @pytest.mark.asyncio
    async def test_consistent_data_untouched(
        self, reconciler: ReconciliationService, make_post, comment_service
    ) -> None:
        post = await make_post(tags=["fine"])
        await comment_service.create(post.id, "reader", "ok")
        report = await reconciler.run()
        assert report.comment_counts_fixed == 0
        assert report.post_counts_fixed == 0
        assert report.posts_checked == 1
        assert report.tags_checked == 1

    @pytest.mark.asyncio
    async def test_removes_orphans(
        self, reconciler: ReconciliationService, make_post, store: InMemoryStore
    ) -> None:
        post = await make_post()
        await store.insert(
            COMMENTS,
            {"id": "o1", "post_id": "deleted-post", "parent_id": None, "author_id": "x"},
        )
        await store.insert(
            COMMENTS,
            {"id": "o2", "post_id": post.id, "parent_id": "deleted-comment", "author_id": "x"},
        )
        report = await reconciler.run()
        assert report.orphans_removed == 2
        assert await store.count(COMMENTS) == 0

    @pytest.mark.asyncio
    async def test_remove_empty_tags(
        self, reconciler: ReconciliationService, tag_service: TagService, make_post
    ) -> None:
        await tag_service.find_or_create("unused")
        await make_post(tags=["used"])
        report = await reconciler.run(remove_empty_tags=True)
        assert report.tags_removed == 1
        assert [t.name for t in await tag_service.list_tags(include_empty=True)] == ["used"]

    @pytest.mark.asyncio
    async def test_acknowledges_pending_repairs(
        self, reconciler: ReconciliationService, counters: CounterEngine
    ) -> None:
        await counters.comment_created("gone", parent_id=None)
        report = await reconciler.run()
        assert report.repairs_acknowledged == 1
        assert counters.repairs_pending == 0

    @pytest.mark.asyncio
    async def test_post_created_during_run_keeps_its_comment(
        self,
        reconciler: ReconciliationService,
        make_post,
        comment_service,
        store: InMemoryStore,
    ) -> None:
        created = {}

        async def publish_and_comment() -> None:
            created["post"] = await make_post(title="Fresh Post")
            created["comment"] = await comment_service.create(
                created["post"].id, "reader", "first!"
            )

        with run_after_read(store, POSTS, 1, publish_and_comment):
            report = await reconciler.run()

        assert report.orphans_removed == 0
        assert await store.find_by_key(COMMENTS, created["comment"].id) is not None
        assert (await store.find_by_key(POSTS, created["post"].id))["comment_count"] == 1

    @pytest.mark.asyncio
    async def test_comment_during_repair_is_not_overwritten(
        self,
        reconciler: ReconciliationService,
        make_post,
        comment_service,
        store: InMemoryStore,
    ) -> None:
        post = await make_post()
        await comment_service.create(post.id, "reader", "one")
        await store.atomic_delta(POSTS, post.id, "comment_count", 5)

        async def another_comment() -> None:
            await comment_service.create(post.id, "reader", "two")

        with run_after_read(store, COMMENTS, 2, another_comment):
            report = await reconciler.run()

        assert report.comment_counts_fixed == 0
        assert (await store.find_by_key(POSTS, post.id))["comment_count"] == 7

        report = await reconciler.run()
        assert report.comment_counts_fixed == 1
        assert (await store.find_by_key(POSTS, post.id))["comment_count"] == 2

    @pytest.mark.asyncio
    async def test_tag_adopted_during_run_is_kept(
        self,
        reconciler: ReconciliationService,
        tag_service: TagService,
        make_post,
        store: InMemoryStore,
    ) -> None:
        tag = await tag_service.find_or_create("late")

        async def adopt_tag() -> None:
            await make_post(title="Late Tagger", tags=["late"])

        with run_after_read(store, POSTS, 1, adopt_tag):
            report = await reconciler.run(remove_empty_tags=True)

        assert report.tags_removed == 0
        assert report.post_counts_fixed == 0
        assert (await store.find_by_key(TAGS, tag.id))["post_count"] == 1


class TestReconciliationWorker:
    @pytest.mark.asyncio
    async def test_runs_on_interval_and_stops(self) -> None:
        service = AsyncMock()
        service.run.return_value = ReconciliationReport()
        worker = ReconciliationWorker(service, interval_seconds=0)

        await worker.start()
        await asyncio.sleep(0.05)
        await worker.stop()

        assert service.run.await_count >= 1

    @pytest.mark.asyncio
    async def test_survives_errors(self) -> None:
        service = AsyncMock()
        service.run.side_effect = [RuntimeError("boom"), ReconciliationReport()]
        worker = ReconciliationWorker(service, interval_seconds=0)

        await worker.start()
        for _ in range(50):
            if service.run.await_count >= 2:
                break
            await asyncio.sleep(0.01)
        await worker.stop()

        assert service.run.await_count >= 2

    @pytest.mark.asyncio
    async def test_stop_without_start(self) -> None:
        await ReconciliationWorker(AsyncMock()).stop()
