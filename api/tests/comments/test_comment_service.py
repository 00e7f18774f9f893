"""Tests for CommentService.

Covers:
- comment_count consistency under concurrent creates and deletes
- cascading deletes of reply trees
- moderation transitions and the threaded listing
"""

import asyncio
from unittest.mock import patch

import pytest

from inkpress.comments.models import CommentStatus, ModerationAction
from inkpress.comments.service import CommentService, clean_content
from inkpress.core.database import InMemoryStore
from inkpress.core.database.store import COMMENTS
from inkpress.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from inkpress.counters.service import CounterEngine
from inkpress.posts.models import PostStatus
from inkpress.posts.service import PostService


async def _comment_count(post_service: PostService, post_id: str) -> int:
    return (await post_service.get_by_id(post_id)).comment_count


class TestCleanContent:
    def test_trims(self) -> None:
        assert clean_content("  hello  ") == "hello"

    @pytest.mark.parametrize("content", ["", "   ", "x" * 1001])
    def test_rejects(self, content: str) -> None:
        with pytest.raises(ValidationError):
            clean_content(content)

    def test_max_length_accepted(self) -> None:
        assert len(clean_content("x" * 1000)) == 1000


class TestCreate:
    @pytest.mark.asyncio
    async def test_top_level_counts(
        self, make_post, comment_service: CommentService, post_service: PostService
    ) -> None:
        post = await make_post()
        comment = await comment_service.create(post.id, "reader", "  first!  ")
        assert comment.content == "first!"
        assert comment.status == CommentStatus.APPROVED
        assert await _comment_count(post_service, post.id) == 1

    @pytest.mark.asyncio
    async def test_reply_not_counted(
        self, make_post, comment_service: CommentService, post_service: PostService
    ) -> None:
        post = await make_post()
        parent = await comment_service.create(post.id, "reader", "top")
        reply = await comment_service.reply(parent.id, "other", "answer")
        assert reply.parent_id == parent.id
        assert reply.post_id == post.id
        assert await _comment_count(post_service, post.id) == 1

    @pytest.mark.asyncio
    async def test_concurrent_creates(
        self, make_post, comment_service: CommentService, post_service: PostService
    ) -> None:
        post = await make_post()
        await asyncio.gather(
            *(comment_service.create(post.id, f"u{i}", f"comment {i}") for i in range(25))
        )
        assert await _comment_count(post_service, post.id) == 25

    @pytest.mark.asyncio
    async def test_draft_post_rejected(
        self, make_post, comment_service: CommentService
    ) -> None:
        post = await make_post(status=PostStatus.DRAFT)
        with pytest.raises(NotFoundError):
            await comment_service.create(post.id, "reader", "hello")

    @pytest.mark.asyncio
    async def test_missing_post(self, comment_service: CommentService) -> None:
        with pytest.raises(NotFoundError):
            await comment_service.create("missing", "reader", "hello")

    @pytest.mark.asyncio
    async def test_pending_when_not_auto_approved(
        self, make_post, store: InMemoryStore, counters: CounterEngine
    ) -> None:
        service = CommentService(store, counters, auto_approve=False)
        post = await make_post()
        comment = await service.create(post.id, "reader", "hold me")
        assert comment.status == CommentStatus.PENDING


class TestReplyRaces:
    @pytest.mark.asyncio
    async def test_reply_to_missing_parent(self, comment_service: CommentService) -> None:
        with pytest.raises(NotFoundError):
            await comment_service.reply("missing", "reader", "hello")

    @pytest.mark.asyncio
    async def test_parent_deleted_while_replying(
        self,
        make_post,
        comment_service: CommentService,
        store: InMemoryStore,
    ) -> None:
        """A reply that lands after its parent vanished is discarded."""
        post = await make_post()
        parent = await comment_service.create(post.id, "reader", "top")
        original_insert = store.insert

        async def insert_after_parent_gone(collection, document):
            await store.delete(COMMENTS, parent.id)
            return await original_insert(collection, document)

        with patch.object(store, "insert", side_effect=insert_after_parent_gone):
            with pytest.raises(NotFoundError):
                await comment_service.reply(parent.id, "other", "too late")

        assert await store.count(COMMENTS, {"parent_id": parent.id}) == 0


class TestUpdate:
    @pytest.mark.asyncio
    async def test_owner_edits(self, make_post, comment_service: CommentService) -> None:
        post = await make_post()
        comment = await comment_service.create(post.id, "reader", "tpyo")
        updated = await comment_service.update(comment.id, "reader", "member", "typo")
        assert updated.content == "typo"
        assert updated.is_edited is True

    @pytest.mark.asyncio
    async def test_stranger_cannot_edit(
        self, make_post, comment_service: CommentService
    ) -> None:
        post = await make_post()
        comment = await comment_service.create(post.id, "reader", "mine")
        with pytest.raises(AuthorizationError):
            await comment_service.update(comment.id, "stranger", "member", "yours")

    @pytest.mark.asyncio
    async def test_admin_can_edit(self, make_post, comment_service: CommentService) -> None:
        post = await make_post()
        comment = await comment_service.create(post.id, "reader", "rude words")
        updated = await comment_service.update(comment.id, "mod", "admin", "[removed]")
        assert updated.content == "[removed]"


class TestDelete:
    @pytest.mark.asyncio
    async def test_cascade_removes_tree(
        self,
        make_post,
        comment_service: CommentService,
        post_service: PostService,
        store: InMemoryStore,
    ) -> None:
        post = await make_post()
        root = await comment_service.create(post.id, "reader", "root")
        child = await comment_service.reply(root.id, "a", "child")
        await comment_service.reply(child.id, "b", "grandchild")
        sibling = await comment_service.create(post.id, "reader", "sibling")

        removed = await comment_service.delete(root.id, "reader", "member")

        assert removed == 3
        remaining = await store.find_many(COMMENTS, {"post_id": post.id})
        assert [d["id"] for d in remaining] == [sibling.id]
        assert await _comment_count(post_service, post.id) == 1

    @pytest.mark.asyncio
    async def test_delete_reply_keeps_count(
        self, make_post, comment_service: CommentService, post_service: PostService
    ) -> None:
        post = await make_post()
        root = await comment_service.create(post.id, "reader", "root")
        reply = await comment_service.reply(root.id, "other", "reply")
        await comment_service.delete(reply.id, "other", "member")
        assert await _comment_count(post_service, post.id) == 1

    @pytest.mark.asyncio
    async def test_concurrent_deletes_of_same_comment(
        self, make_post, comment_service: CommentService, post_service: PostService
    ) -> None:
        post = await make_post()
        comment = await comment_service.create(post.id, "reader", "once")
        results = await asyncio.gather(
            *(comment_service.delete(comment.id, "reader", "member") for _ in range(5)),
            return_exceptions=True,
        )
        assert sum(1 for r in results if r == 1) == 1
        assert all(isinstance(r, NotFoundError) for r in results if r != 1)
        assert await _comment_count(post_service, post.id) == 0

    @pytest.mark.asyncio
    async def test_concurrent_create_and_delete_never_negative(
        self, make_post, comment_service: CommentService, post_service: PostService
    ) -> None:
        post = await make_post()
        existing = [
            await comment_service.create(post.id, "reader", f"c{i}") for i in range(5)
        ]
        await asyncio.gather(
            *(comment_service.delete(c.id, "reader", "member") for c in existing),
            *(comment_service.create(post.id, "reader", f"n{i}") for i in range(3)),
        )
        assert await _comment_count(post_service, post.id) == 3

    @pytest.mark.asyncio
    async def test_stranger_cannot_delete(
        self, make_post, comment_service: CommentService
    ) -> None:
        post = await make_post()
        comment = await comment_service.create(post.id, "reader", "mine")
        with pytest.raises(AuthorizationError):
            await comment_service.delete(comment.id, "stranger", "member")

    @pytest.mark.asyncio
    async def test_delete_by_author(
        self, make_post, comment_service: CommentService, post_service: PostService
    ) -> None:
        post = await make_post()
        root = await comment_service.create(post.id, "leaver", "root")
        await comment_service.reply(root.id, "stayer", "reply under leaver")
        await comment_service.create(post.id, "stayer", "independent")

        removed = await comment_service.delete_by_author("leaver")

        assert removed == 2
        assert await comment_service.count_by_author("leaver") == 0
        assert await _comment_count(post_service, post.id) == 1


class TestModeration:
    @pytest.fixture
    def pending_service(self, store: InMemoryStore, counters: CounterEngine) -> CommentService:
        return CommentService(store, counters, auto_approve=False)

    @pytest.mark.asyncio
    async def test_approve_then_reject(
        self, make_post, pending_service: CommentService
    ) -> None:
        post = await make_post()
        comment = await pending_service.create(post.id, "reader", "check me")

        approved = await pending_service.moderate(comment.id, ModerationAction.APPROVE)
        assert approved.status == CommentStatus.APPROVED

        spam = await pending_service.moderate(comment.id, ModerationAction.REJECT)
        assert spam.status == CommentStatus.SPAM

    @pytest.mark.asyncio
    async def test_spam_is_terminal(
        self, make_post, pending_service: CommentService
    ) -> None:
        post = await make_post()
        comment = await pending_service.create(post.id, "reader", "buy now")
        await pending_service.moderate(comment.id, ModerationAction.REJECT)

        with pytest.raises(ConflictError):
            await pending_service.moderate(comment.id, ModerationAction.APPROVE)
        assert (await pending_service.require(comment.id)).status == CommentStatus.SPAM

    @pytest.mark.asyncio
    async def test_double_approve_rejected(
        self, make_post, comment_service: CommentService
    ) -> None:
        post = await make_post()
        comment = await comment_service.create(post.id, "reader", "already approved")
        with pytest.raises(ConflictError):
            await comment_service.moderate(comment.id, ModerationAction.APPROVE)

    @pytest.mark.asyncio
    async def test_missing_comment(self, comment_service: CommentService) -> None:
        with pytest.raises(NotFoundError):
            await comment_service.moderate("missing", ModerationAction.APPROVE)

    @pytest.mark.asyncio
    async def test_queue(self, make_post, pending_service: CommentService) -> None:
        post = await make_post()
        first = await pending_service.create(post.id, "reader", "one")
        await pending_service.create(post.id, "reader", "two")
        await pending_service.moderate(first.id, ModerationAction.APPROVE)

        pending, total = await pending_service.moderation_queue(CommentStatus.PENDING)
        assert total == 1
        assert pending[0].content == "two"


class TestListing:
    @pytest.mark.asyncio
    async def test_threads_only_approved(
        self,
        make_post,
        store: InMemoryStore,
        counters: CounterEngine,
    ) -> None:
        service = CommentService(store, counters, auto_approve=False)
        post = await make_post()
        visible = await service.create(post.id, "reader", "visible")
        await service.moderate(visible.id, ModerationAction.APPROVE)
        hidden = await service.create(post.id, "reader", "hidden")
        reply = await service.reply(visible.id, "other", "visible reply")
        await service.moderate(reply.id, ModerationAction.APPROVE)
        await service.reply(visible.id, "other", "pending reply")
        await service.reply(hidden.id, "other", "reply under pending")

        threads, total = await service.list_for_post(post.id)

        assert total == 1
        assert threads[0].comment.id == visible.id
        assert [t.comment.content for t in threads[0].replies] == ["visible reply"]

    @pytest.mark.asyncio
    async def test_ordering(
        self, make_post, comment_service: CommentService, store: InMemoryStore
    ) -> None:
        post = await make_post()
        older = await comment_service.create(post.id, "reader", "older")
        newer = await comment_service.create(post.id, "reader", "newer")
        first_reply = await comment_service.reply(older.id, "a", "first reply")
        second_reply = await comment_service.reply(older.id, "b", "second reply")

        stamps = {
            older.id: "2024-01-01T00:00:00+00:00",
            newer.id: "2024-01-02T00:00:00+00:00",
            first_reply.id: "2024-01-03T00:00:00+00:00",
            second_reply.id: "2024-01-04T00:00:00+00:00",
        }
        for comment_id, stamp in stamps.items():
            await store.transactional_update(
                COMMENTS, comment_id, lambda d, s=stamp: {**d, "created_at": s}
            )

        threads, _ = await comment_service.list_for_post(post.id)
        assert [t.comment.id for t in threads] == [newer.id, older.id]
        assert [r.comment.id for r in threads[1].replies] == [
            first_reply.id,
            second_reply.id,
        ]

    @pytest.mark.asyncio
    async def test_like_only_approved(
        self, make_post, store: InMemoryStore, counters: CounterEngine
    ) -> None:
        service = CommentService(store, counters, auto_approve=False)
        post = await make_post()
        comment = await service.create(post.id, "reader", "pending")
        with pytest.raises(NotFoundError):
            await service.like(comment.id)
        await service.moderate(comment.id, ModerationAction.APPROVE)
        assert await service.like(comment.id) == 1
