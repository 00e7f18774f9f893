"""Comment system service layer.

Business logic for:
- Top-level comments and replies on published posts
- Author / admin edits and cascading deletes
- Moderation state machine (pending -> approved | spam, approved -> spam)
- Likes and the reader-facing threaded listing
"""

from collections import defaultdict
from typing import Any

import structlog

from inkpress.auth.permissions import UserRole, has_permission
from inkpress.comments.models import (
    ACTION_TARGETS,
    MAX_COMMENT_LENGTH,
    Comment,
    CommentStatus,
    CommentThread,
    ModerationAction,
    next_status,
)
from inkpress.core.database.store import COMMENTS, POSTS, DocumentStore
from inkpress.core.errors import AuthorizationError, NotFoundError, ValidationError
from inkpress.counters.service import CounterEngine
from inkpress.posts.models import Post
from inkpress.utils.timestamps import to_iso, utcnow


logger = structlog.get_logger(__name__)

MAX_PAGE_SIZE = 50


def clean_content(content: str) -> str:
    """Trim and bound comment text.

    Raises:
        ValidationError: Empty after trimming or longer than 1000 characters.
    """
    content = (content or "").strip()
    if not content or len(content) > MAX_COMMENT_LENGTH:
        raise ValidationError(
            f"Comment content must be between 1 and {MAX_COMMENT_LENGTH} characters",
            field="content",
        )
    return content


def _comment_not_found() -> NotFoundError:
    return NotFoundError("Comment not found", "comment_not_found")


class CommentService:
    """Service for comment operations."""

    def __init__(
        self,
        store: DocumentStore,
        counters: CounterEngine,
        auto_approve: bool = True,
    ):
        self.store = store
        self.counters = counters
        self.auto_approve = auto_approve

    @property
    def initial_status(self) -> CommentStatus:
        return CommentStatus.APPROVED if self.auto_approve else CommentStatus.PENDING

    # ==========================================================================
    # Lookups
    # ==========================================================================

    async def get_by_id(self, comment_id: str) -> Comment | None:
        document = await self.store.find_by_key(COMMENTS, comment_id)
        return Comment.from_document(document) if document else None

    async def require(self, comment_id: str) -> Comment:
        comment = await self.get_by_id(comment_id)
        if comment is None:
            raise _comment_not_found()
        return comment

    async def _require_published_post(self, post_id: str) -> Post:
        document = await self.store.find_by_key(POSTS, post_id)
        post = Post.from_document(document) if document else None
        if post is None or not post.is_published:
            raise NotFoundError("Post not found", "post_not_found")
        return post

    async def post_title(self, comment: Comment) -> str:
        document = await self.store.find_by_key(POSTS, comment.post_id)
        if document is None:
            raise NotFoundError("Post not found", "post_not_found")
        return document["title"]

    async def count_by_author(self, author_id: str) -> int:
        return await self.store.count(COMMENTS, {"author_id": author_id})

    # ==========================================================================
    # Create
    # ==========================================================================

    async def create(self, post_id: str, author_id: str, content: str) -> Comment:
        """Add a top-level comment to a published post."""
        content = clean_content(content)
        await self._require_published_post(post_id)

        comment = Comment.create(post_id, author_id, content, status=self.initial_status)
        await self.store.insert(COMMENTS, comment.to_document())
        await self.counters.comment_created(post_id, parent_id=None)

        logger.info(
            "comment_created",
            comment_id=comment.id,
            post_id=post_id,
            status=comment.status.value,
        )
        return comment

    async def reply(self, parent_id: str, author_id: str, content: str) -> Comment:
        """Reply to an existing comment.

        The reply only stores ``parent_id``. If the parent disappears while
        the reply is being written, the reply is removed again and the call
        fails as if the parent had never existed.
        """
        content = clean_content(content)
        parent = await self.require(parent_id)
        await self._require_published_post(parent.post_id)

        reply = Comment.create(
            parent.post_id,
            author_id,
            content,
            parent_id=parent.id,
            status=self.initial_status,
        )
        await self.store.insert(COMMENTS, reply.to_document())

        if await self.store.find_by_key(COMMENTS, parent.id) is None:
            await self.store.delete(COMMENTS, reply.id)
            logger.info("reply_discarded", comment_id=reply.id, parent_id=parent.id)
            raise _comment_not_found()

        logger.info(
            "comment_replied",
            comment_id=reply.id,
            parent_id=parent.id,
            post_id=parent.post_id,
        )
        return reply

    # ==========================================================================
    # Update / Delete
    # ==========================================================================

    def _check_owner_or_admin(self, comment: Comment, actor_id: str, actor_role: str) -> None:
        if comment.author_id != actor_id and not has_permission(actor_role, UserRole.ADMIN):
            raise AuthorizationError(
                "Not authorized to modify this comment", "not_comment_owner"
            )

    async def update(
        self, comment_id: str, actor_id: str, actor_role: str, content: str
    ) -> Comment:
        content = clean_content(content)
        comment = await self.require(comment_id)
        self._check_owner_or_admin(comment, actor_id, actor_role)

        def apply(document: dict[str, Any]) -> dict[str, Any]:
            document["content"] = content
            document["is_edited"] = True
            document["updated_at"] = to_iso(utcnow())
            return document

        document = await self.store.transactional_update(COMMENTS, comment_id, apply)
        if document is None:
            raise _comment_not_found()
        return Comment.from_document(document)

    async def delete(self, comment_id: str, actor_id: str, actor_role: str) -> int:
        """Delete a comment and every reply beneath it.

        Returns:
            Number of comments removed.
        """
        comment = await self.require(comment_id)
        self._check_owner_or_admin(comment, actor_id, actor_role)
        return await self._delete_tree(comment)

    async def _delete_tree(self, root: Comment) -> int:
        removed = await self._sweep(root.post_id, {root.id})

        document = await self.store.delete(COMMENTS, root.id)
        if document is None:
            raise _comment_not_found()
        removed += 1
        await self.counters.comment_deleted(root.post_id, root.parent_id)

        # Replies written between the first sweep and the root delete.
        removed += await self._sweep(root.post_id, {root.id})

        logger.info("comment_deleted", comment_id=root.id, removed=removed)
        return removed

    async def _sweep(self, post_id: str, roots: set[str]) -> int:
        """Delete every comment reachable from ``roots``, deepest first."""
        documents = await self.store.find_many(COMMENTS, {"post_id": post_id})
        children: dict[str, list[str]] = defaultdict(list)
        for document in documents:
            if document.get("parent_id"):
                children[document["parent_id"]].append(document["id"])

        order: list[str] = []
        frontier = list(roots)
        while frontier:
            current = frontier.pop()
            for child_id in children.get(current, ()):
                order.append(child_id)
                frontier.append(child_id)

        removed = 0
        for child_id in reversed(order):
            if await self.store.delete(COMMENTS, child_id) is not None:
                removed += 1
        return removed

    async def delete_by_author(self, author_id: str) -> int:
        documents = await self.store.find_many(COMMENTS, {"author_id": author_id})
        removed = 0
        for document in documents:
            comment = await self.get_by_id(document["id"])
            if comment is None:
                continue
            try:
                removed += await self._delete_tree(comment)
            except NotFoundError:
                continue
        return removed

    # ==========================================================================
    # Moderation
    # ==========================================================================

    async def moderate(self, comment_id: str, action: ModerationAction) -> Comment:
        target = ACTION_TARGETS[action]
        previous: dict[str, str] = {}

        def apply(document: dict[str, Any]) -> dict[str, Any]:
            current = CommentStatus(document["status"])
            previous["status"] = current.value
            document["status"] = next_status(current, target).value
            document["updated_at"] = to_iso(utcnow())
            return document

        document = await self.store.transactional_update(COMMENTS, comment_id, apply)
        if document is None:
            raise _comment_not_found()

        logger.info(
            "comment_moderated",
            comment_id=comment_id,
            from_status=previous.get("status"),
            to_status=document["status"],
        )
        return Comment.from_document(document)

    async def moderation_queue(
        self,
        status: CommentStatus = CommentStatus.PENDING,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Comment], int]:
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        comments = [
            Comment.from_document(d)
            for d in await self.store.find_many(COMMENTS, {"status": status.value})
        ]
        comments.sort(key=lambda c: c.created_at)
        start = (max(page, 1) - 1) * limit
        return comments[start : start + limit], len(comments)

    # ==========================================================================
    # Reads / Likes
    # ==========================================================================

    async def like(self, comment_id: str) -> int:
        comment = await self.get_by_id(comment_id)
        if comment is None or not comment.is_approved:
            raise _comment_not_found()
        likes = await self.store.atomic_delta(COMMENTS, comment_id, "like_count", 1)
        if likes is None:
            raise _comment_not_found()
        return likes

    async def list_for_post(
        self, post_id: str, page: int = 1, limit: int = 20
    ) -> tuple[list[CommentThread], int]:
        """Approved top-level comments (newest first) with approved reply trees.

        Replies of a non-approved comment are hidden along with it.
        """
        await self._require_published_post(post_id)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)

        approved = [
            Comment.from_document(d)
            for d in await self.store.find_many(
                COMMENTS, {"post_id": post_id, "status": CommentStatus.APPROVED.value}
            )
        ]
        replies: dict[str, list[Comment]] = defaultdict(list)
        top_level: list[Comment] = []
        for comment in approved:
            if comment.is_top_level:
                top_level.append(comment)
            else:
                replies[comment.parent_id].append(comment)

        def build(comment: Comment) -> CommentThread:
            children = sorted(replies.get(comment.id, []), key=lambda c: c.created_at)
            return CommentThread(comment=comment, replies=[build(c) for c in children])

        top_level.sort(key=lambda c: c.created_at, reverse=True)
        start = (max(page, 1) - 1) * limit
        return [build(c) for c in top_level[start : start + limit]], len(top_level)
