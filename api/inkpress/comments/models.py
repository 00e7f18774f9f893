"""Comment entity and moderation states.

Architecture: adjacency list
- ``parent_id`` references the parent comment (None for top-level comments)
- A comment's replies are never stored; they are every comment naming it as
  parent, read back ordered by ``created_at``
- Deleting a comment removes the document (and every descendant)
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from inkpress.core.errors import ConflictError
from inkpress.utils.timestamps import from_iso, to_iso, utcnow


MAX_COMMENT_LENGTH = 1000


class CommentStatus(str, Enum):
    """Moderation state of a comment."""

    PENDING = "pending"
    APPROVED = "approved"
    SPAM = "spam"


class ModerationAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


# Allowed moderator transitions; deletion is allowed from any state and is
# handled separately since the entity disappears.
MODERATION_TRANSITIONS: dict[CommentStatus, frozenset[CommentStatus]] = {
    CommentStatus.PENDING: frozenset({CommentStatus.APPROVED, CommentStatus.SPAM}),
    CommentStatus.APPROVED: frozenset({CommentStatus.SPAM}),
    CommentStatus.SPAM: frozenset(),
}

ACTION_TARGETS = {
    ModerationAction.APPROVE: CommentStatus.APPROVED,
    ModerationAction.REJECT: CommentStatus.SPAM,
}


def next_status(current: CommentStatus, target: CommentStatus) -> CommentStatus:
    """Validate a moderator transition.

    Raises:
        ConflictError: The transition is not allowed from ``current``.
    """
    if target not in MODERATION_TRANSITIONS[current]:
        raise ConflictError(
            f"Cannot move comment from {current.value} to {target.value}",
            "invalid_transition",
        )
    return target


@dataclass
class Comment:
    """Comment entity (flat; replies are derived)."""

    id: str
    post_id: str
    author_id: str
    content: str
    parent_id: str | None = None
    status: CommentStatus = CommentStatus.APPROVED
    like_count: int = 0
    is_edited: bool = False
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_approved(self) -> bool:
        return self.status == CommentStatus.APPROVED

    @property
    def is_top_level(self) -> bool:
        return self.parent_id is None

    @classmethod
    def create(
        cls,
        post_id: str,
        author_id: str,
        content: str,
        parent_id: str | None = None,
        status: CommentStatus = CommentStatus.APPROVED,
    ) -> "Comment":
        now = utcnow()
        return cls(
            id=str(uuid4()),
            post_id=post_id,
            author_id=author_id,
            content=content,
            parent_id=parent_id,
            status=status,
            created_at=now,
            updated_at=now,
        )

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "Comment":
        return cls(
            id=document["id"],
            post_id=document["post_id"],
            author_id=document["author_id"],
            content=document["content"],
            parent_id=document.get("parent_id"),
            status=CommentStatus(document.get("status", CommentStatus.APPROVED.value)),
            like_count=document.get("like_count", 0),
            is_edited=document.get("is_edited", False),
            created_at=from_iso(document["created_at"]),
            updated_at=from_iso(document.get("updated_at") or document["created_at"]),
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "post_id": self.post_id,
            "author_id": self.author_id,
            "content": self.content,
            "parent_id": self.parent_id,
            "status": self.status.value,
            "like_count": self.like_count,
            "is_edited": self.is_edited,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }


@dataclass
class CommentThread:
    """A comment with its (approved) reply subtree, built on read."""

    comment: Comment
    replies: list["CommentThread"] = field(default_factory=list)
