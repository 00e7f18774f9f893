"""Threaded comments with moderation."""

from inkpress.comments.models import Comment, CommentStatus, ModerationAction
from inkpress.comments.service import CommentService


__all__ = [
    "Comment",
    "CommentService",
    "CommentStatus",
    "ModerationAction",
]
