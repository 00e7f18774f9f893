"""Pydantic schemas for comments."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from inkpress.comments.models import (
    MAX_COMMENT_LENGTH,
    Comment,
    CommentStatus,
    CommentThread,
    ModerationAction,
)


# ==============================================================================
# Request Schemas
# ==============================================================================


class CommentRequest(BaseModel):
    """Create, reply to, or edit a comment."""

    content: str = Field(..., min_length=1, max_length=MAX_COMMENT_LENGTH)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        """Strip whitespace and validate content."""
        v = v.strip()
        if not v:
            msg = "Content cannot be empty"
            raise ValueError(msg)
        return v


class ModerationRequest(BaseModel):
    action: ModerationAction


class AIReplyRequest(BaseModel):
    tone: str = Field("friendly", pattern="^(friendly|professional|casual|formal)$")


# ==============================================================================
# Response Schemas
# ==============================================================================


class CommentResponse(BaseModel):
    """Response for a single comment."""

    id: str
    post_id: str
    parent_id: str | None = None
    author_id: str
    content: str
    status: CommentStatus
    is_approved: bool
    like_count: int = 0
    is_edited: bool = False
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_comment(cls, comment: Comment) -> "CommentResponse":
        return cls(
            id=comment.id,
            post_id=comment.post_id,
            parent_id=comment.parent_id,
            author_id=comment.author_id,
            content=comment.content,
            status=comment.status,
            is_approved=comment.is_approved,
            like_count=comment.like_count,
            is_edited=comment.is_edited,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
        )


class CommentWithRepliesResponse(CommentResponse):
    """Comment with nested replies."""

    replies: list["CommentWithRepliesResponse"] = Field(default_factory=list)

    @classmethod
    def from_thread(cls, thread: CommentThread) -> "CommentWithRepliesResponse":
        base = CommentResponse.from_comment(thread.comment).model_dump()
        return cls(**base, replies=[cls.from_thread(r) for r in thread.replies])


class CommentListResponse(BaseModel):
    """Paginated list of top-level comments."""

    comments: list[CommentWithRepliesResponse]
    total_comments: int
    current_page: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class ModerationQueueResponse(BaseModel):
    items: list[CommentResponse]
    total: int
    page: int
    limit: int


class CommentLikeResponse(BaseModel):
    message: str
    like_count: int


class AIReplyResponse(BaseModel):
    generated_reply: str
