"""Comment API endpoints.

Provides routes for:
- Threaded listing per post
- Comment and reply creation
- Author / admin edit and delete (cascading to replies)
- Likes, moderation and AI reply drafts
"""

import math
from typing import Annotated

from fastapi import APIRouter, Query, status

from inkpress.auth.dependencies import AdminClaims, CurrentClaims, CurrentUser, LiveAdmin
from inkpress.auth.schemas import MessageResponse
from inkpress.comments.dependencies import CommentServiceDep
from inkpress.comments.schemas import (
    AIReplyRequest,
    AIReplyResponse,
    CommentLikeResponse,
    CommentListResponse,
    CommentRequest,
    CommentResponse,
    CommentWithRepliesResponse,
    ModerationRequest,
)
from inkpress.comments.service import MAX_PAGE_SIZE
from inkpress.posts.dependencies import TextGenerationDep


router = APIRouter(prefix="/v1/comments", tags=["comments"])


@router.get(
    "/post/{post_id}",
    response_model=CommentListResponse,
    summary="List comments for a post",
)
async def list_post_comments(
    post_id: str,
    comment_service: CommentServiceDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = 20,
) -> CommentListResponse:
    """Approved top-level comments, newest first, each with its approved replies."""
    threads, total = await comment_service.list_for_post(post_id, page, limit)
    total_pages = math.ceil(total / limit)
    return CommentListResponse(
        comments=[CommentWithRepliesResponse.from_thread(t) for t in threads],
        total_comments=total,
        current_page=page,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )


@router.post(
    "/post/{post_id}",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create comment",
)
async def create_comment(
    post_id: str,
    data: CommentRequest,
    comment_service: CommentServiceDep,
    claims: CurrentClaims,
) -> CommentResponse:
    comment = await comment_service.create(post_id, claims.subject, data.content)
    return CommentResponse.from_comment(comment)


@router.post(
    "/{comment_id}/reply",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Reply to comment",
)
async def reply_to_comment(
    comment_id: str,
    data: CommentRequest,
    comment_service: CommentServiceDep,
    claims: CurrentClaims,
) -> CommentResponse:
    reply = await comment_service.reply(comment_id, claims.subject, data.content)
    return CommentResponse.from_comment(reply)


@router.put("/{comment_id}", response_model=CommentResponse, summary="Update comment")
async def update_comment(
    comment_id: str,
    data: CommentRequest,
    comment_service: CommentServiceDep,
    user: CurrentUser,
) -> CommentResponse:
    """Edit a comment. Only the author or an admin can edit."""
    comment = await comment_service.update(comment_id, user.id, user.role, data.content)
    return CommentResponse.from_comment(comment)


@router.delete(
    "/{comment_id}", response_model=MessageResponse, summary="Delete comment"
)
async def delete_comment(
    comment_id: str,
    comment_service: CommentServiceDep,
    user: CurrentUser,
) -> MessageResponse:
    """Delete a comment and all of its replies."""
    await comment_service.delete(comment_id, user.id, user.role)
    return MessageResponse(message="Comment deleted successfully")


@router.post(
    "/{comment_id}/like", response_model=CommentLikeResponse, summary="Like comment"
)
async def like_comment(
    comment_id: str,
    comment_service: CommentServiceDep,
    claims: CurrentClaims,
) -> CommentLikeResponse:
    likes = await comment_service.like(comment_id)
    return CommentLikeResponse(message="Comment liked successfully", like_count=likes)


@router.put(
    "/{comment_id}/moderation",
    response_model=CommentResponse,
    summary="Approve or reject comment",
)
async def moderate_comment(
    comment_id: str,
    data: ModerationRequest,
    comment_service: CommentServiceDep,
    admin: LiveAdmin,
) -> CommentResponse:
    comment = await comment_service.moderate(comment_id, data.action)
    return CommentResponse.from_comment(comment)


@router.post(
    "/{comment_id}/generate-ai-reply",
    response_model=AIReplyResponse,
    summary="Draft a reply with AI",
)
async def generate_ai_reply(
    comment_id: str,
    comment_service: CommentServiceDep,
    ai: TextGenerationDep,
    claims: AdminClaims,
    data: AIReplyRequest | None = None,
) -> AIReplyResponse:
    comment = await comment_service.require(comment_id)
    title = await comment_service.post_title(comment)
    tone = data.tone if data else "friendly"
    reply = await ai.comment_reply(comment.content, title, tone)
    return AIReplyResponse(generated_reply=reply)
