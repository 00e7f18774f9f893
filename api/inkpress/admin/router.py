"""Admin and super-admin API endpoints.

``/v1/admin`` (admin+):
- Dashboard metrics, every post including drafts
- User listing and activation
- Comment moderation queue

``/v1/superadmin`` (super_admin, checked against the stored user):
- Role changes and user deletion
- On-demand counter reconciliation
"""

from typing import Annotated, Literal

import structlog
from fastapi import APIRouter, Query

from inkpress.admin.dependencies import DashboardServiceDep, ReconciliationServiceDep
from inkpress.auth.dependencies import AdminClaims, AuthServiceDep, LiveAdmin, LiveSuperAdmin
from inkpress.auth.permissions import UserRole
from inkpress.auth.schemas import (
    MessageResponse,
    UpdateRoleRequest,
    UpdateStatusRequest,
    UserListResponse,
    UserResponse,
)
from inkpress.comments.dependencies import CommentServiceDep
from inkpress.comments.models import CommentStatus
from inkpress.comments.schemas import CommentResponse, ModerationQueueResponse
from inkpress.posts.dependencies import PostServiceDep
from inkpress.posts.models import PostStatus
from inkpress.posts.schemas import PostListResponse, PostResponse
from inkpress.posts.service import MAX_PAGE_SIZE


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/v1/admin", tags=["admin"])
superadmin_router = APIRouter(prefix="/v1/superadmin", tags=["superadmin"])


# ==============================================================================
# Admin
# ==============================================================================


@router.get("/dashboard-metrics", summary="Dashboard metrics")
async def dashboard_metrics(
    dashboard: DashboardServiceDep,
    claims: AdminClaims,
) -> dict[str, int]:
    return (await dashboard.metrics()).to_dict()


@router.get("/posts", response_model=PostListResponse, summary="List all posts")
async def list_all_posts(
    post_service: PostServiceDep,
    claims: AdminClaims,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = 10,
    status: Literal["published", "draft", "all"] = "all",
) -> PostListResponse:
    posts, total = await post_service.list_posts(
        page=page,
        limit=limit,
        status=None if status == "all" else PostStatus(status),
    )
    total_pages = post_service.total_pages(total, limit)
    return PostListResponse(
        posts=[
            PostResponse.from_post(p, await post_service.tags_for(p), include_content=False)
            for p in posts
        ],
        total_posts=total,
        current_page=page,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )


@router.get("/users", response_model=UserListResponse, summary="List users")
async def list_users(
    auth_service: AuthServiceDep,
    claims: AdminClaims,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    role: UserRole | None = None,
    search: str | None = None,
) -> UserListResponse:
    users, total = await auth_service.list_users(page, limit, role, search)
    return UserListResponse(
        items=[UserResponse.from_user(u) for u in users],
        total=total,
        page=page,
        limit=limit,
    )


@router.put(
    "/users/{user_id}/status",
    response_model=UserResponse,
    summary="Activate or deactivate a user",
)
async def update_user_status(
    user_id: str,
    data: UpdateStatusRequest,
    auth_service: AuthServiceDep,
    admin: LiveAdmin,
) -> UserResponse:
    """Change a user's active flag. Admins cannot change their own status."""
    user = await auth_service.set_active(admin, user_id, data.is_active)
    return UserResponse.from_user(user)


@router.get(
    "/comments", response_model=ModerationQueueResponse, summary="Moderation queue"
)
async def moderation_queue(
    comment_service: CommentServiceDep,
    claims: AdminClaims,
    status: CommentStatus = CommentStatus.PENDING,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=50)] = 20,
) -> ModerationQueueResponse:
    comments, total = await comment_service.moderation_queue(status, page, limit)
    return ModerationQueueResponse(
        items=[CommentResponse.from_comment(c) for c in comments],
        total=total,
        page=page,
        limit=limit,
    )


# ==============================================================================
# Super admin
# ==============================================================================


@superadmin_router.put(
    "/users/{user_id}/role", response_model=UserResponse, summary="Change user role"
)
async def update_user_role(
    user_id: str,
    data: UpdateRoleRequest,
    auth_service: AuthServiceDep,
    actor: LiveSuperAdmin,
) -> UserResponse:
    user = await auth_service.change_role(actor, user_id, data.role)
    return UserResponse.from_user(user)


@superadmin_router.delete(
    "/users/{user_id}", response_model=MessageResponse, summary="Delete user"
)
async def delete_user(
    user_id: str,
    auth_service: AuthServiceDep,
    post_service: PostServiceDep,
    comment_service: CommentServiceDep,
    actor: LiveSuperAdmin,
    cascade: bool = False,
) -> MessageResponse:
    """Delete a user.

    Refused while the user owns posts or comments unless ``cascade=true``,
    which removes that content first.
    """
    await auth_service.delete_user(
        actor, user_id, post_service, comment_service, cascade=cascade
    )
    return MessageResponse(message="User deleted successfully")


@superadmin_router.post("/system/reconcile", summary="Reconcile counters")
async def reconcile(
    reconciliation: ReconciliationServiceDep,
    actor: LiveSuperAdmin,
    remove_empty_tags: bool = False,
) -> dict[str, int]:
    logger.info("reconciliation_requested", actor_id=actor.id)
    report = await reconciliation.run(remove_empty_tags=remove_empty_tags)
    return report.to_dict()
