"""Admin dashboard aggregates computed from the document store."""

from dataclasses import asdict, dataclass

from inkpress.auth.permissions import UserRole
from inkpress.comments.models import CommentStatus
from inkpress.core.database.store import COMMENTS, POSTS, USERS, DocumentStore
from inkpress.posts.models import PostStatus
from inkpress.utils.timestamps import from_iso, utcnow


@dataclass
class DashboardMetrics:
    total_posts: int
    published_posts: int
    draft_posts: int
    total_members: int
    total_admins: int
    approved_comments: int
    pending_comments: int
    total_views: int
    total_likes: int
    posts_this_month: int
    comments_this_month: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class DashboardService:
    def __init__(self, store: DocumentStore):
        self.store = store

    async def metrics(self) -> DashboardMetrics:
        posts = await self.store.find_many(POSTS)
        comments = await self.store.find_many(COMMENTS)
        month_start = utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        published = [p for p in posts if p.get("status") == PostStatus.PUBLISHED.value]
        approved = [c for c in comments if c.get("status") == CommentStatus.APPROVED.value]

        return DashboardMetrics(
            total_posts=len(posts),
            published_posts=len(published),
            draft_posts=len(posts) - len(published),
            total_members=await self.store.count(USERS, {"role": UserRole.MEMBER.value}),
            total_admins=await self.store.count(USERS, {"role": UserRole.ADMIN.value}),
            approved_comments=len(approved),
            pending_comments=sum(
                1 for c in comments if c.get("status") == CommentStatus.PENDING.value
            ),
            total_views=sum(p.get("view_count", 0) for p in published),
            total_likes=sum(p.get("like_count", 0) for p in published),
            posts_this_month=sum(
                1 for p in posts if from_iso(p["created_at"]) >= month_start
            ),
            comments_this_month=sum(
                1 for c in approved if from_iso(c["created_at"]) >= month_start
            ),
        )
