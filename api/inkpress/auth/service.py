"""Authentication service layer.

Business logic for:
- Signup and login
- Profile updates (password re-derived only when it changes)
- Role and status administration
- User deletion, optionally cascading to owned content
"""

import hmac
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import structlog

from inkpress.auth.models import User, normalize_email
from inkpress.auth.permissions import UserRole, has_permission
from inkpress.auth.schemas import SignupRequest, UpdateProfileRequest
from inkpress.auth.security import (
    TokenService,
    hash_password,
    password_needs_rehash,
    verify_password,
)
from inkpress.core.database.store import USER_EMAIL, USERS, DocumentStore
from inkpress.core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from inkpress.utils.timestamps import to_iso, utcnow


if TYPE_CHECKING:
    from inkpress.comments.service import CommentService
    from inkpress.posts.service import PostService


logger = structlog.get_logger(__name__)

_PRIVILEGED_ROLES = (UserRole.ADMIN, UserRole.SUPER_ADMIN)
_dummy_hash: str | None = None


def _timing_dummy_hash() -> str:
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = hash_password("inkpress-timing-equalizer")
    return _dummy_hash


class AuthService:
    """User management on top of the document store."""

    def __init__(
        self,
        store: DocumentStore,
        token_service: TokenService,
        privileged_signup_key: str | None = None,
    ):
        self.store = store
        self.token_service = token_service
        self.privileged_signup_key = privileged_signup_key

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_user_by_id(self, user_id: str) -> User | None:
        document = await self.store.find_by_key(USERS, user_id)
        return User.from_document(document) if document else None

    async def get_user_by_email(self, email: str) -> User | None:
        owner_id = await self.store.lookup_unique(USER_EMAIL, normalize_email(email))
        return await self.get_user_by_id(owner_id) if owner_id else None

    async def require_user(self, user_id: str) -> User:
        user = await self.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", "user_not_found")
        return user

    async def list_users(
        self,
        page: int = 1,
        limit: int = 20,
        role: UserRole | None = None,
        search: str | None = None,
    ) -> tuple[list[User], int]:
        where = {"role": role.value} if role else None
        users = [User.from_document(d) for d in await self.store.find_many(USERS, where)]
        if search:
            needle = search.lower()
            users = [u for u in users if needle in u.name.lower() or needle in u.email]
        users.sort(key=lambda u: u.created_at, reverse=True)
        start = (page - 1) * limit
        return users[start : start + limit], len(users)

    # ==========================================================================
    # Signup / Login
    # ==========================================================================

    async def signup(self, data: SignupRequest) -> User:
        """Register a new user.

        The email is reserved in the unique namespace before the user
        document is written, so concurrent signups with one email cannot
        both succeed.

        Raises:
            AuthorizationError: Privileged role requested without a valid key.
            ConflictError: Email already registered.
        """
        if data.role in _PRIVILEGED_ROLES and not self._privileged_key_matches(
            data.privileged_key
        ):
            raise AuthorizationError(
                f"A valid key is required to sign up as {data.role.value}",
                "privileged_key_required",
            )

        user = User(
            email=data.email,
            name=data.name,
            password_hash=hash_password(data.password),
            role=data.role.value,
            is_active=True,
        )

        if not await self.store.insert_unique(USER_EMAIL, user.email, user.id):
            raise ConflictError("User with this email already exists", "email_exists")

        try:
            await self.store.insert(USERS, user.to_document())
        except Exception:
            await self.store.release_unique(USER_EMAIL, user.email, user.id)
            raise

        logger.info("user_signed_up", user_id=user.id, role=user.role)
        return user

    def _privileged_key_matches(self, provided: str | None) -> bool:
        if not self.privileged_signup_key or not provided:
            return False
        return hmac.compare_digest(provided, self.privileged_signup_key)

    async def authenticate(self, email: str, password: str) -> User:
        """Check credentials and return the user.

        Raises:
            AuthenticationError: Unknown email, wrong password or inactive account.
        """
        user = await self.get_user_by_email(email)
        if user is None:
            verify_password(password, _timing_dummy_hash())
            raise AuthenticationError("Invalid email or password", "invalid_credentials")

        if not verify_password(password, user.password_hash):
            logger.info("login_failed", user_id=user.id)
            raise AuthenticationError("Invalid email or password", "invalid_credentials")

        if not user.is_active:
            raise AuthenticationError(
                "Account has been deactivated", "account_deactivated"
            )

        if password_needs_rehash(user.password_hash):
            new_hash = hash_password(password)
            await self._update_fields(user.id, {"password_hash": new_hash})
            logger.info("password_rehashed", user_id=user.id)

        return user

    async def login(self, email: str, password: str) -> tuple[User, str]:
        user = await self.authenticate(email, password)
        token = self.token_service.issue(user.id, user.role)
        logger.info("user_logged_in", user_id=user.id)
        return user, token

    @property
    def token_ttl(self) -> timedelta:
        return self.token_service.default_ttl

    # ==========================================================================
    # Profile
    # ==========================================================================

    async def update_profile(self, user_id: str, data: UpdateProfileRequest) -> User:
        """Update name, profile image and/or password.

        The stored hash is only re-derived when ``new_password`` is given.
        """
        user = await self.require_user(user_id)
        changes: dict[str, Any] = {}

        if data.name is not None:
            changes["name"] = data.name
        if data.profile_image is not None:
            changes["profile_image"] = data.profile_image
        if data.new_password is not None:
            if not data.current_password or not verify_password(
                data.current_password, user.password_hash
            ):
                raise ValidationError(
                    "Current password is incorrect", field="current_password"
                )
            changes["password_hash"] = hash_password(data.new_password)

        if not changes:
            return user
        return await self._update_fields(user_id, changes)

    async def _update_fields(self, user_id: str, changes: dict[str, Any]) -> User:
        def apply(document: dict[str, Any]) -> dict[str, Any]:
            document.update(changes)
            document["updated_at"] = to_iso(utcnow())
            return document

        document = await self.store.transactional_update(USERS, user_id, apply)
        if document is None:
            raise NotFoundError("User not found", "user_not_found")
        return User.from_document(document)

    # ==========================================================================
    # Administration
    # ==========================================================================

    async def change_role(self, actor: User, user_id: str, role: UserRole) -> User:
        """Change a user's role (super_admin only, never on oneself)."""
        if actor.role != UserRole.SUPER_ADMIN.value:
            raise AuthorizationError("Only super admins can change roles", "forbidden")
        if actor.id == user_id:
            raise ValidationError("Cannot change your own role", field="user_id")

        await self.require_user(user_id)
        user = await self._update_fields(user_id, {"role": role.value})
        logger.info("user_role_changed", target_user_id=user_id, role=role.value)
        return user

    async def set_active(self, actor: User, user_id: str, is_active: bool) -> User:
        """Activate or deactivate an account (not one's own)."""
        if actor.id == user_id:
            raise ValidationError("Cannot change your own status", field="user_id")

        target = await self.require_user(user_id)
        if not has_permission(actor.role, target.role):
            raise AuthorizationError(
                "Cannot change the status of a higher-ranked user", "forbidden"
            )

        user = await self._update_fields(user_id, {"is_active": is_active})
        logger.info("user_status_changed", target_user_id=user_id, is_active=is_active)
        return user

    async def delete_user(
        self,
        actor: User,
        user_id: str,
        posts: "PostService",
        comments: "CommentService",
        cascade: bool = False,
    ) -> None:
        """Delete a user.

        Without ``cascade`` the delete is refused while the user still owns
        posts or comments. With it, owned posts (and their comment trees)
        and owned comments are removed first.
        """
        if actor.role != UserRole.SUPER_ADMIN.value:
            raise AuthorizationError("Only super admins can delete users", "forbidden")
        if actor.id == user_id:
            raise ValidationError("Cannot delete your own account", field="user_id")

        user = await self.require_user(user_id)

        if cascade:
            deleted_posts = await posts.delete_by_author(user_id)
            deleted_comments = await comments.delete_by_author(user_id)
            logger.info(
                "user_content_purged",
                target_user_id=user_id,
                posts=deleted_posts,
                comments=deleted_comments,
            )
        elif await posts.count_by_author(user_id) or await comments.count_by_author(
            user_id
        ):
            raise ConflictError(
                "User still owns content; delete with cascade", "user_owns_content"
            )

        await self.store.delete(USERS, user_id)
        await self.store.release_unique(USER_EMAIL, user.email, user.id)
        logger.info("user_deleted", target_user_id=user_id, cascade=cascade)
