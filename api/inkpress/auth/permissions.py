"""Role-based access control (RBAC) for Inkpress.

Hierarchical permission system:
- SUPER_ADMIN (level 2): Manage roles, delete users, run system maintenance
- ADMIN (level 1): Write posts, moderate comments, toggle user status
- MEMBER (level 0): Comment, like, manage own profile
"""

from enum import Enum

from inkpress.core.errors import AuthenticationError, AuthorizationError


class UserRole(str, Enum):
    """User roles with hierarchical levels.

    Higher level = more permissions.
    """

    MEMBER = "member"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


# Role hierarchy mapping (role -> permission level)
ROLE_HIERARCHY: dict[UserRole, int] = {
    UserRole.MEMBER: 0,
    UserRole.ADMIN: 1,
    UserRole.SUPER_ADMIN: 2,
}


def get_role_level(role: UserRole | str) -> int:
    """Get the permission level for a role.

    Unknown role strings map to -1 so they never satisfy any requirement.
    """
    if isinstance(role, str):
        try:
            role = UserRole(role)
        except ValueError:
            return -1
    return ROLE_HIERARCHY.get(role, -1)


def has_permission(user_role: UserRole | str, required_role: UserRole | str) -> bool:
    """Check if user has at least the required permission level.

    Examples:
        >>> has_permission(UserRole.SUPER_ADMIN, UserRole.ADMIN)
        True
        >>> has_permission(UserRole.MEMBER, UserRole.ADMIN)
        False
        >>> has_permission("admin", "member")
        True
    """
    return get_role_level(user_role) >= get_role_level(required_role) >= 0


def can_manage_role(user_role: UserRole | str, target_role: UserRole | str) -> bool:
    """Check if user can assign ``target_role`` to someone else.

    Only SUPER_ADMIN manages roles, and it may assign any role including
    its own level.
    """
    return get_role_level(user_role) == ROLE_HIERARCHY[
        UserRole.SUPER_ADMIN
    ] and get_role_level(target_role) >= 0


def authorize(
    caller_role: UserRole | str | None,
    required_role: UserRole | str,
) -> None:
    """Allow the call or raise.

    Raises:
        AuthenticationError: No authenticated caller.
        AuthorizationError: Caller's level is below the required level.
    """
    if caller_role is None:
        raise AuthenticationError("Authentication required", "unauthenticated")
    if not has_permission(caller_role, required_role):
        raise AuthorizationError(
            f"Requires {UserRole(required_role).value} role or higher",
            "insufficient_role",
        )


def is_admin(role: UserRole | str) -> bool:
    """Check if role is ADMIN or higher."""
    return has_permission(role, UserRole.ADMIN)


def is_super_admin(role: UserRole | str) -> bool:
    return get_role_level(role) == ROLE_HIERARCHY[UserRole.SUPER_ADMIN]
