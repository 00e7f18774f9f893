"""FastAPI dependencies for authentication.

Provides dependency injection for:
- Token verification (pure, no store lookup)
- Role-based access control on token claims
- Live role checks against the stored user for destructive actions
"""

from typing import Annotated

from fastapi import Depends, Request

from inkpress.auth.models import User
from inkpress.auth.permissions import UserRole, authorize
from inkpress.auth.security import Claims, TokenService
from inkpress.auth.service import AuthService
from inkpress.core.context import set_user_id
from inkpress.core.errors import AuthenticationError, ServiceUnavailableError


def get_token_service(request: Request) -> TokenService:
    token_service = getattr(request.app.state, "token_service", None)
    if token_service is None:
        raise ServiceUnavailableError("Token service not available")
    return token_service


def get_auth_service(request: Request) -> AuthService:
    """Get auth service from app state."""
    auth_service = getattr(request.app.state, "auth_service", None)
    if auth_service is None:
        raise ServiceUnavailableError("Auth service not available")
    return auth_service


def get_token_from_header(request: Request) -> str | None:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    expected_parts = 2
    parts = auth_header.split()
    if len(parts) != expected_parts or parts[0].lower() != "bearer":
        return None

    return parts[1]


async def get_current_claims(
    token: Annotated[str | None, Depends(get_token_from_header)],
    token_service: Annotated[TokenService, Depends(get_token_service)],
) -> Claims:
    """Verify the bearer token and return its claims.

    Raises:
        AuthenticationError: Missing token, or expired / tampered / malformed.
    """
    if not token:
        raise AuthenticationError("Access token not provided", "unauthenticated")

    claims = token_service.verify(token)
    set_user_id(claims.subject)
    return claims


async def get_optional_claims(
    token: Annotated[str | None, Depends(get_token_from_header)],
    token_service: Annotated[TokenService, Depends(get_token_service)],
) -> Claims | None:
    """Claims if a valid token was sent, None otherwise."""
    if not token:
        return None
    try:
        claims = token_service.verify(token)
    except AuthenticationError:
        return None
    set_user_id(claims.subject)
    return claims


def require_permission(required_role: UserRole):
    """Create dependency requiring at least a permission level (token role).

    Example:
        @router.post("/")
        async def create_post(
            user: Annotated[Claims, Depends(require_permission(UserRole.ADMIN))]
        ):
            ...
    """

    async def permission_checker(
        token: Annotated[str | None, Depends(get_token_from_header)],
        token_service: Annotated[TokenService, Depends(get_token_service)],
    ) -> Claims:
        claims = token_service.verify(token) if token else None
        authorize(claims.role if claims else None, required_role)
        set_user_id(claims.subject)
        return claims

    return permission_checker


def require_live_role(required_role: UserRole):
    """Create dependency that re-derives authority from the stored user.

    The role inside a token can be stale after a role change; destructive
    actions check the live record and its active flag instead.
    """

    async def live_checker(
        claims: Annotated[Claims, Depends(get_current_claims)],
        auth_service: Annotated[AuthService, Depends(get_auth_service)],
    ) -> User:
        user = await auth_service.get_user_by_id(claims.subject)
        if user is None or not user.is_active:
            raise AuthenticationError("Account is not active", "account_inactive")
        authorize(user.role, required_role)
        return user

    return live_checker


async def get_current_user(
    claims: Annotated[Claims, Depends(get_current_claims)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> User:
    """Load the stored user for the token subject."""
    user = await auth_service.get_user_by_id(claims.subject)
    if user is None or not user.is_active:
        raise AuthenticationError("Account is not active", "account_inactive")
    return user


# ==============================================================================
# Type Aliases for Cleaner Code
# ==============================================================================

CurrentClaims = Annotated[Claims, Depends(get_current_claims)]
OptionalClaims = Annotated[Claims | None, Depends(get_optional_claims)]
CurrentUser = Annotated[User, Depends(get_current_user)]

AdminClaims = Annotated[Claims, Depends(require_permission(UserRole.ADMIN))]
LiveAdmin = Annotated[User, Depends(require_live_role(UserRole.ADMIN))]
LiveSuperAdmin = Annotated[User, Depends(require_live_role(UserRole.SUPER_ADMIN))]

AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
