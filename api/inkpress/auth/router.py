"""Authentication API endpoints.

Provides routes for:
- Signup and login
- Current user and profile management
- Logout
"""

from fastapi import APIRouter, status

from inkpress.auth.dependencies import AuthServiceDep, CurrentUser
from inkpress.auth.schemas import (
    LoginRequest,
    MessageResponse,
    SignupRequest,
    TokenResponse,
    UpdateProfileRequest,
    UserResponse,
)


router = APIRouter(prefix="/v1/auth", tags=["auth"])


@router.post(
    "/signup",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register new user",
    responses={
        400: {"description": "Validation error or email already registered"},
        403: {"description": "Privileged role requested without a valid key"},
    },
)
async def signup(data: SignupRequest, auth_service: AuthServiceDep) -> TokenResponse:
    """Create an account and return a session token for it."""
    user = await auth_service.signup(data)
    token = auth_service.token_service.issue(user.id, user.role)
    return TokenResponse(
        access_token=token,
        expires_in=int(auth_service.token_ttl.total_seconds()),
        user=UserResponse.from_user(user),
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="User login",
    responses={401: {"description": "Invalid credentials or account deactivated"}},
)
async def login(data: LoginRequest, auth_service: AuthServiceDep) -> TokenResponse:
    user, token = await auth_service.login(data.email, data.password)
    return TokenResponse(
        access_token=token,
        expires_in=int(auth_service.token_ttl.total_seconds()),
        user=UserResponse.from_user(user),
    )


@router.get("/me", response_model=UserResponse, summary="Current user")
async def me(user: CurrentUser) -> UserResponse:
    return UserResponse.from_user(user)


@router.put("/profile", response_model=UserResponse, summary="Update own profile")
async def update_profile(
    data: UpdateProfileRequest,
    user: CurrentUser,
    auth_service: AuthServiceDep,
) -> UserResponse:
    """Update name, profile image or password.

    A password change requires the current password.
    """
    updated = await auth_service.update_profile(user.id, data)
    return UserResponse.from_user(updated)


@router.post("/logout", response_model=MessageResponse, summary="Logout")
async def logout(user: CurrentUser) -> MessageResponse:
    """Tokens are stateless; the client discards its copy."""
    return MessageResponse(message="Logged out successfully")
