"""Pydantic schemas for authentication and user administration."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from inkpress.auth.models import User
from inkpress.auth.permissions import UserRole
from inkpress.auth.security import MAX_PASSWORD_LENGTH


MIN_PASSWORD_LENGTH = 6


# ==============================================================================
# Request Schemas
# ==============================================================================


class SignupRequest(BaseModel):
    """User registration request.

    ``admin`` and ``super_admin`` require ``privileged_key`` to match the
    configured signup key.
    """

    name: str = Field(..., min_length=2, max_length=50, description="Display name")
    email: EmailStr = Field(..., description="Email address")
    password: str = Field(
        ...,
        min_length=MIN_PASSWORD_LENGTH,
        max_length=MAX_PASSWORD_LENGTH,
        description="Password",
    )
    role: UserRole = Field(UserRole.MEMBER, description="Requested role")
    privileged_key: str | None = Field(None, description="Key for privileged roles")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            msg = "Name must be at least 2 characters"
            raise ValueError(msg)
        return v


class LoginRequest(BaseModel):
    """User login request."""

    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., min_length=1, description="Password")


class UpdateProfileRequest(BaseModel):
    """Profile update request.

    Changing the password requires ``current_password``.
    """

    name: str | None = Field(None, min_length=2, max_length=50)
    profile_image: str | None = Field(None, max_length=500)
    current_password: str | None = Field(None)
    new_password: str | None = Field(
        None, min_length=MIN_PASSWORD_LENGTH, max_length=MAX_PASSWORD_LENGTH
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip()


class UpdateRoleRequest(BaseModel):
    """Role change request (super_admin only)."""

    role: UserRole = Field(..., description="New role")


class UpdateStatusRequest(BaseModel):
    """Activate or deactivate a user (admin+)."""

    is_active: bool = Field(..., description="Account status")


# ==============================================================================
# Response Schemas
# ==============================================================================


class UserResponse(BaseModel):
    """User response (public profile)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    role: str
    is_active: bool
    profile_image: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls.model_validate(user)


class TokenResponse(BaseModel):
    """Access token response."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int = Field(..., description="Token expiration in seconds")
    user: UserResponse


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str


class UserListResponse(BaseModel):
    """Paginated list of users."""

    items: list[UserResponse]
    total: int
    page: int
    limit: int
