"""User entity.

Users live in the ``users`` collection of the document store. The email
address is reserved in the ``user_email`` unique namespace so two accounts
can never share it, whatever the case used at signup.
"""

from datetime import datetime
from typing import Any
from uuid import uuid4

from inkpress.auth.permissions import UserRole
from inkpress.utils.timestamps import ensure_utc_aware, from_iso, to_iso, utcnow


def normalize_email(email: str) -> str:
    return email.strip().lower()


class User:
    """User entity for authentication and authorization.

    Attributes:
        id: Unique identifier (UUID string)
        email: Unique email address, stored lower-cased
        name: Display name
        password_hash: Argon2id hashed password
        role: User role (member, admin, super_admin)
        is_active: Account status; inactive users cannot log in
        profile_image: Reference path returned by file storage
        created_at: Account creation timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        id: str | None = None,
        email: str = "",
        name: str = "",
        password_hash: str = "",
        role: str = UserRole.MEMBER.value,
        is_active: bool = True,
        profile_image: str | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or str(uuid4())
        self.email = normalize_email(email)
        self.name = name
        self.password_hash = password_hash
        self.role = role
        self.is_active = is_active
        self.profile_image = profile_image
        self.created_at = ensure_utc_aware(created_at) or utcnow()
        self.updated_at = ensure_utc_aware(updated_at)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "User":
        return cls(
            id=document["id"],
            email=document["email"],
            name=document.get("name", ""),
            password_hash=document.get("password_hash", ""),
            role=document.get("role", UserRole.MEMBER.value),
            is_active=document.get("is_active", True),
            profile_image=document.get("profile_image"),
            created_at=from_iso(document.get("created_at")),
            updated_at=from_iso(document.get("updated_at")),
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "password_hash": self.password_hash,
            "role": self.role,
            "is_active": self.is_active,
            "profile_image": self.profile_image,
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    def to_dict(self, include_password: bool = False) -> dict[str, Any]:
        """Convert to dictionary (excludes password_hash by default)."""
        data = self.to_document()
        data["created_at"] = self.created_at
        data["updated_at"] = self.updated_at
        if not include_password:
            data.pop("password_hash")
        return data

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"
