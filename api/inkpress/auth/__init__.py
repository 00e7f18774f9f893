"""Authentication module: credentials, tokens, roles."""

from inkpress.auth.permissions import UserRole, authorize, has_permission
from inkpress.auth.security import (
    Claims,
    TokenService,
    hash_password,
    verify_password,
)


__all__ = [
    "Claims",
    "TokenService",
    "UserRole",
    "authorize",
    "has_permission",
    "hash_password",
    "verify_password",
]
