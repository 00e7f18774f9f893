"""Security utilities for authentication.

Provides:
- Password hashing with Argon2id (OWASP recommended)
- Signed session tokens (JWT) carrying identity and role claims
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JWTClaimsError

from inkpress.auth.permissions import UserRole
from inkpress.core.errors import (
    ExpiredTokenError,
    InvalidSignatureError,
    MalformedTokenError,
    ValidationError,
)


MAX_PASSWORD_LENGTH = 1024

# Argon2id configuration (OWASP recommended parameters)
# https://cheatsheetseries.owasp.org/cheatsheets/Password_Storage_Cheat_Sheet.html
_password_hasher = PasswordHasher(
    time_cost=2,  # 2 iterations
    memory_cost=19456,  # 19 MiB (19456 KiB)
    parallelism=1,  # Single thread
    hash_len=32,  # 32-byte output
    salt_len=16,  # 16-byte random salt
)


def hash_password(password: str) -> str:
    """Hash a password using Argon2id.

    The returned hash includes the algorithm parameters and salt, so two
    calls with the same plaintext produce different strings.

    Raises:
        ValidationError: If the password exceeds ``MAX_PASSWORD_LENGTH``.

    Example:
        >>> hashed = hash_password("my-secure-password")
        >>> hashed.startswith("$argon2id$")
        True
    """
    if len(password) > MAX_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at most {MAX_PASSWORD_LENGTH} characters",
            field="password",
        )
    return _password_hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash.

    Mismatches and malformed hash material both return False.
    """
    if len(password) > MAX_PASSWORD_LENGTH:
        return False
    try:
        return _password_hasher.verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def password_needs_rehash(password_hash: str) -> bool:
    """Check if the stored hash was made with outdated parameters."""
    try:
        return _password_hasher.check_needs_rehash(password_hash)
    except InvalidHashError:
        return True


# ==============================================================================
# Session tokens
# ==============================================================================

_REQUIRED_CLAIMS = ("sub", "role", "iat", "exp")


@dataclass(frozen=True)
class Claims:
    """Verified token claims."""

    subject: str
    role: UserRole
    issued_at: datetime
    expires_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "sub": self.subject,
            "role": self.role.value,
            "iat": self.issued_at.isoformat(),
            "exp": self.expires_at.isoformat(),
        }


class TokenService:
    """Issues and verifies signed session tokens.

    Built once at startup with the process-wide signing key; holds no
    mutable state, so one instance is shared across all requests.
    """

    def __init__(
        self,
        signing_key: str,
        algorithm: str = "HS256",
        default_ttl: timedelta = timedelta(hours=24),
    ) -> None:
        if not signing_key:
            msg = "signing_key must not be empty"
            raise ValueError(msg)
        self._signing_key = signing_key
        self.algorithm = algorithm
        self.default_ttl = default_ttl

    def issue(
        self,
        user_id: str,
        role: UserRole | str,
        expires_delta: timedelta | None = None,
    ) -> str:
        """Create a token for ``user_id`` expiring after ``expires_delta``."""
        now = datetime.now(UTC)
        payload = {
            "sub": str(user_id),
            "role": UserRole(role).value,
            "iat": int(now.timestamp()),
            "exp": int((now + (expires_delta or self.default_ttl)).timestamp()),
        }
        return jwt.encode(payload, self._signing_key, algorithm=self.algorithm)

    def verify(self, token: str) -> Claims:
        """Decode and validate a token.

        Raises:
            MalformedTokenError: Token cannot be parsed or claims are invalid.
            ExpiredTokenError: Signature is valid but ``exp`` has passed.
            InvalidSignatureError: Signature does not match the signing key.
        """
        try:
            jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError as e:
            raise MalformedTokenError("Token could not be parsed") from e

        try:
            payload = jwt.decode(
                token, self._signing_key, algorithms=[self.algorithm]
            )
        except ExpiredSignatureError as e:
            raise ExpiredTokenError("Token has expired") from e
        except JWTClaimsError as e:
            raise MalformedTokenError("Token claims are invalid") from e
        except JWTError as e:
            raise InvalidSignatureError("Token signature is invalid") from e

        return self._claims_from_payload(payload)

    @staticmethod
    def _claims_from_payload(payload: dict[str, Any]) -> Claims:
        if any(payload.get(claim) in (None, "") for claim in _REQUIRED_CLAIMS):
            raise MalformedTokenError("Token is missing required claims")
        try:
            return Claims(
                subject=str(payload["sub"]),
                role=UserRole(payload["role"]),
                issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=UTC),
                expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=UTC),
            )
        except (ValueError, TypeError) as e:
            raise MalformedTokenError("Token claims are invalid") from e
