"""Error taxonomy shared by all services.

Services raise these; the HTTP layer maps ``code`` to a status in one place
(see ``inkpress.main``). Messages are safe to show to callers.
"""

from typing import Any


class InkpressError(Exception):
    """Base class for domain errors."""

    code = "error"

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class ValidationError(InkpressError):
    """Input rejected before any side effect took place."""

    code = "validation_error"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        code: str | None = None,
    ) -> None:
        self.field = field
        super().__init__(message, code)

    def details(self) -> list[dict[str, Any]]:
        return [{"field": self.field or "body", "message": self.message}]


class AuthenticationError(InkpressError):
    code = "authentication_failed"


class ExpiredTokenError(AuthenticationError):
    code = "token_expired"


class InvalidSignatureError(AuthenticationError):
    code = "invalid_signature"


class MalformedTokenError(AuthenticationError):
    code = "malformed_token"


class AuthorizationError(InkpressError):
    code = "forbidden"


class NotFoundError(InkpressError):
    code = "not_found"


class ConflictError(InkpressError):
    code = "conflict"


class ConsistencyRepairNeededError(InkpressError):
    """A secondary counter update failed after the primary write succeeded.

    Never surfaced to callers; logged so reconciliation can pick it up.
    """

    code = "consistency_repair_needed"

    def __init__(self, collection: str, key: str, field: str, delta: int) -> None:
        self.collection = collection
        self.key = key
        self.field = field
        self.delta = delta
        super().__init__(
            f"Counter {collection}/{key}.{field} missed delta {delta:+d}"
        )


class ServiceUnavailableError(InkpressError):
    """Store or collaborator timed out or is unreachable."""

    code = "service_unavailable"
