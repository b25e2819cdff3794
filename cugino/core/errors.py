"""Application error taxonomy.

Every error raised by the domain, the service layer or the authorization
helpers is an ``AppError``. Each carries a machine-readable ``code`` and the
HTTP status the boundary translator in ``cugino.api.errors`` should answer
with. Nothing below knows about FastAPI.
"""

from typing import Any


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, details: Any = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(AppError):
    """Bad input shape, uniqueness or policy violation."""

    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Validation failed"


class WeakPasswordError(ValidationError):
    """Password does not satisfy the strength policy.

    ``missing`` lists every violated rule, not only the first one.
    """

    code = "WEAK_PASSWORD"

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            f"Password must contain: {', '.join(self.missing)}",
            details={"missing": self.missing},
        )


class DomainRuleError(ValidationError):
    """A User aggregate invariant would be broken by the requested change."""

    code = "DOMAIN_RULE_VIOLATION"


class AuthenticationError(AppError):
    """Bad credentials, or a missing / invalid / expired session token."""

    status_code = 401
    code = "AUTHENTICATION_ERROR"
    default_message = "Not authenticated"


class TokenExpiredError(AuthenticationError):
    code = "TOKEN_EXPIRED"
    default_message = "Token expired"


class TokenNotYetValidError(AuthenticationError):
    code = "TOKEN_NOT_YET_VALID"
    default_message = "Token not yet valid"


class InvalidTokenError(AuthenticationError):
    code = "INVALID_TOKEN"
    default_message = "Invalid token"


class AuthorizationError(AppError):
    """Role or ownership check failed."""

    status_code = 403
    code = "AUTHORIZATION_ERROR"
    default_message = "Not authorized"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT_ERROR"
    default_message = "Resource already exists"


class DatabaseError(AppError):
    status_code = 500
    code = "DATABASE_ERROR"
    default_message = "Database operation failed"
