"""
Request authentication and role/ownership checks.

Plain functions of (headers, secret) and (identity, policy) so they can be
used outside FastAPI; cugino.api.v1.dependencies wraps them as dependencies.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import jwt

from cugino.core.errors import (
    AuthenticationError,
    AuthorizationError,
    InvalidTokenError,
    TokenExpiredError,
    TokenNotYetValidError,
)
from cugino.core.security import decode_session_token
from cugino.domain.roles import Role, is_elevated

BEARER_SCHEME = "Bearer"


@dataclass(frozen=True)
class Identity:
    """Caller identity attached to a request once its token is accepted."""

    id: int
    name: str
    role: str
    establishment_id: int | None = None

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> "Identity":
        try:
            user_id = int(claims["sub"])
        except (KeyError, TypeError, ValueError):
            raise InvalidTokenError("Invalid token payload") from None
        role = claims.get("role")
        if not isinstance(role, str) or not role:
            raise InvalidTokenError("Invalid token payload")
        establishment_id = claims.get("establishment_id")
        return cls(
            id=user_id,
            name=str(claims.get("name") or ""),
            role=role,
            establishment_id=int(establishment_id) if establishment_id is not None else None,
        )

    @classmethod
    def from_user(cls, user: Any) -> "Identity":
        return cls(
            id=user.id,
            name=user.name,
            role=str(user.role),
            establishment_id=user.establishment_id,
        )


def extract_bearer_token(authorization: str | None) -> str:
    """Return the token of an 'Authorization: Bearer <token>' header value."""
    if not authorization:
        raise AuthenticationError("Missing authentication token")
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != BEARER_SCHEME or not parts[1]:
        raise AuthenticationError("Invalid token format. Use: Bearer <token>")
    return parts[1]


def decode_claims(token: str, secret: str, algorithm: str = "HS256") -> dict[str, Any]:
    """Verify a session token and map PyJWT failures onto AuthenticationError subclasses."""
    try:
        return decode_session_token(token, secret=secret, algorithm=algorithm)
    except jwt.ExpiredSignatureError as e:
        raise TokenExpiredError() from e
    except jwt.ImmatureSignatureError as e:
        raise TokenNotYetValidError() from e
    except jwt.PyJWTError as e:
        raise InvalidTokenError() from e


def _authorization_header(headers: Mapping[str, str]) -> str | None:
    value = headers.get("authorization")
    if value is None:
        value = headers.get("Authorization")
    return value


def authenticate_request(
    headers: Mapping[str, str],
    secret: str,
    algorithm: str = "HS256",
) -> Identity:
    """Identity from the request's bearer token; raises AuthenticationError."""
    token = extract_bearer_token(_authorization_header(headers))
    return Identity.from_claims(decode_claims(token, secret, algorithm))


def authenticate_request_optional(
    headers: Mapping[str, str],
    secret: str,
    algorithm: str = "HS256",
) -> Identity | None:
    """Like authenticate_request, but any failure means an anonymous caller."""
    try:
        return authenticate_request(headers, secret, algorithm)
    except AuthenticationError:
        return None


def require_role(identity: Identity | None, allowed_roles: Iterable[Role | str]) -> Identity:
    """Reject callers whose role is not in allowed_roles."""
    if identity is None:
        raise AuthenticationError("User not authenticated")
    allowed = [str(r) for r in allowed_roles]
    if identity.role not in allowed:
        raise AuthorizationError(f"Access denied. Allowed roles: {', '.join(allowed)}")
    return identity


def require_owner_or_elevated(identity: Identity | None, target_user_id: int) -> Identity:
    """Admins and managers may act on anyone; other users only on themselves."""
    if identity is None:
        raise AuthenticationError("User not authenticated")
    if is_elevated(identity.role):
        return identity
    if identity.id == target_user_id:
        return identity
    raise AuthorizationError("You can only access your own resources")
