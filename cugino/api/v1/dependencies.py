"""FastAPI dependencies: service wiring, bearer authentication and access gates."""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from cugino.core.config import Settings, get_settings
from cugino.core.database import get_db
from cugino.core.errors import ValidationError
from cugino.domain.roles import Role
from cugino.repositories.user_repository import SqlUserRepository
from cugino.services.authorization import (
    Identity,
    authenticate_request,
    authenticate_request_optional,
    extract_bearer_token,
    require_owner_or_elevated,
    require_role,
)
from cugino.services.user_service import UserService


def get_user_service(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> UserService:
    return UserService(SqlUserRepository(db), settings)


def get_token_identity(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> Identity:
    """Dependency: identity from the token claims alone (no database access)."""
    identity = authenticate_request(
        request.headers,
        settings.JWT_SECRET.get_secret_value(),
        settings.JWT_ALGORITHM,
    )
    request.state.identity = identity
    return identity


def get_current_identity(
    request: Request,
    service: Annotated[UserService, Depends(get_user_service)],
) -> Identity:
    """
    Dependency: require a valid Bearer token and return the caller as currently
    stored, so role changes apply even to tokens issued before the change.
    """
    token = extract_bearer_token(request.headers.get("authorization"))
    identity = Identity.from_user(service.authenticate_token(token))
    request.state.identity = identity
    return identity


def get_optional_identity(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> Identity | None:
    """Dependency: caller identity if a valid token was sent, None otherwise."""
    identity = authenticate_request_optional(
        request.headers,
        settings.JWT_SECRET.get_secret_value(),
        settings.JWT_ALGORITHM,
    )
    if identity is not None:
        request.state.identity = identity
    return identity


def require_roles(*roles: Role) -> Callable[..., Identity]:
    """Dependency factory: caller's role must be one of roles."""

    def dependency(identity: Annotated[Identity, Depends(get_current_identity)]) -> Identity:
        return require_role(identity, roles)

    return dependency


def owner_or_elevated(path_param: str = "user_id") -> Callable[..., Identity]:
    """Dependency factory: caller is admin/manager, or the user named by path_param."""

    def dependency(
        request: Request,
        identity: Annotated[Identity, Depends(get_current_identity)],
    ) -> Identity:
        try:
            target_id = int(request.path_params[path_param])
        except (KeyError, TypeError, ValueError):
            raise ValidationError("Invalid user id") from None
        return require_owner_or_elevated(identity, target_id)

    return dependency


admin_only = require_roles(Role.ADMIN)
manager_or_admin = require_roles(Role.ADMIN, Role.MANAGER)
