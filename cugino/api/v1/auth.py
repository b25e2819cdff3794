"""Login, registration, password change and current-user endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from cugino.api.v1.dependencies import get_current_identity, get_token_identity, get_user_service
from cugino.core.errors import AuthenticationError
from cugino.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    CurrentUserResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    UserOut,
)
from cugino.services.authorization import Identity
from cugino.services.user_service import UserCreateData, UserService

router = APIRouter()
logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("cugino.audit")


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@router.post("/login", response_model=AuthResponse)
def login(
    body: LoginRequest,
    request: Request,
    service: Annotated[UserService, Depends(get_user_service)],
) -> AuthResponse:
    """
    Authenticate with name and password; returns a session token valid 24 hours.
    Include the token in the Authorization header as: Bearer <token>
    """
    try:
        user, token = service.login(body.name, body.password)
    except AuthenticationError:
        logger.warning(
            "Failed login attempt",
            extra={"login_name": body.name, "client_ip": _client_ip(request)},
        )
        raise AuthenticationError("Invalid credentials") from None
    audit_logger.info("USER_LOGIN", extra={"user_id": user.id, "client_ip": _client_ip(request)})
    return AuthResponse(token=token, user=UserOut.model_validate(user))


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    request: Request,
    service: Annotated[UserService, Depends(get_user_service)],
) -> AuthResponse:
    """Create an account (role defaults to server) and log it in."""
    user = service.create_user(
        UserCreateData(
            name=body.name,
            password=body.password,
            role=body.role,
            establishment_id=body.establishment_id,
        )
    )
    token = service.issue_session_token(user)
    audit_logger.info(
        "USER_REGISTER",
        extra={"user_id": user.id, "role": user.role.value, "client_ip": _client_ip(request)},
    )
    return AuthResponse(token=token, user=UserOut.model_validate(user))


@router.post("/logout", response_model=MessageResponse)
def logout(identity: Annotated[Identity, Depends(get_token_identity)]) -> MessageResponse:
    """Stateless: the client discards its token; it stays valid until expiry."""
    audit_logger.info("USER_LOGOUT", extra={"user_id": identity.id})
    return MessageResponse(message="Logged out")


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest,
    identity: Annotated[Identity, Depends(get_current_identity)],
    service: Annotated[UserService, Depends(get_user_service)],
) -> MessageResponse:
    """Change the caller's password; the current password must be supplied."""
    service.change_password(identity.id, body.current_password, body.new_password)
    audit_logger.info("PASSWORD_CHANGE", extra={"user_id": identity.id})
    return MessageResponse(message="Password changed")


@router.get("/me", response_model=CurrentUserResponse)
def me(
    identity: Annotated[Identity, Depends(get_current_identity)],
    service: Annotated[UserService, Depends(get_user_service)],
) -> CurrentUserResponse:
    user = service.get_user(identity.id)
    if user is None:
        raise AuthenticationError("User not found")
    return CurrentUserResponse(user=UserOut.model_validate(user))
