"""Pydantic request/response schemas."""

from cugino.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    CurrentUserResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    UserOut,
)
from cugino.schemas.health import ApiInfoResponse, HealthResponse
from cugino.schemas.users import (
    Pagination,
    PermissionsResponse,
    UserCreateRequest,
    UserResponse,
    UsersListResponse,
    UserUpdateRequest,
)

__all__ = [
    "ApiInfoResponse",
    "AuthResponse",
    "ChangePasswordRequest",
    "CurrentUserResponse",
    "HealthResponse",
    "LoginRequest",
    "MessageResponse",
    "Pagination",
    "PermissionsResponse",
    "RegisterRequest",
    "UserCreateRequest",
    "UserOut",
    "UserResponse",
    "UsersListResponse",
    "UserUpdateRequest",
]
