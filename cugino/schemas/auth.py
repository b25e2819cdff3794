"""Request/response schemas for auth endpoints."""

from datetime import datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

RoleName = Literal["admin", "manager", "server"]


class LoginRequest(BaseModel):
    """Credentials for login. Legacy clients send nom / motDePasse."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("name", "nom"),
        description="User name",
    )
    password: str = Field(
        ...,
        min_length=1,
        max_length=128,
        validation_alias=AliasChoices("password", "motDePasse"),
        description="Password",
    )


class RegisterRequest(BaseModel):
    """Self-registration; the password strength policy is applied by the service."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("name", "nom"),
    )
    password: str = Field(
        ...,
        min_length=1,
        max_length=128,
        validation_alias=AliasChoices("password", "motDePasse"),
    )
    role: RoleName = Field(default="server", description="Defaults to server")
    establishment_id: int | None = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("establishment_id", "establishmentId", "etablissementId"),
    )


class ChangePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(
        ...,
        min_length=1,
        max_length=128,
        validation_alias=AliasChoices("current_password", "currentPassword"),
    )
    new_password: str = Field(
        ...,
        min_length=1,
        max_length=128,
        validation_alias=AliasChoices("new_password", "newPassword"),
    )


class UserOut(BaseModel):
    """Public view of a user (never includes the password hash)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    role: str
    establishment_id: int | None = None
    created_at: datetime
    updated_at: datetime


class AuthResponse(BaseModel):
    """Session token plus the authenticated user."""

    token: str = Field(..., description="JWT session token (valid 24 hours)")
    token_type: str = Field(default="bearer", description="Token type")
    user: UserOut


class CurrentUserResponse(BaseModel):
    """Response for GET /auth/me."""

    user: UserOut


class MessageResponse(BaseModel):
    success: bool = True
    message: str
