"""Request/response schemas for the /users endpoints."""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from cugino.schemas.auth import RoleName, UserOut


class UserCreateRequest(BaseModel):
    """Admin/manager creation of a user. password may be plaintext or a bcrypt hash."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=255, validation_alias=AliasChoices("name", "nom"))
    password: str = Field(
        ...,
        min_length=1,
        max_length=128,
        validation_alias=AliasChoices("password", "motDePasse"),
    )
    role: RoleName
    establishment_id: int | None = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("establishment_id", "establishmentId", "etablissementId"),
    )


class UserUpdateRequest(BaseModel):
    """
    Partial update. Omitted fields are unchanged; an explicit
    establishment_id of null unlinks the user from its establishment.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(
        default=None,
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("name", "nom"),
    )
    role: RoleName | None = None
    establishment_id: int | None = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("establishment_id", "establishmentId", "etablissementId"),
    )


class UserResponse(BaseModel):
    user: UserOut


class Pagination(BaseModel):
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)


class UsersListResponse(BaseModel):
    """Response for GET /users (admin and manager only)."""

    users: list[UserOut]
    pagination: Pagination


class PermissionsResponse(BaseModel):
    user_id: int
    role: str
    permissions: list[str]
