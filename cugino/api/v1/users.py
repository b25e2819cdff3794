"""User management endpoints, gated by role and ownership."""

import logging
import math
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from cugino.api.v1.dependencies import (
    admin_only,
    get_user_service,
    manager_or_admin,
    owner_or_elevated,
)
from cugino.core.errors import AuthorizationError, NotFoundError, ValidationError
from cugino.domain.roles import Role, is_elevated
from cugino.schemas.auth import MessageResponse, RoleName, UserOut
from cugino.schemas.users import (
    Pagination,
    PermissionsResponse,
    UserCreateRequest,
    UserResponse,
    UsersListResponse,
    UserUpdateRequest,
)
from cugino.services.authorization import Identity
from cugino.services.user_service import UserCreateData, UserService, UserUpdateData

router = APIRouter()
audit_logger = logging.getLogger("cugino.audit")

MAX_PAGE_SIZE = 100


@router.get("", response_model=UsersListResponse)
def list_users(
    _caller: Annotated[Identity, Depends(manager_or_admin)],
    service: Annotated[UserService, Depends(get_user_service)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = 10,
    role: RoleName | None = None,
    establishment_id: Annotated[int | None, Query(gt=0)] = None,
) -> UsersListResponse:
    """List users, optionally filtered by role or establishment (admin/manager)."""
    users, total = service.list_users(
        role=role,
        establishment_id=establishment_id,
        offset=(page - 1) * limit,
        limit=limit,
    )
    return UsersListResponse(
        users=[UserOut.model_validate(u) for u in users],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit),
        ),
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    body: UserCreateRequest,
    caller: Annotated[Identity, Depends(manager_or_admin)],
    service: Annotated[UserService, Depends(get_user_service)],
) -> UserResponse:
    """Create a user (admin/manager). An existing bcrypt hash is accepted as the password."""
    user = service.create_user(
        UserCreateData(
            name=body.name,
            password=body.password,
            role=body.role,
            establishment_id=body.establishment_id,
            accept_hashed=True,
        )
    )
    audit_logger.info(
        "USER_CREATE",
        extra={"user_id": caller.id, "target_user_id": user.id, "role": user.role.value},
    )
    return UserResponse(user=UserOut.model_validate(user))


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    _caller: Annotated[Identity, Depends(owner_or_elevated())],
    service: Annotated[UserService, Depends(get_user_service)],
) -> UserResponse:
    """Read a user: yourself, or anyone if admin/manager."""
    user = service.get_user(user_id)
    if user is None:
        raise NotFoundError(f"User with id {user_id} not found")
    return UserResponse(user=UserOut.model_validate(user))


@router.get("/{user_id}/permissions", response_model=PermissionsResponse)
def get_user_permissions(
    user_id: int,
    _caller: Annotated[Identity, Depends(owner_or_elevated())],
    service: Annotated[UserService, Depends(get_user_service)],
) -> PermissionsResponse:
    user = service.get_user(user_id)
    if user is None:
        raise NotFoundError(f"User with id {user_id} not found")
    return PermissionsResponse(
        user_id=user.id,
        role=user.role.value,
        permissions=sorted(user.get_permissions()),
    )


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    body: UserUpdateRequest,
    caller: Annotated[Identity, Depends(owner_or_elevated())],
    service: Annotated[UserService, Depends(get_user_service)],
) -> UserResponse:
    """
    Update name, role or establishment. Only admins may change their own role;
    role and establishment changes require admin or manager.
    """
    unlink = "establishment_id" in body.model_fields_set and body.establishment_id is None
    if body.role is not None and caller.id == user_id and caller.role != Role.ADMIN:
        raise AuthorizationError("You cannot change your own role")
    if (body.role is not None or body.establishment_id is not None or unlink) and not is_elevated(
        caller.role
    ):
        raise AuthorizationError("Only administrators and managers can change roles or establishments")

    user = service.update_user(
        user_id,
        UserUpdateData(
            name=body.name,
            role=body.role,
            establishment_id=body.establishment_id,
            remove_establishment=unlink,
        ),
    )
    audit_logger.info(
        "USER_UPDATE",
        extra={
            "user_id": caller.id,
            "target_user_id": user_id,
            "fields": ",".join(sorted(body.model_fields_set)),
        },
    )
    return UserResponse(user=UserOut.model_validate(user))


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: int,
    caller: Annotated[Identity, Depends(admin_only)],
    service: Annotated[UserService, Depends(get_user_service)],
) -> MessageResponse:
    """Delete a user (admin only). Admins cannot delete themselves."""
    if caller.id == user_id:
        raise ValidationError("You cannot delete your own account")
    service.delete_user(user_id)
    audit_logger.info("USER_DELETE", extra={"user_id": caller.id, "target_user_id": user_id})
    return MessageResponse(message="User deleted")
