"""User roles and the static role -> permission table."""

from enum import StrEnum

from cugino.core.errors import ValidationError


class Role(StrEnum):
    ADMIN = "admin"
    MANAGER = "manager"
    SERVER = "server"


# Roles allowed to manage other users' accounts.
ELEVATED_ROLES = frozenset({Role.ADMIN, Role.MANAGER})

PUBLIC_PERMISSIONS = frozenset({"read:public"})

# Permission sets are fixed per role; there are no per-user overrides.
ROLE_PERMISSIONS: dict[Role, frozenset[str]] = {
    Role.ADMIN: frozenset(
        {
            "read:all",
            "write:all",
            "delete:all",
            "manage:users",
            "manage:establishments",
        }
    ),
    Role.SERVER: frozenset(
        {
            "read:establishment",
            "write:menus",
            "write:orders",
            "read:products",
        }
    ),
}


def permissions_for(role: Role | str) -> frozenset[str]:
    """Permission set for a role; unlisted roles only get public read access."""
    try:
        return ROLE_PERMISSIONS.get(Role(role), PUBLIC_PERMISSIONS)
    except ValueError:
        return PUBLIC_PERMISSIONS


def parse_role(value: Role | str) -> Role:
    """Coerce value to a Role, raising ValidationError for unknown roles."""
    try:
        return Role(value)
    except ValueError:
        valid = ", ".join(r.value for r in Role)
        raise ValidationError(f"Invalid role '{value}'. Valid roles: {valid}") from None


def is_elevated(role: Role | str) -> bool:
    return role in ELEVATED_ROLES
