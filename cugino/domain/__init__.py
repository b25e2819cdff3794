"""User domain: aggregate, roles and domain events."""

from cugino.domain.events import DomainEvent
from cugino.domain.roles import ROLE_PERMISSIONS, Role, permissions_for
from cugino.domain.user import User

__all__ = ["DomainEvent", "ROLE_PERMISSIONS", "Role", "User", "permissions_for"]
