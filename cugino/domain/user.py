"""
User aggregate: identity, credentials and role, with guarded mutations.

State only changes through the methods below. Each successful transition
bumps updated_at and appends a DomainEvent to an in-memory buffer; callers
drain the buffer after persisting (the aggregate never publishes).
"""

import logging
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from cugino.core.errors import DomainRuleError, ValidationError
from cugino.core.security import NAME_MAX_LEN, NAME_MIN_LEN, PasswordHash
from cugino.domain import events
from cugino.domain.events import DomainEvent
from cugino.domain.roles import Role, parse_role, permissions_for

if TYPE_CHECKING:
    from cugino.models.user import UserRecord

logger = logging.getLogger(__name__)

SERVER_NEEDS_ESTABLISHMENT = "A server must be assigned to an establishment"

_FACTORY_TOKEN = object()


def _now() -> datetime:
    return datetime.now(UTC)


def normalize_name(name: str | None) -> str:
    """Trim and check a user name; raises ValidationError."""
    cleaned = (name or "").strip()
    if len(cleaned) < NAME_MIN_LEN:
        raise ValidationError(f"Name must contain at least {NAME_MIN_LEN} characters")
    if len(cleaned) > NAME_MAX_LEN:
        raise ValidationError(f"Name must contain at most {NAME_MAX_LEN} characters")
    return cleaned


class User:
    """
    User aggregate. Equality and hashing use id only; a user without an id
    is only equal to itself and cannot be hashed.

    Build instances through create, with_password_hash or from_record.
    """

    def __init__(
        self,
        *,
        id: int | None,
        name: str,
        password_hash: PasswordHash,
        role: Role,
        establishment_id: int | None,
        created_at: datetime,
        updated_at: datetime,
        _token: object = None,
    ) -> None:
        if _token is not _FACTORY_TOKEN:
            raise TypeError("Use User.create(), User.with_password_hash() or User.from_record()")
        if not isinstance(password_hash, PasswordHash):
            raise TypeError("password_hash must be a PasswordHash")
        self._id = id
        self._name = name
        self._password_hash = password_hash
        self._role = role
        self._establishment_id = establishment_id
        self._created_at = created_at
        self._updated_at = updated_at
        self._events: list[DomainEvent] = []

    # ---------- factories ----------

    @classmethod
    def create(
        cls,
        role: Role | str,
        name: str,
        password: str,
        establishment_id: int | None = None,
    ) -> "User":
        """Build a new, not yet persisted user. Applies the strict password policy."""
        role = parse_role(role)
        name = normalize_name(name)
        if role is Role.SERVER and establishment_id is None:
            raise DomainRuleError(SERVER_NEEDS_ESTABLISHMENT)
        password_hash = PasswordHash.from_plaintext(password, require_special=True)
        return cls.with_password_hash(role, name, password_hash, establishment_id)

    @classmethod
    def with_password_hash(
        cls,
        role: Role | str,
        name: str,
        password_hash: PasswordHash,
        establishment_id: int | None = None,
    ) -> "User":
        """Build a new user from an already hashed password (imports, admin creation)."""
        role = parse_role(role)
        name = normalize_name(name)
        if role is Role.SERVER and establishment_id is None:
            raise DomainRuleError(SERVER_NEEDS_ESTABLISHMENT)
        now = _now()
        user = cls(
            id=None,
            name=name,
            password_hash=password_hash,
            role=role,
            establishment_id=establishment_id,
            created_at=now,
            updated_at=now,
            _token=_FACTORY_TOKEN,
        )
        user._record(events.USER_CREATED, {"role": role.value, "name": name}, now)
        return user

    @classmethod
    def from_record(cls, record: "UserRecord") -> "User":
        """Rehydrate from a stored row; no events are recorded."""
        return cls(
            id=record.id,
            name=record.name,
            password_hash=PasswordHash.from_hash(record.password_hash),
            role=parse_role(record.role),
            establishment_id=record.establishment_id,
            created_at=record.created_at,
            updated_at=record.updated_at,
            _token=_FACTORY_TOKEN,
        )

    # ---------- read-only state ----------

    @property
    def id(self) -> int | None:
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @property
    def password_hash(self) -> str:
        return self._password_hash.value

    @property
    def role(self) -> Role:
        return self._role

    @property
    def establishment_id(self) -> int | None:
        return self._establishment_id

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def updated_at(self) -> datetime:
        return self._updated_at

    # ---------- events ----------

    @property
    def pending_events(self) -> tuple[DomainEvent, ...]:
        return tuple(self._events)

    def drain_events(self) -> list[DomainEvent]:
        """Return buffered events and clear the buffer."""
        drained, self._events = self._events, []
        return drained

    def _record(self, event_type: str, data: dict[str, Any], when: datetime | None = None) -> None:
        self._events.append(
            DomainEvent(
                entity_id=self._id,
                event_type=event_type,
                timestamp=when or _now(),
                data=data,
            )
        )

    def _touch(self) -> datetime:
        self._updated_at = _now()
        return self._updated_at

    def bind_identity(self, user_id: int, created_at: datetime, updated_at: datetime) -> None:
        """Called by the store once the row exists. The id can only be set once."""
        if self._id is not None:
            raise ValueError(f"User already has id {self._id}")
        self._id = user_id
        self._created_at = created_at
        self._updated_at = updated_at
        self._events = [
            replace(e, entity_id=user_id) if e.entity_id is None else e for e in self._events
        ]

    # ---------- password ----------

    def change_password(self, new_password: str) -> None:
        """Re-hash with the strict policy. Authorization is the caller's job."""
        self._password_hash = PasswordHash.from_plaintext(new_password, require_special=True)
        now = self._touch()
        self._record(events.PASSWORD_CHANGED, {"user_id": self._id}, now)

    def replace_password_hash(self, password_hash: PasswordHash) -> None:
        """Swap in a new hash of the same password (cost upgrade). No event."""
        if not isinstance(password_hash, PasswordHash):
            raise TypeError("password_hash must be a PasswordHash")
        self._password_hash = password_hash
        self._touch()

    def verify_password(self, password: str) -> bool:
        if not password:
            return False
        try:
            return self._password_hash.verify(password)
        except Exception:
            logger.warning("Password verification failed unexpectedly for user_id=%s", self._id)
            return False

    def needs_password_rehash(self) -> bool:
        return self._password_hash.needs_rehash()

    # ---------- name / role / establishment ----------

    def rename(self, new_name: str) -> None:
        new_name = normalize_name(new_name)
        if new_name == self._name:
            return
        self._name = new_name
        self._touch()

    def change_role(self, new_role: Role | str) -> None:
        """
        Change role. Same role is a no-op (no event, updated_at untouched).
        Moving to server requires an establishment; state is unchanged on refusal.
        """
        new_role = parse_role(new_role)
        if new_role is self._role:
            return
        if new_role is Role.SERVER and self._establishment_id is None:
            raise DomainRuleError(SERVER_NEEDS_ESTABLISHMENT)
        old_role = self._role
        self._role = new_role
        now = self._touch()
        self._record(
            events.ROLE_CHANGED,
            {"old_role": old_role.value, "new_role": new_role.value, "user_id": self._id},
            now,
        )

    def assign_to_establishment(self, establishment_id: int) -> None:
        if establishment_id is None or establishment_id <= 0:
            raise ValidationError("Establishment id must be a positive integer")
        old = self._establishment_id
        self._establishment_id = establishment_id
        now = self._touch()
        self._record(
            events.ESTABLISHMENT_ASSIGNED,
            {
                "old_establishment_id": old,
                "new_establishment_id": establishment_id,
                "user_id": self._id,
            },
            now,
        )

    def remove_from_establishment(self) -> None:
        if self._role is Role.SERVER:
            raise DomainRuleError("A server cannot be removed from its establishment")
        old = self._establishment_id
        self._establishment_id = None
        now = self._touch()
        self._record(
            events.ESTABLISHMENT_REMOVED,
            {"old_establishment_id": old, "user_id": self._id},
            now,
        )

    # ---------- access ----------

    def can_access_establishment(self, establishment_id: int) -> bool:
        if self._role is Role.ADMIN:
            return True
        return self._establishment_id is not None and self._establishment_id == establishment_id

    def get_permissions(self) -> frozenset[str]:
        return permissions_for(self._role)

    def has_permission(self, permission: str) -> bool:
        return permission in self.get_permissions()

    def validate(self) -> None:
        """Re-check every invariant; raises ValidationError listing all failures."""
        errors: list[str] = []
        if not self._name or len(self._name.strip()) < NAME_MIN_LEN:
            errors.append(f"Name must contain at least {NAME_MIN_LEN} characters")
        if not self._password_hash.value:
            errors.append("A password hash is required")
        if not isinstance(self._role, Role):
            errors.append("Role must be valid")
        if self._role is Role.SERVER and self._establishment_id is None:
            errors.append(SERVER_NEEDS_ESTABLISHMENT)
        if errors:
            raise ValidationError(f"Validation failed: {', '.join(errors)}", details=errors)

    def to_record_fields(self) -> dict[str, Any]:
        """Column values for persisting this user."""
        return {
            "name": self._name,
            "password_hash": self._password_hash.value,
            "role": self._role.value,
            "establishment_id": self._establishment_id,
        }

    # ---------- identity ----------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, User):
            return NotImplemented
        if self is other:
            return True
        return self._id is not None and self._id == other._id

    def __hash__(self) -> int:
        if self._id is None:
            raise TypeError("User instances without an id are unhashable")
        return hash(("User", self._id))

    def __repr__(self) -> str:
        return f"User(id={self._id!r}, name={self._name!r}, role={self._role.value!r})"
