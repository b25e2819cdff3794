"""Domain events recorded by the User aggregate on state transitions."""

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping

USER_CREATED = "UserCreated"
PASSWORD_CHANGED = "PasswordChanged"
ROLE_CHANGED = "RoleChanged"
ESTABLISHMENT_ASSIGNED = "EstablishmentAssigned"
ESTABLISHMENT_REMOVED = "EstablishmentRemoved"

EVENT_TYPES = (
    USER_CREATED,
    PASSWORD_CHANGED,
    ROLE_CHANGED,
    ESTABLISHMENT_ASSIGNED,
    ESTABLISHMENT_REMOVED,
)


@dataclass(frozen=True)
class DomainEvent:
    """
    Immutable record of a user state transition.

    entity_id is None for events raised before the store assigned an id;
    the aggregate rebinds them once the id is known.
    """

    entity_id: int | None
    event_type: str
    timestamp: datetime
    data: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {self.event_type}")
        # Freeze the payload as well as the record.
        object.__setattr__(self, "data", MappingProxyType(dict(self.data)))

    def __hash__(self) -> int:
        # data is a read-only mapping and cannot be hashed
        return hash((self.entity_id, self.event_type, self.timestamp))

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "event_type": self.event_type,
            "data": dict(self.data),
            "timestamp": self.timestamp.isoformat(),
        }
