"""Credential store: SQLAlchemy-backed persistence for the User aggregate."""

import logging
from typing import Any, Protocol

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from cugino.core.errors import ConflictError, DatabaseError, NotFoundError, ValidationError
from cugino.core.security import verify_password
from cugino.domain.roles import Role
from cugino.domain.user import User
from cugino.models import EstablishmentRecord, UserRecord

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"name", "password_hash", "role", "establishment_id"})
ESTABLISHMENT_FK_NAMES = frozenset({"fk_users_establishment_id", "users_establishment_id_fkey"})


def _is_establishment_violation(error: IntegrityError) -> bool:
    """True when the integrity error comes from the users -> establishments key."""
    diag = getattr(error.orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    if constraint is not None:
        return constraint in ESTABLISHMENT_FK_NAMES
    # sqlite3 does not name the failing constraint
    return "foreign key constraint failed" in str(error.orig).lower()


class CredentialStore(Protocol):
    """Operations the service layer needs from user persistence."""

    def find_by_id(self, user_id: int) -> User | None: ...

    def find_by_name(self, name: str) -> User | None: ...

    def create(self, user: User) -> User: ...

    def update(self, user_id: int, data: dict[str, Any]) -> User: ...

    def delete(self, user_id: int) -> None: ...

    def count_by_role(self, role: Role | str) -> int: ...

    def save(self, user: User) -> User: ...

    def update_password_hash(self, user_id: int, password_hash: str) -> None: ...

    def verify_credentials(self, name: str, password: str) -> User | None: ...

    def establishment_exists(self, establishment_id: int) -> bool: ...

    def list_users(
        self,
        role: Role | str | None = None,
        establishment_id: int | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> tuple[list[User], int]: ...


class SqlUserRepository:
    """CredentialStore over a SQLAlchemy session. One instance per request."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # ---------- reads ----------

    def find_by_id(self, user_id: int) -> User | None:
        record = self.session.get(UserRecord, user_id)
        return User.from_record(record) if record is not None else None

    def find_by_name(self, name: str) -> User | None:
        record = self.session.query(UserRecord).filter(UserRecord.name == name).first()
        return User.from_record(record) if record is not None else None

    def list_users(
        self,
        role: Role | str | None = None,
        establishment_id: int | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> tuple[list[User], int]:
        """Filtered page of users ordered by id, plus the unpaged total."""
        query = self.session.query(UserRecord)
        if role is not None:
            query = query.filter(UserRecord.role == str(role))
        if establishment_id is not None:
            query = query.filter(UserRecord.establishment_id == establishment_id)
        total = query.count()
        query = query.order_by(UserRecord.id).offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return [User.from_record(r) for r in query.all()], total

    def count_by_role(self, role: Role | str) -> int:
        return (
            self.session.query(func.count(UserRecord.id))
            .filter(UserRecord.role == str(role))
            .scalar()
        )

    def establishment_exists(self, establishment_id: int) -> bool:
        return self.session.get(EstablishmentRecord, establishment_id) is not None

    def verify_credentials(self, name: str, password: str) -> User | None:
        """
        Look up by exact name and compare the stored hash. The aggregate check
        must agree with the store-level one; otherwise no user is returned.
        """
        record = self.session.query(UserRecord).filter(UserRecord.name == name).first()
        if record is None:
            return None
        if not verify_password(password, record.password_hash):
            return None
        user = User.from_record(record)
        return user if user.verify_password(password) else None

    # ---------- writes ----------

    def create(self, user: User) -> User:
        """Insert a new user and bind the store-assigned id onto the aggregate."""
        record = UserRecord(**user.to_record_fields())
        self.session.add(record)
        self._commit("create")
        self.session.refresh(record)
        user.bind_identity(record.id, record.created_at, record.updated_at)
        logger.info("User row created", extra={"user_id": record.id, "action": "CREATE"})
        return user

    def update(self, user_id: int, data: dict[str, Any]) -> User:
        record = self.session.get(UserRecord, user_id)
        if record is None:
            raise NotFoundError(f"User with id {user_id} not found")
        unknown = set(data) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        for field, value in data.items():
            setattr(record, field, value.value if isinstance(value, Role) else value)
        self._commit("update")
        self.session.refresh(record)
        logger.info("User row updated", extra={"user_id": user_id, "action": "UPDATE"})
        return User.from_record(record)

    def save(self, user: User) -> User:
        """Persist every column of an existing aggregate."""
        if user.id is None:
            raise ValueError("Cannot save a user that has not been created")
        return self.update(user.id, user.to_record_fields())

    def update_password_hash(self, user_id: int, password_hash: str) -> None:
        self.update(user_id, {"password_hash": password_hash})

    def delete(self, user_id: int) -> None:
        record = self.session.get(UserRecord, user_id)
        if record is None:
            raise NotFoundError(f"User with id {user_id} not found")
        self.session.delete(record)
        self._commit("delete")
        logger.info("User row deleted", extra={"user_id": user_id, "action": "DELETE"})

    def _commit(self, operation: str) -> None:
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            if _is_establishment_violation(e):
                raise ValidationError("Unknown establishment") from e
            raise ConflictError("A user with this name already exists") from e
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("User %s failed: %s", operation, e)
            raise DatabaseError(f"User {operation} failed") from e
