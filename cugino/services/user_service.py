"""
User management and authentication: account creation, credential checks,
password changes, deletion rules and session tokens.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from cugino.core.config import Settings, get_settings
from cugino.core.errors import (
    AuthenticationError,
    ConflictError,
    DatabaseError,
    InvalidTokenError,
    NotFoundError,
    ValidationError,
)
from cugino.core.security import (
    NAME_MAX_LEN,
    NAME_MIN_LEN,
    PasswordHash,
    create_session_token,
    is_password_hash,
    validate_password_strength,
)
from cugino.domain.roles import Role, parse_role
from cugino.domain.user import SERVER_NEEDS_ESTABLISHMENT, User, normalize_name
from cugino.services.authorization import decode_claims

if TYPE_CHECKING:
    from cugino.repositories.user_repository import CredentialStore

logger = logging.getLogger(__name__)


@dataclass
class UserCreateData:
    """
    Input for create_user. With accept_hashed, a password that is already a
    bcrypt hash is stored as-is (administrative creation, imports).
    """

    name: str
    password: str
    role: Role | str = Role.SERVER
    establishment_id: int | None = None
    accept_hashed: bool = False


@dataclass
class UserUpdateData:
    """Input for update_user; None fields are left unchanged."""

    name: str | None = None
    role: Role | str | None = None
    establishment_id: int | None = None
    remove_establishment: bool = False


class UserService:
    def __init__(self, repository: "CredentialStore", settings: Settings | None = None) -> None:
        self.repository = repository
        self.settings = settings or get_settings()

    # ---------- CRUD ----------

    def create_user(self, data: UserCreateData) -> User:
        """
        Validate and persist a new user.

        All input problems are reported together in one ValidationError; a
        taken name is a ConflictError. A password that is not an accepted
        bcrypt hash is treated as plaintext and hashed under the strict policy.
        """
        errors: list[str] = []
        name = (data.name or "").strip()
        if len(name) < NAME_MIN_LEN:
            errors.append(f"Name must contain at least {NAME_MIN_LEN} characters")
        elif len(name) > NAME_MAX_LEN:
            errors.append(f"Name must contain at most {NAME_MAX_LEN} characters")

        role: Role | None = None
        try:
            role = parse_role(data.role)
        except ValidationError:
            errors.append("Role is not valid")

        if role is Role.SERVER and data.establishment_id is None:
            errors.append(SERVER_NEEDS_ESTABLISHMENT)
        if data.establishment_id is not None:
            if data.establishment_id <= 0:
                errors.append("Establishment id must be a positive integer")
            elif not self.repository.establishment_exists(data.establishment_id):
                errors.append(f"Establishment {data.establishment_id} does not exist")

        if not data.password:
            errors.append("A password is required")

        if errors:
            raise ValidationError(f"Validation failed: {', '.join(errors)}", details=errors)

        if self.repository.find_by_name(name) is not None:
            raise ConflictError("A user with this name already exists")

        if data.accept_hashed and is_password_hash(data.password):
            user = User.with_password_hash(
                role, name, PasswordHash.from_hash(data.password), data.establishment_id
            )
        else:
            user = User.create(role, name, data.password, data.establishment_id)

        user = self.repository.create(user)
        self._dispatch_events(user)
        self._on_user_created(user)
        return user

    def get_user(self, user_id: int) -> User | None:
        if user_id <= 0:
            raise ValidationError("User id must be a positive integer")
        return self.repository.find_by_id(user_id)

    def list_users(
        self,
        role: Role | str | None = None,
        establishment_id: int | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> tuple[list[User], int]:
        if role is not None:
            role = parse_role(role)
        if establishment_id is not None and establishment_id <= 0:
            raise ValidationError("Establishment id must be a positive integer")
        return self.repository.list_users(
            role=role, establishment_id=establishment_id, offset=offset, limit=limit
        )

    def update_user(self, user_id: int, data: UserUpdateData) -> User:
        """
        Apply name, establishment and role changes through the aggregate.

        Order: assign establishment, then role, then removal, so moving a
        server to manager and unlinking it in one request is accepted.
        """
        user = self._get_existing(user_id)
        changes: list[str] = []

        if data.name is not None:
            new_name = normalize_name(data.name)
            existing = self.repository.find_by_name(new_name)
            if existing is not None and existing.id != user.id:
                raise ConflictError("A user with this name already exists")
            if new_name != user.name:
                user.rename(new_name)
                changes.append("name")

        if data.establishment_id is not None and data.establishment_id != user.establishment_id:
            if data.establishment_id <= 0 or not self.repository.establishment_exists(
                data.establishment_id
            ):
                raise ValidationError(f"Establishment {data.establishment_id} does not exist")
            user.assign_to_establishment(data.establishment_id)
            changes.append("establishment_id")

        if data.role is not None:
            new_role = parse_role(data.role)
            if user.role is Role.ADMIN and new_role is not Role.ADMIN:
                self._ensure_not_last_admin("Cannot demote the last administrator")
            if new_role is not user.role:
                user.change_role(new_role)
                changes.append("role")

        if data.remove_establishment and user.establishment_id is not None:
            user.remove_from_establishment()
            changes.append("establishment_id")

        if not changes:
            return user

        saved = self.repository.save(user)
        self._dispatch_events(user)
        self._on_user_updated(saved, changes)
        return saved

    def delete_user(self, user_id: int) -> None:
        """Delete a user; the last remaining admin cannot be deleted."""
        user = self._get_existing(user_id)
        if user.role is Role.ADMIN:
            self._ensure_not_last_admin("Cannot delete the last administrator")
        self.repository.delete(user_id)
        self._on_user_deleted(user)

    # ---------- credentials ----------

    def verify_credentials(self, name: str, password: str) -> User | None:
        """
        Return the user for a valid (name, password) pair, else None.
        Unknown name and wrong password look the same to the caller.
        """
        if not name or not password:
            raise ValidationError("Name and password are required")

        user = self.repository.verify_credentials(name, password)
        if user is None:
            logger.info("Credential check failed")
            return None

        if user.needs_password_rehash():
            self._upgrade_password_hash(user, password)
        self._on_successful_login(user)
        return user

    def login(self, name: str, password: str) -> tuple[User, str]:
        user = self.verify_credentials(name, password)
        if user is None:
            raise AuthenticationError("Invalid credentials")
        return user, self.issue_session_token(user)

    def change_password(self, user_id: int, current_password: str, new_password: str) -> None:
        """
        Change a password after re-checking the current one.
        Tokens issued before the change stay valid until they expire.
        """
        user = self.repository.find_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User with id {user_id} not found")

        if not user.verify_password(current_password):
            raise AuthenticationError("Current password is incorrect")

        validate_password_strength(new_password, require_special=True)
        user.change_password(new_password)
        self.repository.update_password_hash(user.id, user.password_hash)
        self._dispatch_events(user)
        self._on_password_changed(user)

    # ---------- session tokens ----------

    def issue_session_token(self, user: User) -> str:
        if user.id is None:
            raise ValueError("Cannot issue a token for a user that has not been persisted")
        return create_session_token(
            user.id,
            user.name,
            user.role.value,
            user.establishment_id,
            secret=self.settings.JWT_SECRET.get_secret_value(),
            algorithm=self.settings.JWT_ALGORITHM,
        )

    def authenticate_token(self, token: str) -> User:
        """
        Verify a token and resolve the *stored* user it names.

        Raises TokenExpiredError, TokenNotYetValidError, InvalidTokenError, or
        AuthenticationError when the user is gone or the lookup times out.
        """
        claims = decode_claims(
            token,
            self.settings.JWT_SECRET.get_secret_value(),
            self.settings.JWT_ALGORITHM,
        )
        try:
            user_id = int(claims["sub"])
        except (KeyError, TypeError, ValueError):
            raise InvalidTokenError("Invalid token payload") from None

        try:
            user = self.repository.find_by_id(user_id)
        except (PoolTimeoutError, OperationalError) as e:
            logger.warning("User lookup for token failed: %s", e, extra={"user_id": user_id})
            raise AuthenticationError("Authentication lookup timed out") from e

        if user is None:
            raise AuthenticationError("User not found")
        return user

    def validate_session_token(self, token: str) -> User | None:
        try:
            return self.authenticate_token(token)
        except AuthenticationError:
            return None

    # ---------- permissions ----------

    def get_user_permissions(self, user_id: int) -> frozenset[str]:
        return self._get_existing(user_id).get_permissions()

    def can_user_access_establishment(self, user_id: int, establishment_id: int) -> bool:
        user = self.get_user(user_id)
        if user is None:
            return False
        return user.can_access_establishment(establishment_id)

    # ---------- helpers ----------

    def _get_existing(self, user_id: int) -> User:
        user = self.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User with id {user_id} not found")
        return user

    def _ensure_not_last_admin(self, message: str) -> None:
        # Count and subsequent write are not atomic; see DESIGN.md.
        if self.repository.count_by_role(Role.ADMIN) <= 1:
            raise ValidationError(message)

    def _upgrade_password_hash(self, user: User, password: str) -> None:
        user.replace_password_hash(PasswordHash.upgrade(password))
        try:
            self.repository.update_password_hash(user.id, user.password_hash)
        except DatabaseError:
            logger.warning("Password hash upgrade not saved", extra={"user_id": user.id})
            return
        logger.info("Password hash upgraded", extra={"user_id": user.id})

    def _dispatch_events(self, user: User) -> None:
        for event in user.drain_events():
            logger.debug(
                "Domain event %s",
                event.event_type,
                extra={"entity_id": event.entity_id, "event_type": event.event_type},
            )

    # Hooks: observability points only.

    def _on_user_created(self, user: User) -> None:
        logger.info(
            "User created",
            extra={"user_id": user.id, "user_name": user.name, "role": user.role.value},
        )

    def _on_user_updated(self, user: User, changes: list[str]) -> None:
        logger.info("User updated", extra={"user_id": user.id, "changes": ",".join(changes)})

    def _on_user_deleted(self, user: User) -> None:
        logger.info("User deleted", extra={"user_id": user.id, "user_name": user.name})

    def _on_successful_login(self, user: User) -> None:
        logger.info("Login succeeded", extra={"user_id": user.id, "role": user.role.value})

    def _on_password_changed(self, user: User) -> None:
        logger.info("Password changed", extra={"user_id": user.id})
