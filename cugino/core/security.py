"""Password policy, bcrypt hashing and JWT session tokens."""

import re
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt

from cugino.core.config import settings
from cugino.core.errors import ValidationError, WeakPasswordError

# Min/max lengths for name and password validation.
NAME_MIN_LEN = 2
NAME_MAX_LEN = 255
PASSWORD_MIN_LEN = 6
PASSWORD_MAX_LEN = 128

# bcrypt only looks at the first 72 bytes of its input.
BCRYPT_MAX_BYTES = 72
BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")

SPECIAL_CHARACTERS = '!@#$%^&*(),.?":{}|<>'

_UPPER_RE = re.compile(r"[A-Z]")
_LOWER_RE = re.compile(r"[a-z]")
_DIGIT_RE = re.compile(r"\d")
_SPECIAL_RE = re.compile("[" + re.escape(SPECIAL_CHARACTERS) + "]")

# Session tokens: fixed lifetime, issuer and audience.
SESSION_TOKEN_LIFETIME = timedelta(hours=24)
TOKEN_ISSUER = "cugino-api"
TOKEN_AUDIENCE = "cugino-client"


def validate_password_strength(password: str | None, *, require_special: bool = True) -> None:
    """
    Check a plain password against the strength policy.

    Raises WeakPasswordError listing every rule the password breaks. The
    special-character rule is only enforced when require_special is True
    (the aggregate-level policy); hash_password uses the lighter policy.
    """
    password = password or ""
    missing: list[str] = []
    if len(password) < PASSWORD_MIN_LEN:
        missing.append(f"at least {PASSWORD_MIN_LEN} characters")
    if not _UPPER_RE.search(password):
        missing.append("an uppercase letter")
    if not _LOWER_RE.search(password):
        missing.append("a lowercase letter")
    if not _DIGIT_RE.search(password):
        missing.append("a digit")
    if require_special and not _SPECIAL_RE.search(password):
        missing.append("a special character")
    if missing:
        raise WeakPasswordError(missing)


def _bcrypt_hash(plain_password: str) -> str:
    pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    validate_password_strength(plain_password, require_special=False)
    return _bcrypt_hash(plain_password)


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash. Never raises."""
    if not plain_password or not hashed:
        return False
    try:
        pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False


def is_password_hash(value: str | None) -> bool:
    """True if value belongs to the bcrypt hash family we store."""
    return bool(value) and value.startswith(BCRYPT_PREFIXES) and len(value) == 60


def bcrypt_cost(hashed: str) -> int | None:
    """Cost factor encoded in a bcrypt hash ($2b$12$... -> 12)."""
    if not is_password_hash(hashed):
        return None
    try:
        return int(hashed[4:6])
    except ValueError:
        return None


def needs_rehash(hashed: str) -> bool:
    """True if the stored value should be re-hashed with the current settings."""
    cost = bcrypt_cost(hashed)
    return cost is None or cost < settings.BCRYPT_ROUNDS


_FACTORY_TOKEN = object()


class PasswordHash:
    """
    Opaque stored-password value.

    Only built through the factories below, so every instance is a well-formed
    bcrypt hash: from_plaintext applies the strength policy, from_hash checks
    the format of an existing value.
    """

    __slots__ = ("_value",)

    def __init__(self, value: str, _token: object = None) -> None:
        if _token is not _FACTORY_TOKEN:
            raise TypeError("Use PasswordHash.from_plaintext() or PasswordHash.from_hash()")
        self._value = value

    @classmethod
    def from_plaintext(cls, plain_password: str, *, require_special: bool = True) -> "PasswordHash":
        validate_password_strength(plain_password, require_special=require_special)
        return cls(_bcrypt_hash(plain_password), _FACTORY_TOKEN)

    @classmethod
    def from_hash(cls, hashed: str) -> "PasswordHash":
        if not hashed:
            raise ValidationError("Password hash must not be empty")
        if not is_password_hash(hashed):
            raise ValidationError("Password hash has an unrecognized format")
        return cls(hashed, _FACTORY_TOKEN)

    @classmethod
    def upgrade(cls, verified_password: str) -> "PasswordHash":
        """Re-hash a password that was just verified; the strength policy is not re-applied."""
        return cls(_bcrypt_hash(verified_password), _FACTORY_TOKEN)

    @property
    def value(self) -> str:
        return self._value

    def verify(self, plain_password: str) -> bool:
        return verify_password(plain_password, self._value)

    def needs_rehash(self) -> bool:
        return needs_rehash(self._value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PasswordHash):
            return NotImplemented
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(self._value)

    def __repr__(self) -> str:
        return "PasswordHash('***')"


def create_session_token(
    user_id: int,
    name: str,
    role: str,
    establishment_id: int | None = None,
    *,
    secret: str | None = None,
    algorithm: str | None = None,
    now: datetime | None = None,
) -> str:
    """Create a signed session token valid for SESSION_TOKEN_LIFETIME."""
    issued_at = now or datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "name": name,
        "role": role,
        "establishment_id": establishment_id,
        "iat": issued_at,
        "exp": issued_at + SESSION_TOKEN_LIFETIME,
        "iss": TOKEN_ISSUER,
        "aud": TOKEN_AUDIENCE,
    }
    return jwt.encode(
        payload,
        secret or settings.JWT_SECRET.get_secret_value(),
        algorithm=algorithm or settings.JWT_ALGORITHM,
    )


def decode_session_token(
    token: str,
    *,
    secret: str | None = None,
    algorithm: str | None = None,
) -> dict[str, Any]:
    """
    Decode and validate a session token; return its claims.
    Raises jwt.PyJWTError on a bad signature, wrong issuer/audience, or expiry.
    """
    return jwt.decode(
        token,
        secret or settings.JWT_SECRET.get_secret_value(),
        algorithms=[algorithm or settings.JWT_ALGORITHM],
        audience=TOKEN_AUDIENCE,
        issuer=TOKEN_ISSUER,
        options={"require": ["exp", "iat", "sub"]},
    )
