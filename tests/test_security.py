"""Unit tests for cugino.core.security: password policy, bcrypt hashing, session tokens."""

import unittest
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import jwt

from cugino.core.config import settings
from cugino.core.errors import ValidationError, WeakPasswordError
from cugino.core.security import (
    SESSION_TOKEN_LIFETIME,
    TOKEN_AUDIENCE,
    TOKEN_ISSUER,
    PasswordHash,
    bcrypt_cost,
    create_session_token,
    decode_session_token,
    hash_password,
    is_password_hash,
    needs_rehash,
    validate_password_strength,
    verify_password,
)

SECRET = settings.JWT_SECRET.get_secret_value()


class TestPasswordPolicy(unittest.TestCase):
    """validate_password_strength reports every missing class at once."""

    def test_strong_password_passes(self) -> None:
        validate_password_strength("Secure123!")

    def test_lists_every_missing_class(self) -> None:
        with self.assertRaises(WeakPasswordError) as ctx:
            validate_password_strength("abc")
        self.assertEqual(
            ctx.exception.missing,
            ["at least 6 characters", "an uppercase letter", "a digit", "a special character"],
        )
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.code, "WEAK_PASSWORD")
        self.assertIn("an uppercase letter", ctx.exception.message)

    def test_empty_password_misses_everything(self) -> None:
        with self.assertRaises(WeakPasswordError) as ctx:
            validate_password_strength("")
        self.assertEqual(len(ctx.exception.missing), 5)

    def test_special_character_optional_on_light_policy(self) -> None:
        validate_password_strength("Secure123", require_special=False)
        with self.assertRaises(WeakPasswordError) as ctx:
            validate_password_strength("Secure123")
        self.assertEqual(ctx.exception.missing, ["a special character"])

    def test_weak_password_is_a_validation_error(self) -> None:
        with self.assertRaises(ValidationError):
            validate_password_strength("password")


class TestHashing(unittest.TestCase):
    def test_hash_and_verify(self) -> None:
        hashed = hash_password("Secure123")
        self.assertTrue(is_password_hash(hashed))
        self.assertTrue(verify_password("Secure123", hashed))
        self.assertFalse(verify_password("Secure124", hashed))

    def test_hash_rejects_weak_password(self) -> None:
        with self.assertRaises(WeakPasswordError):
            hash_password("short")

    def test_verify_never_raises(self) -> None:
        self.assertFalse(verify_password("Secure123!", "not-a-hash"))
        self.assertFalse(verify_password("", "$2b$04$" + "a" * 53))
        self.assertFalse(verify_password("Secure123!", ""))

    def test_is_password_hash(self) -> None:
        self.assertTrue(is_password_hash(hash_password("Secure123")))
        self.assertFalse(is_password_hash("Secure123!"))
        self.assertFalse(is_password_hash("$2b$04$tooshort"))
        self.assertFalse(is_password_hash(None))

    def test_bcrypt_cost_and_rehash(self) -> None:
        hashed = hash_password("Secure123")
        self.assertEqual(bcrypt_cost(hashed), settings.BCRYPT_ROUNDS)
        self.assertFalse(needs_rehash(hashed))
        with patch.object(settings, "BCRYPT_ROUNDS", settings.BCRYPT_ROUNDS + 1):
            self.assertTrue(needs_rehash(hashed))
        self.assertTrue(needs_rehash("plaintext"))


class TestPasswordHash(unittest.TestCase):
    """PasswordHash is only built through its factories."""

    def test_direct_construction_refused(self) -> None:
        with self.assertRaises(TypeError):
            PasswordHash("$2b$04$" + "a" * 53)

    def test_from_plaintext_applies_strict_policy(self) -> None:
        with self.assertRaises(WeakPasswordError):
            PasswordHash.from_plaintext("Secure123")
        ph = PasswordHash.from_plaintext("Secure123!")
        self.assertTrue(ph.verify("Secure123!"))
        self.assertFalse(ph.verify("Secure123"))

    def test_from_hash_checks_format(self) -> None:
        hashed = hash_password("Secure123")
        self.assertEqual(PasswordHash.from_hash(hashed).value, hashed)
        with self.assertRaises(ValidationError):
            PasswordHash.from_hash("")
        with self.assertRaises(ValidationError):
            PasswordHash.from_hash("Secure123!")

    def test_equality_and_repr(self) -> None:
        hashed = hash_password("Secure123")
        self.assertEqual(PasswordHash.from_hash(hashed), PasswordHash.from_hash(hashed))
        self.assertEqual(len({PasswordHash.from_hash(hashed), PasswordHash.from_hash(hashed)}), 1)
        self.assertNotIn(hashed, repr(PasswordHash.from_hash(hashed)))

    def test_upgrade_skips_policy(self) -> None:
        ph = PasswordHash.upgrade("legacy")
        self.assertTrue(ph.verify("legacy"))


class TestSessionTokens(unittest.TestCase):
    def test_round_trip_claims(self) -> None:
        token = create_session_token(7, "alice_01", "server", 3)
        claims = decode_session_token(token)
        self.assertEqual(claims["sub"], "7")
        self.assertEqual(claims["name"], "alice_01")
        self.assertEqual(claims["role"], "server")
        self.assertEqual(claims["establishment_id"], 3)
        self.assertEqual(claims["iss"], TOKEN_ISSUER)
        self.assertEqual(claims["aud"], TOKEN_AUDIENCE)
        self.assertEqual(claims["exp"] - claims["iat"], int(SESSION_TOKEN_LIFETIME.total_seconds()))

    def test_expired_token_rejected(self) -> None:
        issued = datetime.now(UTC) - SESSION_TOKEN_LIFETIME - timedelta(minutes=1)
        token = create_session_token(1, "bob", "admin", now=issued)
        with self.assertRaises(jwt.ExpiredSignatureError):
            decode_session_token(token)

    def test_wrong_secret_rejected(self) -> None:
        token = create_session_token(1, "bob", "admin", secret="another-secret-value-0123456789-abcdef")
        with self.assertRaises(jwt.InvalidSignatureError):
            decode_session_token(token)

    def test_wrong_audience_rejected(self) -> None:
        now = datetime.now(UTC)
        token = jwt.encode(
            {"sub": "1", "iat": now, "exp": now + timedelta(hours=1), "iss": TOKEN_ISSUER, "aud": "other"},
            SECRET,
            algorithm="HS256",
        )
        with self.assertRaises(jwt.InvalidAudienceError):
            decode_session_token(token)

    def test_missing_subject_rejected(self) -> None:
        now = datetime.now(UTC)
        token = jwt.encode(
            {"iat": now, "exp": now + timedelta(hours=1), "iss": TOKEN_ISSUER, "aud": TOKEN_AUDIENCE},
            SECRET,
            algorithm="HS256",
        )
        with self.assertRaises(jwt.MissingRequiredClaimError):
            decode_session_token(token)


if __name__ == "__main__":
    unittest.main()
