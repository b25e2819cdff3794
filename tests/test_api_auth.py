"""HTTP tests for /api/v1/auth, the root and health routes, and the error envelope."""

import unittest
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch

from cugino.api.v1.dependencies import get_user_service
from cugino.core.security import create_session_token
from cugino.main import app
from support import STRONG_PASSWORD, add_establishment, auth_header, make_client, make_session_factory


class ApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.factory = make_session_factory()
        session = self.factory()
        try:
            self.establishment_id = add_establishment(session)
        finally:
            session.close()
        self.client = make_client(self.factory)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def register(self, name: str, password: str = STRONG_PASSWORD, **extra: object):
        return self.client.post(
            "/api/v1/auth/register",
            json={"name": name, "password": password, **extra},
        )

    def login(self, name: str, password: str = STRONG_PASSWORD):
        return self.client.post("/api/v1/auth/login", json={"name": name, "password": password})


class TestRegisterAndLogin(ApiTestCase):
    def test_admin_scenario(self) -> None:
        resp = self.client.post(
            "/api/v1/auth/register",
            json={"nom": "alice_01", "motDePasse": "Passw0rd!", "role": "admin"},
        )
        self.assertEqual(resp.status_code, 201)
        user = resp.json()["user"]
        self.assertEqual(user["role"], "admin")
        self.assertIsNone(user["establishment_id"])
        self.assertNotIn("password_hash", user)

        resp = self.client.post("/api/v1/auth/login", json={"nom": "alice_01", "motDePasse": "Passw0rd!"})
        self.assertEqual(resp.status_code, 200)
        token = resp.json()["token"]
        self.assertTrue(token)
        self.assertEqual(resp.json()["token_type"], "bearer")

        resp = self.login("alice_01", "wrong")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.headers["www-authenticate"], "Bearer")
        self.assertEqual(resp.json()["error"]["message"], "Invalid credentials")

        resp = self.client.get("/api/v1/auth/me", headers=auth_header(token))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["user"]["name"], "alice_01")

    def test_server_without_establishment_rejected(self) -> None:
        resp = self.register("bob_02", role="server")
        self.assertEqual(resp.status_code, 400)
        body = resp.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["error"]["code"], "VALIDATION_ERROR")
        self.assertEqual(body["error"]["path"], "/api/v1/auth/register")
        self.assertEqual(body["error"]["method"], "POST")
        self.assertIn("timestamp", body["error"])

    def test_server_with_establishment(self) -> None:
        resp = self.register("bob_02", establishmentId=self.establishment_id)
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["user"]["role"], "server")
        self.assertEqual(resp.json()["user"]["establishment_id"], self.establishment_id)

    def test_weak_password_lists_missing_rules(self) -> None:
        resp = self.register("boss", password="abcdef", role="admin")
        self.assertEqual(resp.status_code, 400)
        error = resp.json()["error"]
        self.assertEqual(error["code"], "WEAK_PASSWORD")
        self.assertEqual(
            error["details"]["missing"],
            ["an uppercase letter", "a digit", "a special character"],
        )

    def test_duplicate_name_conflicts(self) -> None:
        self.assertEqual(self.register("boss", role="admin").status_code, 201)
        resp = self.register("boss", role="admin")
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()["error"]["code"], "CONFLICT_ERROR")

    def test_register_does_not_accept_a_hash(self) -> None:
        from cugino.core.security import hash_password

        hashed = hash_password("Legacy123")
        self.assertEqual(self.register("boss", password=hashed, role="admin").status_code, 201)
        self.assertEqual(self.login("boss", "Legacy123").status_code, 401)

    def test_request_validation_error(self) -> None:
        resp = self.client.post("/api/v1/auth/login", json={"name": "boss"})
        self.assertEqual(resp.status_code, 400)
        error = resp.json()["error"]
        self.assertEqual(error["code"], "VALIDATION_ERROR")
        self.assertIsInstance(error["details"], list)

    def test_unknown_user_same_answer_as_wrong_password(self) -> None:
        self.register("boss", role="admin")
        unknown = self.login("nobody")
        wrong = self.login("boss", "Wrong123!")
        self.assertEqual(unknown.status_code, 401)
        self.assertEqual(unknown.json()["error"]["message"], wrong.json()["error"]["message"])


class TestSessionEndpoints(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        resp = self.register("boss", role="admin")
        self.user_id = resp.json()["user"]["id"]
        self.token = resp.json()["token"]

    def test_me_requires_token(self) -> None:
        resp = self.client.get("/api/v1/auth/me")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["error"]["message"], "Missing authentication token")

    def test_me_rejects_bad_scheme(self) -> None:
        resp = self.client.get("/api/v1/auth/me", headers={"Authorization": f"Token {self.token}"})
        self.assertEqual(resp.status_code, 401)

    def test_expired_token(self) -> None:
        token = create_session_token(
            self.user_id, "boss", "admin", now=datetime.now(UTC) - timedelta(days=2)
        )
        resp = self.client.get("/api/v1/auth/me", headers=auth_header(token))
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["error"]["code"], "TOKEN_EXPIRED")

    def test_invalid_token(self) -> None:
        resp = self.client.get("/api/v1/auth/me", headers=auth_header("abc.def.ghi"))
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["error"]["code"], "INVALID_TOKEN")

    def test_logout(self) -> None:
        resp = self.client.post("/api/v1/auth/logout", headers=auth_header(self.token))
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()["success"])
        # Stateless sessions: the token keeps working until it expires
        self.assertEqual(self.client.get("/api/v1/auth/me", headers=auth_header(self.token)).status_code, 200)

    def test_change_password(self) -> None:
        resp = self.client.post(
            "/api/v1/auth/change-password",
            json={"currentPassword": STRONG_PASSWORD, "newPassword": "NewPass456@"},
            headers=auth_header(self.token),
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.login("boss").status_code, 401)
        self.assertEqual(self.login("boss", "NewPass456@").status_code, 200)

    def test_change_password_wrong_current(self) -> None:
        resp = self.client.post(
            "/api/v1/auth/change-password",
            json={"current_password": "Wrong123!", "new_password": "NewPass456@"},
            headers=auth_header(self.token),
        )
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["error"]["message"], "Current password is incorrect")

    def test_change_password_weak(self) -> None:
        resp = self.client.post(
            "/api/v1/auth/change-password",
            json={"current_password": STRONG_PASSWORD, "new_password": "NewPass456"},
            headers=auth_header(self.token),
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"]["details"]["missing"], ["a special character"])


class TestRootAndHealth(ApiTestCase):
    def test_root_anonymous(self) -> None:
        resp = self.client.get("/")
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["name"], "Cugino API")
        self.assertEqual(body["endpoints"]["auth"], "/api/v1/auth")
        self.assertIsNone(body["authenticated_as"])

    def test_root_with_token(self) -> None:
        token = self.register("boss", role="admin").json()["token"]
        resp = self.client.get("/", headers=auth_header(token))
        self.assertEqual(resp.json()["authenticated_as"], "boss")
        # A bad token is treated as anonymous
        resp = self.client.get("/", headers=auth_header("junk"))
        self.assertEqual(resp.status_code, 200)
        self.assertIsNone(resp.json()["authenticated_as"])

    def test_health(self) -> None:
        resp = self.client.get("/api/v1/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "ok")
        self.assertEqual(resp.json()["database"], "connected")

    def test_health_degraded(self) -> None:
        with patch("cugino.api.v1.health.check_db_connected", return_value=False):
            resp = self.client.get("/api/v1/health")
        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.json()["status"], "degraded")

    def test_unknown_route(self) -> None:
        resp = self.client.get("/api/v1/nope")
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["error"]["code"], "NOT_FOUND")


class TestUnhandledErrors(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        service = MagicMock()
        service.login.side_effect = RuntimeError("connection string leaked here")
        app.dependency_overrides[get_user_service] = lambda: service
        self.client = make_client(self.factory, raise_server_exceptions=False)

    def test_dev_includes_details(self) -> None:
        resp = self.login("boss")
        self.assertEqual(resp.status_code, 500)
        error = resp.json()["error"]
        self.assertEqual(error["code"], "INTERNAL_ERROR")
        self.assertIn("connection string leaked here", error["message"])
        self.assertIn("RuntimeError", error["stack"])

    def test_prod_is_sanitized(self) -> None:
        with patch("cugino.api.errors.get_settings", return_value=MagicMock(is_development=False)):
            resp = self.login("boss")
        self.assertEqual(resp.status_code, 500)
        error = resp.json()["error"]
        self.assertEqual(error["message"], "An internal error occurred")
        self.assertNotIn("stack", error)
        self.assertNotIn("details", error)
        self.assertNotIn("leaked", resp.text)


if __name__ == "__main__":
    unittest.main()
