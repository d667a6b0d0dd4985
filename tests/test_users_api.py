"""Endpoint tests: FastAPI TestClient against in-memory SQLite via a get_db override."""

import sqlite3
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from app.core.database import get_db
from app.main import app
from sqlite_db import fast_settings, make_engine, make_session_factory


class ApiTestCase(unittest.TestCase):
    """Each test gets its own database and a client wired to it."""

    settings_overrides: dict[str, object] = {}

    def setUp(self) -> None:
        self.engine = make_engine()
        Session = make_session_factory(self.engine)

        def override_get_db():
            db = Session()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        patcher = patch(
            "app.api.users.get_settings",
            return_value=fast_settings(**self.settings_overrides),
        )
        patcher.start()
        self.addCleanup(patcher.stop)
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        self.engine.dispose()

    def register(self, username: str = "ana", email: str = "ana@example.com", password: str = "s3cret-pw"):
        return self.client.post(
            "/api/users",
            json={"username": username, "email": email, "password": password},
        )


class TestCreateUserEndpoint(ApiTestCase):
    def test_created(self) -> None:
        resp = self.register(email="  Ana@Example.com ")
        self.assertEqual(resp.status_code, 201)
        body = resp.json()
        self.assertEqual(
            {k: body[k] for k in ("username", "email", "status", "roles")},
            {"username": "ana", "email": "ana@example.com", "status": "Active", "roles": ["Buyer"]},
        )
        self.assertNotIn("password", body)
        self.assertNotIn("password_hash", body)
        self.assertEqual(resp.headers["location"], f"/api/users/{body['id']}")

    def test_blank_field_is_400(self) -> None:
        resp = self.register(username="   ")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"detail": "Username is required."})

    def test_missing_field_is_400(self) -> None:
        resp = self.client.post("/api/users", json={"username": "ana", "email": "a@b.com"})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("password", resp.json()["detail"])

    def test_duplicate_email_is_409(self) -> None:
        self.assertEqual(self.register(email="foo@bar.com").status_code, 201)
        resp = self.register(username="other", email="Foo@Bar.com ")
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json(), {"detail": "Email already registered."})

    def test_timeout_is_503(self) -> None:
        error = OperationalError("INSERT", {}, sqlite3.OperationalError("database is locked"))
        with patch("sqlalchemy.orm.Session.flush", side_effect=error):
            resp = self.register()
        self.assertEqual(resp.status_code, 503)
        self.assertIn("retry-after", resp.headers)
        self.assertNotIn("locked", resp.json()["detail"])

    def test_unclassified_is_500_without_driver_text(self) -> None:
        error = OperationalError("INSERT INTO users", {}, sqlite3.OperationalError("disk I/O error"))
        with patch("sqlalchemy.orm.Session.flush", side_effect=error):
            resp = self.register()
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"detail": "The request could not be completed."})


class TestCreateUserWithoutPrecheck(ApiTestCase):
    settings_overrides = {"USER_EMAIL_PRECHECK": False}

    def test_unique_index_conflict_is_409(self) -> None:
        self.assertEqual(self.register(email="foo@bar.com").status_code, 201)
        resp = self.register(username="other", email="FOO@bar.com")
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json(), {"detail": "Email already registered."})


class TestGetUserEndpoint(ApiTestCase):
    def test_round_trip(self) -> None:
        created = self.register().json()
        resp = self.client.get(f"/api/users/{created['id']}")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), created)

    def test_not_found(self) -> None:
        created = self.register().json()
        resp = self.client.get(f"/api/users/{created['id'] + 1}")
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json(), {"detail": f"User {created['id'] + 1} not found."})

    def test_non_integer_id_is_400(self) -> None:
        resp = self.client.get("/api/users/abc")
        self.assertEqual(resp.status_code, 400)


class TestHealthEndpoint(ApiTestCase):
    def test_health_reports_database(self) -> None:
        resp = self.client.get("/api/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "ok")
        self.assertEqual(resp.json()["database"], "connected")

    def test_health_degraded_when_database_down(self) -> None:
        with patch("app.api.health.check_db_connected", return_value=False):
            resp = self.client.get("/api/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "degraded")
        self.assertEqual(resp.json()["database"], "disconnected")

    def test_root(self) -> None:
        self.assertEqual(self.client.get("/").json(), {"message": "Mexy Users API"})


if __name__ == "__main__":
    unittest.main()
