"""End-to-end tests for the account proxy HTTP API."""

from __future__ import annotations

import sqlite3
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from fastapi.testclient import TestClient

from accounts.config import ServiceConfig
from accounts.database import Database
from accounts.identity import IdentityProviderClient
from accounts.service import create_app
from fake_cognito import FakeCognito

CODE = "314159"


class AccountProxyServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory()
        db_path = Path(self._tempdir.name) / "accounts.sqlite3"
        self.config = ServiceConfig(database_path=db_path)
        self.database = Database(db_path)
        self.cognito = FakeCognito(confirmation_code=CODE)
        identity = IdentityProviderClient(self.config, client=self.cognito)
        self.app = create_app(config=self.config, database=self.database, identity=identity)

    def tearDown(self) -> None:
        self._tempdir.cleanup()

    def _register(self, client: TestClient, username: str = "alice", email: str = "a@x.com"):
        return client.post(
            "/register",
            json={"username": username, "password": "Pa55word!", "email": email},
        )

    def test_registration_confirmation_and_login_flow(self) -> None:
        with TestClient(self.app) as client:
            created = self._register(client)
            self.assertEqual(created.status_code, 201, created.text)
            payload = created.json()
            self.assertEqual(payload["message"], "User registered successfully")
            self.assertEqual(payload["data"]["username"], "alice")
            self.assertEqual(payload["data"]["email"], "a@x.com")
            self.assertIsNone(payload["data"]["confirmedAt"])

            wrong = client.post("/confirm-user", json={"username": "alice", "code": "000000"})
            self.assertEqual(wrong.status_code, 400)
            self.assertEqual(
                wrong.json(),
                {
                    "message": "Failed to confirm user",
                    "error": "Invalid verification code provided, please try again.",
                },
            )

            confirmed = client.post("/confirm-user", json={"username": "alice", "code": CODE})
            self.assertEqual(confirmed.status_code, 200, confirmed.text)
            self.assertEqual(confirmed.json(), {"message": "User confirmed successfully", "data": {}})

            login = client.post("/login", json={"username": "alice", "password": "Pa55word!"})
            self.assertEqual(login.status_code, 200, login.text)
            tokens = login.json()["data"]["AuthenticationResult"]
            self.assertIn("AccessToken", tokens)
            self.assertIn("RefreshToken", tokens)

        self.assertIsNotNone(self.database.get_user_by_username("alice").confirmed_at)

    def test_duplicate_email_returns_conflict_without_remote_call(self) -> None:
        with TestClient(self.app) as client:
            self.assertEqual(self._register(client).status_code, 201)
            duplicate = self._register(client, username="alice-two")

        self.assertEqual(duplicate.status_code, 409)
        self.assertEqual(duplicate.json(), {"message": "User with this email already exists"})
        self.assertEqual(self.cognito.operations(), ["sign_up"])

    def test_provider_rejection_during_registration_returns_bad_request(self) -> None:
        with TestClient(self.app) as client:
            self._register(client)
            response = self._register(client, email="other@x.com")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json(),
            {"message": "Failed to register user", "error": "User already exists"},
        )
        self.assertIsNone(self.database.get_user_by_email("other@x.com"))

    def test_store_failure_during_registration_returns_bad_request(self) -> None:
        with TestClient(self.app) as client:
            with mock.patch.object(
                Database, "create_user", side_effect=sqlite3.OperationalError("database is locked")
            ):
                response = self._register(client)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "database is locked")
        self.assertIn("alice", self.cognito.accounts)

    def test_confirm_without_local_record_returns_bad_request(self) -> None:
        with TestClient(self.app) as client:
            self._register(client)
            self.database.delete_user("alice")
            response = client.post("/confirm-user", json={"username": "alice", "code": CODE})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"message": "Failed to confirm user", "error": "User not found"})
        self.assertTrue(self.cognito.accounts["alice"].confirmed)

    def test_resend_confirmation_code(self) -> None:
        with TestClient(self.app) as client:
            self._register(client)
            response = client.post("/resend-confirmation-code", json={"username": "alice"})
            missing = client.post("/resend-confirmation-code", json={"username": "nobody"})

        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["message"], "Confirmation code resent successfully")
        self.assertEqual(response.json()["data"]["CodeDeliveryDetails"]["DeliveryMedium"], "EMAIL")
        self.assertEqual(missing.status_code, 400)
        self.assertEqual(missing.json()["message"], "Failed to resend confirmation code")

    def test_login_failures_return_unauthorized(self) -> None:
        with TestClient(self.app) as client:
            self._register(client)
            unconfirmed = client.post("/login", json={"username": "alice", "password": "Pa55word!"})
            wrong = client.post("/login", json={"username": "alice", "password": "nope-nope"})

        self.assertEqual(unconfirmed.status_code, 401)
        self.assertEqual(
            unconfirmed.json(), {"message": "Login failed", "error": "User is not confirmed."}
        )
        self.assertEqual(wrong.status_code, 401)
        self.assertEqual(wrong.json()["error"], "Incorrect username or password.")

    def test_delete_removes_local_record_but_not_remote_account(self) -> None:
        with TestClient(self.app) as client:
            self._register(client)
            client.post("/confirm-user", json={"username": "alice", "code": CODE})

            deleted = client.delete("/delete-user/alice")
            self.assertEqual(deleted.status_code, 200)
            self.assertEqual(deleted.json(), {"message": "User deleted successfully"})

            again = client.delete("/delete-user/alice")
            self.assertEqual(again.status_code, 404)
            self.assertEqual(again.json(), {"message": "User not found"})

            login = client.post("/login", json={"username": "alice", "password": "Pa55word!"})
            self.assertEqual(login.status_code, 200, login.text)

        self.assertIsNone(self.database.get_user_by_username("alice"))

    def test_delete_path_username_is_matched_exactly(self) -> None:
        with TestClient(self.app) as client:
            self._register(client)
            padded = client.delete("/delete-user/alice%20")

        self.assertEqual(padded.status_code, 404)
        self.assertEqual(padded.json(), {"message": "User not found"})
        self.assertIsNotNone(self.database.get_user_by_username("alice"))

    def test_delete_store_failure_returns_server_error(self) -> None:
        with TestClient(self.app) as client:
            self._register(client)
            with mock.patch.object(
                Database, "delete_user", side_effect=sqlite3.OperationalError("disk I/O error")
            ):
                response = client.delete("/delete-user/alice")

        self.assertEqual(response.status_code, 500)
        self.assertEqual(
            response.json(), {"message": "Failed to delete user", "error": "disk I/O error"}
        )

    def test_missing_fields_are_rejected_before_provider_call(self) -> None:
        with TestClient(self.app) as client:
            response = client.post("/register", json={"username": "alice", "password": "Pa55word!"})
            blank = client.post("/confirm-user", json={"username": "   ", "code": CODE})

        self.assertEqual(response.status_code, 422)
        self.assertEqual(blank.status_code, 422)
        self.assertEqual(self.cognito.calls, [])

    def test_healthcheck_and_docs(self) -> None:
        with TestClient(self.app) as client:
            health = client.get("/healthz")
            docs = client.get("/api-docs")
            schema = client.get("/openapi.json")

        self.assertEqual(health.json(), {"status": "ok"})
        self.assertEqual(docs.status_code, 200)
        self.assertIn("/register", schema.json()["paths"])
        self.assertIn("/delete-user/{username}", schema.json()["paths"])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
