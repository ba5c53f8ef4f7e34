import unittest
from unittest.mock import AsyncMock, patch

from tasuke.models import GoogleCalendarIntegration
from tasuke.services.google_calendar_service import GoogleCalendarError, decrypt_token

from .fixtures import ApiHarness

ROUTES = "tasuke.routes.google_calendar"

ACCOUNT = {
    "access_token": "ya29.access",
    "refresh_token": "1//refresh",
    "expires_in": 3599,
    "email": "member@example.com",
    "calendar_id": "primary",
}


class TestGoogleCalendarRoutes(unittest.TestCase):

    def setUp(self):
        self.h = ApiHarness()

    def tearDown(self):
        self.h.close()

    def integration(self):
        self.h.db.expire_all()
        return self.h.db.query(GoogleCalendarIntegration).filter_by(user_id=self.h.user.id).first()

    def test_status_when_not_connected(self):
        response = self.h.client.get("/google-calendar/status", headers=self.h.headers)
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()["connected"])

    @patch(f"{ROUTES}.exchange_code_for_tokens", new_callable=AsyncMock, return_value=ACCOUNT)
    def test_callback_stores_encrypted_tokens(self, exchange):
        response = self.h.client.post(
            "/google-calendar/callback", json={"code": "4/abc"}, headers=self.h.headers
        )

        self.assertEqual(response.status_code, 200)
        exchange.assert_awaited_once_with("4/abc")
        stored = self.integration()
        self.assertNotEqual(stored.access_token, ACCOUNT["access_token"])
        self.assertEqual(decrypt_token(stored.access_token), ACCOUNT["access_token"])
        self.assertEqual(decrypt_token(stored.refresh_token), ACCOUNT["refresh_token"])

        status = self.h.client.get("/google-calendar/status", headers=self.h.headers).json()
        self.assertEqual(status, {"connected": True, "user_email": "member@example.com", "calendar_id": "primary"})

        # reconnecting updates the existing row
        self.h.client.post("/google-calendar/callback", json={"code": "4/def"}, headers=self.h.headers)
        self.assertEqual(self.h.db.query(GoogleCalendarIntegration).count(), 1)

    @patch(
        f"{ROUTES}.exchange_code_for_tokens",
        new_callable=AsyncMock,
        side_effect=GoogleCalendarError("Failed to exchange authorization code", 400),
    )
    def test_callback_failure(self, exchange):
        response = self.h.client.post(
            "/google-calendar/callback", json={"code": "bad"}, headers=self.h.headers
        )
        self.assertEqual(response.status_code, 400)
        self.assertIsNone(self.integration())

    @patch(f"{ROUTES}.revoke_token", new_callable=AsyncMock, side_effect=RuntimeError("offline"))
    @patch(f"{ROUTES}.exchange_code_for_tokens", new_callable=AsyncMock, return_value=ACCOUNT)
    def test_disconnect_removes_integration_even_if_revoke_fails(self, exchange, revoke):
        self.h.client.post("/google-calendar/callback", json={"code": "4/abc"}, headers=self.h.headers)

        response = self.h.client.post("/google-calendar/disconnect", headers=self.h.headers)

        self.assertEqual(response.status_code, 200)
        revoke.assert_awaited_once_with(ACCOUNT["access_token"])
        self.assertIsNone(self.integration())
        again = self.h.client.post("/google-calendar/disconnect", headers=self.h.headers)
        self.assertEqual(again.status_code, 404)

    def test_connect_requires_configuration(self):
        with patch(f"{ROUTES}.GOOGLE_CLIENT_ID", ""):
            response = self.h.client.get("/google-calendar/connect", headers=self.h.headers)
        self.assertEqual(response.status_code, 500)

    def test_connect_builds_authorization_url(self):
        with patch(f"{ROUTES}.GOOGLE_CLIENT_ID", "client-id"), patch(f"{ROUTES}.GOOGLE_CLIENT_SECRET", "secret"):
            response = self.h.client.get("/google-calendar/connect", headers=self.h.headers)
        url = response.json()["authorization_url"]
        self.assertTrue(url.startswith("https://accounts.google.com/o/oauth2/v2/auth?"))
        self.assertIn("client_id=client-id", url)
        self.assertIn("access_type=offline", url)


if __name__ == "__main__":
    unittest.main()
