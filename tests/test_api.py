from unittest.mock import patch

from starlette.websockets import WebSocketDisconnect

from tests.helpers import PASSWORD, ApiTestCase, utc

from app.config import settings


class HealthAndViewsTest(ApiTestCase):
    def test_health(self) -> None:
        self.assertEqual(self.client.get("/health/live").json(), {"status": "alive"})
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})

    def test_public_pages_render(self) -> None:
        for path in ("/", "/login", "/register"):
            with self.subTest(path=path):
                res = self.client.get(path)
                self.assertEqual(res.status_code, 200)
                self.assertIn("text/html", res.headers["content-type"])

    def test_private_views_redirect_to_login(self) -> None:
        for path in ("/dashboard", "/task-upload/1", "/task-verification/1", "/available-users"):
            with self.subTest(path=path):
                res = self.client.get(path, follow_redirects=False)
                self.assertEqual(res.status_code, 303)
                self.assertEqual(res.headers["location"], "/login")

    def test_dashboard_for_signed_in_user(self) -> None:
        alice = self.make_user("alice", deadline="18:00")

        res = self.client.get("/dashboard", headers=self.auth(alice))

        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertEqual(body["user"]["username"], "alice")
        self.assertEqual(body["phase"]["phase"], "PLANNING")
        self.assertEqual(body["pairings"], [])

    def test_api_requires_auth(self) -> None:
        res = self.client.get("/v1/profile")

        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json()["code"], "not_authenticated")


class AuthApiTest(ApiTestCase):
    def test_register_login_logout(self) -> None:
        res = self.client.post(
            "/v1/auth/register",
            json={"email": "new@example.com", "password": PASSWORD, "username": "newbie", "timezone": "Europe/Berlin"},
        )
        self.assertEqual(res.status_code, 200, res.text)
        self.assertEqual(res.json()["user"]["rating"], 0)

        res = self.client.post("/v1/auth/login", json={"email": "new@example.com", "password": PASSWORD})
        self.assertEqual(res.status_code, 200)
        token = res.json()["token"]
        self.assertEqual(res.cookies.get("session"), token)

        me = self.client.get("/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(me.json()["username"], "newbie")

        self.client.post("/v1/auth/logout", headers={"Authorization": f"Bearer {token}"})
        self.client.cookies.clear()
        self.assertEqual(self.client.get("/v1/auth/me", headers={"Authorization": f"Bearer {token}"}).status_code, 401)

    def test_register_validation(self) -> None:
        res = self.client.post(
            "/v1/auth/register",
            json={"email": "x@example.com", "password": "short", "username": "xavier", "timezone": "Europe/Berlin"},
        )
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["code"], "validation_error")

    def test_register_rejects_unknown_timezone(self) -> None:
        res = self.client.post(
            "/v1/auth/register",
            json={"email": "m@example.com", "password": PASSWORD, "username": "martian", "timezone": "Mars/Base"},
        )
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["code"], "validation_error")

    def test_failed_login_lowers_reputation(self) -> None:
        self.make_user("alice")
        with patch.object(settings, "IP_REPUTATION_THRESHOLD", -2):
            for _ in range(3):
                res = self.client.post("/v1/auth/login", json={"email": "alice@example.com", "password": "wrong-one"})
                self.assertEqual(res.status_code, 401)

            res = self.client.post("/v1/auth/login", json={"email": "alice@example.com", "password": PASSWORD})

        self.assertEqual(res.status_code, 429)


class DailyFlowApiTest(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.now = utc(7)
        self.alice = self.make_user("alice")
        self.bob = self.make_user("bob")
        self.alice_h = self.auth(self.alice)
        self.bob_h = self.auth(self.bob)

    def pair(self) -> int:
        for headers in (self.alice_h, self.bob_h):
            res = self.client.post("/v1/profile/deadline", json={"deadline": "09:00"}, headers=headers)
            self.assertEqual(res.status_code, 200, res.text)

        candidates = self.client.get("/v1/candidates", headers=self.alice_h).json()
        self.assertEqual([c["username"] for c in candidates], ["bob"])

        req = self.client.post("/v1/requests", json={"to_user_id": self.bob.id}, headers=self.alice_h).json()
        incoming = self.client.get("/v1/requests/incoming", headers=self.bob_h).json()
        self.assertEqual(incoming["items"][0]["from_username"], "alice")

        res = self.client.post(f"/v1/requests/{req['id']}/respond", json={"accept": True}, headers=self.bob_h)
        self.assertEqual(res.status_code, 200, res.text)
        return res.json()["pairing"]["id"]

    def test_deadline_once_per_day(self) -> None:
        self.client.post("/v1/profile/deadline", json={"deadline": "09:00"}, headers=self.alice_h)

        res = self.client.post("/v1/profile/deadline", json={"deadline": "10:00"}, headers=self.alice_h)

        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.json()["code"], "already_updated_today")

    def test_plan_upload_verify_settle(self) -> None:
        pairing_id = self.pair()

        res = self.client.post(
            f"/v1/pairings/{pairing_id}/plan",
            json={"title": "Write the report", "description": "First draft"},
            headers=self.alice_h,
        )
        self.assertEqual(res.status_code, 200, res.text)
        again = self.client.post(
            f"/v1/pairings/{pairing_id}/plan",
            json={"title": "Write another", "description": "Second draft"},
            headers=self.alice_h,
        )
        self.assertEqual(again.json()["code"], "already_planned_today")

        res = self.client.post(
            f"/v1/pairings/{pairing_id}/complete",
            data={"title": "Report written", "description": "Draft attached"},
            files={"file": ("draft.pdf", b"%PDF-1.4 tiny", "application/pdf")},
            headers=self.alice_h,
        )
        self.assertEqual(res.status_code, 200, res.text)
        file_url = res.json()["file_url"]
        self.assertTrue(file_url.startswith("http://testserver/files/"))
        download = self.client.get(file_url.replace("http://testserver", ""))
        self.assertEqual(download.content, b"%PDF-1.4 tiny")

        self.now = utc(9, 10)
        view = self.client.get(f"/task-verification/{pairing_id}", headers=self.bob_h).json()
        self.assertEqual(view["phase"], "VERIFYING")
        self.assertEqual(view["partner_completed"]["title"], "Report written")

        res = self.client.post(f"/v1/pairings/{pairing_id}/verify", json={"is_completed": True}, headers=self.bob_h)
        self.assertEqual(res.status_code, 200, res.text)
        self.assertEqual(res.json()["verified_user_id"], self.alice.id)

        self.now = utc(9, 31)
        res = self.client.post(f"/v1/pairings/{pairing_id}/settle", headers=self.alice_h).json()
        self.assertEqual(res["state"], "SETTLED")
        self.assertEqual(res["deltas"], {str(self.alice.id): 1, str(self.bob.id): -2})

        notes = self.client.get("/v1/notifications", headers=self.bob_h).json()
        self.assertIn("Be sincere with your responsibilities", notes[0]["message"])
        board = self.client.get("/v1/leaderboard").json()
        self.assertEqual(board["items"][0]["username"], "alice")

    def test_upload_errors(self) -> None:
        pairing_id = self.pair()

        res = self.client.post(
            f"/v1/pairings/{pairing_id}/complete",
            data={"title": "Report written", "description": "Draft attached"},
            headers=self.alice_h,
        )
        self.assertEqual(res.json()["code"], "no_plan_exists")

        self.client.post(
            f"/v1/pairings/{pairing_id}/plan",
            json={"title": "Write the report", "description": "First draft"},
            headers=self.alice_h,
        )
        res = self.client.post(
            f"/v1/pairings/{pairing_id}/complete",
            data={"title": "Report written", "description": "Draft attached"},
            files={"file": ("tool.exe", b"MZ", "application/x-msdownload")},
            headers=self.alice_h,
        )
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["code"], "unsupported_file_type")

        with patch.object(settings, "MAX_UPLOAD_BYTES", 1024):
            res = self.client.post(
                f"/v1/pairings/{pairing_id}/complete",
                data={"title": "Report written", "description": "Draft attached"},
                files={"file": ("report.pdf", b"x" * 4096, "application/pdf")},
                headers=self.alice_h,
            )
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["code"], "file_too_large")

    def test_outsider_cannot_see_pairing(self) -> None:
        pairing_id = self.pair()
        eve = self.make_user("eve")

        res = self.client.get(f"/v1/pairings/{pairing_id}", headers=self.auth(eve))

        self.assertEqual(res.status_code, 403)

    def test_event_stream_pushes_plan(self) -> None:
        pairing_id = self.pair()
        token = self.alice_h["Authorization"].split(" ", 1)[1]

        with self.client.websocket_connect(f"/v1/pairings/{pairing_id}/events?token={token}") as ws:
            self.client.post(
                f"/v1/pairings/{pairing_id}/plan",
                json={"title": "Write the report", "description": "First draft"},
                headers=self.bob_h,
            )
            message = ws.receive_json()

        self.assertEqual(message["collection"], "planned_tasks")
        self.assertEqual(message["action"], "insert")
        self.assertEqual(message["record"]["user_id"], self.bob.id)

    def test_event_stream_rejects_strangers(self) -> None:
        pairing_id = self.pair()
        eve = self.make_user("eve")
        token = self.auth(eve)["Authorization"].split(" ", 1)[1]

        with self.assertRaises(WebSocketDisconnect):
            with self.client.websocket_connect(f"/v1/pairings/{pairing_id}/events?token={token}") as ws:
                ws.receive_json()


class AdminApiTest(ApiTestCase):
    def test_requires_token(self) -> None:
        with patch.object(settings, "ADMIN_API_TOKEN", "sekrit"):
            self.assertEqual(self.client.post("/v1/admin/sweep").status_code, 403)
            res = self.client.post("/v1/admin/sweep", headers={"x-admin-token": "sekrit"})

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["deleted"]["pairings"], 0)

    def test_users_listing(self) -> None:
        self.make_user("alice")
        self.make_user("bob")
        with patch.object(settings, "ADMIN_API_TOKEN", "sekrit"):
            res = self.client.get("/v1/admin/users?q=ali", headers={"x-admin-token": "sekrit"})

        self.assertEqual([u["username"] for u in res.json()["items"]], ["alice"])
