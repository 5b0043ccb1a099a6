import unittest
from unittest import mock

from fastapi.testclient import TestClient

from trashtag import dependencies
from trashtag.app import create_app
from trashtag.challenges import ORG_ONLY_REFUSAL
from trashtag.identity import InMemoryIdentityClient
from trashtag.storage import InMemoryBlobStore
from trashtag.store import InMemoryDocumentStore

STORE_OPERATIONS = ("get", "set", "update", "add", "query", "subscribe", "subscribe_document")


class TrashTagViewTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        self.identity = InMemoryIdentityClient()
        for name, value in (
            ("_document_store", self.store),
            ("_blob_store", InMemoryBlobStore()),
            ("_identity_client", self.identity),
        ):
            patcher = mock.patch.object(dependencies, name, value)
            patcher.start()
            self.addCleanup(patcher.stop)

        self.client = TestClient(create_app())
        self.client.__enter__()
        self.addCleanup(self.client.__exit__, None, None, None)

    def signup(self, email, **extra):
        response = self.client.post(
            "/api/auth/signup", json={"email": email, "password": "secret123", **extra}
        )
        self.assertEqual(response.status_code, 201, response.text)
        self.client.cookies.clear()
        session = response.json()
        return {"Authorization": f"Bearer {session['token']}"}, session

    def spy_on_store(self):
        spies = {}
        for name in STORE_OPERATIONS:
            patcher = mock.patch.object(
                self.store, name, wraps=getattr(self.store, name)
            )
            spies[name] = patcher.start()
            self.addCleanup(patcher.stop)
        return spies

    def test_home(self):
        payload = self.client.get("/").json()
        self.assertIn("TrashTag", payload["title"])
        self.assertEqual(
            [link["path"] for link in payload["links"]], ["/signup", "/leaderboard"]
        )

    def test_login_and_signup_pages_describe_forms(self):
        login = self.client.get("/login").json()
        self.assertEqual(login["action"], "/api/auth/login")
        self.assertEqual([f["name"] for f in login["fields"]], ["email", "password"])

        signup = self.client.get("/signup").json()
        self.assertEqual(signup["action"], "/api/auth/signup")
        self.assertIn("organization_name", [f["name"] for f in signup["fields"]])

    def test_anonymous_protected_pages_redirect_without_store_access(self):
        spies = self.spy_on_store()
        for path in ("/dashboard", "/cleanup", "/admin"):
            response = self.client.get(path, follow_redirects=False)
            self.assertEqual(response.status_code, 303, path)
            self.assertEqual(response.headers["location"], "/login")

        response = self.client.get(
            "/dashboard",
            headers={"Authorization": "Bearer not-a-real-token"},
            follow_redirects=False,
        )
        self.assertEqual(response.status_code, 303)
        for name, spy in spies.items():
            self.assertFalse(spy.called, name)

    def test_dashboard_shows_points_and_recent_cleanups(self):
        headers, _ = self.signup("dash@example.com")
        self.client.post(
            "/api/cleanups",
            data={"description": "Trail", "location": "Ridge", "points_earned": "7"},
            headers=headers,
        )

        payload = self.client.get("/dashboard", headers=headers).json()
        self.assertEqual(payload["points"], 7)
        self.assertFalse(payload["loading"])
        self.assertEqual(payload["display_name"], "dash")
        self.assertEqual(
            [item["description"] for item in payload["recent_cleanups"]], ["Trail"]
        )

    def test_cleanup_page_defaults(self):
        headers, _ = self.signup("form@example.com")
        payload = self.client.get("/cleanup", headers=headers).json()
        points = next(f for f in payload["fields"] if f["name"] == "points_earned")
        self.assertEqual(points["default"], 10)
        self.assertEqual(payload["action"], "/api/cleanups")

    def test_admin_page_refuses_members(self):
        headers, _ = self.signup("member@example.com")
        response = self.client.get("/admin", headers=headers)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["detail"], ORG_ONLY_REFUSAL)

    def test_admin_page_for_org(self):
        headers, session = self.signup("org@example.com", organization_name="River Org")
        response = self.client.get("/admin", headers=headers)
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["organization_id"], session["profile"]["organizationId"])
        self.assertEqual(payload["form"]["reward"], "")

    def test_navigation_for_anonymous_member_and_org(self):
        anonymous = self.client.get("/nav").json()
        self.assertFalse(anonymous["authenticated"])
        self.assertEqual(
            [link["label"] for link in anonymous["links"]],
            ["Leaderboard", "Log Cleanup", "Log in", "Sign up"],
        )

        headers, _ = self.signup("nav@example.com", name="Nav Member")
        member = self.client.get("/nav", headers=headers).json()
        self.assertTrue(member["authenticated"])
        self.assertEqual(member["display_name"], "Nav Member")
        self.assertEqual(
            [link["label"] for link in member["links"]], ["Leaderboard", "Log Cleanup"]
        )

        headers, _ = self.signup("navorg@example.com", organization_name="Nav Org")
        org = self.client.get("/nav", headers=headers).json()
        self.assertEqual(
            [link["label"] for link in org["links"]],
            ["Leaderboard", "Admin", "Log Cleanup"],
        )

    def test_leaderboard_page(self):
        self.store.set("users", "a", {"uid": "a", "name": "A", "points": 4})
        self.store.set("users", "b", {"uid": "b", "name": "B", "points": 9})
        payload = self.client.get("/leaderboard").json()
        self.assertEqual(payload["title"], "Leaderboard")
        self.assertEqual([user["name"] for user in payload["users"]], ["B", "A"])
        self.assertEqual(payload["organizations"], [])

    def test_unknown_page(self):
        response = self.client.get("/no-such-page")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"detail": "Page not found"})


if __name__ == "__main__":
    unittest.main()
