import unittest
from unittest import mock

import requests
from firebase_admin import auth as firebase_auth

from trashtag.identity import (
    SIGN_IN_URL,
    AuthError,
    FirebaseIdentityClient,
    Identity,
    InMemoryIdentityClient,
)


class InMemoryIdentityClientTests(unittest.TestCase):
    def setUp(self):
        self.client = InMemoryIdentityClient()
        self.events = []
        self.unsubscribe = self.client.on_identity_changed(
            lambda token, identity: self.events.append((token, identity))
        )

    def test_create_user_validates_input(self):
        with self.assertRaises(AuthError) as ctx:
            self.client.create_user("not-an-email", "secret123")
        self.assertEqual(ctx.exception.code, "auth/invalid-email")
        with self.assertRaises(AuthError) as ctx:
            self.client.create_user("a@example.com", "12345")
        self.assertEqual(ctx.exception.code, "auth/weak-password")

    def test_create_user_does_not_open_a_session(self):
        self.client.create_user("a@example.com", "secret123")
        self.assertEqual(self.events, [])
        with self.assertRaises(AuthError) as ctx:
            self.client.create_user("A@example.com", "secret123")
        self.assertEqual(ctx.exception.code, "auth/email-already-in-use")

    def test_sign_in_and_out_notify_listeners(self):
        identity = self.client.create_user("a@example.com", "secret123")
        credential = self.client.sign_in("a@example.com", "secret123")
        self.assertEqual(credential.identity, identity)
        self.assertEqual(self.client.verify_token(credential.token), identity)

        self.client.sign_out(credential.token)
        self.client.sign_out(credential.token)
        self.assertEqual(self.events, [(credential.token, identity), (credential.token, None)])
        self.assertIsNone(self.client.verify_token(credential.token))

    def test_wrong_password(self):
        self.client.create_user("a@example.com", "secret123")
        with self.assertRaises(AuthError) as ctx:
            self.client.sign_in("a@example.com", "secret124")
        self.assertEqual(ctx.exception.code, "auth/invalid-credential")
        self.assertEqual(ctx.exception.message, "The supplied credentials are incorrect.")

    def test_expired_token_is_rejected_and_dropped(self):
        self.client.create_user("a@example.com", "secret123")
        credential = self.client.sign_in("a@example.com", "secret123")
        self.assertIsNotNone(credential.identity.expires_at)

        later = credential.identity.expires_at + 1
        with mock.patch("trashtag.identity.time.time", return_value=later):
            self.assertIsNone(self.client.verify_token(credential.token))
        self.assertNotIn(credential.token, self.client.tokens)

    def test_sign_in_drops_expired_tokens(self):
        self.client.create_user("a@example.com", "secret123")
        first = self.client.sign_in("a@example.com", "secret123")
        later = first.identity.expires_at + 1
        with mock.patch("trashtag.identity.time.time", return_value=later):
            second = self.client.sign_in("a@example.com", "secret123")
        self.assertEqual(list(self.client.tokens), [second.token])

    def test_unsubscribe(self):
        self.unsubscribe()
        self.assertEqual(self.client.listener_count, 0)
        self.client.create_user("a@example.com", "secret123")
        self.client.sign_in("a@example.com", "secret123")
        self.assertEqual(self.events, [])


class FirebaseIdentityClientTests(unittest.TestCase):
    def setUp(self):
        self.app = mock.Mock(name="firebase_app")
        self.client = FirebaseIdentityClient(self.app, "web-key")
        self.events = []
        self.client.on_identity_changed(lambda token, identity: self.events.append((token, identity)))

    def test_requires_web_api_key(self):
        with self.assertRaises(ValueError):
            FirebaseIdentityClient(self.app, None)

    @mock.patch("trashtag.identity.firebase_auth.create_user")
    def test_create_user(self, create_user):
        create_user.return_value = mock.Mock(uid="fb-uid", email="a@example.com")
        identity = self.client.create_user("a@example.com", "secret123")
        self.assertEqual(identity, Identity(uid="fb-uid", email="a@example.com"))
        create_user.assert_called_once_with(
            email="a@example.com", password="secret123", app=self.app
        )

    @mock.patch("trashtag.identity.firebase_auth.create_user")
    def test_create_user_existing_email(self, create_user):
        create_user.side_effect = firebase_auth.EmailAlreadyExistsError("exists", None, None)
        with self.assertRaises(AuthError) as ctx:
            self.client.create_user("a@example.com", "secret123")
        self.assertEqual(ctx.exception.code, "auth/email-already-in-use")

    @mock.patch("trashtag.identity.requests.post")
    def test_sign_in_uses_rest_api(self, post):
        post.return_value = mock.Mock(
            ok=True,
            json=mock.Mock(
                return_value={"localId": "fb-uid", "email": "a@example.com", "idToken": "id-token"}
            ),
        )
        credential = self.client.sign_in("a@example.com", "secret123")

        self.assertEqual(credential.token, "id-token")
        self.assertEqual(credential.identity.uid, "fb-uid")
        self.assertEqual(self.events, [("id-token", credential.identity)])
        args, kwargs = post.call_args
        self.assertEqual(args, (SIGN_IN_URL,))
        self.assertEqual(kwargs["params"], {"key": "web-key"})
        self.assertTrue(kwargs["json"]["returnSecureToken"])

    @mock.patch("trashtag.identity.requests.post")
    def test_sign_in_maps_rest_errors(self, post):
        post.return_value = mock.Mock(
            ok=False,
            reason="Bad Request",
            json=mock.Mock(return_value={"error": {"message": "INVALID_LOGIN_CREDENTIALS"}}),
        )
        with self.assertRaises(AuthError) as ctx:
            self.client.sign_in("a@example.com", "nope")
        self.assertEqual(ctx.exception.code, "auth/invalid-credential")
        self.assertEqual(self.events, [])

    @mock.patch("trashtag.identity.requests.post")
    def test_sign_in_network_failure(self, post):
        post.side_effect = requests.ConnectionError("unreachable")
        with self.assertRaises(AuthError) as ctx:
            self.client.sign_in("a@example.com", "secret123")
        self.assertEqual(ctx.exception.code, "auth/network-request-failed")

    @mock.patch("trashtag.identity.firebase_auth.verify_id_token")
    def test_verify_and_sign_out(self, verify_id_token):
        verify_id_token.return_value = {"uid": "fb-uid", "email": "a@example.com"}
        self.assertEqual(
            self.client.verify_token("id-token"), Identity(uid="fb-uid", email="a@example.com")
        )

        self.client.sign_out("id-token")
        self.assertIsNone(self.client.verify_token("id-token"))
        self.assertEqual(self.events, [("id-token", None)])

    @mock.patch("trashtag.identity.firebase_auth.verify_id_token")
    def test_sign_out_ignores_tokens_that_do_not_verify(self, verify_id_token):
        verify_id_token.side_effect = ValueError("malformed")
        for i in range(5000):
            self.client.sign_out(f"garbage-{i}")
        self.assertEqual(len(self.client._signed_out), 0)
        self.assertEqual(self.events, [])

    @mock.patch("trashtag.identity.firebase_auth.verify_id_token")
    def test_signed_out_tokens_are_forgotten_after_expiry(self, verify_id_token):
        verify_id_token.return_value = {"uid": "fb-uid", "email": "a@example.com", "exp": 1000}
        with mock.patch("trashtag.identity.time.time", return_value=500):
            self.client.sign_out("old-token")
        self.assertEqual(self.client._signed_out, {"old-token": 1000})

        verify_id_token.return_value = {"uid": "fb-uid", "email": "a@example.com", "exp": 5000}
        with mock.patch("trashtag.identity.time.time", return_value=2000):
            self.client.sign_out("new-token")
        self.assertEqual(self.client._signed_out, {"new-token": 5000})

    @mock.patch("trashtag.identity.requests.post")
    def test_sign_in_sets_token_expiry(self, post):
        post.return_value = mock.Mock(
            ok=True,
            json=mock.Mock(
                return_value={
                    "localId": "fb-uid",
                    "email": "a@example.com",
                    "idToken": "id-token",
                    "expiresIn": "3600",
                }
            ),
        )
        with mock.patch("trashtag.identity.time.time", return_value=100):
            credential = self.client.sign_in("a@example.com", "secret123")
        self.assertEqual(credential.identity.expires_at, 3700)

    @mock.patch("trashtag.identity.firebase_auth.verify_id_token")
    def test_verify_rejects_bad_token(self, verify_id_token):
        verify_id_token.side_effect = ValueError("malformed")
        self.assertIsNone(self.client.verify_token("garbage"))


if __name__ == "__main__":
    unittest.main()
