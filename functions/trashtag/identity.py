"""
Identity service abstraction: Firebase Auth and an in-memory test implementation.

Both implementations notify registered listeners with (token, identity) when
a session opens and (token, None) when it ends.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import os
import re
import secrets
import threading
import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Optional, Protocol

import requests
from firebase_admin import auth as firebase_auth
from firebase_admin.exceptions import FirebaseError

logger = logging.getLogger(__name__)

SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"
REQUEST_TIMEOUT = 30  # seconds

MIN_PASSWORD_LENGTH = 6
# Firebase ID tokens are valid for one hour.
TOKEN_LIFETIME_SECONDS = 3600
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Identity Toolkit REST error messages -> client SDK style codes.
_REST_ERROR_CODES = {
    "EMAIL_NOT_FOUND": "auth/invalid-credential",
    "INVALID_PASSWORD": "auth/invalid-credential",
    "INVALID_LOGIN_CREDENTIALS": "auth/invalid-credential",
    "INVALID_EMAIL": "auth/invalid-email",
    "USER_DISABLED": "auth/user-disabled",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "auth/too-many-requests",
}


class AuthError(Exception):
    """An authentication failure whose message is shown to the user verbatim."""

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        self.message = message or code
        super().__init__(self.message)


@dataclass(frozen=True)
class Identity:
    uid: str
    email: str
    # Epoch seconds after which the session token is no longer accepted.
    expires_at: Optional[float] = field(default=None, compare=False)

    @property
    def expired(self) -> bool:
        return self.expires_at is not None and self.expires_at <= time.time()


@dataclass(frozen=True)
class Credential:
    token: str
    identity: Identity


IdentityListener = Callable[[str, Optional[Identity]], None]


class IdentityClient(Protocol):
    """Defines the operations the service needs from the identity provider."""

    def create_user(self, email: str, password: str) -> Identity:
        ...

    def sign_in(self, email: str, password: str) -> Credential:
        ...

    def sign_out(self, token: str) -> None:
        ...

    def verify_token(self, token: str) -> Optional[Identity]:
        ...

    def on_identity_changed(self, listener: IdentityListener) -> Callable[[], None]:
        ...


class _IdentityListeners:
    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: Dict[int, IdentityListener] = {}
        self._next_key = 0

    def add(self, listener: IdentityListener) -> Callable[[], None]:
        with self._lock:
            key = self._next_key
            self._next_key += 1
            self._listeners[key] = listener

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(key, None)

        return unsubscribe

    def notify(self, token: str, identity: Optional[Identity]) -> None:
        with self._lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            listener(token, identity)

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)


def _hash_password(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, 100_000)


class InMemoryIdentityClient:
    """Simple in-memory identity provider for development and tests."""

    def __init__(self):
        self.users: Dict[str, dict] = {}
        self.tokens: Dict[str, Identity] = {}
        self._lock = threading.Lock()
        self._listeners = _IdentityListeners()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def reset(self) -> None:
        """Clear all accounts and sessions (useful in tests)."""
        with self._lock:
            self.users.clear()
            self.tokens.clear()

    def create_user(self, email: str, password: str) -> Identity:
        email = (email or "").strip()
        if not _EMAIL_PATTERN.match(email):
            raise AuthError("auth/invalid-email", "The email address is badly formatted.")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise AuthError(
                "auth/weak-password", "Password should be at least 6 characters."
            )
        with self._lock:
            if email.lower() in self.users:
                raise AuthError(
                    "auth/email-already-in-use",
                    "The email address is already in use by another account.",
                )
            salt = os.urandom(16)
            identity = Identity(uid=uuid.uuid4().hex[:28], email=email)
            self.users[email.lower()] = {
                "identity": identity,
                "salt": salt,
                "password_hash": _hash_password(password, salt),
            }
        return identity

    def sign_in(self, email: str, password: str) -> Credential:
        record = self.users.get((email or "").strip().lower())
        if not record or not hmac.compare_digest(
            record["password_hash"], _hash_password(password or "", record["salt"])
        ):
            raise AuthError(
                "auth/invalid-credential", "The supplied credentials are incorrect."
            )
        token = secrets.token_urlsafe(32)
        identity = replace(
            record["identity"], expires_at=time.time() + TOKEN_LIFETIME_SECONDS
        )
        with self._lock:
            self._drop_expired()
            self.tokens[token] = identity
        self._listeners.notify(token, identity)
        return Credential(token=token, identity=identity)

    def _drop_expired(self) -> None:
        for token in [t for t, identity in self.tokens.items() if identity.expired]:
            del self.tokens[token]

    def sign_out(self, token: str) -> None:
        with self._lock:
            identity = self.tokens.pop(token, None)
        if identity is not None:
            self._listeners.notify(token, None)

    def verify_token(self, token: str) -> Optional[Identity]:
        with self._lock:
            identity = self.tokens.get(token)
            if identity is not None and identity.expired:
                del self.tokens[token]
                return None
        return identity

    def on_identity_changed(self, listener: IdentityListener) -> Callable[[], None]:
        return self._listeners.add(listener)


class FirebaseIdentityClient:
    """
    Firebase Auth client. Accounts are created and ID tokens verified with
    firebase_admin; password sign-in goes through the Identity Toolkit REST
    API, which needs the project's web API key.
    """

    def __init__(self, app, web_api_key: Optional[str]):
        if not web_api_key:
            raise ValueError("FIREBASE_WEB_API_KEY is required for password sign-in")
        self.app = app
        self.web_api_key = web_api_key
        self._listeners = _IdentityListeners()
        self._lock = threading.Lock()
        # ID tokens stay cryptographically valid until they expire, so
        # signed-out tokens are remembered until their exp.
        self._signed_out: Dict[str, float] = {}

    def create_user(self, email: str, password: str) -> Identity:
        try:
            record = firebase_auth.create_user(email=email, password=password, app=self.app)
        except firebase_auth.EmailAlreadyExistsError as exc:
            raise AuthError(
                "auth/email-already-in-use",
                "The email address is already in use by another account.",
            ) from exc
        except ValueError as exc:
            # firebase_admin validates arguments locally before calling the API.
            code = "auth/weak-password" if "password" in str(exc).lower() else "auth/invalid-email"
            raise AuthError(code, str(exc)) from exc
        except FirebaseError as exc:
            logger.warning("Firebase create_user failed: %s", exc)
            raise AuthError("auth/internal-error", str(exc)) from exc
        return Identity(uid=record.uid, email=record.email or email)

    def sign_in(self, email: str, password: str) -> Credential:
        try:
            response = requests.post(
                SIGN_IN_URL,
                params={"key": self.web_api_key},
                json={"email": email, "password": password, "returnSecureToken": True},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise AuthError("auth/network-request-failed", str(exc)) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not response.ok:
            message = (payload.get("error") or {}).get("message") or response.reason or ""
            code = _REST_ERROR_CODES.get(message.split(" : ")[0], "auth/internal-error")
            raise AuthError(code, message)

        expires_in = int(payload.get("expiresIn") or TOKEN_LIFETIME_SECONDS)
        identity = Identity(
            uid=payload["localId"],
            email=payload.get("email") or email,
            expires_at=time.time() + expires_in,
        )
        token = payload["idToken"]
        with self._lock:
            self._signed_out.pop(token, None)
        self._listeners.notify(token, identity)
        return Credential(token=token, identity=identity)

    def sign_out(self, token: str) -> None:
        """Reject a live token from now on; tokens that do not verify are ignored."""
        identity = self.verify_token(token)
        if identity is None:
            return
        with self._lock:
            now = time.time()
            for expired in [t for t, exp in self._signed_out.items() if exp <= now]:
                del self._signed_out[expired]
            self._signed_out[token] = identity.expires_at or now + TOKEN_LIFETIME_SECONDS
        self._listeners.notify(token, None)

    def verify_token(self, token: str) -> Optional[Identity]:
        with self._lock:
            if token in self._signed_out:
                return None
        try:
            claims = firebase_auth.verify_id_token(token, app=self.app)
        except (firebase_auth.InvalidIdTokenError, ValueError) as exc:
            logger.info("Rejected ID token: %s", exc)
            return None
        return Identity(
            uid=claims["uid"], email=claims.get("email", ""), expires_at=claims.get("exp")
        )

    def on_identity_changed(self, listener: IdentityListener) -> Callable[[], None]:
        return self._listeners.add(listener)
