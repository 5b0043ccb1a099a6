"""
Session store: tracks the authenticated identity and cached profile per
session token.

The store subscribes once to the identity client's change notifications when
the application starts and releases the subscription when it stops.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from shared.firebase_constants import USERS_COLLECTION
from shared.types import Role
from trashtag.identity import Identity, IdentityClient
from trashtag.store import DocumentStore

logger = logging.getLogger(__name__)


def default_profile(email: str) -> dict:
    """The minimal profile written on first authentication."""
    return {
        "name": email.split("@")[0],
        "email": email,
        "points": 0,
        "role": Role.MEMBER.value,
    }


@dataclass
class SessionContext:
    token: str
    identity: Optional[Identity] = None
    profile: Optional[dict] = None
    loading: bool = True
    expires_at: Optional[float] = None

    @property
    def uid(self) -> Optional[str]:
        return self.identity.uid if self.identity else None

    @property
    def role(self) -> Optional[str]:
        return (self.profile or {}).get("role")

    @property
    def organization_id(self) -> Optional[str]:
        return (self.profile or {}).get("organizationId")

    @property
    def display_name(self) -> Optional[str]:
        if self.profile and self.profile.get("name"):
            return self.profile["name"]
        return self.identity.email if self.identity else None

    @property
    def expired(self) -> bool:
        return self.expires_at is not None and self.expires_at <= time.time()


class SessionStore:
    def __init__(self, identity: IdentityClient, store: DocumentStore):
        self._identity = identity
        self._store = store
        self._sessions: Dict[str, SessionContext] = {}
        self._lock = threading.Lock()
        self._unsubscribe: Optional[Callable[[], None]] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    @property
    def started(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> None:
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._identity.on_identity_changed(self._on_identity_changed)
        logger.info("Session store listening for identity changes")

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        with self._lock:
            self._sessions.clear()
        logger.info("Session store stopped")

    def _on_identity_changed(self, token: str, identity: Optional[Identity]) -> None:
        if identity is None:
            with self._lock:
                closed = self._sessions.pop(token, None)
            if closed is not None:
                logger.info("Session closed for %s", closed.uid)
            return

        self._drop_expired()
        context = SessionContext(
            token=token, identity=identity, expires_at=identity.expires_at
        )
        with self._lock:
            self._sessions[token] = context
        try:
            context.profile = self._load_profile(identity)
        except Exception:
            with self._lock:
                self._sessions.pop(token, None)
            raise
        finally:
            context.loading = False
        logger.info("Session opened for %s (role=%s)", identity.uid, context.role)

    def _load_profile(self, identity: Identity) -> dict:
        profile = self._store.get(USERS_COLLECTION, identity.uid)
        if profile is None:
            profile = default_profile(identity.email)
            self._store.set(USERS_COLLECTION, identity.uid, profile)
            logger.info("Created default profile for %s", identity.uid)
        return profile

    def _drop_expired(self) -> None:
        now = time.time()
        with self._lock:
            expired = [
                token
                for token, context in self._sessions.items()
                if context.expires_at is not None and context.expires_at <= now
            ]
            for token in expired:
                del self._sessions[token]
        if expired:
            logger.info("Evicted %d expired sessions", len(expired))

    def get(self, token: Optional[str]) -> Optional[SessionContext]:
        """Cached session for a token; expired sessions are evicted, not returned."""
        if not token:
            return None
        with self._lock:
            context = self._sessions.get(token)
            if context is not None and context.expired:
                del self._sessions[token]
                return None
            return context

    def resolve(self, token: Optional[str]) -> Optional[SessionContext]:
        """
        Return the session for a token after checking it with the identity
        client. Tokens the client no longer accepts drop their cached session;
        tokens this process has not seen yet are resumed.
        """
        if not token:
            return None
        identity = self._identity.verify_token(token)
        if identity is None:
            with self._lock:
                dropped = self._sessions.pop(token, None)
            if dropped is not None:
                logger.info("Session for %s no longer accepted", dropped.uid)
            return None
        context = self.get(token)
        if context is not None:
            if identity.expires_at is not None:
                context.expires_at = identity.expires_at
            return context
        self._on_identity_changed(token, identity)
        return self.get(token)

    def set_profile(self, token: str, profile: Optional[dict]) -> None:
        context = self.get(token)
        if context is not None:
            context.profile = profile
