"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from firebase_admin import firestore
from firebase_admin import storage as firebase_storage

from trashtag.config import get_settings
from trashtag.firebase import get_firebase_app
from trashtag.identity import FirebaseIdentityClient, IdentityClient, InMemoryIdentityClient
from trashtag.session import SessionContext, SessionStore
from trashtag.storage import BlobStore, FirebaseBlobStore, InMemoryBlobStore, S3BlobStore
from trashtag.store import (
    DocumentStore,
    FirestoreDocumentStore,
    InMemoryDocumentStore,
    SqlDocumentStore,
)

_document_store: DocumentStore | None = None
_blob_store: BlobStore | None = None
_identity_client: IdentityClient | None = None


def get_document_store() -> DocumentStore:
    """
    Return a singleton document store so state persists across requests.
    """
    global _document_store
    if _document_store is not None:
        return _document_store

    settings = get_settings()
    if settings.use_in_memory_backends or not (
        settings.firebase_project_id or settings.database_url
    ):
        _document_store = InMemoryDocumentStore()
    elif settings.firebase_project_id:
        _document_store = FirestoreDocumentStore(firestore.client(app=get_firebase_app()))
    else:
        _document_store = SqlDocumentStore(settings.database_url)
    return _document_store


def get_blob_store() -> BlobStore:
    global _blob_store
    if _blob_store is not None:
        return _blob_store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _blob_store = InMemoryBlobStore()
    elif settings.blob_bucket:
        _blob_store = S3BlobStore(
            bucket=settings.blob_bucket,
            region=settings.blob_region or "",
            endpoint=settings.blob_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.blob_public_base_url,
        )
    elif settings.firebase_storage_bucket:
        _blob_store = FirebaseBlobStore(
            bucket=firebase_storage.bucket(app=get_firebase_app())
        )
    else:
        _blob_store = InMemoryBlobStore()
    return _blob_store


def get_identity_client() -> IdentityClient:
    global _identity_client
    if _identity_client is not None:
        return _identity_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.firebase_project_id:
        _identity_client = InMemoryIdentityClient()
    else:
        _identity_client = FirebaseIdentityClient(
            get_firebase_app(), settings.firebase_web_api_key
        )
    return _identity_client


def get_session_store(request: Request) -> SessionStore:
    sessions = getattr(request.app.state, "sessions", None)
    if sessions is None:
        raise RuntimeError("Session store is not running; start the app with its lifespan")
    return sessions


def session_token(request: Request) -> Optional[str]:
    """Bearer token from the Authorization header, else the session cookie."""
    scheme, _, value = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return request.cookies.get(get_settings().session_cookie_name)


def get_current_session(
    request: Request, sessions: SessionStore = Depends(get_session_store)
) -> Optional[SessionContext]:
    return sessions.resolve(session_token(request))


def require_session(
    session: Optional[SessionContext] = Depends(get_current_session),
) -> SessionContext:
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session
