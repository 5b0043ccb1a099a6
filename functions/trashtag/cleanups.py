"""
Cleanup submission pipeline and the dashboard's recent-cleanups feed.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Optional

from shared.firebase_constants import (
    CLEANUP_PHOTOS_PREFIX,
    CLEANUPS_COLLECTION,
    USERS_COLLECTION,
)
from shared.types import CleanupRecord, to_document
from trashtag.ledger import LedgerResult, apply_points
from trashtag.session import SessionContext, SessionStore
from trashtag.storage import BlobStore
from trashtag.store import SERVER_TIMESTAMP, Document, DocumentStore, Query

logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 10


@dataclass
class PhotoUpload:
    filename: str
    content: bytes
    content_type: Optional[str] = None


@dataclass
class CleanupSubmission:
    description: str
    location: str
    points_earned: int
    photo: Optional[PhotoUpload] = None


@dataclass
class CleanupReceipt:
    cleanup_id: str
    photo_url: Optional[str]
    ledger: LedgerResult
    profile: Optional[dict]


def photo_path(uid: str, filename: str, now_ms: Optional[int] = None) -> str:
    """Blob key for a cleanup photo: cleanups/<uid>/<epoch millis>_<filename>."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    name = re.split(r"[\\/]", filename or "")[-1] or "photo"
    return f"{CLEANUP_PHOTOS_PREFIX}/{uid}/{now_ms}_{name}"


def submit_cleanup(
    session: SessionContext,
    submission: CleanupSubmission,
    *,
    store: DocumentStore,
    blobs: BlobStore,
    sessions: SessionStore,
) -> CleanupReceipt:
    """
    Upload the photo, persist the cleanup record, apply the points and
    refresh the session's cached profile, in that order.

    A failing step aborts the rest; earlier steps are not undone.
    """
    if session.identity is None:
        raise ValueError("submit_cleanup requires an authenticated session")
    uid = session.uid
    organization_id = session.organization_id or None

    photo_url = None
    if submission.photo is not None:
        path = photo_path(uid, submission.photo.filename)
        blobs.upload(path, submission.photo.content, submission.photo.content_type)
        photo_url = blobs.get_download_url(path)
        logger.info("Uploaded cleanup photo to %s", path)

    record = CleanupRecord(
        user_id=uid,
        organization_id=organization_id,
        description=submission.description,
        location=submission.location,
        photo_url=photo_url,
        points_earned=submission.points_earned,
    )
    document = to_document(record)
    document["timestamp"] = SERVER_TIMESTAMP
    cleanup_id = store.add(CLEANUPS_COLLECTION, document)
    logger.info(
        "Cleanup %s logged by %s (+%d points)", cleanup_id, uid, submission.points_earned
    )

    ledger = apply_points(store, uid, organization_id, submission.points_earned)

    profile = store.get(USERS_COLLECTION, uid)
    sessions.set_profile(session.token, profile)
    return CleanupReceipt(
        cleanup_id=cleanup_id, photo_url=photo_url, ledger=ledger, profile=profile
    )


def recent_cleanups_query(uid: str, limit: int = DEFAULT_RECENT_LIMIT) -> Query:
    return Query(
        collection=CLEANUPS_COLLECTION,
        filters=(("userId", "==", uid),),
        order_by="timestamp",
        descending=True,
        limit=limit,
    )


def recent_cleanups(
    store: DocumentStore, uid: str, limit: int = DEFAULT_RECENT_LIMIT
) -> list[Document]:
    return store.query(recent_cleanups_query(uid, limit))
