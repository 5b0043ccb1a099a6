"""
HTTP routes for the TrashTag API.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    Response,
    UploadFile,
)
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.concurrency import run_in_threadpool

from shared.firebase_constants import USERS_COLLECTION
from shared.types import CleanupRecord
from trashtag.challenges import CREATED_MESSAGE, ChallengeDraft, author_challenge
from trashtag.cleanups import (
    CleanupSubmission,
    PhotoUpload,
    recent_cleanups,
    recent_cleanups_query,
    submit_cleanup,
)
from trashtag.config import get_settings
from trashtag.dependencies import (
    get_blob_store,
    get_current_session,
    get_document_store,
    get_identity_client,
    get_session_store,
    require_session,
)
from trashtag.identity import AuthError, IdentityClient
from trashtag.leaderboard import load_leaderboard
from trashtag.provisioning import sign_up
from trashtag.schemas import (
    ChallengeRequest,
    ChallengeResponse,
    CleanupItem,
    CleanupResponse,
    LeaderboardOrganizationItem,
    LeaderboardResponse,
    LeaderboardUserItem,
    LoginRequest,
    LogoutResponse,
    RecentCleanupsResponse,
    SessionResponse,
    SignUpRequest,
)
from trashtag.session import SessionContext, SessionStore
from trashtag.storage import BlobStore
from trashtag.store import Document, DocumentStore
from trashtag.subscriptions import AsyncSubscription, event_stream

logger = logging.getLogger(__name__)

router = APIRouter()

CLEANUP_LOGGED_MESSAGE = "Cleanup logged, thanks!"


def _session_response(
    context: Optional[SessionContext], token: Optional[str] = None
) -> SessionResponse:
    if context is None:
        return SessionResponse(token=token, loading=False)
    return SessionResponse(
        token=token,
        uid=context.uid,
        email=context.identity.email if context.identity else None,
        profile=context.profile,
        loading=context.loading,
    )


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        get_settings().session_cookie_name, token, httponly=True, samesite="lax"
    )


def cleanup_item(doc: Document) -> CleanupItem:
    record = CleanupRecord.from_document(
        {"userId": "", "description": "", "location": "", "pointsEarned": 0, **doc.data}
    )
    return CleanupItem(
        id=doc.id,
        description=record.description,
        location=record.location,
        photo_url=record.photo_url,
        points_earned=record.points_earned,
        organization_id=record.organization_id,
        timestamp=record.timestamp,
    )


def leaderboard_response(store: DocumentStore) -> LeaderboardResponse:
    leaderboard = load_leaderboard(store, get_settings().leaderboard_size)
    return LeaderboardResponse(
        users=[
            LeaderboardUserItem(uid=u.uid, name=u.name, points=u.points)
            for u in leaderboard.users
        ],
        organizations=[
            LeaderboardOrganizationItem(id=o.id, name=o.name, total_points=o.total_points)
            for o in leaderboard.organizations
        ],
    )


@router.post("/auth/signup", response_model=SessionResponse, status_code=201)
def signup(
    payload: SignUpRequest,
    response: Response,
    identity: IdentityClient = Depends(get_identity_client),
    store: DocumentStore = Depends(get_document_store),
    sessions: SessionStore = Depends(get_session_store),
):
    """
    Create the account (and organization), then sign it in.
    """
    try:
        sign_up(
            identity,
            store,
            payload.email,
            payload.password,
            display_name=payload.name,
            organization_name=payload.organization_name,
        )
        credential = identity.sign_in(payload.email, payload.password)
    except AuthError as exc:
        logger.info("Signup rejected for %s: %s", payload.email, exc.code)
        raise HTTPException(status_code=400, detail=exc.message)
    _set_session_cookie(response, credential.token)
    return _session_response(sessions.resolve(credential.token), credential.token)


@router.post("/auth/login", response_model=SessionResponse)
def login(
    payload: LoginRequest,
    response: Response,
    identity: IdentityClient = Depends(get_identity_client),
    sessions: SessionStore = Depends(get_session_store),
):
    try:
        credential = identity.sign_in(payload.email, payload.password)
    except AuthError as exc:
        logger.info("Login rejected for %s: %s", payload.email, exc.code)
        raise HTTPException(status_code=401, detail=exc.message)
    _set_session_cookie(response, credential.token)
    return _session_response(sessions.resolve(credential.token), credential.token)


@router.post("/auth/logout", response_model=LogoutResponse)
def logout(
    response: Response,
    session: Optional[SessionContext] = Depends(get_current_session),
    identity: IdentityClient = Depends(get_identity_client),
):
    if session is not None:
        identity.sign_out(session.token)
    response.delete_cookie(get_settings().session_cookie_name)
    return LogoutResponse(status="ok")


@router.get("/me", response_model=SessionResponse)
def me(session: SessionContext = Depends(require_session)):
    return _session_response(session)


@router.get("/me/stream")
async def stream_profile(
    request: Request,
    max_events: Optional[int] = Query(None, ge=1),
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_document_store),
):
    subscription = AsyncSubscription.for_document(
        store, USERS_COLLECTION, session.uid
    )
    return StreamingResponse(
        event_stream(
            request,
            subscription,
            keepalive_seconds=get_settings().stream_keepalive_seconds,
            max_events=max_events,
        ),
        media_type="text/event-stream",
    )


@router.post("/cleanups", response_model=CleanupResponse, status_code=201)
async def log_cleanup(
    description: str = Form(""),
    location: str = Form(""),
    points_earned: Optional[int] = Form(None, ge=1),
    photo: Optional[UploadFile] = File(None),
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_document_store),
    blobs: BlobStore = Depends(get_blob_store),
    sessions: SessionStore = Depends(get_session_store),
):
    upload = None
    if photo is not None and photo.filename:
        upload = PhotoUpload(
            filename=photo.filename,
            content=await photo.read(),
            content_type=photo.content_type,
        )
    submission = CleanupSubmission(
        description=description,
        location=location,
        points_earned=points_earned or get_settings().default_cleanup_points,
        photo=upload,
    )
    receipt = await run_in_threadpool(
        submit_cleanup,
        session,
        submission,
        store=store,
        blobs=blobs,
        sessions=sessions,
    )
    return CleanupResponse(
        cleanup_id=receipt.cleanup_id,
        photo_url=receipt.photo_url,
        points=receipt.ledger.user_points,
        organization_total_points=receipt.ledger.organization_total_points,
        profile=receipt.profile,
        message=CLEANUP_LOGGED_MESSAGE,
    )


@router.get("/cleanups/recent", response_model=RecentCleanupsResponse)
def list_recent_cleanups(
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_document_store),
):
    docs = recent_cleanups(store, session.uid, get_settings().recent_cleanups_limit)
    return RecentCleanupsResponse(cleanups=[cleanup_item(doc) for doc in docs])


@router.get("/cleanups/stream")
async def stream_recent_cleanups(
    request: Request,
    max_events: Optional[int] = Query(None, ge=1),
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_document_store),
):
    settings = get_settings()
    subscription = AsyncSubscription.for_query(
        store, recent_cleanups_query(session.uid, settings.recent_cleanups_limit)
    )
    return StreamingResponse(
        event_stream(
            request,
            subscription,
            transform=lambda docs: [cleanup_item(doc) for doc in docs],
            keepalive_seconds=settings.stream_keepalive_seconds,
            max_events=max_events,
        ),
        media_type="text/event-stream",
    )


@router.post("/challenges", response_model=ChallengeResponse, status_code=201)
def create_challenge(
    payload: ChallengeRequest,
    session: SessionContext = Depends(require_session),
    store: DocumentStore = Depends(get_document_store),
):
    outcome = author_challenge(
        session,
        ChallengeDraft(
            title=payload.title,
            description=payload.description,
            reward=payload.reward,
            start_date=payload.start_date,
            end_date=payload.end_date,
        ),
        store=store,
    )
    if not outcome.created:
        return JSONResponse(status_code=403, content={"detail": outcome.refusal})
    return ChallengeResponse(
        challenge_id=outcome.challenge_id,
        message=CREATED_MESSAGE,
        form=ChallengeRequest(),
    )


@router.get("/leaderboard", response_model=LeaderboardResponse)
def leaderboard(store: DocumentStore = Depends(get_document_store)):
    return leaderboard_response(store)
