"""
Page routes returning view models for the TrashTag pages.

Pages that need a signed-in user redirect anonymous callers to /login
before touching any store.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, RedirectResponse

from trashtag.challenges import ORG_ONLY_REFUSAL, can_author_challenges
from trashtag.cleanups import recent_cleanups
from trashtag.config import get_settings
from trashtag.dependencies import get_current_session, get_document_store
from trashtag.routes import cleanup_item, leaderboard_response
from trashtag.schemas import ChallengeRequest, NavigationResponse, NavLink
from trashtag.session import SessionContext
from trashtag.store import DocumentStore

logger = logging.getLogger(__name__)

router = APIRouter()

LOGIN_PATH = "/login"

HOME_TITLE = "TrashTag - track cleanups & reward communities"
HOME_BLURB = (
    "Organizations can create challenges, members log cleanups with photos, "
    "and everyone earns points. Use it to run community cleanups, motivate "
    "volunteers, and show impact."
)


def _field(name: str, label: str, kind: str = "text", **extra) -> dict:
    return {"name": name, "label": label, "type": kind, **extra}


def _to_login() -> RedirectResponse:
    return RedirectResponse(LOGIN_PATH, status_code=303)


def navigation(session: Optional[SessionContext]) -> NavigationResponse:
    links = [NavLink(label="Leaderboard", path="/leaderboard")]
    if can_author_challenges(session):
        links.append(NavLink(label="Admin", path="/admin"))
    links.append(NavLink(label="Log Cleanup", path="/cleanup"))
    if session is None:
        links.append(NavLink(label="Log in", path=LOGIN_PATH))
        links.append(NavLink(label="Sign up", path="/signup"))
        return NavigationResponse(authenticated=False, links=links)
    return NavigationResponse(
        authenticated=True, display_name=session.display_name, links=links
    )


@router.get("/")
def home():
    return {
        "title": HOME_TITLE,
        "blurb": HOME_BLURB,
        "links": [
            {"label": "Get Started", "path": "/signup"},
            {"label": "See Leaderboard", "path": "/leaderboard"},
        ],
    }


@router.get("/nav", response_model=NavigationResponse)
def nav(session: Optional[SessionContext] = Depends(get_current_session)):
    return navigation(session)


@router.get("/login")
def login_page():
    return {
        "title": "Log in",
        "action": f"{get_settings().api_prefix}/auth/login",
        "fields": [
            _field("email", "Email", "email"),
            _field("password", "Password", "password"),
        ],
        "links": [{"label": "Sign up", "path": "/signup"}],
    }


@router.get("/signup")
def signup_page():
    return {
        "title": "Sign up",
        "action": f"{get_settings().api_prefix}/auth/signup",
        "fields": [
            _field("name", "Full name"),
            _field("email", "Email", "email"),
            _field("password", "Password", "password"),
            _field(
                "organization_name",
                "(Optional) Organization name - create org account",
                required=False,
            ),
        ],
        "links": [{"label": "Log in", "path": LOGIN_PATH}],
    }


@router.get("/dashboard")
def dashboard(
    session: Optional[SessionContext] = Depends(get_current_session),
    store: DocumentStore = Depends(get_document_store),
):
    if session is None:
        return _to_login()
    docs = recent_cleanups(store, session.uid, get_settings().recent_cleanups_limit)
    return {
        "title": "Dashboard",
        "display_name": session.display_name,
        "points": (session.profile or {}).get("points") or 0,
        "loading": session.loading,
        "recent_cleanups": [cleanup_item(doc).model_dump(mode="json") for doc in docs],
        "links": [{"label": "Log a cleanup", "path": "/cleanup"}],
    }


@router.get("/cleanup")
def cleanup_page(session: Optional[SessionContext] = Depends(get_current_session)):
    if session is None:
        return _to_login()
    return {
        "title": "Log a cleanup",
        "action": f"{get_settings().api_prefix}/cleanups",
        "fields": [
            _field("description", "What did you clean?", "textarea"),
            _field("location", "Location (address or park)"),
            _field(
                "points_earned",
                "Points",
                "number",
                min=1,
                default=get_settings().default_cleanup_points,
            ),
            _field("photo", "Photo", "file", accept="image/*", required=False),
        ],
    }


@router.get("/admin")
def admin_page(session: Optional[SessionContext] = Depends(get_current_session)):
    if session is None:
        return _to_login()
    if not can_author_challenges(session):
        logger.warning("Refused admin page for %s (role=%s)", session.uid, session.role)
        return JSONResponse(status_code=403, content={"detail": ORG_ONLY_REFUSAL})
    return {
        "title": "Admin - Create Challenge",
        "action": f"{get_settings().api_prefix}/challenges",
        "organization_id": session.organization_id,
        "form": ChallengeRequest().model_dump(mode="json"),
    }


@router.get("/leaderboard")
def leaderboard_page(store: DocumentStore = Depends(get_document_store)):
    board = leaderboard_response(store)
    return {"title": "Leaderboard", **board.model_dump(mode="json")}
