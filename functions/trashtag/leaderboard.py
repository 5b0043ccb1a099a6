"""
Leaderboard queries: top users by points and top organizations by totalPoints.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from shared.firebase_constants import ORGANIZATIONS_COLLECTION, USERS_COLLECTION
from shared.types import Organization, UserProfile
from trashtag.store import Document, DocumentStore, Query

DEFAULT_SIZE = 10


@dataclass
class LeaderboardUser:
    uid: str
    name: str
    points: int


@dataclass
class LeaderboardOrganization:
    id: str
    name: str
    total_points: int


@dataclass
class Leaderboard:
    users: list[LeaderboardUser] = field(default_factory=list)
    organizations: list[LeaderboardOrganization] = field(default_factory=list)


def top_users_query(size: int = DEFAULT_SIZE) -> Query:
    return Query(USERS_COLLECTION, order_by="points", descending=True, limit=size)


def top_organizations_query(size: int = DEFAULT_SIZE) -> Query:
    return Query(ORGANIZATIONS_COLLECTION, order_by="totalPoints", descending=True, limit=size)


def _user_entry(doc: Document) -> LeaderboardUser:
    profile = UserProfile.from_document(doc.data)
    return LeaderboardUser(uid=profile.uid or doc.id, name=profile.name, points=profile.points)


def _organization_entry(doc: Document) -> LeaderboardOrganization:
    organization = Organization.from_document({"id": doc.id, "name": "", **doc.data})
    return LeaderboardOrganization(
        id=organization.id,
        name=organization.name,
        total_points=organization.total_points,
    )


def load_leaderboard(store: DocumentStore, size: int = DEFAULT_SIZE) -> Leaderboard:
    """One-off read of both rankings; not kept live."""
    users = [_user_entry(doc) for doc in store.query(top_users_query(size))]
    organizations = [
        _organization_entry(doc) for doc in store.query(top_organizations_query(size))
    ]
    return Leaderboard(users=users, organizations=organizations)
