"""
Pydantic schemas for the TrashTag API.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class SignUpRequest(BaseModel):
    email: str = Field(..., max_length=320)
    password: str = Field(..., max_length=4096)
    name: Optional[str] = Field(None, max_length=200)
    organization_name: Optional[str] = Field(None, max_length=200)


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=320)
    password: str = Field(..., max_length=4096)


class SessionResponse(BaseModel):
    token: Optional[str] = None
    uid: Optional[str] = None
    email: Optional[str] = None
    profile: Optional[dict] = None
    loading: bool = False


class LogoutResponse(BaseModel):
    status: Literal["ok"]


class CleanupResponse(BaseModel):
    cleanup_id: str
    photo_url: Optional[str] = None
    points: int
    organization_total_points: Optional[int] = None
    profile: Optional[dict] = None
    message: str


class CleanupItem(BaseModel):
    id: str
    description: str = ""
    location: str = ""
    photo_url: Optional[str] = None
    points_earned: int = 0
    organization_id: Optional[str] = None
    timestamp: Optional[datetime] = None


class RecentCleanupsResponse(BaseModel):
    cleanups: list[CleanupItem]


class ChallengeRequest(BaseModel):
    title: str = Field("", max_length=200)
    description: str = Field("", max_length=4000)
    reward: str = Field("", max_length=200)
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ChallengeResponse(BaseModel):
    challenge_id: str
    message: str
    form: ChallengeRequest


class LeaderboardUserItem(BaseModel):
    uid: str
    name: str
    points: int


class LeaderboardOrganizationItem(BaseModel):
    id: str
    name: str
    total_points: int


class LeaderboardResponse(BaseModel):
    users: list[LeaderboardUserItem]
    organizations: list[LeaderboardOrganizationItem]


class NavLink(BaseModel):
    label: str
    path: str


class NavigationResponse(BaseModel):
    authenticated: bool
    display_name: Optional[str] = None
    links: list[NavLink]
