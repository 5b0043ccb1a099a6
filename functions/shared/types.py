# Copyright 2025 The TrashTag Authors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from dacite import Config, from_dict

from shared.json_utils import convert_keys


class Role(str, Enum):
    MEMBER = "member"
    ORG = "org"


def to_document(record: Any) -> dict:
    """Converts a dataclass to a camelCase document payload."""
    return convert_keys(asdict(record), "snake_to_camel")


def _from_document(data_class, data: dict):
    return from_dict(
        data_class=data_class,
        data=convert_keys(data or {}, "camel_to_snake"),
        config=Config(check_types=False),
    )


@dataclass
class UserProfile:
    """The stored record describing a user's role, points and organization."""

    name: str = ""
    email: str = ""
    points: int = 0
    role: str = Role.MEMBER.value
    uid: Optional[str] = None
    organization_id: Optional[str] = None

    @property
    def is_org(self) -> bool:
        return self.role == Role.ORG.value

    @classmethod
    def from_document(cls, data: dict) -> "UserProfile":
        return _from_document(cls, data)


@dataclass
class Organization:
    id: str
    name: str
    members: List[str] = field(default_factory=list)
    total_points: int = 0

    @classmethod
    def from_document(cls, data: dict) -> "Organization":
        return _from_document(cls, data)


@dataclass
class CleanupRecord:
    """An immutable log entry describing one reported cleanup."""

    user_id: str
    description: str
    location: str
    points_earned: int
    organization_id: Optional[str] = None
    photo_url: Optional[str] = None
    # Firestore timestamp (written as SERVER_TIMESTAMP, set after to_document()).
    timestamp: Optional[datetime] = None

    @classmethod
    def from_document(cls, data: dict) -> "CleanupRecord":
        return _from_document(cls, data)


@dataclass
class Challenge:
    """An organization-authored campaign; participants are never populated."""

    org_id: str
    title: str
    description: str
    reward: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    participants: List[str] = field(default_factory=list)
    # Firestore timestamp (written as SERVER_TIMESTAMP, set after to_document()).
    created_at: Optional[datetime] = None
