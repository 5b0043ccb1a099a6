"""
Challenge authoring, restricted to organization accounts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional

from shared.firebase_constants import CHALLENGES_COLLECTION
from shared.types import Challenge, Role, to_document
from trashtag.session import SessionContext
from trashtag.store import SERVER_TIMESTAMP, DocumentStore

logger = logging.getLogger(__name__)

ORG_ONLY_REFUSAL = "Only organization accounts can access this page."
CREATED_MESSAGE = "Challenge created!"


@dataclass
class ChallengeDraft:
    title: str = ""
    description: str = ""
    reward: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None


@dataclass
class AuthoringOutcome:
    """Either the new challenge id or the refusal shown to the caller."""

    challenge_id: Optional[str] = None
    refusal: Optional[str] = None

    @property
    def created(self) -> bool:
        return self.challenge_id is not None


def can_author_challenges(session: Optional[SessionContext]) -> bool:
    return session is not None and session.role == Role.ORG.value


def _start_of_day(value: Optional[date]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def author_challenge(
    session: Optional[SessionContext],
    draft: ChallengeDraft,
    *,
    store: DocumentStore,
) -> AuthoringOutcome:
    if not can_author_challenges(session):
        logger.warning(
            "Refused challenge authoring for %s (role=%s)",
            session.uid if session else None,
            session.role if session else None,
        )
        return AuthoringOutcome(refusal=ORG_ONLY_REFUSAL)

    # Dates are stored as given; an end before the start is accepted.
    challenge = Challenge(
        org_id=session.organization_id,
        title=draft.title,
        description=draft.description,
        reward=draft.reward,
        start_date=_start_of_day(draft.start_date),
        end_date=_start_of_day(draft.end_date),
        participants=[],
    )
    document = to_document(challenge)
    document["createdAt"] = SERVER_TIMESTAMP
    challenge_id = store.add(CHALLENGES_COLLECTION, document)
    logger.info("Challenge %s created by %s", challenge_id, challenge.org_id)
    return AuthoringOutcome(challenge_id=challenge_id)
