"""
Points ledger: applies a cleanup's points to the user and their organization.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from shared.firebase_constants import ORGANIZATIONS_COLLECTION, USERS_COLLECTION
from trashtag.store import DocumentStore

logger = logging.getLogger(__name__)


@dataclass
class LedgerResult:
    user_points: int
    organization_total_points: Optional[int] = None


def apply_points(
    store: DocumentStore,
    user_id: str,
    organization_id: Optional[str],
    delta: int,
) -> LedgerResult:
    """
    Add delta to users/{user_id}.points and, when organization_id is set, to
    organizations/{organization_id}.totalPoints.

    Each total is read and then written back in a separate call; there is no
    transaction, so concurrent submissions can overwrite each other's
    increment. update() raises DocumentNotFoundError for a missing document.
    """
    user = store.get(USERS_COLLECTION, user_id) or {}
    user_points = (user.get("points") or 0) + delta
    store.update(USERS_COLLECTION, user_id, {"points": user_points})
    logger.info("Ledger: %s +%d -> %d points", user_id, delta, user_points)

    organization_total = None
    if organization_id:
        organization = store.get(ORGANIZATIONS_COLLECTION, organization_id) or {}
        organization_total = (organization.get("totalPoints") or 0) + delta
        store.update(
            ORGANIZATIONS_COLLECTION, organization_id, {"totalPoints": organization_total}
        )
        logger.info(
            "Ledger: %s +%d -> %d total points",
            organization_id,
            delta,
            organization_total,
        )

    return LedgerResult(user_points=user_points, organization_total_points=organization_total)
