"""
Explicit signup: creates the identity, its profile and (optionally) an
organization.
"""

from __future__ import annotations

import logging
from typing import Optional

from shared.firebase_constants import (
    ORGANIZATION_ID_PREFIX,
    ORGANIZATIONS_COLLECTION,
    USERS_COLLECTION,
)
from shared.types import Organization, Role, UserProfile, to_document
from trashtag.identity import IdentityClient
from trashtag.store import DocumentStore

logger = logging.getLogger(__name__)


def organization_id_for(uid: str) -> str:
    return f"{ORGANIZATION_ID_PREFIX}{uid}"


def sign_up(
    identity: IdentityClient,
    store: DocumentStore,
    email: str,
    password: str,
    display_name: Optional[str] = None,
    organization_name: Optional[str] = None,
) -> dict:
    """
    Create an account and return the stored profile document.

    Auth and store failures propagate unchanged. The writes are not atomic:
    if the organization write fails, the profile already references it.
    """
    organization_name = (organization_name or "").strip() or None
    created = identity.create_user(email, password)
    uid = created.uid

    profile = UserProfile(
        uid=uid,
        name=(display_name or "").strip() or email.split("@")[0],
        email=email,
        role=Role.ORG.value if organization_name else Role.MEMBER.value,
        points=0,
        organization_id=organization_id_for(uid) if organization_name else None,
    )
    document = to_document(profile)
    store.set(USERS_COLLECTION, uid, document)

    if organization_name:
        organization = Organization(
            id=profile.organization_id,
            name=organization_name,
            members=[uid],
            total_points=0,
        )
        store.set(ORGANIZATIONS_COLLECTION, organization.id, to_document(organization))
        logger.info("Created organization %s for %s", organization.id, uid)

    logger.info("Provisioned %s profile for %s", profile.role, uid)
    return document
