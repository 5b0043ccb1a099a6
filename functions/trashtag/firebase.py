"""
Lazily initialised firebase_admin app shared by the Firebase-backed clients.
"""

from __future__ import annotations

import logging
from functools import lru_cache

import firebase_admin
from firebase_admin import credentials

from trashtag.config import get_settings

logger = logging.getLogger(__name__)

APP_NAME = "trashtag"


@lru_cache(maxsize=1)
def get_firebase_app() -> firebase_admin.App:
    settings = get_settings()
    options = {}
    if settings.firebase_project_id:
        options["projectId"] = settings.firebase_project_id
    if settings.firebase_storage_bucket:
        options["storageBucket"] = settings.firebase_storage_bucket

    # Without an explicit key file, firebase_admin falls back to ADC.
    credential = (
        credentials.Certificate(settings.firebase_credentials_path)
        if settings.firebase_credentials_path
        else None
    )
    logger.info("Initialising firebase app for project %s", settings.firebase_project_id)
    return firebase_admin.initialize_app(credential, options or None, name=APP_NAME)
