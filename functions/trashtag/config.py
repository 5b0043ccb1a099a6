"""
Configuration and settings for the TrashTag service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # Development server (python -m trashtag)
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    # SQL document store (any SQLAlchemy URL)
    database_url: Optional[str] = Field(default=None)

    # Firebase (Auth, Firestore, Storage)
    firebase_project_id: Optional[str] = Field(default=None)
    firebase_credentials_path: Optional[str] = Field(default=None)
    firebase_web_api_key: Optional[str] = Field(default=None)
    firebase_storage_bucket: Optional[str] = Field(default=None)

    # S3-compatible blob storage for cleanup photos
    blob_bucket: Optional[str] = Field(default=None)
    blob_region: Optional[str] = Field(default=None)
    blob_endpoint: Optional[str] = Field(default=None)
    blob_public_base_url: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    # Sessions and views
    session_cookie_name: str = Field(default="trashtag_session")
    leaderboard_size: int = Field(default=10, ge=1)
    recent_cleanups_limit: int = Field(default=10, ge=1)
    default_cleanup_points: int = Field(default=10, ge=1)
    stream_keepalive_seconds: float = Field(default=15.0, gt=0)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
