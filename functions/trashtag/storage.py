"""
Blob storage abstraction for cleanup photos: S3-compatible, Firebase Storage
and in-memory testing.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional, Protocol
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from google.api_core import exceptions as google_exceptions

from trashtag.store import StoreError

logger = logging.getLogger(__name__)

# Seven days is the longest expiry S3 accepts for a presigned URL.
MAX_PRESIGN_SECONDS = 7 * 24 * 3600

FIREBASE_TOKEN_METADATA_KEY = "firebaseStorageDownloadTokens"


class BlobStoreError(StoreError):
    """Raised when an upload or URL lookup fails."""


class BlobStore(Protocol):
    """Defines the operations the service needs from object storage."""

    def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> None:
        ...

    def get_download_url(self, path: str) -> str:
        ...


@dataclass
class InMemoryBlobStore:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict = None
    content_types: dict = None

    def __post_init__(self):
        if self.stored_objects is None:
            self.stored_objects = {}
        if self.content_types is None:
            self.content_types = {}

    def reset(self) -> None:
        self.stored_objects.clear()
        self.content_types.clear()

    def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> None:
        self.stored_objects[path] = bytes(data)
        self.content_types[path] = content_type or "application/octet-stream"

    def get_download_url(self, path: str) -> str:
        if path not in self.stored_objects:
            raise BlobStoreError(f"No object at {path}")
        return f"{self.base_url}/{quote(path)}"

    def get_bytes(self, path: str) -> bytes:
        stored = self.stored_objects.get(path)
        if stored is None:
            raise FileNotFoundError(path)
        return stored


@dataclass
class S3BlobStore:
    """
    S3-compatible storage client (AWS, Tencent COS, MinIO).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: Optional[str] = None

    def __post_init__(self):
        # Use virtual-hosted style addressing to satisfy COS requirements.
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> None:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType=content_type or "application/octet-stream",
            )
        except (BotoCoreError, ClientError) as exc:
            logger.warning("S3 upload to %s failed: %s", path, exc)
            raise BlobStoreError(str(exc)) from exc

    def get_download_url(self, path: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{quote(path)}"
        try:
            return self._client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.bucket, "Key": path},
                ExpiresIn=MAX_PRESIGN_SECONDS,
            )
        except (BotoCoreError, ClientError) as exc:
            raise BlobStoreError(str(exc)) from exc


@dataclass
class FirebaseBlobStore:
    """
    Firebase Storage client. Download URLs carry a download token, matching
    what the Firebase client SDK's getDownloadURL returns.
    """

    bucket: Any  # google.cloud.storage.Bucket, e.g. firebase_admin.storage.bucket()

    def upload(self, path: str, data: bytes, content_type: Optional[str] = None) -> None:
        blob = self.bucket.blob(path)
        blob.metadata = {FIREBASE_TOKEN_METADATA_KEY: uuid.uuid4().hex}
        try:
            blob.upload_from_string(
                data, content_type=content_type or "application/octet-stream"
            )
        except google_exceptions.GoogleAPICallError as exc:
            logger.warning("Firebase Storage upload to %s failed: %s", path, exc)
            raise BlobStoreError(str(exc)) from exc

    def get_download_url(self, path: str) -> str:
        try:
            blob = self.bucket.get_blob(path)
            if blob is None:
                raise BlobStoreError(f"No object at {path}")
            tokens = (blob.metadata or {}).get(FIREBASE_TOKEN_METADATA_KEY)
            if not tokens:
                tokens = uuid.uuid4().hex
                blob.metadata = {**(blob.metadata or {}), FIREBASE_TOKEN_METADATA_KEY: tokens}
                blob.patch()
        except google_exceptions.GoogleAPICallError as exc:
            raise BlobStoreError(str(exc)) from exc
        token = tokens.split(",")[0]
        return (
            f"https://firebasestorage.googleapis.com/v0/b/{self.bucket.name}/o/"
            f"{quote(path, safe='')}?alt=media&token={token}"
        )
