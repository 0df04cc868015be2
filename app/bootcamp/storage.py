"""
Avatar storage. Local disk for development and tests, S3-compatible object
storage (DigitalOcean Spaces, AWS) in production.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

AVATAR_CONTENT_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


class StorageError(RuntimeError):
    pass


class Storage:
    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        raise NotImplementedError

    def open(self, key: str) -> BinaryIO:
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class LocalStorage(Storage):
    root: Path

    def _resolve(self, key: str) -> Path:
        rel = Path(key.replace("\\", "/").lstrip("/"))
        if ".." in rel.parts:
            raise StorageError(f"Invalid storage key: {key}")
        return self.root / rel

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        path = self._resolve(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    def open(self, key: str) -> BinaryIO:
        return self._resolve(key).open("rb")

    def exists(self, key: str) -> bool:
        return self._resolve(key).is_file()


@dataclass(frozen=True)
class S3Storage(Storage):
    endpoint: str
    region: str
    bucket: str
    access_key_id: str
    secret_access_key: str

    def _client(self):
        import boto3

        return boto3.client(
            "s3",
            endpoint_url=f"https://{self.endpoint}" if self.endpoint else None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
        )

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        kwargs = {"ContentType": content_type} if content_type else {}
        self._client().put_object(Bucket=self.bucket, Key=key, Body=data, **kwargs)

    def open(self, key: str) -> BinaryIO:
        return self._client().get_object(Bucket=self.bucket, Key=key)["Body"]  # type: ignore[return-value]

    def exists(self, key: str) -> bool:
        from botocore.exceptions import ClientError

        try:
            self._client().head_object(Bucket=self.bucket, Key=key)
        except ClientError:
            return False
        return True


def storage_from_config(config) -> Storage:
    def setting(key: str, default: str = "") -> str:
        return (config.get(key) or default).strip()

    if setting("STORAGE_BACKEND", "local").lower() == "s3":
        return S3Storage(
            endpoint=setting("S3_ENDPOINT"),
            region=setting("S3_REGION", "nyc3"),
            bucket=setting("S3_BUCKET"),
            access_key_id=setting("S3_ACCESS_KEY_ID"),
            secret_access_key=setting("S3_SECRET_ACCESS_KEY"),
        )
    root = setting("STORAGE_ROOT")
    return LocalStorage(root=Path(root) if root else Path(os.getcwd()) / "storage")


def build_avatar_key(user_id: int, filename: str) -> str:
    """One key per user and extension; a re-upload overwrites."""
    ext = Path(secure_filename(filename)).suffix.lower()
    if ext not in AVATAR_CONTENT_TYPES:
        raise StorageError(f"Unsupported avatar type: {ext or '(none)'}")
    return f"avatars/{user_id}/avatar{ext}"


def avatar_content_type(key: str) -> str:
    return AVATAR_CONTENT_TYPES.get(Path(key).suffix.lower(), "application/octet-stream")


@dataclass(frozen=True)
class AvatarStore:
    backend: Storage

    def save(self, user_id: int, filename: str, data: bytes) -> str:
        key = build_avatar_key(user_id, filename)
        self.backend.put_bytes(key, data, content_type=avatar_content_type(key))
        return key

    def load(self, key: str | None) -> BinaryIO | None:
        """The stored image, or None when the user has none or it has gone missing."""
        if not key:
            return None
        if not self.backend.exists(key):
            logger.warning("Avatar missing from storage: key=%s", key)
            return None
        return self.backend.open(key)


def avatar_store(config) -> AvatarStore:
    return AvatarStore(storage_from_config(config))
