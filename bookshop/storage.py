"""
Thumbnail storage backends.

Books keep a path (local backend) or public URL (Supabase backend) in
``Book.thumbnail``. Deleting is best-effort: a missing object or a backend
failure is logged and never aborts the request that triggered it.
"""

import logging
import re
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx

from bookshop.errors import ExternalServiceError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_THUMBNAIL_TYPES = {"image/png", "image/jpeg", "image/jpg"}
_EXTENSIONS = {"image/png": ".png", "image/jpeg": ".jpg", "image/jpg": ".jpg"}


@dataclass(frozen=True)
class ThumbnailUpload:
    content: bytes
    content_type: Optional[str]
    filename: Optional[str] = None


def validate_thumbnail_type(content_type: Optional[str]) -> str:
    if content_type not in ALLOWED_THUMBNAIL_TYPES:
        raise ValidationError("Invalid thumbnail type. Allowed: PNG, JPG, JPEG")
    return content_type


def _safe_filename(filename: Optional[str], content_type: str) -> str:
    stem = Path(filename or "").name
    stem = re.sub(r"[^A-Za-z0-9._-]", "_", stem).strip("._")
    if not stem:
        stem = f"thumbnail{_EXTENSIONS[content_type]}"
    return stem


class ThumbnailStorage:
    def store(self, content: bytes, content_type: str, filename: Optional[str] = None) -> str:
        raise NotImplementedError

    def delete(self, path: Optional[str]) -> None:
        raise NotImplementedError


class LocalThumbnailStorage(ThumbnailStorage):
    def __init__(self, upload_dir: str, url_prefix: str = "/uploads"):
        self.upload_dir = Path(upload_dir)
        self.url_prefix = url_prefix.rstrip("/")

    def store(self, content: bytes, content_type: str, filename: Optional[str] = None) -> str:
        validate_thumbnail_type(content_type)
        name = f"{int(time.time() * 1000)}_{uuid.uuid4().hex}_{_safe_filename(filename, content_type)}"
        target = self.upload_dir / name

        self.upload_dir.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        return f"{self.url_prefix}/{name}"

    def _resolve(self, path: str) -> Optional[Path]:
        prefix = f"{self.url_prefix}/"
        if not path.startswith(prefix):
            return None
        name = Path(path[len(prefix):]).name
        return self.upload_dir / name if name else None

    def delete(self, path: Optional[str]) -> None:
        if not path:
            return
        target = self._resolve(path)
        if target is None:
            logger.warning("Thumbnail %s is not managed by local storage", path)
            return
        try:
            target.unlink()
        except FileNotFoundError:
            logger.warning("Thumbnail not found, nothing to delete: %s", path)
        except OSError as exc:
            logger.warning("Cannot delete thumbnail %s: %s", path, exc)


class SupabaseThumbnailStorage(ThumbnailStorage):
    def __init__(
        self,
        url: str,
        service_role_key: str,
        bucket: str,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url.rstrip("/")
        self.service_role_key = service_role_key
        self.bucket = bucket
        self._transport = transport

    def _headers(self, content_type: str | None = None) -> dict:
        headers = {
            "apikey": self.service_role_key,
            "Authorization": f"Bearer {self.service_role_key}",
            "x-upsert": "true",
        }
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    def _public_url(self, object_path: str) -> str:
        return f"{self.url}/storage/v1/object/public/{self.bucket}/{object_path}"

    def _object_path(self, image_url: str | None) -> Optional[str]:
        if not image_url:
            return None
        marker = f"/storage/v1/object/public/{self.bucket}/"
        if marker not in image_url:
            return None
        object_path = image_url.split(marker, 1)[1].strip()
        return object_path or None

    def store(self, content: bytes, content_type: str, filename: Optional[str] = None) -> str:
        validate_thumbnail_type(content_type)
        object_path = f"books/{uuid.uuid4().hex}{_EXTENSIONS[content_type]}"
        upload_url = f"{self.url}/storage/v1/object/{self.bucket}/{object_path}"

        with httpx.Client(transport=self._transport) as client:
            try:
                response = client.post(
                    upload_url,
                    content=content,
                    headers=self._headers(content_type=content_type),
                    timeout=30,
                )
            except httpx.RequestError as exc:
                logger.error(f"Error communicating with Supabase: {exc}")
                raise ExternalServiceError("Storage service unavailable") from exc

        if response.status_code not in (200, 201):
            logger.error(f"Failed to upload image to Supabase: {response.text}")
            raise ExternalServiceError("Failed to upload image to storage.")

        return self._public_url(object_path)

    def delete(self, path: Optional[str]) -> None:
        object_path = self._object_path(path)
        if not object_path:
            return

        delete_url = f"{self.url}/storage/v1/object/{self.bucket}/{object_path}"
        with httpx.Client(transport=self._transport) as client:
            try:
                response = client.delete(delete_url, headers=self._headers(), timeout=20)
            except httpx.RequestError as exc:
                logger.warning(f"Error communicating with Supabase: {exc}")
                return

        # 404: the object may already be gone
        if response.status_code not in (200, 204, 404):
            logger.warning(f"Failed to delete image from Supabase: {response.text}")


def build_thumbnail_storage(settings) -> ThumbnailStorage:
    if settings.STORAGE_BACKEND == "supabase":
        if not (settings.SUPABASE_URL and settings.SUPABASE_SERVICE_ROLE_KEY and settings.SUPABASE_BUCKET):
            raise RuntimeError(
                "Supabase storage is not configured. Set SUPABASE_URL, "
                "SUPABASE_SERVICE_ROLE_KEY, and SUPABASE_BUCKET."
            )
        return SupabaseThumbnailStorage(
            settings.SUPABASE_URL,
            settings.SUPABASE_SERVICE_ROLE_KEY,
            settings.SUPABASE_BUCKET,
        )
    return LocalThumbnailStorage(settings.UPLOAD_DIR, settings.UPLOAD_URL_PREFIX)
