"""Object storage for uploaded images: write bytes under a key, hand back a public URL."""
from __future__ import annotations

import asyncio
import logging
import re
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import httpx

from app.core.config import Settings
from app.core.errors import UploadFailure

log = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_.-]")
_MAX_NAME_LENGTH = 200


def make_object_key(filename: Optional[str]) -> str:
    """每次呼叫都產生新 key：<uuid4>-<檔名>，同一檔案上傳兩次也不會撞。"""
    clean = _UNSAFE_CHARS.sub("_", (filename or "").strip())[-_MAX_NAME_LENGTH:] or "image"
    return f"{uuid.uuid4()}-{clean}"


class ObjectStorage(ABC):
    @abstractmethod
    async def upload(self, key: str, data: bytes, content_type: str) -> None:
        """Store `data` under `key`; raise UploadFailure on any backend error."""

    @abstractmethod
    def get_public_url(self, key: str) -> str:
        ...

    async def aclose(self) -> None:
        return None


class LocalObjectStorage(ObjectStorage):
    def __init__(self, base_dir: str, public_base_url: str, bucket: str = "analyzed_images") -> None:
        self.base = Path(base_dir)
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")

    def _path(self, key: str) -> Path:
        return self.base / self.bucket / key

    async def upload(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            # 不覆寫既有物件
            with open(path, "xb") as f:
                f.write(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            raise UploadFailure(f"Failed to upload image: {exc}") from exc
        log.info("Stored %s (%d bytes, %s)", key, len(data), content_type)

    def get_public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{self.bucket}/{key}"


class SupabaseObjectStorage(ObjectStorage):
    """Supabase Storage REST API（bucket 需設為 public 才能直接給模型讀）。"""

    def __init__(
        self,
        url: str,
        service_key: str,
        bucket: str,
        *,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        self.url = url.rstrip("/")
        self.bucket = bucket
        self._http = http or httpx.AsyncClient(timeout=timeout)
        self._headers = {
            "Authorization": f"Bearer {service_key}",
            "apikey": service_key,
        }

    async def upload(self, key: str, data: bytes, content_type: str) -> None:
        endpoint = f"{self.url}/storage/v1/object/{self.bucket}/{key}"
        try:
            resp = await self._http.post(
                endpoint,
                content=data,
                headers={**self._headers, "Content-Type": content_type or "application/octet-stream"},
            )
        except httpx.HTTPError as exc:
            raise UploadFailure(f"Failed to upload image: {exc}") from exc

        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = None
            message = (body.get("message") if isinstance(body, dict) else None) or resp.text
            raise UploadFailure(f"Failed to upload image: {message}", details={"status": resp.status_code})
        log.info("Uploaded %s to bucket %s", key, self.bucket)

    def get_public_url(self, key: str) -> str:
        return f"{self.url}/storage/v1/object/public/{self.bucket}/{key}"

    async def aclose(self) -> None:
        await self._http.aclose()


def build_storage(settings: Settings) -> ObjectStorage:
    if settings.STORAGE_BACKEND == "supabase":
        if not settings.STORAGE_URL or not settings.STORAGE_SERVICE_KEY:
            raise RuntimeError("STORAGE_URL and STORAGE_SERVICE_KEY are required for the supabase backend")
        return SupabaseObjectStorage(settings.STORAGE_URL, settings.STORAGE_SERVICE_KEY, settings.STORAGE_BUCKET)
    return LocalObjectStorage(settings.STORAGE_LOCAL_DIR, settings.PUBLIC_BASE_URL, settings.STORAGE_BUCKET)
