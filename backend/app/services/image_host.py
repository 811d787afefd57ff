"""ImgBB image upload with round-robin API-key rotation."""

import itertools
import logging
import threading

import httpx

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)


class UploadError(Exception):
    """Raised when an external media host rejects or fails an upload."""


class NotConfiguredError(UploadError):
    """Raised when the upload target has no credentials configured."""


# Process-wide rotation index, shared by every uploader instance.
_key_counter = itertools.count()
_key_lock = threading.Lock()


def _next_key_index(n_keys: int) -> int:
    with _key_lock:
        return next(_key_counter) % n_keys


def reset_key_rotation() -> None:
    global _key_counter
    with _key_lock:
        _key_counter = itertools.count()


class ImgBBUploader:
    """Uploads images to ImgBB and returns the direct image URL.

    Every upload starts at the next key in the rotation; on failure the
    following key is tried, so each configured key gets at most one attempt
    per upload.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client

    async def upload(self, content: bytes, filename: str = "image.webp") -> str:
        keys = self.settings.imgbb_keys
        if not keys:
            raise NotConfiguredError(
                "لم يتم تكوين مفاتيح ImgBB API. يرجى التحقق من متغيرات البيئة."
            )

        last_error: UploadError | None = None
        for _ in range(len(keys)):
            index = _next_key_index(len(keys))
            try:
                return await self._upload_with_key(keys[index], content, filename)
            except (UploadError, httpx.HTTPError) as exc:
                logger.warning("ImgBB key #%d failed: %s", index + 1, exc)
                last_error = exc if isinstance(exc, UploadError) else UploadError(str(exc))

        raise last_error or UploadError("فشل رفع الصورة إلى ImgBB")

    async def _upload_with_key(self, key: str, content: bytes, filename: str) -> str:
        files = {"image": (filename, content)}
        if self._client is not None:
            response = await self._client.post(
                self.settings.imgbb_upload_url, params={"key": key}, files=files
            )
        else:
            async with httpx.AsyncClient(timeout=60.0) as client:
                response = await client.post(
                    self.settings.imgbb_upload_url, params={"key": key}, files=files
                )

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400:
            message = (data.get("error") or {}).get("message") or response.reason_phrase
            raise UploadError(f"ImgBB API error: {message}")

        url = (data.get("data") or {}).get("url")
        if data.get("success") and url:
            logger.info("Image uploaded to ImgBB: %s", url)
            return url

        raise UploadError((data.get("error") or {}).get("message") or "فشل رفع الصورة")


def get_image_uploader() -> ImgBBUploader:
    return ImgBBUploader()
