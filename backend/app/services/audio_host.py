"""Catbox audio upload."""

import logging

import httpx

from app.config import Settings, get_settings
from app.services.image_host import UploadError

logger = logging.getLogger(__name__)


class CatboxUploader:
    """Uploads voice messages to Catbox, which answers with the bare URL."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client

    async def upload(
        self,
        content: bytes,
        filename: str = "voice.webm",
        content_type: str = "audio/webm",
    ) -> str:
        data = {"reqtype": "fileupload"}
        if self.settings.catbox_userhash:
            data["userhash"] = self.settings.catbox_userhash
        files = {"fileToUpload": (filename, content, content_type)}

        try:
            if self._client is not None:
                response = await self._client.post(
                    self.settings.catbox_upload_url, data=data, files=files
                )
            else:
                async with httpx.AsyncClient(timeout=120.0) as client:
                    response = await client.post(
                        self.settings.catbox_upload_url, data=data, files=files
                    )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Catbox upload error: %s", exc)
            raise UploadError("Failed to upload audio to Catbox") from exc

        url = response.text.strip()
        if not url.startswith("http"):
            logger.error("Catbox returned an unexpected body: %.100s", url)
            raise UploadError("Failed to upload audio to Catbox")
        return url


def get_audio_uploader() -> CatboxUploader:
    return CatboxUploader()
