"""
Audio Acquisition - resolves a narration track from a local path or a remote URL.
"""

import logging
import os
from typing import Optional
from urllib.parse import urlparse

import httpx

from app.config import get_settings

logger = logging.getLogger(__name__)


def extension_from_url(url: str, default: str = ".mp3") -> str:
    """Infer a file extension from the URL path, e.g. '/media/voice.wav' -> '.wav'."""
    try:
        path = urlparse(url).path
    except ValueError:
        return default
    ext = os.path.splitext(path)[1]
    return ext or default


class AudioAcquisitionService:
    """
    Resolve narration audio for a video job.

    - A local path is used as-is (existence is not checked here; a missing file
      surfaces as an encoder failure).
    - A URL is downloaded into the job workspace.
    - With neither, the job has no audio.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = get_settings()
        self._transport = transport

    async def resolve(
        self,
        workspace: str,
        audio_path: Optional[str] = None,
        audio_url: Optional[str] = None,
    ) -> Optional[str]:
        """
        Return a local audio file path, or None when the job has no narration.

        Raises:
            AudioDownloadError: If the URL responds with a non-success status
                or the transfer fails
        """
        if audio_path:
            return audio_path
        if not audio_url:
            return None

        output_path = os.path.join(
            workspace,
            "audio" + extension_from_url(audio_url, self.settings.default_audio_extension),
        )
        await self.download(audio_url, output_path)
        return output_path

    async def download(self, url: str, output_path: str) -> str:
        """Stream `url` into `output_path`."""
        logger.info(f"Downloading audio: {url}")

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.audio_download_timeout_seconds,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                async with client.stream("GET", url) as response:
                    if not response.is_success:
                        raise AudioDownloadError(
                            f"Audio download failed: HTTP {response.status_code}",
                            status_code=response.status_code,
                        )
                    with open(output_path, "wb") as f:
                        async for chunk in response.aiter_bytes():
                            f.write(chunk)
        except httpx.HTTPError as e:
            raise AudioDownloadError(f"Audio download failed: {e}") from e

        file_size = os.path.getsize(output_path)
        logger.info(f"Audio downloaded: {output_path} ({file_size / 1024:.1f} KB)")
        return output_path


class AudioDownloadError(Exception):
    """Exception raised when narration audio cannot be fetched."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
