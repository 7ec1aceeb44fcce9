"""Local media volume: persists generated bytes and hands out public URLs."""

from __future__ import annotations

import asyncio
import logging
import os
import uuid

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "video/mp4": "mp4",
}


class MediaStore:
    """Writes files under ``volume`` and serves them below ``base_url``.

    ``main.py`` mounts the volume at ``/media`` with StaticFiles, so the
    returned URLs resolve against this server.
    """

    def __init__(self, volume: str, base_url: str = "/media") -> None:
        self.volume = volume
        self.base_url = base_url.rstrip("/")

    async def save(self, data: bytes, *, mime_type: str = "image/png", folder: str = "images") -> str:
        """Save ``data`` and return its public URL."""
        ext = _EXTENSIONS.get(mime_type, "bin")
        relative = f"{folder}/{uuid.uuid4().hex}.{ext}"
        await asyncio.to_thread(self._write, relative, data)
        logger.debug("Saved %d bytes to media volume: %s", len(data), relative)
        return self.url_for(relative)

    def url_for(self, relative_path: str) -> str:
        return f"{self.base_url}/{relative_path.lstrip('/')}"

    def _write(self, relative_path: str, data: bytes) -> None:
        path = os.path.join(self.volume, relative_path)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)
