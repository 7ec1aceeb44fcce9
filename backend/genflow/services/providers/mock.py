"""Offline providers used when USE_MOCK_API is on (local dev, demos, tests)."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from genflow.models.generation_job import JobStatus
from genflow.services.providers.base import (
    ImageGeneration,
    ImageProvider,
    TaskHandle,
    TaskStatus,
    VideoProvider,
)

logger = logging.getLogger(__name__)

# 1x1 PNG
_PLACEHOLDER_PNG = (
    b'\x89PNG\r\n\x1a\n'
    b'\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x02'
    b'\x00\x00\x00\x90wS\xde\x00\x00\x00\x0cIDATx'
    b'\x9cc\xf8\x0f\x00\x00\x01\x01\x00\x05\x18\xd8N'
    b'\x00\x00\x00\x00IEND\xaeB`\x82'
)


class MockImageProvider(ImageProvider):
    def __init__(self, provider_id: str, *, model: str = "mock") -> None:
        self.provider_id = provider_id
        self.model = model
        self.api_key = ""
        self.base_url = ""

    async def generate_image(self, prompt: str, config: dict[str, Any]) -> ImageGeneration:
        logger.info("%s (mock): image for prompt=%.60s", self.provider_id, prompt)
        return ImageGeneration(image_bytes=_PLACEHOLDER_PNG, model=f"mock-{self.model}")

    async def aclose(self) -> None:
        return None


class MockVideoProvider(VideoProvider):
    """Advances each task by ``step`` percent per status read.

    Progress is kept in memory, so tasks only survive as long as the
    process does.
    """

    def __init__(
        self,
        provider_id: str,
        *,
        step: int = 34,
        media_base_url: str = "/media",
    ) -> None:
        self.provider_id = provider_id
        self.api_key = ""
        self.base_url = ""
        self.step = step
        self.media_base_url = media_base_url.rstrip("/")
        self._progress: dict[str, int] = {}

    async def create_task(self, prompt: str, config: dict[str, Any]) -> TaskHandle:
        task_id = f"mock-{self.provider_id}-{uuid.uuid4().hex[:12]}"
        self._progress[task_id] = 0
        logger.info("%s (mock): created task %s", self.provider_id, task_id)
        return TaskHandle(external_task_id=task_id, eta_seconds=30)

    async def get_task_status(self, external_task_id: str) -> TaskStatus:
        progress = min(100, self._progress.get(external_task_id, 0) + self.step)
        self._progress[external_task_id] = progress

        if progress >= 100:
            return TaskStatus(
                status=JobStatus.COMPLETED,
                raw_status="completed",
                progress=100,
                eta_seconds=0,
                media_url=f"{self.media_base_url}/mock/{external_task_id}.mp4",
                thumbnail_url=f"{self.media_base_url}/mock/{external_task_id}.png",
            )
        return TaskStatus(
            status=JobStatus.PROCESSING,
            raw_status="processing",
            progress=progress,
            eta_seconds=max(0, 30 * (100 - progress) // 100),
        )

    async def aclose(self) -> None:
        return None
