"""Pika video generation provider.

Faster and cheaper than Runway. Create via ``/videos/generate``, poll via
``/videos/status/{id}``.
"""

from __future__ import annotations

import logging
from typing import Any

from genflow.models.generation_job import JobStatus
from genflow.services.providers.base import (
    ProviderError,
    TaskHandle,
    TaskStatus,
    VideoProvider,
    raise_for_provider_status,
)

logger = logging.getLogger(__name__)

_PIKA_STATUS = {
    "queued": JobStatus.QUEUED,
    "pending": JobStatus.QUEUED,
    "processing": JobStatus.PROCESSING,
    "running": JobStatus.PROCESSING,
    "completed": JobStatus.COMPLETED,
    "success": JobStatus.COMPLETED,
    "done": JobStatus.COMPLETED,
    "failed": JobStatus.FAILED,
    "error": JobStatus.FAILED,
}


class PikaVideoProvider(VideoProvider):
    provider_id = "pika"
    status_map = _PIKA_STATUS

    def __init__(self, *, model: str = "pika-1.0", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.model = model

    async def create_task(self, prompt: str, config: dict[str, Any]) -> TaskHandle:
        self._require_key()

        body: dict[str, Any] = {
            "prompt": prompt,
            "model": self.model,
            "duration": int(config.get("duration", 3)),
            "aspect_ratio": config.get("aspect_ratio", "9:16"),
        }
        if config.get("style"):
            body["style"] = config["style"]
        if config.get("negative_prompt"):
            body["negative_prompt"] = config["negative_prompt"]

        resp = await self._client.post(
            f"{self.base_url}/videos/generate", json=body, headers=self._headers()
        )
        raise_for_provider_status(resp, self.provider_id)
        data = resp.json()

        task_id = data.get("task_id") or data.get("id")
        if not task_id:
            raise ProviderError(
                "Pika task creation failed: no task id returned",
                provider=self.provider_id,
            )

        logger.info("Pika task created: %s", task_id)
        eta = data.get("eta_seconds")
        return TaskHandle(
            external_task_id=str(task_id),
            status=self.normalize_status(data.get("status")),
            eta_seconds=int(eta) if isinstance(eta, (int, float)) else None,
        )

    async def get_task_status(self, external_task_id: str) -> TaskStatus:
        self._require_key()

        resp = await self._client.get(
            f"{self.base_url}/videos/status/{external_task_id}",
            headers=self._headers(),
        )
        raise_for_provider_status(resp, self.provider_id)
        data = resp.json()

        progress = data.get("progress")
        eta = data.get("eta_seconds")
        return TaskStatus(
            status=self.normalize_status(data.get("status")),
            raw_status=data.get("status"),
            progress=int(progress) if isinstance(progress, (int, float)) else None,
            eta_seconds=int(eta) if isinstance(eta, (int, float)) else None,
            media_url=data.get("video_url") or data.get("url"),
            thumbnail_url=data.get("thumbnail_url"),
            error=data.get("error_message") or data.get("error"),
            raw=data,
        )
