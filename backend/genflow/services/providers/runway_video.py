"""Runway video generation provider.

Best quality, highest cost. Create a task, then poll ``/tasks/{id}``.
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

_RUNWAY_STATUS = {
    "queued": JobStatus.QUEUED,
    "pending": JobStatus.QUEUED,
    "running": JobStatus.PROCESSING,
    "processing": JobStatus.PROCESSING,
    "succeeded": JobStatus.COMPLETED,
    "completed": JobStatus.COMPLETED,
    "failed": JobStatus.FAILED,
    "cancelled": JobStatus.FAILED,
}


def _as_int(value: Any) -> int | None:
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return None


class RunwayVideoProvider(VideoProvider):
    provider_id = "runway"
    status_map = _RUNWAY_STATUS

    def __init__(self, *, model: str = "gen-2", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.model = model

    async def create_task(self, prompt: str, config: dict[str, Any]) -> TaskHandle:
        self._require_key()

        body: dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "duration": int(config.get("duration", 4)),
            "aspect_ratio": config.get("aspect_ratio", "9:16"),
        }
        if config.get("style"):
            body["style"] = config["style"]

        resp = await self._client.post(
            f"{self.base_url}/video/generate", json=body, headers=self._headers()
        )
        raise_for_provider_status(resp, self.provider_id)
        data = resp.json()

        task_id = data.get("id") or data.get("task_id")
        if not task_id:
            raise ProviderError(
                "Runway task creation failed: no task id returned",
                provider=self.provider_id,
            )

        logger.info("Runway task created: %s (model=%s)", task_id, self.model)
        return TaskHandle(
            external_task_id=str(task_id),
            status=self.normalize_status(data.get("status")),
            eta_seconds=_as_int(data.get("estimatedTimeRemaining")),
        )

    async def get_task_status(self, external_task_id: str) -> TaskStatus:
        self._require_key()

        resp = await self._client.get(
            f"{self.base_url}/tasks/{external_task_id}", headers=self._headers()
        )
        raise_for_provider_status(resp, self.provider_id)
        data = resp.json()

        output = data.get("output") or {}
        if isinstance(output, list):
            media_url = output[0] if output else None
            thumbnail_url = None
        else:
            media_url = output.get("video_url") or output.get("url")
            thumbnail_url = output.get("thumbnail_url")

        return TaskStatus(
            status=self.normalize_status(data.get("status")),
            raw_status=data.get("status"),
            progress=_as_int(data.get("progress")),
            eta_seconds=_as_int(data.get("estimatedTimeRemaining")),
            media_url=media_url,
            thumbnail_url=thumbnail_url,
            error=data.get("error") or data.get("failure"),
            raw=data,
        )
