"""Shared provider contracts and HTTP error classification."""

from __future__ import annotations

import abc
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from genflow.models.generation_job import JobStatus

logger = logging.getLogger(__name__)

_TRANSIENT_STATUS_CODES = {408, 425, 429}


class ProviderError(Exception):
    """An outbound provider call failed.

    ``transient`` marks failures worth retrying later (network trouble,
    timeouts, 5xx, 429); everything else is a definitive answer.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        status_code: int | None = None,
        transient: bool = False,
    ) -> None:
        self.message = message
        self.provider = provider
        self.status_code = status_code
        self.transient = transient
        super().__init__(message)


def is_transient(exc: BaseException) -> bool:
    """Classify any exception raised around a provider call."""
    if isinstance(exc, ProviderError):
        return exc.transient
    return isinstance(exc, (TimeoutError, asyncio.TimeoutError, httpx.TransportError))


def raise_for_provider_status(response: httpx.Response, provider: str) -> None:
    """Raise ProviderError for non-2xx responses, classifying transience."""
    if response.is_success:
        return
    code = response.status_code
    try:
        payload = response.json()
    except ValueError:
        payload = {}
    detail = ""
    if isinstance(payload, dict):
        err = payload.get("error")
        if isinstance(err, dict):
            detail = err.get("message") or ""
        elif err:
            detail = str(err)
        detail = detail or payload.get("message") or payload.get("detail") or ""
    detail = detail or response.reason_phrase or "unknown error"

    if code in (401, 403):
        message = f"{provider} rejected the API key ({code})"
    elif code == 404:
        message = f"{provider} task not found"
    elif code == 429:
        message = f"{provider} rate limit exceeded"
    else:
        message = f"{provider} API error {code}: {detail}"

    raise ProviderError(
        message,
        provider=provider,
        status_code=code,
        transient=code >= 500 or code in _TRANSIENT_STATUS_CODES,
    )


def normalize_with(
    status_map: dict[str, JobStatus], raw: str | None
) -> JobStatus:
    """Map a provider status string to the canonical enum (unknown → queued)."""
    if not raw:
        return JobStatus.QUEUED
    return status_map.get(str(raw).strip().lower(), JobStatus.QUEUED)


@dataclass
class ImageGeneration:
    """A finished image from a synchronous provider call."""
    image_bytes: bytes
    model: str
    mime_type: str = "image/png"
    revised_prompt: str | None = None


@dataclass
class TaskHandle:
    """Response to a create-task call."""
    external_task_id: str
    status: JobStatus = JobStatus.QUEUED
    eta_seconds: int | None = None


@dataclass
class TaskStatus:
    """Normalized view of a provider's task status."""
    status: JobStatus
    raw_status: str | None = None
    progress: int | None = None
    eta_seconds: int | None = None
    media_url: str | None = None
    thumbnail_url: str | None = None
    error: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


class HttpProvider:
    """Holds an httpx client, creating (and later closing) one if not given."""

    provider_id: str = "unknown"

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._own_client = http_client is None

    def _require_key(self) -> None:
        if not self.api_key:
            raise ProviderError(
                f"{self.provider_id} API key not configured",
                provider=self.provider_id,
            )

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def aclose(self) -> None:
        if self._own_client:
            await self._client.aclose()


class ImageProvider(HttpProvider, abc.ABC):
    """A provider that returns a finished image in one call."""

    @abc.abstractmethod
    async def generate_image(self, prompt: str, config: dict[str, Any]) -> ImageGeneration:
        ...


class VideoProvider(HttpProvider, abc.ABC):
    """A provider that runs long tasks behind a create/poll protocol."""

    status_map: dict[str, JobStatus] = {}

    @abc.abstractmethod
    async def create_task(self, prompt: str, config: dict[str, Any]) -> TaskHandle:
        ...

    @abc.abstractmethod
    async def get_task_status(self, external_task_id: str) -> TaskStatus:
        ...

    def normalize_status(self, raw: str | None) -> JobStatus:
        return normalize_with(self.status_map, raw)
