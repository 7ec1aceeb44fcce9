"""Pydantic v2 schemas for the generation API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


class GenerationOptions(BaseModel):
    """Creative options forwarded to the provider.

    Unknown keys are kept and passed through untouched.
    """

    tone: str | None = None
    goal: str | None = None
    aspect_ratio: str | None = None
    duration: int | None = Field(default=None, ge=1, le=60)
    style: str | None = None
    negative_prompt: str | None = None
    quality: str | None = None

    model_config = {"extra": "allow"}


class DispatchCreate(BaseModel):
    """Schema for a generate request."""

    content_type: str
    prompt: str = Field(min_length=1)
    options: GenerationOptions = Field(default_factory=GenerationOptions)
    engine: str | None = None
    priority_hint: str | None = None
    content_draft_id: str | None = None
    # Providers to skip when retrying after a 503
    exclude_engines: list[str] = Field(default_factory=list)


class AttemptRead(BaseModel):
    provider: str
    error: str
    transient: bool
    latency_ms: int = 0
    status_code: int | None = None

    model_config = {"from_attributes": True}


class MediaResultRead(BaseModel):
    media_url: str
    media_type: str
    engine: str
    model: str
    content_type: str
    cost_estimate: float
    latency_ms: int
    revised_prompt: str | None = None
    fallback_used: bool = False
    attempts: list[AttemptRead] = []
    draft_updated: bool = False

    model_config = {"from_attributes": True}


class JobHandleRead(BaseModel):
    job_id: str
    engine: str
    content_type: str
    status: str
    external_task_id: str
    eta_seconds: int | None = None
    created_at: datetime
    poll_after_seconds: float

    model_config = {"from_attributes": True}


class DispatchRead(BaseModel):
    kind: Literal["media", "job"]
    media: MediaResultRead | None = None
    job: JobHandleRead | None = None

    model_config = {"from_attributes": True}


class JobStatusRead(BaseModel):
    """Unified job status returned to polling clients."""

    job_id: str
    status: str
    progress: int
    eta_seconds: int | None = None
    eta_formatted: str | None = None
    media_url: str | None = None
    thumbnail_url: str | None = None
    error_message: str | None = None
    error_kind: str | None = None
    engine: str
    cached: bool = False
    retry_after: float | None = None
    retry_count: int = 0
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class ProviderListRead(BaseModel):
    providers: list[dict[str, Any]]
    total: int
