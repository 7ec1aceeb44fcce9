"""Generation dispatcher — turns a content request into media or a tracked job.

Image content is generated synchronously, walking the provider fallback
chain one provider at a time. Video content is registered with a single
provider and handed back as a job; the client then reads progress through
the job status tracker.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx

from genflow.exceptions import (
    AllProvidersExhaustedError,
    GenerationError,
    JobNotFoundError,
    JobNotRetryableError,
    ProviderRateLimitedError,
    ProviderUnavailableError,
)
from genflow.models.generation_job import GenerationJob, JobStatus, utcnow
from genflow.services.base_gen_service import (
    AttemptFailure,
    BaseGenService,
    ChainExhausted,
)
from genflow.services.engine_selector import select_engine
from genflow.services.fallback import fallbacks_for
from genflow.services.media_store import MediaStore
from genflow.services.provider_registry import (
    PROVIDER_REGISTRY,
    ContentType,
    MediaClass,
    ProviderRegistry,
    media_class_for,
    parse_content_type,
)
from genflow.services.providers.base import ImageGeneration, ProviderError
from genflow.services.providers.factory import ProviderSet
from genflow.services.rate_budget import RateBudget
from genflow.storage.job_repository import JobRepository

logger = logging.getLogger(__name__)

# Stored alongside the request options so a re-dispatch can replay them
_PRIORITY_KEY = "priority_hint"


@dataclass
class DispatchRequest:
    content_type: str
    prompt: str
    options: dict[str, Any] = field(default_factory=dict)
    engine_override: str | None = None
    priority_hint: str | None = None
    content_draft_id: str | None = None
    exclude_engines: list[str] = field(default_factory=list)


@dataclass
class MediaResult:
    """A finished image, tagged with the provider that actually produced it."""
    media_url: str
    media_type: str
    engine: str
    model: str
    content_type: str
    cost_estimate: float
    latency_ms: int
    revised_prompt: str | None = None
    attempts: list[AttemptFailure] = field(default_factory=list)
    draft_updated: bool = False

    @property
    def fallback_used(self) -> bool:
        return bool(self.attempts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "media_url": self.media_url,
            "media_type": self.media_type,
            "engine": self.engine,
            "model": self.model,
            "content_type": self.content_type,
            "cost_estimate": self.cost_estimate,
            "latency_ms": self.latency_ms,
            "revised_prompt": self.revised_prompt,
            "fallback_used": self.fallback_used,
            "attempts": [a.to_dict() for a in self.attempts],
            "draft_updated": self.draft_updated,
        }


@dataclass
class JobHandle:
    """Returned as soon as a video task has been accepted by its provider."""
    job_id: str
    engine: str
    content_type: str
    status: str
    external_task_id: str
    eta_seconds: int | None
    created_at: datetime
    poll_after_seconds: float

    @classmethod
    def from_job(cls, job: GenerationJob, poll_after_seconds: float) -> "JobHandle":
        return cls(
            job_id=job.id,
            engine=job.engine,
            content_type=job.content_type,
            status=job.status,
            external_task_id=job.external_task_id,
            eta_seconds=job.eta_seconds,
            created_at=job.created_at,
            poll_after_seconds=poll_after_seconds,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "engine": self.engine,
            "content_type": self.content_type,
            "status": self.status,
            "external_task_id": self.external_task_id,
            "eta_seconds": self.eta_seconds,
            "created_at": self.created_at.isoformat(),
            "poll_after_seconds": self.poll_after_seconds,
        }


@dataclass
class DispatchOutcome:
    kind: str  # "media" | "job"
    media: MediaResult | None = None
    job: JobHandle | None = None


class GenerationDispatcher:
    def __init__(
        self,
        *,
        providers: ProviderSet,
        repository: JobRepository,
        media_store: MediaStore,
        rate_budget: RateBudget,
        service: BaseGenService | None = None,
        registry: ProviderRegistry = PROVIDER_REGISTRY,
        poll_interval_seconds: float = 5.0,
    ) -> None:
        self.providers = providers
        self.repository = repository
        self.media_store = media_store
        self.rate_budget = rate_budget
        self.service = service or BaseGenService(service_name="generation")
        self.registry = registry
        self.poll_interval_seconds = poll_interval_seconds

    async def dispatch(self, request: DispatchRequest) -> DispatchOutcome:
        content_type = parse_content_type(request.content_type)
        if media_class_for(content_type) == MediaClass.VIDEO:
            handle = await self._dispatch_video(content_type, request)
            return DispatchOutcome(kind="job", job=handle)
        media = await self._dispatch_image(content_type, request)
        return DispatchOutcome(kind="media", media=media)

    async def redispatch(self, job_id: str) -> JobHandle:
        """Start a fresh job for a failed or timed-out one, on another provider."""
        job = await self.repository.load_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Job not found: {job_id}")
        if job.job_status not in (JobStatus.FAILED, JobStatus.TIMEOUT):
            raise JobNotRetryableError(
                f"Job {job_id} is {job.status}; only failed or timed-out jobs can be re-dispatched",
                provider=job.engine,
            )

        options = dict(job.config or {})
        priority_hint = options.pop(_PRIORITY_KEY, None)
        logger.info("Re-dispatching job %s (excluding %s)", job_id, job.engine)
        request = DispatchRequest(
            content_type=job.content_type,
            prompt=job.prompt,
            options=options,
            priority_hint=priority_hint,
            content_draft_id=job.content_draft_id,
            exclude_engines=[job.engine],
        )
        return await self._dispatch_video(parse_content_type(job.content_type), request)

    async def publish_job_result(self, job: GenerationJob) -> bool:
        """Write a completed job's media reference onto its content draft.

        Happens once per job; ``draft_updated_at`` records that it did.
        """
        if job.job_status != JobStatus.COMPLETED or not job.media_url:
            return False
        if not job.content_draft_id or job.draft_updated_at is not None:
            return False

        now = utcnow()
        updated = await self.repository.update_content_draft_media(
            job.content_draft_id,
            media_url=job.media_url,
            thumbnail_url=job.thumbnail_url,
            engine=job.engine,
            media_type=MediaClass.VIDEO.value,
            at=now,
        )
        if not updated:
            logger.warning(
                "Job %s completed but content draft %s does not exist",
                job.id, job.content_draft_id,
            )
            return False
        job.draft_updated_at = now
        logger.info("Job %s: media written to draft %s", job.id, job.content_draft_id)
        return True

    # ──────── Engine resolution ────────

    def _first_engine(self, content_type: ContentType, request: DispatchRequest) -> str:
        excluded = list(request.exclude_engines)
        if request.engine_override or not excluded:
            return select_engine(
                content_type,
                request.engine_override,
                request.priority_hint,
                options=request.options,
                registry=self.registry,
            )

        remaining = fallbacks_for(
            excluded[-1], excluded, content_type, registry=self.registry
        )
        if not remaining:
            raise AllProvidersExhaustedError(
                f"No fallback provider left for {content_type.value} "
                f"after {', '.join(excluded)}",
                provider=excluded[-1],
            )
        return remaining[0]

    # ──────── Image-class ────────

    async def _dispatch_image(
        self, content_type: ContentType, request: DispatchRequest
    ) -> MediaResult:
        first = self._first_engine(content_type, request)
        chain = [first] + fallbacks_for(
            first, [*request.exclude_engines, first], content_type, registry=self.registry
        )
        logger.info("Image dispatch for %s: chain=%s", content_type.value, chain)

        async def attempt(provider_id: str) -> ImageGeneration:
            profile = self.registry.get(provider_id)
            retry_after = await self.rate_budget.try_acquire(profile)
            if retry_after is not None:
                raise ProviderRateLimitedError(
                    f"{provider_id} request budget exhausted",
                    provider=provider_id,
                    retry_after=retry_after,
                )
            client = self.providers.image_provider(provider_id)
            return await client.generate_image(request.prompt, request.options)

        try:
            result = await self.service.execute(
                chain,
                attempt,
                timeout_for=lambda p: self.registry.get(p).call_timeout_seconds,
                cost_for=lambda p: self.registry.get(p).cost_per_unit,
            )
        except ChainExhausted as exc:
            raise AllProvidersExhaustedError(
                f"All {len(chain)} image providers failed for {content_type.value}",
                provider=chain[-1],
                last_error=exc.last_error,
                attempts=exc.attempts,
            ) from exc.last_error

        generation = result.data
        media_url = await self.media_store.save(
            generation.image_bytes, mime_type=generation.mime_type
        )
        media = MediaResult(
            media_url=media_url,
            media_type=MediaClass.IMAGE.value,
            engine=result.provider,
            model=generation.model,
            content_type=content_type.value,
            cost_estimate=result.cost_estimate,
            latency_ms=result.latency_ms,
            revised_prompt=generation.revised_prompt,
            attempts=result.attempts,
        )
        if result.fallback_used:
            logger.info(
                "Image for %s produced by fallback %s after %d failure(s)",
                content_type.value, result.provider, len(result.attempts),
            )

        if request.content_draft_id:
            media.draft_updated = await self.repository.update_content_draft_media(
                request.content_draft_id,
                media_url=media_url,
                thumbnail_url=None,
                engine=result.provider,
                media_type=MediaClass.IMAGE.value,
            )
            if not media.draft_updated:
                logger.warning("Content draft %s does not exist", request.content_draft_id)
        return media

    # ──────── Video-class ────────

    async def _dispatch_video(
        self, content_type: ContentType, request: DispatchRequest
    ) -> JobHandle:
        engine = self._first_engine(content_type, request)
        profile = self.registry.get(engine)

        retry_after = await self.rate_budget.try_acquire(profile)
        if retry_after is not None:
            raise ProviderRateLimitedError(
                f"{engine} request budget exhausted, retry in {retry_after:.0f}s",
                provider=engine,
                retry_after=retry_after,
            )

        client = self.providers.video_provider(engine)
        try:
            handle = await self.service.call(
                engine,
                lambda: client.create_task(request.prompt, request.options),
                timeout=profile.call_timeout_seconds,
                cost=profile.cost_per_unit,
            )
        except GenerationError:
            raise
        except (ProviderError, asyncio.TimeoutError, httpx.HTTPError) as exc:
            message = str(exc) or f"{engine} call timed out"
            logger.warning("Task creation on %s failed: %s", engine, message)
            raise ProviderUnavailableError(
                f"Could not start {content_type.value} generation on {engine}: {message}",
                provider=engine,
            ) from exc

        config = dict(request.options)
        if request.priority_hint:
            config[_PRIORITY_KEY] = request.priority_hint
        job = GenerationJob.new(
            engine=engine,
            content_type=content_type.value,
            external_task_id=handle.external_task_id,
            prompt=request.prompt,
            config=config,
            content_draft_id=request.content_draft_id,
            eta_seconds=handle.eta_seconds,
        )
        await self.repository.create_job(job)
        logger.info(
            "Job %s queued on %s (task=%s)", job.id, engine, handle.external_task_id
        )
        return JobHandle.from_job(job, self.poll_interval_seconds)
