"""Job status tracker — resumable progress reads for long-running video jobs.

There is no background worker: every client status request may (at most)
poll the provider once, subject to

- a minimum interval between provider polls per job (cached reads inside it)
- a wall-clock ceiling after which the job times out without asking the provider
- a ceiling on consecutive transient polling failures

Concurrent requests for one job are collapsed in-process (single-flight) and
across processes by the repository's poll lease, so a provider sees at most
one status call per job at a time.
"""

from __future__ import annotations

import asyncio
import logging
import math
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any

import httpx

from genflow.exceptions import JobConflictError, JobNotFoundError
from genflow.models.generation_job import GenerationJob, JobStatus, utcnow
from genflow.services.base_gen_service import BaseGenService
from genflow.services.provider_registry import PROVIDER_REGISTRY, ProviderRegistry
from genflow.services.providers.base import ProviderError, TaskStatus, is_transient
from genflow.services.providers.factory import ProviderSet
from genflow.storage.job_repository import JobRepository

logger = logging.getLogger(__name__)

_ERROR_KINDS = {
    JobStatus.FAILED: "job_failed",
    JobStatus.TIMEOUT: "job_timeout",
}


def format_eta(seconds: int | float | None) -> str | None:
    """Human-readable ETA: "45s remaining", "~1 min remaining", "~3 min remaining"."""
    if seconds is None or seconds < 0:
        return None
    if seconds < 60:
        return f"{int(seconds)}s remaining"
    minutes = math.ceil(seconds / 60)
    if minutes == 1:
        return "~1 min remaining"
    return f"~{minutes} min remaining"


@dataclass
class JobStatusView:
    job_id: str
    status: str
    progress: int
    eta_seconds: int | None
    eta_formatted: str | None
    media_url: str | None
    thumbnail_url: str | None
    error_message: str | None
    error_kind: str | None
    engine: str
    cached: bool
    retry_after: float | None
    retry_count: int
    updated_at: datetime | None

    @classmethod
    def from_job(
        cls,
        job: GenerationJob,
        *,
        cached: bool = False,
        retry_after: float | None = None,
    ) -> "JobStatusView":
        status = job.job_status
        eta = None if job.is_terminal else job.eta_seconds
        return cls(
            job_id=job.id,
            status=status.value,
            progress=job.progress,
            eta_seconds=eta,
            eta_formatted=format_eta(eta),
            media_url=job.media_url,
            thumbnail_url=job.thumbnail_url,
            error_message=job.error_message,
            error_kind=_ERROR_KINDS.get(status),
            engine=job.engine,
            cached=cached,
            retry_after=round(retry_after, 3) if retry_after is not None else None,
            retry_count=job.retry_count,
            updated_at=job.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        data = {k: getattr(self, k) for k in self.__dataclass_fields__}
        data["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return data


@dataclass
class PollPolicy:
    min_poll_interval_seconds: float = 5.0
    job_timeout_seconds: float = 300.0
    max_poll_retries: int = 3
    lease_seconds: float = 150.0
    lease_wait_step_seconds: float = 0.25


class JobStatusTracker:
    def __init__(
        self,
        *,
        repository: JobRepository,
        providers: ProviderSet,
        service: BaseGenService | None = None,
        registry: ProviderRegistry = PROVIDER_REGISTRY,
        policy: PollPolicy | None = None,
        result_publisher: Callable[[GenerationJob], Awaitable[Any]] | None = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.repository = repository
        self.providers = providers
        self.service = service or BaseGenService(service_name="generation")
        self.registry = registry
        self.policy = policy or PollPolicy()
        self.result_publisher = result_publisher
        self._clock = clock
        self._sleep = sleep
        self._inflight: dict[str, asyncio.Future[JobStatusView]] = {}

    async def get_status(self, job_id: str) -> JobStatusView:
        """Return the job's unified status, polling its provider if due."""
        inflight = self._inflight.get(job_id)
        if inflight is not None:
            view = await asyncio.shield(inflight)
            return replace(view, cached=True)

        task = asyncio.ensure_future(self._get_status(job_id))
        self._inflight[job_id] = task
        task.add_done_callback(lambda _t: self._inflight.pop(job_id, None))
        return await asyncio.shield(task)

    # ──────── Core algorithm ────────

    async def _get_status(self, job_id: str) -> JobStatusView:
        job = await self._load(job_id)
        if job.is_terminal:
            return await self._terminal_view(job)

        now = self._clock()
        cached = self._cached_view(job, now)
        if cached is not None:
            return cached

        token = uuid.uuid4().hex
        acquired = await self.repository.try_acquire_poll_lease(
            job_id, token, self.policy.lease_seconds, now
        )
        if not acquired:
            return await self._wait_for_lease_holder(job_id)

        try:
            # Another poller may have finished between our read and the lease
            job = await self._load(job_id)
            if job.is_terminal:
                return JobStatusView.from_job(job)
            cached = self._cached_view(job, now)
            if cached is not None:
                return cached

            age = (now - job.created_at).total_seconds()
            if age > self.policy.job_timeout_seconds:
                job.time_out(
                    f"Generation timed out after {int(self.policy.job_timeout_seconds)}s "
                    f"on {job.engine}"
                )
                logger.warning("Job %s timed out (age=%.0fs)", job.id, age)
                return await self._save(job)

            await self._poll_provider(job, now)
            return await self._save(job)
        finally:
            await self.repository.release_poll_lease(job_id, token)

    async def _load(self, job_id: str) -> GenerationJob:
        job = await self.repository.load_job(job_id)
        if job is None:
            raise JobNotFoundError(f"Job not found: {job_id}")
        return job

    def _cached_view(self, job: GenerationJob, now: datetime) -> JobStatusView | None:
        last = job.last_poll_attempt_at or job.last_polled_at or job.created_at
        elapsed = (now - last).total_seconds()
        if elapsed < self.policy.min_poll_interval_seconds:
            logger.debug("Job %s: cached read (%.1fs since last poll attempt)", job.id, elapsed)
            return JobStatusView.from_job(
                job,
                cached=True,
                retry_after=self.policy.min_poll_interval_seconds - elapsed,
            )
        return None

    async def _terminal_view(self, job: GenerationJob) -> JobStatusView:
        # A completed job whose draft write-back failed earlier gets another try
        if (
            self.result_publisher is not None
            and job.job_status == JobStatus.COMPLETED
            and job.content_draft_id
            and job.draft_updated_at is None
        ):
            if await self._publish(job):
                return await self._save(job)
        return JobStatusView.from_job(job)

    async def _wait_for_lease_holder(self, job_id: str) -> JobStatusView:
        """Another process is polling this job; wait for it and return its result."""
        deadline = self._clock() + timedelta(seconds=self.policy.lease_seconds)
        job = await self._load(job_id)
        while self._lease_held(job) and self._clock() < deadline:
            await self._sleep(self.policy.lease_wait_step_seconds)
            job = await self._load(job_id)
        logger.debug("Job %s: returning state persisted by concurrent poller", job_id)
        return JobStatusView.from_job(job, cached=True)

    def _lease_held(self, job: GenerationJob) -> bool:
        if not job.poll_lease_token or job.poll_lease_expires_at is None:
            return False
        return job.poll_lease_expires_at > self._clock()

    # ──────── Provider poll ────────

    async def _poll_provider(self, job: GenerationJob, now: datetime) -> None:
        profile = self.registry.get(job.engine)
        client = self.providers.video_provider(job.engine)
        # Failed attempts count toward the poll interval too
        job.last_poll_attempt_at = now
        try:
            status = await self.service.call(
                job.engine,
                lambda: client.get_task_status(job.external_task_id),
                timeout=profile.call_timeout_seconds,
            )
        except (ProviderError, asyncio.TimeoutError, httpx.HTTPError) as exc:
            self._record_poll_error(job, exc)
            return

        job.last_polled_at = now
        await self._apply(job, status, now)

    def _record_poll_error(self, job: GenerationJob, exc: BaseException) -> None:
        detail = str(exc) or f"{job.engine} status call timed out"
        if not is_transient(exc):
            logger.warning("Job %s: %s status check failed: %s", job.id, job.engine, detail)
            job.fail(f"{job.engine} status check failed: {detail}")
            return

        job.retry_count += 1
        if job.retry_count > self.policy.max_poll_retries:
            logger.warning(
                "Job %s: giving up after %d transient polling errors", job.id, job.retry_count
            )
            job.fail(
                f"{job.engine} unreachable after {job.retry_count} status checks: {detail}"
            )
        else:
            logger.info(
                "Job %s: transient polling error %d/%d: %s",
                job.id, job.retry_count, self.policy.max_poll_retries, detail,
            )

    async def _apply(self, job: GenerationJob, status: TaskStatus, now: datetime) -> None:
        previous = job.status
        target = status.status

        if target == JobStatus.COMPLETED:
            if status.media_url:
                job.complete(status.media_url, status.thumbnail_url, at=now)
                await self._publish(job)
            else:
                job.fail(f"{job.engine} reported success without a media URL")
        elif target == JobStatus.FAILED:
            job.fail(status.error or f"{job.engine} reported the task as failed")
        elif target == JobStatus.TIMEOUT:
            job.time_out(status.error or f"{job.engine} reported the task as timed out")
        else:
            if target == JobStatus.PROCESSING:
                job.advance(JobStatus.PROCESSING)
            job.record_progress(status.progress, status.eta_seconds)

        if job.status != previous:
            logger.info("Job %s: %s -> %s", job.id, previous, job.status)

    async def _publish(self, job: GenerationJob) -> bool:
        if self.result_publisher is None:
            return False
        try:
            return bool(await self.result_publisher(job))
        except Exception:
            # Retried on the next read of the completed job
            logger.warning("Job %s: draft write-back failed", job.id, exc_info=True)
            return False

    async def _save(self, job: GenerationJob) -> JobStatusView:
        try:
            await self.repository.save_job(job)
        except JobConflictError:
            logger.info("Job %s: concurrent update won, returning its state", job.id)
            fresh = await self._load(job.id)
            return JobStatusView.from_job(fresh, cached=True)
        return JobStatusView.from_job(job)
