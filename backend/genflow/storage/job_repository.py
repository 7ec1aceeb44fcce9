"""Job persistence: optimistic saves, per-job poll lease, draft write-back.

``SqlJobRepository`` is the production adapter (SQLAlchemy async).
``InMemoryJobRepository`` backs tests and single-process dev runs.
Both hand out detached ``GenerationJob`` objects; nothing is written until
``save_job`` is called.
"""

from __future__ import annotations

import abc
import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from genflow.exceptions import JobConflictError
from genflow.models.content_draft import ContentDraft
from genflow.models.generation_job import GenerationJob, utcnow

logger = logging.getLogger(__name__)

_LEASE_COLUMNS = {"poll_lease_token", "poll_lease_expires_at"}
_IMMUTABLE_COLUMNS = {"id", "engine", "external_task_id", "created_at", "version"}


def _job_columns() -> list[str]:
    return [c.key for c in GenerationJob.__table__.columns]


def _snapshot(job: GenerationJob) -> dict[str, Any]:
    data = {key: getattr(job, key) for key in _job_columns()}
    data["config"] = dict(data.get("config") or {})
    return data


def _restore(data: dict[str, Any]) -> GenerationJob:
    return GenerationJob(**{**data, "config": dict(data.get("config") or {})})


def _save_values(job: GenerationJob, now: datetime) -> dict[str, Any]:
    values = {
        key: value
        for key, value in _snapshot(job).items()
        if key not in _LEASE_COLUMNS and key not in _IMMUTABLE_COLUMNS
    }
    values["updated_at"] = now
    return values


class JobRepository(abc.ABC):
    """Persistence contract used by the dispatcher and the poller."""

    @abc.abstractmethod
    async def create_job(self, job: GenerationJob) -> GenerationJob:
        ...

    @abc.abstractmethod
    async def load_job(self, job_id: str) -> GenerationJob | None:
        ...

    @abc.abstractmethod
    async def save_job(self, job: GenerationJob) -> GenerationJob:
        """Persist ``job`` if nobody saved it since it was loaded.

        Bumps ``job.version`` on success; raises JobConflictError otherwise.
        Lease columns are never written here.
        """

    @abc.abstractmethod
    async def try_acquire_poll_lease(
        self, job_id: str, token: str, ttl_seconds: float, now: datetime | None = None
    ) -> bool:
        """Take the job's poll lease if it is free or expired."""

    @abc.abstractmethod
    async def release_poll_lease(self, job_id: str, token: str) -> None:
        """Drop the lease, only if ``token`` still holds it."""

    @abc.abstractmethod
    async def update_content_draft_media(
        self,
        draft_id: str,
        *,
        media_url: str,
        thumbnail_url: str | None,
        engine: str,
        media_type: str,
        at: datetime | None = None,
    ) -> bool:
        """Record generated media on a draft; False when the draft is unknown."""


class SqlJobRepository(JobRepository):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_job(self, job: GenerationJob) -> GenerationJob:
        async with self._session_factory() as session:
            session.add(job)
            await session.commit()
        logger.info("Created job %s (engine=%s, task=%s)", job.id, job.engine, job.external_task_id)
        return job

    async def load_job(self, job_id: str) -> GenerationJob | None:
        async with self._session_factory() as session:
            job = await session.get(GenerationJob, job_id)
            if job is None:
                return None
            session.expunge(job)
            return job

    async def save_job(self, job: GenerationJob) -> GenerationJob:
        now = utcnow()
        values = _save_values(job, now)
        async with self._session_factory() as session:
            result = await session.execute(
                update(GenerationJob)
                .where(GenerationJob.id == job.id, GenerationJob.version == job.version)
                .values(**values, version=GenerationJob.version + 1)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        if result.rowcount != 1:
            raise JobConflictError(
                f"Job {job.id} was modified concurrently (version {job.version})",
                provider=job.engine,
            )
        job.version += 1
        job.updated_at = now
        return job

    async def try_acquire_poll_lease(
        self, job_id: str, token: str, ttl_seconds: float, now: datetime | None = None
    ) -> bool:
        now = now or utcnow()
        async with self._session_factory() as session:
            result = await session.execute(
                update(GenerationJob)
                .where(
                    GenerationJob.id == job_id,
                    or_(
                        GenerationJob.poll_lease_token.is_(None),
                        GenerationJob.poll_lease_expires_at.is_(None),
                        GenerationJob.poll_lease_expires_at <= now,
                    ),
                )
                .values(
                    poll_lease_token=token,
                    poll_lease_expires_at=now + timedelta(seconds=ttl_seconds),
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        return result.rowcount == 1

    async def release_poll_lease(self, job_id: str, token: str) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(GenerationJob)
                .where(GenerationJob.id == job_id, GenerationJob.poll_lease_token == token)
                .values(poll_lease_token=None, poll_lease_expires_at=None)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def update_content_draft_media(
        self,
        draft_id: str,
        *,
        media_url: str,
        thumbnail_url: str | None,
        engine: str,
        media_type: str,
        at: datetime | None = None,
    ) -> bool:
        at = at or utcnow()
        async with self._session_factory() as session:
            result = await session.execute(
                update(ContentDraft)
                .where(ContentDraft.id == draft_id)
                .values(
                    media_url=media_url,
                    thumbnail_url=thumbnail_url,
                    media_engine=engine,
                    media_type=media_type,
                    media_generated_at=at,
                    updated_at=at,
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        return result.rowcount == 1


class InMemoryJobRepository(JobRepository):
    """Dict-backed repository with the same conditional-update semantics."""

    def __init__(self) -> None:
        self._jobs: dict[str, dict[str, Any]] = {}
        self.drafts: dict[str, dict[str, Any]] = {}

    def add_draft(self, draft_id: str, content_type: str) -> None:
        self.drafts[draft_id] = {"id": draft_id, "content_type": content_type}

    async def create_job(self, job: GenerationJob) -> GenerationJob:
        if job.id in self._jobs:
            raise JobConflictError(f"Job {job.id} already exists", provider=job.engine)
        self._jobs[job.id] = _snapshot(job)
        logger.info("Created job %s (engine=%s, task=%s)", job.id, job.engine, job.external_task_id)
        return job

    async def load_job(self, job_id: str) -> GenerationJob | None:
        data = self._jobs.get(job_id)
        return _restore(data) if data is not None else None

    async def save_job(self, job: GenerationJob) -> GenerationJob:
        stored = self._jobs.get(job.id)
        if stored is None or stored["version"] != job.version:
            raise JobConflictError(
                f"Job {job.id} was modified concurrently (version {job.version})",
                provider=job.engine,
            )
        now = utcnow()
        stored.update(_save_values(job, now))
        stored["version"] += 1
        job.version = stored["version"]
        job.updated_at = now
        return job

    async def try_acquire_poll_lease(
        self, job_id: str, token: str, ttl_seconds: float, now: datetime | None = None
    ) -> bool:
        now = now or utcnow()
        stored = self._jobs.get(job_id)
        if stored is None:
            return False
        expires = stored.get("poll_lease_expires_at")
        if stored.get("poll_lease_token") and expires is not None and expires > now:
            return False
        stored["poll_lease_token"] = token
        stored["poll_lease_expires_at"] = now + timedelta(seconds=ttl_seconds)
        return True

    async def release_poll_lease(self, job_id: str, token: str) -> None:
        stored = self._jobs.get(job_id)
        if stored is not None and stored.get("poll_lease_token") == token:
            stored["poll_lease_token"] = None
            stored["poll_lease_expires_at"] = None

    async def update_content_draft_media(
        self,
        draft_id: str,
        *,
        media_url: str,
        thumbnail_url: str | None,
        engine: str,
        media_type: str,
        at: datetime | None = None,
    ) -> bool:
        draft = self.drafts.get(draft_id)
        if draft is None:
            return False
        at = at or utcnow()
        draft.update(
            media_url=media_url,
            thumbnail_url=thumbnail_url,
            media_engine=engine,
            media_type=media_type,
            media_generated_at=at,
            updated_at=at,
        )
        return True
