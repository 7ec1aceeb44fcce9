"""GenerationJob ORM model — one asynchronous video generation task."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from genflow.database import Base
from genflow.exceptions import InvalidJobTransitionError


def utcnow() -> datetime:
    """Naive UTC timestamp, comparable with values read back from the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class JobStatus(str, enum.Enum):
    """Canonical job statuses shared by every provider."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"


TERMINAL_STATUSES: frozenset[JobStatus] = frozenset(
    {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.TIMEOUT}
)

# Explicit valid transitions: status -> set of reachable statuses
VALID_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.QUEUED: {JobStatus.PROCESSING},
    JobStatus.PROCESSING: {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.TIMEOUT},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
    JobStatus.TIMEOUT: set(),
}


class GenerationJob(Base):
    """A provider task tracked across repeated status requests.

    Status, progress, media and error fields change only through the
    transition helpers below, so exactly one of (media_url set, status
    non-terminal, error_message set) holds at any time.
    """

    __tablename__ = "generation_jobs"
    __table_args__ = {
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: uuid.uuid4().hex,
    )
    content_draft_id: Mapped[Optional[str]] = mapped_column(
        String(36), nullable=True, index=True
    )
    engine: Mapped[str] = mapped_column(String(50), nullable=False)
    content_type: Mapped[str] = mapped_column(String(50), nullable=False)
    prompt: Mapped[str] = mapped_column(Text, nullable=False, default="")
    config: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    external_task_id: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=JobStatus.QUEUED.value, index=True
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    eta_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    media_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )
    last_polled_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_poll_attempt_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    draft_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Optimistic concurrency and the per-job poll lease
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    poll_lease_token: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    poll_lease_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True
    )

    @classmethod
    def new(
        cls,
        *,
        engine: str,
        content_type: str,
        external_task_id: str,
        prompt: str = "",
        config: dict[str, Any] | None = None,
        content_draft_id: str | None = None,
        eta_seconds: int | None = None,
        now: datetime | None = None,
    ) -> "GenerationJob":
        """Build a queued job with every column populated.

        Column defaults only fire on INSERT, so a job that has not been
        flushed yet would otherwise carry ``None`` for status and counters.
        """
        now = now or utcnow()
        return cls(
            id=uuid.uuid4().hex,
            content_draft_id=content_draft_id,
            engine=engine,
            content_type=content_type,
            prompt=prompt,
            config=dict(config or {}),
            external_task_id=external_task_id,
            status=JobStatus.QUEUED.value,
            progress=0,
            eta_seconds=eta_seconds,
            retry_count=0,
            created_at=now,
            updated_at=now,
            # Task creation is a successful provider contact
            last_polled_at=now,
            last_poll_attempt_at=now,
            version=1,
        )

    @property
    def job_status(self) -> JobStatus:
        return JobStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.job_status in TERMINAL_STATUSES

    def can_transition_to(self, target: JobStatus) -> bool:
        return target in VALID_TRANSITIONS[self.job_status]

    def advance(self, target: JobStatus) -> None:
        """Move to ``target``, stepping through processing from queued.

        A queued job that the provider reports as finished is still recorded
        as having passed through processing.
        """
        current = self.job_status
        if current in TERMINAL_STATUSES:
            raise InvalidJobTransitionError(
                f"Job {self.id} is already {current.value}",
                provider=self.engine,
            )
        if current == target:
            return
        if current == JobStatus.QUEUED and target in TERMINAL_STATUSES:
            self.status = JobStatus.PROCESSING.value
            current = JobStatus.PROCESSING
        if target not in VALID_TRANSITIONS[current]:
            raise InvalidJobTransitionError(
                f"Job {self.id}: illegal transition {current.value} -> {target.value}",
                provider=self.engine,
            )
        self.status = target.value

    def record_progress(self, progress: int | None, eta_seconds: int | None) -> None:
        """Update progress (never decreasing) and the advisory ETA."""
        if self.is_terminal:
            return
        if progress is not None:
            clamped = max(0, min(100, int(progress)))
            self.progress = max(self.progress or 0, clamped)
        self.eta_seconds = eta_seconds

    def complete(
        self,
        media_url: str,
        thumbnail_url: str | None = None,
        *,
        at: datetime | None = None,
    ) -> None:
        self.advance(JobStatus.COMPLETED)
        self.media_url = media_url
        self.thumbnail_url = thumbnail_url
        self.error_message = None
        self.progress = 100
        self.eta_seconds = 0
        self.completed_at = at or utcnow()

    def fail(self, message: str) -> None:
        self.advance(JobStatus.FAILED)
        self.error_message = message
        self.media_url = None
        self.thumbnail_url = None

    def time_out(self, message: str) -> None:
        self.advance(JobStatus.TIMEOUT)
        self.error_message = message
        self.media_url = None
        self.thumbnail_url = None
