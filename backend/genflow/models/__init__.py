"""ORM model package — registers all models with Base.metadata."""

from genflow.models.content_draft import ContentDraft
from genflow.models.generation_job import (
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
    GenerationJob,
    JobStatus,
    utcnow,
)

__all__ = [
    "ContentDraft",
    "GenerationJob",
    "JobStatus",
    "TERMINAL_STATUSES",
    "VALID_TRANSITIONS",
    "utcnow",
]
