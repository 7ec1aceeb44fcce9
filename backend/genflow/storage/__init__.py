from genflow.storage.job_repository import (
    InMemoryJobRepository,
    JobRepository,
    SqlJobRepository,
)

__all__ = ["InMemoryJobRepository", "JobRepository", "SqlJobRepository"]
