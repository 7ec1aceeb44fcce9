"""Pytest configuration and shared fixtures.

Puts ``backend/`` on ``sys.path`` so tests can import the ``genflow``
package without installing it, and forces offline settings before any
genflow module reads them.
"""
import os
import sys
import tempfile
from dataclasses import replace
from datetime import datetime, timedelta

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
BACKEND = os.path.join(ROOT, "backend")
if BACKEND not in sys.path:
    sys.path.insert(0, BACKEND)

os.environ.setdefault("USE_MOCK_API", "true")
os.environ.setdefault("RATE_BUDGET_BACKEND", "memory")
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("MEDIA_VOLUME", os.path.join(tempfile.gettempdir(), "genflow-test-media"))

from genflow.models.generation_job import GenerationJob  # noqa: E402
from genflow.services.base_gen_service import BaseGenService  # noqa: E402
from genflow.services.media_store import MediaStore  # noqa: E402
from genflow.services.provider_registry import (  # noqa: E402
    PROVIDER_REGISTRY,
    ContentType,
    ProviderRegistry,
)
from genflow.services.rate_budget import InMemoryRateBudget  # noqa: E402
from genflow.storage.job_repository import InMemoryJobRepository  # noqa: E402


class FakeClock:
    """Manually advanced naive-UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repository():
    return InMemoryJobRepository()


@pytest.fixture
def media_store(tmp_path):
    return MediaStore(str(tmp_path / "media"), "/media")


@pytest.fixture
def rate_budget():
    return InMemoryRateBudget()


@pytest.fixture
def gen_service():
    return BaseGenService(service_name="test")


@pytest.fixture
def make_job(repository, clock):
    """Persist a queued job created at the fake clock's current time."""

    async def _make(engine="runway", content_type="reel", **kwargs):
        job = GenerationJob.new(
            engine=engine,
            content_type=content_type,
            external_task_id=kwargs.pop("external_task_id", "task-1"),
            prompt=kwargs.pop("prompt", "a cat surfing"),
            now=clock(),
            **kwargs,
        )
        await repository.create_job(job)
        return job

    return _make


@pytest.fixture
def fast_registry():
    """Default providers with a 50ms call timeout."""
    registry = ProviderRegistry()
    for profile in PROVIDER_REGISTRY.list_profiles():
        registry.register(replace(profile, call_timeout_seconds=0.05))
    for ct in ContentType:
        registry.set_default(ct, PROVIDER_REGISTRY.default_for(ct))
    return registry
