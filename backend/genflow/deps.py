"""Process-wide service singletons and their FastAPI dependency getters."""

from __future__ import annotations

import logging

from genflow.api.metrics import register_service
from genflow.config import get_settings
from genflow.database import get_session_factory
from genflow.services.base_gen_service import BaseGenService, GenServiceConfig
from genflow.services.dispatcher import GenerationDispatcher
from genflow.services.job_poller import JobStatusTracker, PollPolicy
from genflow.services.media_store import MediaStore
from genflow.services.providers.factory import ProviderSet, build_providers
from genflow.services.rate_budget import RateBudget, build_rate_budget
from genflow.storage.job_repository import JobRepository, SqlJobRepository

logger = logging.getLogger(__name__)

_providers: ProviderSet | None = None
_rate_budget: RateBudget | None = None
_service: BaseGenService | None = None
_repository: JobRepository | None = None
_dispatcher: GenerationDispatcher | None = None
_tracker: JobStatusTracker | None = None


def get_providers() -> ProviderSet:
    global _providers
    if _providers is None:
        _providers = build_providers(get_settings())
    return _providers


def get_rate_budget() -> RateBudget:
    global _rate_budget
    if _rate_budget is None:
        settings = get_settings()
        _rate_budget = build_rate_budget(settings.RATE_BUDGET_BACKEND, settings.REDIS_URL)
    return _rate_budget


def get_generation_service() -> BaseGenService:
    """Shared call wrapper; its metrics are served by /api/metrics/generation."""
    global _service
    if _service is None:
        settings = get_settings()
        _service = BaseGenService(
            GenServiceConfig(timeout=settings.HTTP_TIMEOUT_SECONDS),
            service_name="generation",
        )
        register_service(_service)
    return _service


def get_repository() -> JobRepository:
    global _repository
    if _repository is None:
        _repository = SqlJobRepository(get_session_factory())
    return _repository


def get_dispatcher() -> GenerationDispatcher:
    global _dispatcher
    if _dispatcher is None:
        settings = get_settings()
        _dispatcher = GenerationDispatcher(
            providers=get_providers(),
            repository=get_repository(),
            media_store=MediaStore(settings.MEDIA_VOLUME, settings.MEDIA_BASE_URL),
            rate_budget=get_rate_budget(),
            service=get_generation_service(),
            poll_interval_seconds=settings.MIN_POLL_INTERVAL_SECONDS,
        )
    return _dispatcher


def get_tracker() -> JobStatusTracker:
    global _tracker
    if _tracker is None:
        settings = get_settings()
        _tracker = JobStatusTracker(
            repository=get_repository(),
            providers=get_providers(),
            service=get_generation_service(),
            policy=PollPolicy(
                min_poll_interval_seconds=settings.MIN_POLL_INTERVAL_SECONDS,
                job_timeout_seconds=settings.JOB_TIMEOUT_SECONDS,
                max_poll_retries=settings.MAX_POLL_RETRIES,
                lease_seconds=settings.POLL_LEASE_SECONDS,
                lease_wait_step_seconds=settings.POLL_LEASE_WAIT_STEP_SECONDS,
            ),
            result_publisher=get_dispatcher().publish_job_result,
        )
    return _tracker


async def shutdown() -> None:
    """Close provider HTTP clients and the rate budget connection."""
    global _providers, _rate_budget, _service, _repository, _dispatcher, _tracker
    if _providers is not None:
        await _providers.aclose()
    if _rate_budget is not None:
        await _rate_budget.aclose()
    _providers = _rate_budget = _service = _repository = None
    _dispatcher = _tracker = None
    logger.info("Generation services shut down")
