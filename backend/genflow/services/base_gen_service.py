"""Base generation service — bounded provider calls, sequential fallback, metrics."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from genflow.services.providers.base import is_transient

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class AttemptFailure:
    """One provider attempt that did not produce a result."""
    provider: str
    error: str
    transient: bool
    latency_ms: int = 0
    status_code: int | None = None

    @classmethod
    def from_exception(cls, provider: str, exc: BaseException, latency_ms: int = 0) -> "AttemptFailure":
        if isinstance(exc, asyncio.TimeoutError):
            message = f"{provider} call timed out"
        else:
            message = str(exc) or type(exc).__name__
        return cls(
            provider=provider,
            error=message,
            transient=is_transient(exc) or getattr(exc, "retryable", False),
            latency_ms=latency_ms,
            status_code=getattr(exc, "status_code", None),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "error": self.error,
            "transient": self.transient,
            "latency_ms": self.latency_ms,
            "status_code": self.status_code,
        }


@dataclass
class GenResult(Generic[T]):
    """Standardized generation result."""
    data: T
    provider: str
    latency_ms: int
    cost_estimate: float
    attempts: list[AttemptFailure] = field(default_factory=list)

    @property
    def fallback_used(self) -> bool:
        return bool(self.attempts)


@dataclass
class GenServiceConfig:
    """Configuration for a generation service.

    ``timeout`` bounds a provider call when the caller passes none; provider
    profiles normally supply their own ``call_timeout_seconds``.
    """
    timeout: float = 60.0


class ChainExhausted(Exception):
    """Every provider in a chain failed; ``attempts`` holds them in order."""

    def __init__(self, attempts: list[AttemptFailure], last_error: BaseException | None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{len(attempts)} provider attempt(s) failed")


@dataclass
class _ProviderStats:
    calls: int = 0
    errors: int = 0
    timeouts: int = 0
    cost: float = 0.0
    latency_ms: int = 0


class BaseGenService:
    """Runs provider calls under a timeout and keeps per-provider statistics.

    Provides:
    - ``call``: one provider call bounded by ``asyncio.wait_for``
    - ``execute``: strictly sequential attempts across a provider chain
    - ``get_metrics``: counters for the metrics API
    """

    service_name: str = "generation"

    def __init__(self, config: GenServiceConfig | None = None, service_name: str | None = None):
        self.config = config or GenServiceConfig()
        if service_name:
            self.service_name = service_name
        self._stats: dict[str, _ProviderStats] = {}

    async def call(
        self,
        provider: str,
        operation: Callable[[], Awaitable[T]],
        *,
        timeout: float | None = None,
        cost: float = 0.0,
    ) -> T:
        """Await ``operation()`` for ``provider`` within ``timeout`` seconds.

        A timeout surfaces as ``asyncio.TimeoutError``, which callers treat
        as a transient provider failure.
        """
        stats = self._stats.setdefault(provider, _ProviderStats())
        stats.calls += 1
        start = time.monotonic()
        try:
            result = await asyncio.wait_for(operation(), timeout=timeout or self.config.timeout)
        except asyncio.TimeoutError:
            stats.errors += 1
            stats.timeouts += 1
            raise
        except Exception:
            stats.errors += 1
            raise
        finally:
            stats.latency_ms += int((time.monotonic() - start) * 1000)
        stats.cost += cost
        return result

    async def execute(
        self,
        chain: Sequence[str],
        attempt: Callable[[str], Awaitable[T]],
        *,
        timeout_for: Callable[[str], float] | None = None,
        cost_for: Callable[[str], float] | None = None,
    ) -> GenResult[T]:
        """Try each provider of ``chain`` in order until one succeeds.

        Raises ChainExhausted when none does.
        """
        failures: list[AttemptFailure] = []
        last_error: BaseException | None = None
        start = time.monotonic()

        for index, provider in enumerate(chain):
            attempt_start = time.monotonic()
            cost = cost_for(provider) if cost_for else 0.0
            try:
                data = await self.call(
                    provider,
                    lambda: attempt(provider),
                    timeout=timeout_for(provider) if timeout_for else None,
                    cost=cost,
                )
            except Exception as exc:
                last_error = exc
                failure = AttemptFailure.from_exception(
                    provider, exc, int((time.monotonic() - attempt_start) * 1000)
                )
                failures.append(failure)
                logger.warning(
                    "%s attempt %d/%d via %s failed: %s",
                    self.service_name, index + 1, len(chain), provider, failure.error,
                )
                continue

            return GenResult(
                data=data,
                provider=provider,
                latency_ms=int((time.monotonic() - start) * 1000),
                cost_estimate=cost,
                attempts=failures,
            )

        raise ChainExhausted(failures, last_error)

    def get_metrics(self) -> dict[str, Any]:
        """Return usage statistics for this service, broken down by provider."""
        providers = []
        for provider, s in self._stats.items():
            providers.append({
                "provider": provider,
                "total_calls": s.calls,
                "total_errors": s.errors,
                "timeouts": s.timeouts,
                "total_cost": round(s.cost, 4),
                "error_rate": round(s.errors / max(s.calls, 1), 3),
                "avg_latency_ms": round(s.latency_ms / max(s.calls, 1)),
            })
        total_calls = sum(s.calls for s in self._stats.values())
        total_errors = sum(s.errors for s in self._stats.values())
        return {
            "service": self.service_name,
            "total_calls": total_calls,
            "total_cost": round(sum(s.cost for s in self._stats.values()), 4),
            "total_errors": total_errors,
            "error_rate": round(total_errors / max(total_calls, 1), 3),
            "providers": providers,
        }
