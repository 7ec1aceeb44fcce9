"""Global per-provider request budget (requests per minute / per day).

Fixed windows: a provider may receive ``requests_per_minute`` calls within
each wall-clock minute and ``requests_per_day`` within each UTC day. The
in-memory backend is per process; the Redis backend is shared by every
server instance.
"""

from __future__ import annotations

import abc
import asyncio
import logging
import time
from collections.abc import Callable

import redis.asyncio as aioredis

from genflow.services.provider_registry import ProviderProfile

logger = logging.getLogger(__name__)

KEY_PREFIX = "genflow:rate:"

_MINUTE = 60
_DAY = 86400


def _windows(profile: ProviderProfile, now: float) -> list[tuple[str, int, int, float]]:
    """(label, limit, bucket, seconds until the bucket rolls over) per window."""
    out = []
    for label, size, limit in (
        ("m", _MINUTE, profile.rate_limit.requests_per_minute),
        ("d", _DAY, profile.rate_limit.requests_per_day),
    ):
        if limit <= 0:
            continue
        bucket = int(now // size)
        out.append((label, limit, bucket, (bucket + 1) * size - now))
    return out


class RateBudget(abc.ABC):
    """Grants or refuses one outbound call for a provider."""

    @abc.abstractmethod
    async def try_acquire(self, profile: ProviderProfile) -> float | None:
        """Consume one request.

        Returns None when granted, otherwise the seconds until the
        exhausted window rolls over (nothing is consumed in that case).
        """

    async def aclose(self) -> None:
        return None


class InMemoryRateBudget(RateBudget):
    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._counts: dict[tuple[str, str, int], int] = {}
        self._lock = asyncio.Lock()

    async def try_acquire(self, profile: ProviderProfile) -> float | None:
        async with self._lock:
            now = self._clock()
            windows = _windows(profile, now)
            for label, limit, bucket, remaining in windows:
                if self._counts.get((profile.id, label, bucket), 0) >= limit:
                    logger.info("Rate budget exhausted for %s (%s window)", profile.id, label)
                    return remaining
            for label, _limit, bucket, _remaining in windows:
                key = (profile.id, label, bucket)
                self._counts[key] = self._counts.get(key, 0) + 1
            self._prune(now)
            return None

    def _prune(self, now: float) -> None:
        current = {"m": int(now // _MINUTE), "d": int(now // _DAY)}
        stale = [k for k in self._counts if k[2] < current[k[1]]]
        for key in stale:
            del self._counts[key]


class RedisRateBudget(RateBudget):
    """Counts with INCR/EXPIRE so all server instances share one budget."""

    def __init__(
        self,
        client: aioredis.Redis,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._redis = client
        self._clock = clock

    @classmethod
    def from_url(cls, url: str) -> "RedisRateBudget":
        return cls(aioredis.from_url(url))

    async def try_acquire(self, profile: ProviderProfile) -> float | None:
        now = self._clock()
        windows = _windows(profile, now)
        keys = [f"{KEY_PREFIX}{profile.id}:{label}:{bucket}" for label, _l, bucket, _r in windows]

        pipe = self._redis.pipeline()
        for key, (_label, _limit, _bucket, remaining) in zip(keys, windows):
            pipe.incr(key)
            pipe.expire(key, int(remaining) + 1)
        results = await pipe.execute()
        counts = results[::2]

        for key, count, (label, limit, _bucket, remaining) in zip(keys, counts, windows):
            if count > limit:
                # Give back what this attempt took from every window
                rollback = self._redis.pipeline()
                for k in keys:
                    rollback.decr(k)
                await rollback.execute()
                logger.info("Rate budget exhausted for %s (%s window)", profile.id, label)
                return remaining
        return None

    async def aclose(self) -> None:
        await self._redis.aclose()


def build_rate_budget(backend: str, redis_url: str) -> RateBudget:
    if backend == "redis":
        logger.info("Rate budget backend: redis (%s)", redis_url)
        return RedisRateBudget.from_url(redis_url)
    if backend != "memory":
        raise ValueError(f"Unknown RATE_BUDGET_BACKEND: {backend}")
    return InMemoryRateBudget()
