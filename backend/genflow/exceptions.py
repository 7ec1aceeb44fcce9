"""Orchestrator error taxonomy.

Every error carries a machine-readable ``kind``, a human message and, where
known, the provider involved, so the HTTP layer can render something useful
instead of a generic failure.
"""

from __future__ import annotations

from typing import Any


class GenerationError(Exception):
    """Base class for all orchestrator errors."""

    kind: str = "generation_error"
    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        self.message = message
        self.provider = provider
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "provider": self.provider,
            "retryable": self.retryable,
        }


class IncompatibleProviderError(GenerationError):
    """The requested provider cannot produce this content type."""

    kind = "incompatible_provider"
    status_code = 400


class UnsupportedContentTypeError(GenerationError):
    kind = "unsupported_content_type"
    status_code = 400


class UnknownProviderError(GenerationError):
    kind = "unknown_provider"
    status_code = 400


class ProviderUnavailableError(GenerationError):
    """Task creation failed; re-dispatching triggers provider fallback."""

    kind = "provider_unavailable"
    status_code = 503
    retryable = True


class ProviderRateLimitedError(ProviderUnavailableError):
    """The provider's per-minute or per-day budget is spent."""

    kind = "provider_rate_limited"
    status_code = 429

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, provider=provider)
        self.retry_after = retry_after

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["retry_after"] = self.retry_after
        return data


class AllProvidersExhaustedError(GenerationError):
    """Every provider in the fallback chain failed for one request."""

    kind = "all_providers_exhausted"
    status_code = 502

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        last_error: BaseException | None = None,
        attempts: list[Any] | None = None,
    ) -> None:
        super().__init__(message, provider=provider)
        self.last_error = last_error
        self.attempts = attempts or []

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["last_error"] = str(self.last_error) if self.last_error else None
        data["attempts"] = [
            a.to_dict() if hasattr(a, "to_dict") else str(a) for a in self.attempts
        ]
        return data


class JobNotFoundError(GenerationError):
    kind = "job_not_found"
    status_code = 404


class JobNotRetryableError(GenerationError):
    kind = "job_not_retryable"
    status_code = 409


class JobConflictError(GenerationError):
    """A concurrent writer saved the job first."""

    kind = "job_conflict"
    status_code = 409
    retryable = True


class InvalidJobTransitionError(GenerationError):
    kind = "invalid_job_transition"
    status_code = 409
