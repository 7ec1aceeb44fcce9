"""Metrics API — generation service usage statistics."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

router = APIRouter()

# Services whose get_metrics() is reported, keyed by service name
_service_instances: dict[str, Any] = {}


def register_service(service: Any) -> None:
    """Register a generation service instance for metrics tracking."""
    _service_instances[service.service_name] = service


@router.get("/generation")
async def generation_metrics() -> dict[str, Any]:
    """Return per-provider call statistics for all registered services."""
    return {"services": [svc.get_metrics() for svc in _service_instances.values()]}
