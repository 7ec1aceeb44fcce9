"""Model management API — list generation providers and their capabilities."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException

from genflow.services.fallback import FALLBACK_CHAINS
from genflow.services.provider_registry import PROVIDER_REGISTRY, ContentType, MediaClass

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/models", tags=["Models"])


@router.get("/providers")
async def list_providers(media_class: str | None = None) -> dict[str, Any]:
    """List providers with cost, latency, quality and rate limits."""
    if media_class:
        try:
            mc = MediaClass(media_class)
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail=f"Unknown media_class '{media_class}' (expected image or video)",
            )
    else:
        mc = None

    providers = PROVIDER_REGISTRY.to_dict_list(mc)
    for entry in providers:
        entry["fallbacks"] = list(FALLBACK_CHAINS.get(entry["id"], ()))
    return {"providers": providers, "total": len(providers)}


@router.get("/defaults")
async def list_defaults() -> dict[str, Any]:
    """Default provider for every content type."""
    return {
        "defaults": {ct.value: PROVIDER_REGISTRY.default_for(ct) for ct in ContentType},
    }
