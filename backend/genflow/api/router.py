"""Master API router — mounts all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from genflow.api.generation import router as generation_router
from genflow.api.metrics import router as metrics_router
from genflow.api.models import router as models_router

api_router = APIRouter(prefix="/api", redirect_slashes=False)

api_router.include_router(generation_router, prefix="/generation", tags=["Generation"])
api_router.include_router(metrics_router, prefix="/metrics", tags=["Metrics"])
api_router.include_router(models_router, tags=["Models"])
