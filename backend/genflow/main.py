"""GenFlow — FastAPI application entry point.

Mounts the API routes, configures CORS, renders orchestrator errors,
serves generated media and manages service lifetimes.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from genflow import deps
from genflow.api.router import api_router
from genflow.config import get_settings
from genflow.database import close_db, init_db
from genflow.exceptions import GenerationError, ProviderRateLimitedError

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: optional table creation, clean shutdown."""
    logger.info("%s starting up...", settings.APP_NAME)
    logger.info("USE_MOCK_API: %s", settings.USE_MOCK_API)
    logger.info("Database: %s@%s/%s", settings.DB_USER, settings.DB_HOST, settings.DB_NAME)
    logger.info("Rate budget backend: %s", settings.RATE_BUDGET_BACKEND)

    os.makedirs(settings.MEDIA_VOLUME, exist_ok=True)

    if settings.AUTO_CREATE_TABLES:
        await init_db()
    else:
        logger.info("Skipping init_db (tables managed by alembic)")

    yield

    await deps.shutdown()
    await close_db()
    logger.info("%s shut down", settings.APP_NAME)


app = FastAPI(
    title="GenFlow API",
    description="Generation job orchestrator — provider selection, fallback and job tracking",
    version="0.1.0",
    lifespan=lifespan,
    redirect_slashes=False,
)

# CORS: frontend dev server by default, override with CORS_ORIGINS
_cors_origins = os.environ.get(
    "CORS_ORIGINS",
    "http://localhost:3000,http://127.0.0.1:3000",
).split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GenerationError)
async def generation_error_handler(request: Request, exc: GenerationError) -> JSONResponse:
    """Render orchestrator errors as {"error": {...}} with the error's status code."""
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    headers = {}
    if isinstance(exc, ProviderRateLimitedError) and exc.retry_after is not None:
        headers["Retry-After"] = str(max(1, round(exc.retry_after)))
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.to_dict()},
        headers=headers,
    )


# Mount API routes
app.include_router(api_router)

# Mount media static files
os.makedirs(settings.MEDIA_VOLUME, exist_ok=True)
app.mount("/media", StaticFiles(directory=settings.MEDIA_VOLUME), name="media")


@app.get("/")
async def root():
    """Liveness check."""
    return {
        "service": settings.APP_NAME,
        "status": "running",
        "mock_mode": settings.USE_MOCK_API,
    }


@app.get("/health")
async def health():
    """Health with mock mode and rate budget backend."""
    return {
        "status": "healthy",
        "database": settings.DB_HOST,
        "mock_mode": settings.USE_MOCK_API,
        "rate_budget": settings.RATE_BUDGET_BACKEND,
    }
