"""Generation API — dispatch requests and resumable job status reads."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from genflow.deps import get_dispatcher, get_tracker
from genflow.schemas.generation import (
    DispatchCreate,
    DispatchRead,
    JobHandleRead,
    JobStatusRead,
)
from genflow.services.dispatcher import DispatchRequest, GenerationDispatcher
from genflow.services.job_poller import JobStatusTracker

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/dispatch", response_model=DispatchRead)
async def dispatch_generation(
    data: DispatchCreate,
    response: Response,
    dispatcher: GenerationDispatcher = Depends(get_dispatcher),
):
    """Generate an image now, or start a video job and return its handle (202)."""
    try:
        outcome = await dispatcher.dispatch(
            DispatchRequest(
                content_type=data.content_type,
                prompt=data.prompt,
                options=data.options.model_dump(exclude_none=True),
                engine_override=data.engine,
                priority_hint=data.priority_hint,
                content_draft_id=data.content_draft_id,
                exclude_engines=data.exclude_engines,
            )
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if outcome.kind == "job":
        response.status_code = 202
    return DispatchRead.model_validate(outcome, from_attributes=True)


@router.get("/jobs/{job_id}", response_model=JobStatusRead)
async def get_job_status(
    job_id: str,
    response: Response,
    tracker: JobStatusTracker = Depends(get_tracker),
):
    """Current job status; polls the provider at most once per interval."""
    view = await tracker.get_status(job_id)
    if view.retry_after is not None:
        response.headers["Retry-After"] = str(max(1, round(view.retry_after)))
    return JobStatusRead.model_validate(view, from_attributes=True)


@router.post("/jobs/{job_id}/redispatch", response_model=JobHandleRead, status_code=202)
async def redispatch_job(
    job_id: str,
    dispatcher: GenerationDispatcher = Depends(get_dispatcher),
):
    """Retry a failed or timed-out job on the next provider of its fallback chain."""
    handle = await dispatcher.redispatch(job_id)
    return JobHandleRead.model_validate(handle, from_attributes=True)
