"""Pydantic v2 schemas package."""

from genflow.schemas.generation import (
    AttemptRead,
    DispatchCreate,
    DispatchRead,
    GenerationOptions,
    JobHandleRead,
    JobStatusRead,
    MediaResultRead,
    ProviderListRead,
)

__all__ = [
    "AttemptRead",
    "DispatchCreate",
    "DispatchRead",
    "GenerationOptions",
    "JobHandleRead",
    "JobStatusRead",
    "MediaResultRead",
    "ProviderListRead",
]
