"""Image/Video provider implementations.

Image providers answer in one call (prompt → bytes). Video providers follow
the async task pattern:
  POST create task → GET status (driven by the job poller)
"""
from __future__ import annotations

from genflow.services.providers.base import (
    ImageGeneration,
    ImageProvider,
    ProviderError,
    TaskHandle,
    TaskStatus,
    VideoProvider,
    is_transient,
)
from genflow.services.providers.factory import ProviderSet, build_providers

__all__ = [
    "ImageGeneration",
    "ImageProvider",
    "ProviderError",
    "ProviderSet",
    "TaskHandle",
    "TaskStatus",
    "VideoProvider",
    "build_providers",
    "is_transient",
]
