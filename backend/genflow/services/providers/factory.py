"""Build provider clients from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx

from genflow.config import Settings
from genflow.exceptions import UnknownProviderError
from genflow.services.provider_registry import PROVIDER_REGISTRY, MediaClass, ProviderRegistry
from genflow.services.providers.base import ImageProvider, VideoProvider
from genflow.services.providers.dalle_image import DalleImageProvider
from genflow.services.providers.google_image import GoogleImageProvider
from genflow.services.providers.mock import MockImageProvider, MockVideoProvider
from genflow.services.providers.pika_video import PikaVideoProvider
from genflow.services.providers.replicate_image import ReplicateImageProvider
from genflow.services.providers.runway_video import RunwayVideoProvider

logger = logging.getLogger(__name__)


@dataclass
class ProviderSet:
    """Provider clients keyed by provider id."""
    image: dict[str, ImageProvider] = field(default_factory=dict)
    video: dict[str, VideoProvider] = field(default_factory=dict)

    def image_provider(self, provider_id: str) -> ImageProvider:
        try:
            return self.image[provider_id]
        except KeyError:
            raise UnknownProviderError(f"No image client for provider: {provider_id}") from None

    def video_provider(self, provider_id: str) -> VideoProvider:
        try:
            return self.video[provider_id]
        except KeyError:
            raise UnknownProviderError(f"No video client for provider: {provider_id}") from None

    async def aclose(self) -> None:
        for provider in [*self.image.values(), *self.video.values()]:
            await provider.aclose()


def build_providers(
    settings: Settings,
    *,
    http_client: httpx.AsyncClient | None = None,
    registry: ProviderRegistry = PROVIDER_REGISTRY,
) -> ProviderSet:
    """Create one client per registered provider.

    With ``USE_MOCK_API`` every provider is replaced by an offline mock.
    """
    if settings.USE_MOCK_API:
        logger.info("Provider clients: mock mode")
        return ProviderSet(
            image={
                p.id: MockImageProvider(p.id, model=p.model)
                for p in registry.list_profiles(MediaClass.IMAGE)
            },
            video={
                p.id: MockVideoProvider(p.id, media_base_url=settings.MEDIA_BASE_URL)
                for p in registry.list_profiles(MediaClass.VIDEO)
            },
        )

    common = {"http_client": http_client, "timeout": settings.HTTP_TIMEOUT_SECONDS}
    models = {p.id: p.model for p in registry.list_profiles()}
    providers = ProviderSet(
        image={
            "dall-e": DalleImageProvider(
                api_key=settings.OPENAI_API_KEY,
                base_url=settings.OPENAI_BASE_URL,
                model=models.get("dall-e", "dall-e-3"),
                **common,
            ),
            "google-ai": GoogleImageProvider(
                api_key=settings.GOOGLE_AI_API_KEY,
                base_url=settings.GOOGLE_AI_BASE_URL,
                model=models.get("google-ai", "imagen-3.0-generate-001"),
                **common,
            ),
            "replicate": ReplicateImageProvider(
                api_key=settings.REPLICATE_API_KEY,
                base_url=settings.REPLICATE_BASE_URL,
                model=models.get("replicate", "black-forest-labs/flux-schnell"),
                **common,
            ),
        },
        video={
            "runway": RunwayVideoProvider(
                api_key=settings.RUNWAY_API_KEY,
                base_url=settings.RUNWAY_BASE_URL,
                model=models.get("runway", "gen-2"),
                **common,
            ),
            "pika": PikaVideoProvider(
                api_key=settings.PIKA_API_KEY,
                base_url=settings.PIKA_BASE_URL,
                model=models.get("pika", "pika-1.0"),
                **common,
            ),
        },
    )
    missing = [
        pid for pid, p in [*providers.image.items(), *providers.video.items()] if not p.api_key
    ]
    if missing:
        logger.warning("Provider API keys not configured: %s", ", ".join(missing))
    return providers
