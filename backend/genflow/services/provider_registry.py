"""Declarative generation provider capability registry.

Defines every supported provider's content types, cost, latency, quality
and rate limits in a single source of truth.

Usage:
    from genflow.services.provider_registry import PROVIDER_REGISTRY
    profile = PROVIDER_REGISTRY.get("dall-e")
    PROVIDER_REGISTRY.compatible_with("meme")
    PROVIDER_REGISTRY.default_for("reel")
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any

from genflow.exceptions import UnknownProviderError, UnsupportedContentTypeError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

class MediaClass(str, enum.Enum):
    IMAGE = "image"
    VIDEO = "video"


class ContentType(str, enum.Enum):
    """Content types a request can ask for."""

    MEME = "meme"
    DEEP_POST = "deep_post"
    ENGAGEMENT_POST = "engagement_post"
    NEWSLETTER = "newsletter"
    THREAD = "thread"
    REEL = "reel"
    SHORT_FORM = "short_form"


VIDEO_CONTENT_TYPES: frozenset[ContentType] = frozenset(
    {ContentType.REEL, ContentType.SHORT_FORM}
)


def parse_content_type(content_type: str | ContentType) -> ContentType:
    """Coerce a raw string to ContentType or raise UnsupportedContentTypeError."""
    try:
        return ContentType(content_type)
    except ValueError:
        raise UnsupportedContentTypeError(
            f"Unsupported content type: {content_type}"
        ) from None


def media_class_for(content_type: str | ContentType) -> MediaClass:
    if parse_content_type(content_type) in VIDEO_CONTENT_TYPES:
        return MediaClass.VIDEO
    return MediaClass.IMAGE


def is_video_content(content_type: str | ContentType) -> bool:
    return media_class_for(content_type) == MediaClass.VIDEO


@dataclass(frozen=True)
class RateLimit:
    requests_per_minute: int
    requests_per_day: int


@dataclass(frozen=True)
class ProviderProfile:
    """Static capability descriptor for one generation provider."""
    id: str
    display_name: str
    media_class: MediaClass
    content_types_supported: frozenset[ContentType]
    cost_per_unit: float            # USD per image / per clip
    avg_latency_seconds: float
    quality_rating: int             # 1-10
    rate_limit: RateLimit
    call_timeout_seconds: float     # bound on any single outbound call
    model: str

    def supports(self, content_type: str | ContentType) -> bool:
        return parse_content_type(content_type) in self.content_types_supported


# ---------------------------------------------------------------------------
# Registry class
# ---------------------------------------------------------------------------

class ProviderRegistry:
    """In-memory registry of providers, kept in registration order."""

    def __init__(self) -> None:
        self._profiles: dict[str, ProviderProfile] = {}
        self._defaults: dict[ContentType, str] = {}

    def register(self, profile: ProviderProfile) -> None:
        if profile.id in self._profiles:
            raise ValueError(f"Provider already registered: {profile.id}")
        self._profiles[profile.id] = profile

    def set_default(self, content_type: ContentType, provider_id: str) -> None:
        profile = self.get(provider_id)
        if not profile.supports(content_type):
            raise ValueError(
                f"Default provider {provider_id} does not support {content_type.value}"
            )
        self._defaults[content_type] = provider_id

    def get(self, provider_id: str) -> ProviderProfile:
        try:
            return self._profiles[provider_id]
        except KeyError:
            raise UnknownProviderError(
                f"Unknown provider: {provider_id}", provider=provider_id
            ) from None

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._profiles

    def list_profiles(self, media_class: MediaClass | None = None) -> list[ProviderProfile]:
        """List providers in registration order, optionally filtered by media class."""
        profiles = list(self._profiles.values())
        if media_class is not None:
            profiles = [p for p in profiles if p.media_class == media_class]
        return profiles

    def supports(self, provider_id: str, content_type: str | ContentType) -> bool:
        return self.get(provider_id).supports(content_type)

    def compatible_with(self, content_type: str | ContentType) -> list[ProviderProfile]:
        """Providers able to produce ``content_type``, in registration order."""
        ct = parse_content_type(content_type)
        return [p for p in self._profiles.values() if ct in p.content_types_supported]

    def default_for(self, content_type: str | ContentType) -> str:
        ct = parse_content_type(content_type)
        try:
            return self._defaults[ct]
        except KeyError:
            raise UnsupportedContentTypeError(
                f"No default provider configured for {ct.value}"
            ) from None

    def to_dict_list(self, media_class: MediaClass | None = None) -> list[dict[str, Any]]:
        """Serialize providers for API response."""
        return [
            {
                "id": p.id,
                "display_name": p.display_name,
                "media_class": p.media_class.value,
                "content_types": sorted(ct.value for ct in p.content_types_supported),
                "cost_per_unit": p.cost_per_unit,
                "avg_latency_seconds": p.avg_latency_seconds,
                "quality_rating": p.quality_rating,
                "rate_limit": {
                    "requests_per_minute": p.rate_limit.requests_per_minute,
                    "requests_per_day": p.rate_limit.requests_per_day,
                },
                "model": p.model,
            }
            for p in self.list_profiles(media_class)
        ]


# ---------------------------------------------------------------------------
# Helper to reduce boilerplate
# ---------------------------------------------------------------------------

def _profile(
    provider_id: str,
    display_name: str,
    media_class: MediaClass,
    content_types: list[ContentType],
    *,
    cost: float,
    latency: float,
    quality: int,
    rpm: int,
    rpd: int,
    timeout: float,
    model: str,
) -> ProviderProfile:
    """Shorthand factory for ProviderProfile."""
    return ProviderProfile(
        id=provider_id,
        display_name=display_name,
        media_class=media_class,
        content_types_supported=frozenset(content_types),
        cost_per_unit=cost,
        avg_latency_seconds=latency,
        quality_rating=quality,
        rate_limit=RateLimit(requests_per_minute=rpm, requests_per_day=rpd),
        call_timeout_seconds=timeout,
        model=model,
    )


_ALL_IMAGE_TYPES = [
    ContentType.MEME,
    ContentType.DEEP_POST,
    ContentType.ENGAGEMENT_POST,
    ContentType.NEWSLETTER,
    ContentType.THREAD,
]
_VIDEO_TYPES = [ContentType.REEL, ContentType.SHORT_FORM]


def build_default_registry() -> ProviderRegistry:
    """Build the registry of supported providers and per-content-type defaults."""
    registry = ProviderRegistry()

    # ================== Image providers ==================

    registry.register(_profile(
        "dall-e", "DALL-E", MediaClass.IMAGE, _ALL_IMAGE_TYPES,
        cost=0.04, latency=12, quality=9, rpm=5, rpd=50, timeout=30,
        model="dall-e-3",
    ))
    registry.register(_profile(
        "google-ai", "Google AI (Nano Banana)", MediaClass.IMAGE,
        [ContentType.MEME, ContentType.ENGAGEMENT_POST, ContentType.THREAD],
        cost=0.02, latency=6, quality=7, rpm=10, rpd=100, timeout=15,
        model="imagen-3.0-generate-001",
    ))
    registry.register(_profile(
        "replicate", "Replicate", MediaClass.IMAGE, _ALL_IMAGE_TYPES,
        cost=0.01, latency=20, quality=8, rpm=3, rpd=30, timeout=60,
        model="black-forest-labs/flux-schnell",
    ))

    # ================== Video providers ==================

    registry.register(_profile(
        "runway", "Runway", MediaClass.VIDEO, _VIDEO_TYPES,
        cost=0.50, latency=75, quality=10, rpm=2, rpd=20, timeout=120,
        model="gen-2",
    ))
    registry.register(_profile(
        "pika", "Pika", MediaClass.VIDEO, _VIDEO_TYPES,
        cost=0.25, latency=35, quality=8, rpm=3, rpd=30, timeout=60,
        model="pika-1.0",
    ))

    # ================== Defaults per content type ==================

    registry.set_default(ContentType.MEME, "google-ai")
    registry.set_default(ContentType.DEEP_POST, "dall-e")
    registry.set_default(ContentType.ENGAGEMENT_POST, "google-ai")
    registry.set_default(ContentType.NEWSLETTER, "dall-e")
    registry.set_default(ContentType.THREAD, "google-ai")
    registry.set_default(ContentType.REEL, "runway")
    registry.set_default(ContentType.SHORT_FORM, "pika")

    return registry


PROVIDER_REGISTRY = build_default_registry()


logger.info(
    "Provider registry initialized: %d providers",
    len(PROVIDER_REGISTRY.list_profiles()),
)
