"""Static provider fallback chains."""

from __future__ import annotations

from collections.abc import Iterable

from genflow.services.provider_registry import (
    PROVIDER_REGISTRY,
    ContentType,
    ProviderRegistry,
)

# Ordered alternates to try when a provider fails
FALLBACK_CHAINS: dict[str, tuple[str, ...]] = {
    "dall-e": ("replicate", "google-ai"),
    "google-ai": ("replicate", "dall-e"),
    "replicate": ("dall-e", "google-ai"),
    "runway": ("pika",),
    "pika": ("runway",),
}


def validate_chains(
    chains: dict[str, tuple[str, ...]] = FALLBACK_CHAINS,
    registry: ProviderRegistry = PROVIDER_REGISTRY,
) -> None:
    """Reject chains that loop back to their origin or cross media classes."""
    for origin, chain in chains.items():
        origin_class = registry.get(origin).media_class
        if origin in chain:
            raise ValueError(f"Fallback chain for {origin} contains itself")
        if len(set(chain)) != len(chain):
            raise ValueError(f"Fallback chain for {origin} has duplicates")
        for provider_id in chain:
            if registry.get(provider_id).media_class != origin_class:
                raise ValueError(
                    f"Fallback chain for {origin} crosses media class via {provider_id}"
                )


def fallbacks_for(
    provider_id: str,
    attempted: Iterable[str] = (),
    content_type: str | ContentType | None = None,
    *,
    chains: dict[str, tuple[str, ...]] = FALLBACK_CHAINS,
    registry: ProviderRegistry = PROVIDER_REGISTRY,
) -> list[str]:
    """Ordered alternates for ``provider_id``.

    Excludes the provider itself, anything already attempted in this
    dispatch and, when ``content_type`` is given, providers that cannot
    produce it. An empty list means there is nothing left to try.
    """
    skip = {provider_id, *attempted}
    result = []
    for candidate in chains.get(provider_id, ()):
        if candidate in skip:
            continue
        if content_type is not None and not registry.supports(candidate, content_type):
            continue
        result.append(candidate)
    return result


validate_chains()
