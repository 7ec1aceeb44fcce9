"""Engine selection — pick a provider for a content type.

Priority order:
1. User-specified provider (must support the content type)
2. Priority hint (speed / quality / cost) over compatible providers
3. Default provider configured for the content type

Pure functions over the provider registry; nothing here performs I/O.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Mapping
from typing import Any

from genflow.exceptions import IncompatibleProviderError
from genflow.services.provider_registry import (
    PROVIDER_REGISTRY,
    ContentType,
    ProviderProfile,
    ProviderRegistry,
    parse_content_type,
)


class PriorityHint(str, enum.Enum):
    SPEED = "speed"
    QUALITY = "quality"
    COST = "cost"
    AUTO = "auto"


# Lower sort key wins; min() keeps the first of equal keys, so ties go to
# the provider registered first.
_RANKINGS: dict[PriorityHint, Callable[[ProviderProfile], float]] = {
    PriorityHint.SPEED: lambda p: p.avg_latency_seconds,
    PriorityHint.QUALITY: lambda p: -p.quality_rating,
    PriorityHint.COST: lambda p: p.cost_per_unit,
}


def parse_priority_hint(hint: str | PriorityHint | None) -> PriorityHint | None:
    if hint is None or hint == "":
        return None
    try:
        return PriorityHint(hint)
    except ValueError:
        raise ValueError(
            f"Unknown priority hint '{hint}' (expected speed, quality, cost or auto)"
        ) from None


def infer_priority_hint(options: Mapping[str, Any] | None) -> PriorityHint | None:
    """Derive a priority hint from the request's goal and tone.

    Quick or engagement-driven content favours speed, viral or artistic
    content favours quality. Anything else returns None (use the default).
    """
    if not options:
        return None
    goal = str(options.get("goal") or "").lower()
    tone = str(options.get("tone") or "").lower()

    if "quick" in goal or "engagement" in goal or "casual" in tone:
        return PriorityHint.SPEED
    if "viral" in goal or "creative" in goal or "artistic" in tone:
        return PriorityHint.QUALITY
    return None


def select_engine(
    content_type: str | ContentType,
    user_override: str | None = None,
    priority_hint: str | PriorityHint | None = None,
    *,
    options: Mapping[str, Any] | None = None,
    registry: ProviderRegistry = PROVIDER_REGISTRY,
) -> str:
    """Return the provider id to use for ``content_type``.

    Raises IncompatibleProviderError when ``user_override`` cannot produce
    the content type, and UnknownProviderError when it is not registered.
    """
    ct = parse_content_type(content_type)

    if user_override:
        profile = registry.get(user_override)
        if not profile.supports(ct):
            raise IncompatibleProviderError(
                f"Provider {profile.id} does not support content type {ct.value}",
                provider=profile.id,
            )
        return profile.id

    hint = parse_priority_hint(priority_hint)
    if hint == PriorityHint.AUTO:
        hint = infer_priority_hint(options)

    if hint is not None:
        candidates = registry.compatible_with(ct)
        if candidates:
            return min(candidates, key=_RANKINGS[hint]).id

    return registry.default_for(ct)
