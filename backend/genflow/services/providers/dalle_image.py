"""DALL-E 3 image generation provider (OpenAI Images API).

High quality, moderate cost. Returns base64 PNG data.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

from genflow.services.providers.base import (
    ImageGeneration,
    ImageProvider,
    ProviderError,
    raise_for_provider_status,
)

logger = logging.getLogger(__name__)

_SIZES = {"1:1": "1024x1024", "16:9": "1792x1024", "9:16": "1024x1792"}


class DalleImageProvider(ImageProvider):
    provider_id = "dall-e"

    def __init__(self, *, model: str = "dall-e-3", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.model = model

    async def generate_image(self, prompt: str, config: dict[str, Any]) -> ImageGeneration:
        self._require_key()

        body = {
            "model": self.model,
            "prompt": prompt,
            "n": 1,
            "size": _SIZES.get(config.get("aspect_ratio", "1:1"), "1024x1024"),
            "quality": "hd" if config.get("quality") == "hd" else "standard",
            "response_format": "b64_json",
        }

        resp = await self._client.post(
            f"{self.base_url}/images/generations", json=body, headers=self._headers()
        )
        if resp.status_code == 400:
            raise ProviderError(
                f"DALL-E 3 rejected the prompt: {resp.text[:200]}",
                provider=self.provider_id,
                status_code=400,
            )
        raise_for_provider_status(resp, self.provider_id)

        data = resp.json().get("data") or []
        if not data or not data[0].get("b64_json"):
            raise ProviderError(
                "No image data returned from DALL-E 3", provider=self.provider_id
            )

        revised_prompt = data[0].get("revised_prompt")
        if revised_prompt:
            logger.debug("DALL-E revised prompt: %s", revised_prompt)

        return ImageGeneration(
            image_bytes=base64.b64decode(data[0]["b64_json"]),
            model=self.model,
            revised_prompt=revised_prompt,
        )
