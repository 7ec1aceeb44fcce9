"""Google AI (Imagen) image generation provider.

Fastest option at low cost. Uses the REST predict endpoint with an API key
query parameter.
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


class GoogleImageProvider(ImageProvider):
    provider_id = "google-ai"

    def __init__(self, *, model: str = "imagen-3.0-generate-001", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.model = model

    async def generate_image(self, prompt: str, config: dict[str, Any]) -> ImageGeneration:
        self._require_key()

        instance: dict[str, Any] = {"prompt": prompt}
        if config.get("negative_prompt"):
            instance["negativePrompt"] = config["negative_prompt"]

        body = {
            "instances": [instance],
            "parameters": {
                "sampleCount": 1,
                "aspectRatio": config.get("aspect_ratio", "1:1"),
            },
        }

        resp = await self._client.post(
            f"{self.base_url}/models/{self.model}:predict",
            params={"key": self.api_key},
            json=body,
            headers={"Content-Type": "application/json"},
        )
        raise_for_provider_status(resp, self.provider_id)

        predictions = resp.json().get("predictions") or []
        encoded = predictions[0].get("bytesBase64Encoded") if predictions else None
        if not encoded:
            raise ProviderError(
                "No image data returned from Google AI", provider=self.provider_id
            )

        return ImageGeneration(
            image_bytes=base64.b64decode(encoded),
            model=self.model,
            mime_type=predictions[0].get("mimeType", "image/png"),
        )
