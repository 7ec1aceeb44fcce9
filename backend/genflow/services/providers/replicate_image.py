"""Replicate image generation provider (FLUX schnell by default).

Creates a prediction with ``Prefer: wait`` so short runs finish within the
request, then downloads the output file.
"""

from __future__ import annotations

import logging
from typing import Any

from genflow.services.providers.base import (
    ImageGeneration,
    ImageProvider,
    ProviderError,
    raise_for_provider_status,
)

logger = logging.getLogger(__name__)

_DIMENSIONS = {"1:1": (1024, 1024), "16:9": (1344, 768), "9:16": (768, 1344)}


class ReplicateImageProvider(ImageProvider):
    provider_id = "replicate"

    def __init__(
        self, *, model: str = "black-forest-labs/flux-schnell", **kwargs: Any
    ) -> None:
        super().__init__(**kwargs)
        self.model = model

    async def generate_image(self, prompt: str, config: dict[str, Any]) -> ImageGeneration:
        self._require_key()

        width, height = _DIMENSIONS.get(config.get("aspect_ratio", "1:1"), (1024, 1024))
        model_input: dict[str, Any] = {
            "prompt": prompt,
            "width": width,
            "height": height,
            "num_outputs": 1,
            "num_inference_steps": config.get("num_inference_steps", 4),
        }
        if config.get("negative_prompt"):
            model_input["negative_prompt"] = config["negative_prompt"]

        headers = {**self._headers(), "Prefer": "wait"}
        resp = await self._client.post(
            f"{self.base_url}/models/{self.model}/predictions",
            json={"input": model_input},
            headers=headers,
        )
        raise_for_provider_status(resp, self.provider_id)
        prediction = resp.json()

        status = prediction.get("status")
        if status in ("failed", "canceled"):
            raise ProviderError(
                f"Replicate prediction {status}: {prediction.get('error') or 'unknown'}",
                provider=self.provider_id,
            )

        output = prediction.get("output")
        image_url = output[0] if isinstance(output, list) and output else output
        if not image_url:
            raise ProviderError(
                f"Replicate prediction not finished (status={status})",
                provider=self.provider_id,
                transient=True,
            )

        logger.info("Replicate prediction %s done, downloading output", prediction.get("id"))
        download = await self._client.get(image_url)
        raise_for_provider_status(download, self.provider_id)

        return ImageGeneration(
            image_bytes=download.content,
            model=self.model,
            mime_type=download.headers.get("content-type", "image/png").split(";")[0],
        )
