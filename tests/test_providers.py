"""Provider clients against httpx.MockTransport."""

import base64
import json

import httpx
import pytest

from genflow.config import Settings
from genflow.models.generation_job import JobStatus
from genflow.services.providers.base import ProviderError, is_transient
from genflow.services.providers.dalle_image import DalleImageProvider
from genflow.services.providers.factory import build_providers
from genflow.services.providers.google_image import GoogleImageProvider
from genflow.services.providers.mock import MockImageProvider, MockVideoProvider
from genflow.services.providers.pika_video import PikaVideoProvider
from genflow.services.providers.replicate_image import ReplicateImageProvider
from genflow.services.providers.runway_video import RunwayVideoProvider

PNG = b"\x89PNG fake"


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestDalle:
    async def test_generate_image(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers["authorization"]
            return httpx.Response(200, json={"data": [{
                "b64_json": base64.b64encode(PNG).decode(),
                "revised_prompt": "a better cat",
            }]})

        provider = DalleImageProvider(
            api_key="sk-test", base_url="https://api.openai.com/v1", http_client=_client(handler)
        )
        result = await provider.generate_image("a cat", {"aspect_ratio": "16:9"})

        assert result.image_bytes == PNG
        assert result.revised_prompt == "a better cat"
        assert seen["url"] == "https://api.openai.com/v1/images/generations"
        assert seen["body"]["size"] == "1792x1024"
        assert seen["body"]["response_format"] == "b64_json"
        assert seen["auth"] == "Bearer sk-test"

    async def test_missing_key(self):
        provider = DalleImageProvider(api_key="", base_url="https://x", http_client=_client(None))
        with pytest.raises(ProviderError) as exc_info:
            await provider.generate_image("a cat", {})
        assert not exc_info.value.transient

    async def test_server_error_is_transient(self):
        provider = DalleImageProvider(
            api_key="k", base_url="https://x",
            http_client=_client(lambda r: httpx.Response(503, json={"error": {"message": "busy"}})),
        )
        with pytest.raises(ProviderError) as exc_info:
            await provider.generate_image("a cat", {})
        assert exc_info.value.transient
        assert exc_info.value.status_code == 503


class TestGoogle:
    async def test_generate_image(self):
        def handler(request):
            assert request.url.params["key"] == "g-key"
            assert request.url.path.endswith("/models/imagen-3.0-generate-001:predict")
            body = json.loads(request.content)
            assert body["instances"][0]["prompt"] == "a dog"
            return httpx.Response(200, json={"predictions": [{
                "bytesBase64Encoded": base64.b64encode(PNG).decode(),
                "mimeType": "image/png",
            }]})

        provider = GoogleImageProvider(
            api_key="g-key", base_url="https://gen.example/v1beta", http_client=_client(handler)
        )
        result = await provider.generate_image("a dog", {})
        assert result.image_bytes == PNG

    async def test_empty_predictions(self):
        provider = GoogleImageProvider(
            api_key="g", base_url="https://x",
            http_client=_client(lambda r: httpx.Response(200, json={"predictions": []})),
        )
        with pytest.raises(ProviderError):
            await provider.generate_image("a dog", {})


class TestReplicate:
    async def test_downloads_output(self):
        def handler(request):
            if request.method == "POST":
                assert request.headers["prefer"] == "wait"
                return httpx.Response(201, json={
                    "id": "pred-1", "status": "succeeded",
                    "output": ["https://replicate.delivery/out.png"],
                })
            assert str(request.url) == "https://replicate.delivery/out.png"
            return httpx.Response(200, content=PNG, headers={"content-type": "image/png"})

        provider = ReplicateImageProvider(
            api_key="r", base_url="https://api.replicate.com/v1", http_client=_client(handler)
        )
        result = await provider.generate_image("a fox", {})
        assert result.image_bytes == PNG
        assert result.mime_type == "image/png"

    async def test_failed_prediction(self):
        provider = ReplicateImageProvider(
            api_key="r", base_url="https://x",
            http_client=_client(lambda r: httpx.Response(201, json={"status": "failed", "error": "nsfw"})),
        )
        with pytest.raises(ProviderError, match="nsfw"):
            await provider.generate_image("a fox", {})


class TestRunway:
    async def test_create_and_status(self):
        def handler(request):
            if request.method == "POST":
                assert request.url.path == "/v1/video/generate"
                return httpx.Response(200, json={"id": "rw-1", "status": "PENDING"})
            assert request.url.path == "/v1/tasks/rw-1"
            return httpx.Response(200, json={
                "status": "SUCCEEDED",
                "progress": 100,
                "output": {"video_url": "https://cdn/rw-1.mp4"},
            })

        provider = RunwayVideoProvider(
            api_key="rk", base_url="https://api.runwayml.com/v1", http_client=_client(handler)
        )
        handle = await provider.create_task("waves", {"duration": 4})
        assert handle.external_task_id == "rw-1"
        assert handle.status == JobStatus.QUEUED

        status = await provider.get_task_status("rw-1")
        assert status.status == JobStatus.COMPLETED
        assert status.media_url == "https://cdn/rw-1.mp4"

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("QUEUED", JobStatus.QUEUED),
            ("RUNNING", JobStatus.PROCESSING),
            ("PROCESSING", JobStatus.PROCESSING),
            ("COMPLETED", JobStatus.COMPLETED),
            ("CANCELLED", JobStatus.FAILED),
            ("THROTTLED", JobStatus.QUEUED),
            (None, JobStatus.QUEUED),
        ],
    )
    def test_status_normalization(self, raw, expected):
        provider = RunwayVideoProvider(api_key="k", base_url="https://x", http_client=_client(None))
        assert provider.normalize_status(raw) == expected

    async def test_task_not_found_is_not_transient(self):
        provider = RunwayVideoProvider(
            api_key="k", base_url="https://x",
            http_client=_client(lambda r: httpx.Response(404, json={"error": "not found"})),
        )
        with pytest.raises(ProviderError) as exc_info:
            await provider.get_task_status("gone")
        assert not is_transient(exc_info.value)


class TestPika:
    async def test_create_and_status(self):
        def handler(request):
            if request.method == "POST":
                assert request.url.path == "/v1/videos/generate"
                return httpx.Response(200, json={"task_id": "pk-1", "status": "queued", "eta_seconds": 40})
            assert request.url.path == "/v1/videos/status/pk-1"
            return httpx.Response(200, json={
                "status": "error", "error_message": "content policy",
            })

        provider = PikaVideoProvider(
            api_key="pk", base_url="https://api.pika.art/v1", http_client=_client(handler)
        )
        handle = await provider.create_task("clouds", {})
        assert handle.external_task_id == "pk-1"
        assert handle.eta_seconds == 40

        status = await provider.get_task_status("pk-1")
        assert status.status == JobStatus.FAILED
        assert status.error == "content policy"

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("pending", JobStatus.QUEUED),
            ("running", JobStatus.PROCESSING),
            ("success", JobStatus.COMPLETED),
            ("done", JobStatus.COMPLETED),
            ("error", JobStatus.FAILED),
            ("mystery", JobStatus.QUEUED),
        ],
    )
    def test_status_normalization(self, raw, expected):
        provider = PikaVideoProvider(api_key="k", base_url="https://x", http_client=_client(None))
        assert provider.normalize_status(raw) == expected


class TestTransience:
    def test_classification(self):
        assert is_transient(httpx.ConnectError("down"))
        assert is_transient(TimeoutError())
        assert is_transient(ProviderError("x", provider="p", transient=True))
        assert not is_transient(ProviderError("x", provider="p"))
        assert not is_transient(ValueError("x"))


class TestMockProviders:
    async def test_mock_video_completes(self):
        provider = MockVideoProvider("runway", step=50)
        handle = await provider.create_task("x", {})
        first = await provider.get_task_status(handle.external_task_id)
        second = await provider.get_task_status(handle.external_task_id)
        assert first.status == JobStatus.PROCESSING and first.progress == 50
        assert second.status == JobStatus.COMPLETED
        assert second.media_url.endswith(".mp4")

    async def test_mock_image(self):
        result = await MockImageProvider("dall-e").generate_image("x", {})
        assert result.image_bytes.startswith(b"\x89PNG")

    def test_factory_mock_mode(self):
        providers = build_providers(Settings(USE_MOCK_API=True))
        assert set(providers.image) == {"dall-e", "google-ai", "replicate"}
        assert set(providers.video) == {"runway", "pika"}
        assert isinstance(providers.video_provider("pika"), MockVideoProvider)

    async def test_factory_real_clients(self):
        async with httpx.AsyncClient() as client:
            providers = build_providers(Settings(USE_MOCK_API=False), http_client=client)
            assert isinstance(providers.image_provider("dall-e"), DalleImageProvider)
            assert isinstance(providers.video_provider("runway"), RunwayVideoProvider)
