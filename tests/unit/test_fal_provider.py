"""Test the FAL provider against a mocked HTTP transport."""

import json

import httpx
import pytest

from creative_ai_system.exceptions import FatalProviderError, TransientProviderError
from creative_ai_system.models import Provider, RemoteMedia
from creative_ai_system.orchestrator.translation import (
    SecondaryFamily,
    build_image_params,
    build_video_params,
)
from creative_ai_system.providers import FalProvider
from creative_ai_system.providers.fal_provider import extract_image, extract_video

VIDEO_RESULT = {"video": {"url": "https://v3.fal.media/files/out.mp4", "content_type": "video/mp4"}}
IMAGE_RESULT = {"images": [{"url": "https://v3.fal.media/files/out.png", "content_type": "image/png"}]}


def make_provider(handler, api_key="fal-key-123"):
    return FalProvider(api_key, transport=httpx.MockTransport(handler))


class RecordingHandler:
    def __init__(self, status=200, body=None):
        self.status = status
        self.body = body
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json=self.body)

    @property
    def payload(self):
        return json.loads(self.requests[-1].content)


class TestFalProvider:
    async def test_veo_text_to_video(self):
        handler = RecordingHandler(body=VIDEO_RESULT)
        params = build_video_params(SecondaryFamily.VEO_FAST, "product reveal", "16:9", 5, None)

        result = await make_provider(handler).generate_video(params)

        request = handler.requests[0]
        assert request.url.path == "/fal-ai/veo3.1/fast"
        assert request.headers["authorization"] == "Key fal-key-123"
        assert handler.payload == {
            "prompt": "product reveal",
            "aspect_ratio": "16:9",
            "resolution": "720p",
            "duration": "6s",
            "generate_audio": True,
            "auto_fix": True,
        }
        assert result.provider == Provider.FAL
        assert result.model_id == "fal-ai/veo3.1/fast"
        assert result.result == RemoteMedia(url="https://v3.fal.media/files/out.mp4", mime_type="video/mp4")
        assert result.usage.video_duration_seconds == 6

    async def test_sora_image_to_video_uses_fixed_duration(self):
        handler = RecordingHandler(body={"data": VIDEO_RESULT})
        params = build_video_params(
            SecondaryFamily.SORA_2, "product reveal", "9:16", 5, "https://cdn.example/ref.png"
        )

        result = await make_provider(handler).generate_video(params)

        assert handler.requests[0].url.path == "/fal-ai/sora-2/image-to-video"
        assert handler.payload["duration"] == 12
        assert handler.payload["delete_video"] is False
        assert handler.payload["image_url"] == "https://cdn.example/ref.png"
        assert "auto_fix" not in handler.payload
        assert result.usage.video_duration_seconds == 12

    async def test_image_edit(self):
        handler = RecordingHandler(body=IMAGE_RESULT)
        params = build_image_params(
            SecondaryFamily.GEMINI_PRO_IMAGE, "poster", "4:5", "2K", ["https://cdn.example/a.png"]
        )

        result = await make_provider(handler).generate_image(params)

        assert handler.requests[0].url.path == "/fal-ai/gemini-3-pro-image-preview/edit"
        assert handler.payload == {
            "prompt": "poster",
            "num_images": 1,
            "aspect_ratio": "4:5",
            "output_format": "png",
            "resolution": "2K",
            "image_urls": ["https://cdn.example/a.png"],
        }
        assert result.usage.image_count == 1
        assert result.usage.image_size == "2K"

    async def test_flash_image_has_no_resolution(self):
        handler = RecordingHandler(body=IMAGE_RESULT)
        params = build_image_params(SecondaryFamily.GEMINI_FLASH_IMAGE, "poster", "1:1", "1K", [])
        await make_provider(handler).generate_image(params)
        assert "resolution" not in handler.payload
        assert "image_urls" not in handler.payload

    async def test_503_is_transient(self):
        handler = RecordingHandler(status=503, body={"detail": "overloaded"})
        params = build_video_params(SecondaryFamily.VEO_FAST, "p", "16:9", None, None)
        with pytest.raises(TransientProviderError):
            await make_provider(handler).generate_video(params)

    async def test_422_is_fatal(self):
        handler = RecordingHandler(status=422, body={"detail": "prompt too long"})
        params = build_video_params(SecondaryFamily.VEO_FAST, "p", "16:9", None, None)
        with pytest.raises(FatalProviderError, match="prompt too long") as exc_info:
            await make_provider(handler).generate_video(params)
        assert exc_info.value.status == 422

    async def test_network_error_is_fatal(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        params = build_image_params(SecondaryFamily.GEMINI_FLASH_IMAGE, "p", "1:1", "1K", [])
        with pytest.raises(FatalProviderError, match="Network connection error"):
            await make_provider(handler).generate_image(params)

    async def test_invalid_response_shape(self):
        handler = RecordingHandler(body={"status": "ok"})
        params = build_image_params(SecondaryFamily.GEMINI_FLASH_IMAGE, "p", "1:1", "1K", [])
        with pytest.raises(FatalProviderError, match="invalid response"):
            await make_provider(handler).generate_image(params)

    async def test_missing_key(self):
        handler = RecordingHandler(body=IMAGE_RESULT)
        params = build_image_params(SecondaryFamily.GEMINI_FLASH_IMAGE, "p", "1:1", "1K", [])
        with pytest.raises(FatalProviderError, match="not configured") as exc_info:
            await make_provider(handler, api_key=None).generate_image(params)
        assert exc_info.value.status == 401
        assert handler.requests == []

    def test_supported_models(self):
        provider = FalProvider("key")
        assert provider.supports_model("fal-ai/sora-2/text-to-video")
        assert not provider.supports_model("veo-3.1-fast-generate-preview")


def test_extract_helpers():
    assert extract_video({"data": VIDEO_RESULT})["url"].endswith("out.mp4")
    assert extract_image(IMAGE_RESULT)["url"].endswith("out.png")
    assert extract_video({"images": []}) is None
    assert extract_image({"images": []}) is None
    assert extract_image("not-json-object") is None
