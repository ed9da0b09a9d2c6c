"""
FAL provider: synchronous fal.run endpoints for video and image generation.
"""

from typing import Any, Dict, List, Optional

import httpx
import structlog

from creative_ai_system.exceptions import FatalProviderError
from creative_ai_system.models import (
    Provider,
    RemoteMedia,
    SecondaryVendorResult,
    UsageMetrics,
)
from creative_ai_system.orchestrator.translation import (
    SECONDARY_ENDPOINTS,
    SecondaryFamily,
    SecondaryImageParams,
    SecondaryVideoParams,
)

from .base import BaseMediaProvider, classify_provider_error

logger = structlog.get_logger(__name__)

FAL_BASE_URL = "https://fal.run"


def _unwrap(body: Any) -> Dict[str, Any]:
    """FAL results arrive either bare or wrapped in ``data``."""
    if not isinstance(body, dict):
        return {}
    data = body.get("data")
    return data if isinstance(data, dict) else body


def extract_video(body: Any) -> Optional[Dict[str, Any]]:
    video = _unwrap(body).get("video")
    if isinstance(video, dict) and video.get("url"):
        return video
    return None


def extract_image(body: Any) -> Optional[Dict[str, Any]]:
    images = _unwrap(body).get("images")
    if isinstance(images, list) and images and isinstance(images[0], dict) and images[0].get("url"):
        return images[0]
    return None


class FalProvider(BaseMediaProvider):
    """Secondary vendor, reached over plain HTTP."""

    provider = Provider.FAL

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = FAL_BASE_URL,
        timeout: float = 600.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the FAL provider.

        Args:
            api_key: FAL key, sent as ``Authorization: Key <key>``
            base_url: Synchronous run endpoint root
            timeout: Request timeout in seconds; video renders take minutes
            transport: Optional httpx transport (tests)
        """
        super().__init__(api_key, timeout)
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    def get_supported_models(self) -> List[str]:
        return [endpoint for pair in SECONDARY_ENDPOINTS.values() for endpoint in pair]

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"Authorization": f"Key {self._require_key()}"},
            transport=self._transport,
        )

    async def run(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST one job to ``/<endpoint>`` and return the JSON result."""
        try:
            async with self._http_client() as client:
                response = await client.post(f"/{endpoint}", json=payload)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            error = httpx.HTTPError(
                f"FAL request to {endpoint} failed with status {status}: {_error_detail(e.response)}"
            )
            self._log_error(error, endpoint)
            raise classify_provider_error(error, self.provider, status=status) from e
        except httpx.TimeoutException as e:
            self._log_error(e, endpoint)
            raise FatalProviderError(f"FAL request to {endpoint} timed out", provider=self.name) from e
        except httpx.TransportError as e:
            self._log_error(e, endpoint)
            raise FatalProviderError(
                f"Network connection error contacting FAL: {type(e).__name__}", provider=self.name
            ) from e
        except ValueError as e:
            raise FatalProviderError(f"Invalid JSON from FAL {endpoint}", provider=self.name) from e

    async def generate_video(self, params: SecondaryVideoParams) -> SecondaryVendorResult:
        payload: Dict[str, Any] = {
            "prompt": params.prompt,
            "aspect_ratio": params.aspect_ratio,
            "resolution": params.resolution,
        }
        if params.image_url:
            payload["image_url"] = params.image_url

        if params.family == SecondaryFamily.SORA_2:
            payload["duration"] = params.duration_seconds
            payload["delete_video"] = False
        else:
            payload["duration"] = f"{params.duration_seconds}s"
            payload["generate_audio"] = params.generate_audio
            if not params.image_url:
                payload["auto_fix"] = True

        self._log_request(
            "video", params.endpoint, duration=payload["duration"], aspect_ratio=params.aspect_ratio
        )
        body = await self.run(params.endpoint, payload)

        video = extract_video(body)
        if video is None:
            raise FatalProviderError(
                f"Failed to generate video - invalid response from {params.endpoint}",
                provider=self.name,
            )

        return SecondaryVendorResult(
            model_id=params.endpoint,
            result=RemoteMedia(url=video["url"], mime_type=video.get("content_type") or "video/mp4"),
            usage=UsageMetrics(video_duration_seconds=params.duration_seconds),
        )

    async def generate_image(self, params: SecondaryImageParams) -> SecondaryVendorResult:
        payload: Dict[str, Any] = {
            "prompt": params.prompt,
            "num_images": 1,
            "aspect_ratio": params.aspect_ratio,
            "output_format": "png",
        }
        if params.family == SecondaryFamily.GEMINI_PRO_IMAGE:
            payload["resolution"] = params.resolution
        if params.image_urls:
            payload["image_urls"] = list(params.image_urls)

        self._log_request(
            "image", params.endpoint, aspect_ratio=params.aspect_ratio,
            reference_count=len(params.image_urls),
        )
        body = await self.run(params.endpoint, payload)

        image = extract_image(body)
        if image is None:
            raise FatalProviderError(
                f"Failed to generate image - invalid response from {params.endpoint}",
                provider=self.name,
            )

        return SecondaryVendorResult(
            model_id=params.endpoint,
            result=RemoteMedia(url=image["url"], mime_type=image.get("content_type") or "image/png"),
            usage=UsageMetrics(image_count=1, image_size=params.resolution),
        )


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])[:200]
    return str(body)[:200]


__all__ = ["FAL_BASE_URL", "FalProvider", "extract_image", "extract_video"]
