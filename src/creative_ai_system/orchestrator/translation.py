"""Parameter translation between the primary and secondary vendors."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from creative_ai_system.models import AspectRatio

# Marketing ratios -> ratios the image models accept
ASPECT_RATIO_MAP = {
    "1:1": "1:1",
    "9:16": "9:16",
    "16:9": "16:9",
    "1.91:1": "16:9",
    "4:5": "4:5",
    "3:4": "3:4",
    "4:3": "4:3",
    "2:3": "2:3",
    "3:2": "3:2",
}

VIDEO_ASPECT_RATIOS = ("16:9", "9:16")
PORTRAIT_RATIOS = ("9:16", "4:5", "3:4", "2:3")

VIDEO_DURATION_BUCKETS = (4, 6, 8)
SORA_FIXED_DURATION_SECONDS = 12
VIDEO_RESOLUTION = "720p"


class SecondaryFamily(str, Enum):
    """Model families the secondary vendor serves."""

    VEO_FAST = "veo-fast"
    SORA_2 = "sora-2"
    GEMINI_PRO_IMAGE = "gemini-pro-image"
    GEMINI_FLASH_IMAGE = "gemini-flash-image"


# family -> (generative endpoint, reference-conditioned endpoint)
SECONDARY_ENDPOINTS = {
    SecondaryFamily.VEO_FAST: ("fal-ai/veo3.1/fast", "fal-ai/veo3.1/fast/image-to-video"),
    SecondaryFamily.SORA_2: ("fal-ai/sora-2/text-to-video", "fal-ai/sora-2/image-to-video"),
    SecondaryFamily.GEMINI_PRO_IMAGE: (
        "fal-ai/gemini-3-pro-image-preview",
        "fal-ai/gemini-3-pro-image-preview/edit",
    ),
    SecondaryFamily.GEMINI_FLASH_IMAGE: (
        "fal-ai/gemini-25-flash-image",
        "fal-ai/gemini-25-flash-image/edit",
    ),
}

VIDEO_FAMILIES = (SecondaryFamily.VEO_FAST, SecondaryFamily.SORA_2)

# The image edit endpoints accept at most this many reference URLs
MAX_REFERENCE_IMAGES = 14


def map_aspect_ratio(ratio: AspectRatio | str | None) -> str:
    """Map a marketing ratio to a vendor ratio; unknown ratios become 1:1."""
    value = ratio.value if isinstance(ratio, AspectRatio) else ratio
    return ASPECT_RATIO_MAP.get(value or "", "1:1")


def map_video_aspect_ratio(ratio: AspectRatio | str | None) -> str:
    """Video endpoints only render 16:9 or 9:16."""
    mapped = map_aspect_ratio(ratio)
    if mapped in VIDEO_ASPECT_RATIOS:
        return mapped
    return "9:16" if mapped in PORTRAIT_RATIOS else "16:9"


def bucket_duration(requested_seconds: Optional[float]) -> int:
    """Smallest supported bucket that fits the request; 8s when unset or longer."""
    if not requested_seconds:
        return VIDEO_DURATION_BUCKETS[-1]
    for bucket in VIDEO_DURATION_BUCKETS:
        if requested_seconds <= bucket:
            return bucket
    return VIDEO_DURATION_BUCKETS[-1]


def secondary_video_duration(family: SecondaryFamily, requested_seconds: Optional[float]) -> int:
    # Sora 2 always renders 12s regardless of the request
    if family == SecondaryFamily.SORA_2:
        return SORA_FIXED_DURATION_SECONDS
    return bucket_duration(requested_seconds)


def select_endpoint(family: SecondaryFamily, has_reference: bool) -> str:
    generative, conditioned = SECONDARY_ENDPOINTS[family]
    return conditioned if has_reference else generative


@dataclass(frozen=True)
class SecondaryVideoParams:
    """Translated video call for the secondary vendor."""

    family: SecondaryFamily
    endpoint: str
    prompt: str
    aspect_ratio: str
    duration_seconds: int
    image_url: Optional[str] = None
    generate_audio: bool = False
    resolution: str = VIDEO_RESOLUTION


@dataclass(frozen=True)
class SecondaryImageParams:
    """Translated image call for the secondary vendor."""

    family: SecondaryFamily
    endpoint: str
    prompt: str
    aspect_ratio: str
    resolution: str
    image_urls: List[str] = field(default_factory=list)


def build_video_params(
    family: SecondaryFamily,
    prompt: str,
    aspect_ratio: AspectRatio | str,
    requested_seconds: Optional[float],
    image_url: Optional[str],
) -> SecondaryVideoParams:
    return SecondaryVideoParams(
        family=family,
        endpoint=select_endpoint(family, bool(image_url)),
        prompt=prompt,
        aspect_ratio=map_video_aspect_ratio(aspect_ratio),
        duration_seconds=secondary_video_duration(family, requested_seconds),
        image_url=image_url,
        generate_audio=family == SecondaryFamily.VEO_FAST,
    )


def build_image_params(
    family: SecondaryFamily,
    prompt: str,
    aspect_ratio: AspectRatio | str,
    image_size: str,
    image_urls: List[str],
) -> SecondaryImageParams:
    urls = list(image_urls[:MAX_REFERENCE_IMAGES])
    return SecondaryImageParams(
        family=family,
        endpoint=select_endpoint(family, bool(urls)),
        prompt=prompt,
        aspect_ratio=map_aspect_ratio(aspect_ratio),
        resolution=image_size,
        image_urls=urls,
    )
