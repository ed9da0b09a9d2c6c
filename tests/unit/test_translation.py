"""Test parameter translation between vendors."""

import pytest

from creative_ai_system.models import AspectRatio
from creative_ai_system.orchestrator.translation import (
    MAX_REFERENCE_IMAGES,
    SecondaryFamily,
    bucket_duration,
    build_image_params,
    build_video_params,
    map_aspect_ratio,
    map_video_aspect_ratio,
    secondary_video_duration,
    select_endpoint,
)


@pytest.mark.parametrize(
    "ratio,expected",
    [
        (AspectRatio.SQUARE, "1:1"),
        (AspectRatio.LINK_PREVIEW, "16:9"),
        ("4:5", "4:5"),
        ("21:9", "1:1"),
        (None, "1:1"),
    ],
)
def test_map_aspect_ratio(ratio, expected):
    assert map_aspect_ratio(ratio) == expected


@pytest.mark.parametrize(
    "ratio,expected",
    [
        ("16:9", "16:9"),
        ("9:16", "9:16"),
        ("4:5", "9:16"),
        ("2:3", "9:16"),
        ("1:1", "16:9"),
        ("1.91:1", "16:9"),
    ],
)
def test_map_video_aspect_ratio(ratio, expected):
    assert map_video_aspect_ratio(ratio) == expected


@pytest.mark.parametrize(
    "requested,expected",
    [(None, 8), (1, 4), (4, 4), (5, 6), (6, 6), (7.5, 8), (8, 8), (30, 8)],
)
def test_bucket_duration_rounds_up(requested, expected):
    assert bucket_duration(requested) == expected


def test_sora_duration_is_fixed():
    assert secondary_video_duration(SecondaryFamily.SORA_2, 5) == 12
    assert secondary_video_duration(SecondaryFamily.SORA_2, None) == 12
    assert secondary_video_duration(SecondaryFamily.VEO_FAST, 5) == 6


def test_select_endpoint_uses_conditioned_variant_with_reference():
    assert select_endpoint(SecondaryFamily.VEO_FAST, False) == "fal-ai/veo3.1/fast"
    assert select_endpoint(SecondaryFamily.VEO_FAST, True) == "fal-ai/veo3.1/fast/image-to-video"
    assert select_endpoint(SecondaryFamily.GEMINI_FLASH_IMAGE, True) == "fal-ai/gemini-25-flash-image/edit"


class TestBuildParams:
    def test_video_params_text_only(self):
        params = build_video_params(SecondaryFamily.VEO_FAST, "launch teaser", "4:5", 5, None)
        assert params.endpoint == "fal-ai/veo3.1/fast"
        assert params.aspect_ratio == "9:16"
        assert params.duration_seconds == 6
        assert params.generate_audio is True
        assert params.resolution == "720p"

    def test_sora_params_with_reference(self):
        params = build_video_params(
            SecondaryFamily.SORA_2, "launch teaser", "16:9", 5, "https://cdn.example/ref.png"
        )
        assert params.endpoint == "fal-ai/sora-2/image-to-video"
        assert params.duration_seconds == 12
        assert params.image_url == "https://cdn.example/ref.png"
        assert params.generate_audio is False

    def test_image_params_cap_references(self):
        urls = [f"https://cdn.example/{i}.png" for i in range(20)]
        params = build_image_params(SecondaryFamily.GEMINI_PRO_IMAGE, "poster", "1.91:1", "2K", urls)
        assert params.endpoint == "fal-ai/gemini-3-pro-image-preview/edit"
        assert params.aspect_ratio == "16:9"
        assert params.resolution == "2K"
        assert len(params.image_urls) == MAX_REFERENCE_IMAGES

    def test_image_params_without_references(self):
        params = build_image_params(SecondaryFamily.GEMINI_FLASH_IMAGE, "poster", "1:1", "1K", [])
        assert params.endpoint == "fal-ai/gemini-25-flash-image"
        assert params.image_urls == []
