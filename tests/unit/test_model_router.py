"""Test model routing."""

import pytest

from creative_ai_system.exceptions import ValidationException
from creative_ai_system.models import CreativeRequest, Modality, QualityTier
from creative_ai_system.orchestrator import CallShape, ModelRouter
from creative_ai_system.orchestrator.model_router import normalize_model_id
from creative_ai_system.orchestrator.translation import SecondaryFamily


@pytest.fixture
def router():
    return ModelRouter()


def make_request(**kwargs):
    kwargs.setdefault("prompt", "Summer sale creative")
    return CreativeRequest(**kwargs)


class TestModelRouter:
    def test_default_model_per_tier(self, router):
        standard = make_request(modality=Modality.IMAGE, quality_tier=QualityTier.STANDARD)
        pro = make_request(modality=Modality.IMAGE)
        assert router.model_for(standard) == "gemini-2.5-flash-image"
        assert router.model_for(pro) == "gemini-3-pro-image-preview"

    def test_veo_routes_to_poll_with_fallback(self, router):
        route = router.resolve(make_request(modality=Modality.VIDEO, model_hint="veo-3.1"))
        assert route.primary_model == "veo-3.1-fast-generate-preview"
        assert route.primary_shape == CallShape.POLL
        assert route.secondary_family == SecondaryFamily.VEO_FAST
        assert route.allows_fallback

    def test_sora_is_secondary_only(self, router):
        route = router.resolve(make_request(modality=Modality.VIDEO, model_hint="sora-2"))
        assert not route.has_primary
        assert route.secondary_only
        assert route.secondary_family == SecondaryFamily.SORA_2

    def test_text_has_no_fallback(self, router):
        route = router.resolve(make_request(modality=Modality.TEXT))
        assert route.primary_model == "gemini-3-pro-preview"
        assert not route.allows_fallback

    def test_legacy_google_prefix(self, router):
        request = make_request(modality=Modality.IMAGE, model_hint="google/gemini-2.5-flash-image")
        assert router.resolve(request).primary_model == "gemini-2.5-flash-image"
        assert normalize_model_id("  google/veo-3.1 ") == "veo-3.1"

    def test_unknown_model_is_rejected(self, router):
        with pytest.raises(ValidationException, match="Unsupported model: dall-e-3") as exc_info:
            router.resolve(make_request(modality=Modality.IMAGE, model_hint="dall-e-3"))
        assert exc_info.value.details["field"] == "model_hint"

    def test_modality_mismatch_is_rejected(self, router):
        with pytest.raises(ValidationException, match="does not generate video"):
            router.resolve(make_request(modality=Modality.VIDEO, model_hint="gemini-3-pro-preview"))
