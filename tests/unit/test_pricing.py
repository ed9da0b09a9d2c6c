"""Test model pricing."""

import pytest

from creative_ai_system.finops import DEFAULT_PRICING_TABLE, ModelPricingTable, PricingRule
from creative_ai_system.finops.pricing import DEFAULT_IMAGE_COST_CENTS
from creative_ai_system.models import Provider, UsageMetrics


class TestModelPricingTable:
    """Test cost computation."""

    def test_token_cost(self):
        usage = UsageMetrics(input_tokens=100, output_tokens=50)
        # 100/1e6 * 50 + 50/1e6 * 300
        assert DEFAULT_PRICING_TABLE.cost("gemini-3-flash-preview", usage) == 0.02

    def test_token_cost_million_tokens(self):
        usage = UsageMetrics(input_tokens=1_000_000, output_tokens=1_000_000)
        assert DEFAULT_PRICING_TABLE.cost("gemini-3-pro-preview", usage) == 1400.0

    def test_image_cost_by_size_tier(self):
        usage = UsageMetrics(image_count=2, image_size="4K")
        assert DEFAULT_PRICING_TABLE.cost("gemini-3-pro-image-preview", usage) == 48.0

    def test_unknown_size_tier_falls_back_to_1k(self):
        usage = UsageMetrics(image_count=1, image_size="8K")
        assert DEFAULT_PRICING_TABLE.cost("gemini-3-pro-image-preview", usage) == 13.4

    def test_missing_1k_tier_uses_default_rate(self):
        table = ModelPricingTable(
            {"custom": PricingRule(provider=Provider.FAL, cost_per_image_by_size_tier={"4K": 50.0})}
        )
        usage = UsageMetrics(image_count=1, image_size="2K")
        assert table.cost("custom", usage) == DEFAULT_IMAGE_COST_CENTS

    def test_video_cost_per_second(self):
        usage = UsageMetrics(video_duration_seconds=8)
        assert DEFAULT_PRICING_TABLE.cost("veo-3.1-fast-generate-preview", usage) == 120.0

    def test_terms_outside_pricing_unit_are_skipped(self):
        usage = UsageMetrics(input_tokens=5_000, image_count=3, video_duration_seconds=12)
        assert DEFAULT_PRICING_TABLE.cost("sora-2", usage) == 120.0

    def test_unknown_model_costs_nothing(self):
        usage = UsageMetrics(input_tokens=1_000_000)
        assert DEFAULT_PRICING_TABLE.cost("not-a-model", usage) == 0.0

    def test_empty_usage_costs_nothing(self):
        assert DEFAULT_PRICING_TABLE.cost("gemini-2.5-flash-image", UsageMetrics()) == 0.0

    def test_rounded_to_two_decimals(self):
        usage = UsageMetrics(input_tokens=333, output_tokens=0)
        # 333 / 1e6 * 200 = 0.0666
        assert DEFAULT_PRICING_TABLE.cost("gemini-3-pro-preview", usage) == 0.07

    def test_table_is_immutable(self):
        with pytest.raises(TypeError):
            DEFAULT_PRICING_TABLE._rules["new-model"] = PricingRule(provider=Provider.GOOGLE)

    @pytest.mark.parametrize(
        "model_id,provider",
        [
            ("fal-ai/something-new", Provider.FAL),
            ("gemini-9-ultra", Provider.GOOGLE),
            ("veo-4", Provider.GOOGLE),
            ("openai/gpt-6", Provider.OPENROUTER),
            ("sora-3", Provider.FAL),
        ],
    )
    def test_provider_guess_for_unregistered_models(self, model_id, provider):
        assert DEFAULT_PRICING_TABLE.provider_for(model_id) == provider

    def test_registered_provider_wins(self):
        assert DEFAULT_PRICING_TABLE.provider_for("veo-3.1") == Provider.FAL
