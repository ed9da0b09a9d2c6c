"""
Model pricing registry and cost computation.

All rates are USD cents. A rule prices exactly one unit family: tokens,
images by resolution tier, or seconds of video.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

import structlog

from creative_ai_system.models import Provider, UsageMetrics

logger = structlog.get_logger(__name__)

DEFAULT_SIZE_TIER = "1K"
DEFAULT_IMAGE_COST_CENTS = 13.4


@dataclass(frozen=True)
class PricingRule:
    """Price of a single model."""

    provider: Provider
    input_per_million_tokens: Optional[float] = None
    output_per_million_tokens: Optional[float] = None
    cost_per_image_by_size_tier: Mapping[str, float] = field(default_factory=dict)
    cost_per_second: Optional[float] = None

    def image_rate(self, size_tier: Optional[str]) -> float:
        """Rate for one image at the tier, else the 1K rate, else the default."""
        tiers = self.cost_per_image_by_size_tier
        if size_tier and size_tier in tiers:
            return tiers[size_tier]
        if DEFAULT_SIZE_TIER in tiers:
            return tiers[DEFAULT_SIZE_TIER]
        return DEFAULT_IMAGE_COST_CENTS


def _tokens(provider: Provider, input_rate: float, output_rate: float) -> PricingRule:
    return PricingRule(
        provider=provider, input_per_million_tokens=input_rate, output_per_million_tokens=output_rate
    )


def _images(provider: Provider, one_k: float, two_k: float, four_k: float) -> PricingRule:
    return PricingRule(
        provider=provider,
        cost_per_image_by_size_tier=MappingProxyType({"1K": one_k, "2K": two_k, "4K": four_k}),
    )


def _video(provider: Provider, per_second: float) -> PricingRule:
    return PricingRule(provider=provider, cost_per_second=per_second)


class ModelPricingTable:
    """Immutable registry mapping model id to its pricing rule."""

    def __init__(self, rules: Mapping[str, PricingRule]):
        self._rules = MappingProxyType(dict(rules))

    def __contains__(self, model_id: str) -> bool:
        return model_id in self._rules

    def __len__(self) -> int:
        return len(self._rules)

    def get(self, model_id: str) -> Optional[PricingRule]:
        return self._rules.get(model_id)

    def model_ids(self) -> list[str]:
        return sorted(self._rules)

    def cost(self, model_id: str, usage: UsageMetrics) -> float:
        """Estimated cost in cents, rounded to 2 decimals.

        Terms the rule does not price are skipped. An unregistered model
        costs 0 and logs a warning: pricing must never block a response.
        """
        rule = self._rules.get(model_id)
        if rule is None:
            logger.warning("Unknown model for pricing", model_id=model_id)
            return 0.0

        cost_cents = 0.0

        if rule.input_per_million_tokens and usage.input_tokens:
            cost_cents += (usage.input_tokens / 1_000_000) * rule.input_per_million_tokens
        if rule.output_per_million_tokens and usage.output_tokens:
            cost_cents += (usage.output_tokens / 1_000_000) * rule.output_per_million_tokens

        if rule.cost_per_image_by_size_tier and usage.image_count:
            cost_cents += usage.image_count * rule.image_rate(usage.image_size)

        if rule.cost_per_second and usage.video_duration_seconds:
            cost_cents += usage.video_duration_seconds * rule.cost_per_second

        return round(max(cost_cents, 0.0), 2)

    def provider_for(self, model_id: str) -> Provider:
        """Provider for a model, guessed from its name when unregistered."""
        rule = self._rules.get(model_id)
        if rule is not None:
            return rule.provider

        name = model_id.lower()
        if "fal-ai/" in name:
            return Provider.FAL
        if "gemini" in name or "imagen" in name or name.startswith("veo-"):
            return Provider.GOOGLE
        if "replicate" in name or "nano-banana" in name:
            return Provider.REPLICATE
        if "gpt" in name or "grok" in name or "claude" in name:
            return Provider.OPENROUTER
        if "veo" in name or "sora" in name or "fal" in name:
            return Provider.FAL
        return Provider.GOOGLE


DEFAULT_PRICING_TABLE = ModelPricingTable(
    {
        # Gemini text
        "gemini-3-flash-preview": _tokens(Provider.GOOGLE, 50, 300),
        "gemini-3-pro-preview": _tokens(Provider.GOOGLE, 200, 1200),
        # Gemini TTS
        "gemini-2.5-flash-preview-tts": _tokens(Provider.GOOGLE, 50, 1000),
        "gemini-2.5-pro-preview-tts": _tokens(Provider.GOOGLE, 100, 2000),
        # Gemini / Imagen images
        "gemini-3-pro-image-preview": _images(Provider.GOOGLE, 13.4, 13.4, 24),
        "gemini-2.5-flash-image": _images(Provider.GOOGLE, 4, 4, 4),
        "imagen-4.0-generate-001": _images(Provider.GOOGLE, 4, 4, 4),
        # FAL images
        "fal-ai/gemini-3-pro-image-preview": _images(Provider.FAL, 15, 15, 30),
        "fal-ai/gemini-3-pro-image-preview/edit": _images(Provider.FAL, 15, 15, 30),
        "fal-ai/gemini-25-flash-image": _images(Provider.FAL, 5, 5, 5),
        "fal-ai/gemini-25-flash-image/edit": _images(Provider.FAL, 5, 5, 5),
        # Google Veo (direct)
        "veo-3.1-fast-generate-preview": _video(Provider.GOOGLE, 15),
        "veo-3.1-generate-preview": _video(Provider.GOOGLE, 40),
        # FAL video
        "veo-3.1": _video(Provider.FAL, 40),
        "veo-3.1-fast": _video(Provider.FAL, 15),
        "fal-ai/veo3.1/fast": _video(Provider.FAL, 15),
        "fal-ai/veo3.1/fast/image-to-video": _video(Provider.FAL, 15),
        "sora-2": _video(Provider.FAL, 10),
        "fal-ai/sora-2/text-to-video": _video(Provider.FAL, 10),
        "fal-ai/sora-2/image-to-video": _video(Provider.FAL, 10),
        # OpenRouter text
        "openai/gpt-5.2": _tokens(Provider.OPENROUTER, 175, 1400),
        "x-ai/grok-4.1-fast": _tokens(Provider.OPENROUTER, 20, 50),
        # Replicate images
        "google/nano-banana-pro": _images(Provider.REPLICATE, 31, 31, 48),
        "google/nano-banana": _images(Provider.REPLICATE, 8, 8, 8),
    }
)
