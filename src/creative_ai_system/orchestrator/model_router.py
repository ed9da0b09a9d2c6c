"""Routing decision table keyed on the requested model."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

import structlog

from creative_ai_system.exceptions import ValidationException
from creative_ai_system.models import CreativeRequest, Modality, QualityTier

from .translation import SecondaryFamily

logger = structlog.get_logger(__name__)


class CallShape(str, Enum):
    """How the primary vendor is reached."""

    SYNC = "sync"
    POLL = "poll"


@dataclass(frozen=True)
class ModelRoute:
    """Which vendors may serve a model, and how."""

    hint: str
    modality: Modality
    primary_model: Optional[str] = None
    primary_shape: CallShape = CallShape.SYNC
    secondary_family: Optional[SecondaryFamily] = None

    @property
    def has_primary(self) -> bool:
        return self.primary_model is not None

    @property
    def allows_fallback(self) -> bool:
        return self.has_primary and self.secondary_family is not None

    @property
    def secondary_only(self) -> bool:
        return not self.has_primary and self.secondary_family is not None


VEO_PRIMARY_MODEL = "veo-3.1-fast-generate-preview"


def _video_primary(hint: str) -> ModelRoute:
    return ModelRoute(
        hint=hint,
        modality=Modality.VIDEO,
        primary_model=VEO_PRIMARY_MODEL,
        primary_shape=CallShape.POLL,
        secondary_family=SecondaryFamily.VEO_FAST,
    )


def _secondary(hint: str, modality: Modality, family: SecondaryFamily) -> ModelRoute:
    return ModelRoute(hint=hint, modality=modality, secondary_family=family)


def _primary(
    hint: str, modality: Modality, fallback: Optional[SecondaryFamily] = None, model: Optional[str] = None
) -> ModelRoute:
    return ModelRoute(
        hint=hint, modality=modality, primary_model=model or hint, secondary_family=fallback
    )


DEFAULT_ROUTES: Dict[str, ModelRoute] = {
    route.hint: route
    for route in (
        # Video
        _video_primary("veo-3.1"),
        _video_primary("veo-3.1-fast"),
        _video_primary(VEO_PRIMARY_MODEL),
        _secondary("sora-2", Modality.VIDEO, SecondaryFamily.SORA_2),
        _secondary("fal-ai/veo3.1/fast", Modality.VIDEO, SecondaryFamily.VEO_FAST),
        # Image
        _primary("gemini-3-pro-image-preview", Modality.IMAGE, SecondaryFamily.GEMINI_PRO_IMAGE),
        _primary("gemini-2.5-flash-image", Modality.IMAGE, SecondaryFamily.GEMINI_FLASH_IMAGE),
        _primary("imagen-4.0-generate-001", Modality.IMAGE, SecondaryFamily.GEMINI_FLASH_IMAGE),
        _secondary("fal-ai/gemini-3-pro-image-preview", Modality.IMAGE, SecondaryFamily.GEMINI_PRO_IMAGE),
        _secondary("fal-ai/gemini-25-flash-image", Modality.IMAGE, SecondaryFamily.GEMINI_FLASH_IMAGE),
        # Text
        _primary("gemini-3-flash-preview", Modality.TEXT),
        _primary("gemini-3-pro-preview", Modality.TEXT),
        # Speech
        _primary("gemini-2.5-flash-preview-tts", Modality.SPEECH),
        _primary("gemini-2.5-pro-preview-tts", Modality.SPEECH),
    )
}

DEFAULT_MODELS = {
    (Modality.VIDEO, QualityTier.STANDARD): "veo-3.1",
    (Modality.VIDEO, QualityTier.PRO): "veo-3.1",
    (Modality.IMAGE, QualityTier.STANDARD): "gemini-2.5-flash-image",
    (Modality.IMAGE, QualityTier.PRO): "gemini-3-pro-image-preview",
    (Modality.TEXT, QualityTier.STANDARD): "gemini-3-flash-preview",
    (Modality.TEXT, QualityTier.PRO): "gemini-3-pro-preview",
    (Modality.SPEECH, QualityTier.STANDARD): "gemini-2.5-flash-preview-tts",
    (Modality.SPEECH, QualityTier.PRO): "gemini-2.5-pro-preview-tts",
}


def normalize_model_id(model_id: str) -> str:
    """Strip the legacy "google/" prefix."""
    model_id = model_id.strip()
    if model_id.startswith("google/"):
        return model_id[len("google/"):]
    return model_id


class ModelRouter:
    """Resolves a request to its route."""

    def __init__(self, routes: Optional[Dict[str, ModelRoute]] = None):
        self.routes = dict(routes or DEFAULT_ROUTES)

    def model_for(self, request: CreativeRequest) -> str:
        if request.model_hint:
            return normalize_model_id(request.model_hint)
        return DEFAULT_MODELS[(request.modality, request.quality_tier)]

    def resolve(self, request: CreativeRequest) -> ModelRoute:
        model = self.model_for(request)
        route = self.routes.get(model)
        if route is None:
            raise ValidationException(f"Unsupported model: {model}", field="model_hint")
        if route.modality != request.modality:
            raise ValidationException(
                f"Model {model} does not generate {request.modality.value}", field="model_hint"
            )
        logger.debug(
            "Route resolved",
            model=model,
            primary=route.primary_model,
            secondary=route.secondary_family.value if route.secondary_family else None,
        )
        return route
