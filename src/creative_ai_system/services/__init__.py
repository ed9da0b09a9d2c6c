"""Application services."""

from .generation_service import CreativeGenerationService, build_service

__all__ = ["CreativeGenerationService", "build_service"]
