"""Vendor clients for the creative generation core."""

from .base import BaseMediaProvider, ChunkStream, StreamChunk, classify_provider_error
from .fal_provider import FalProvider
from .google_provider import GoogleGenAIProvider, VeoVideoJob

__all__ = [
    "BaseMediaProvider",
    "ChunkStream",
    "FalProvider",
    "GoogleGenAIProvider",
    "StreamChunk",
    "VeoVideoJob",
    "classify_provider_error",
]
