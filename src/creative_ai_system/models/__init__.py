"""Data models for the creative generation core."""

from .creative import (
    AspectRatio,
    AttemptOutcome,
    CallerIdentity,
    CreativeRequest,
    ExecutionTrace,
    GenerationOutcome,
    GenerationResponse,
    ImageSize,
    InlineMedia,
    Modality,
    Operation,
    PrimaryVendorResult,
    Provider,
    ProviderAttempt,
    QualityTier,
    ReferenceMedia,
    RemoteMedia,
    ResultRef,
    SecondaryVendorResult,
    TextContent,
    UsageMetrics,
    UsageRecord,
    UsageStatus,
    VendorResult,
)

__all__ = [
    "AspectRatio",
    "AttemptOutcome",
    "CallerIdentity",
    "CreativeRequest",
    "ExecutionTrace",
    "GenerationOutcome",
    "GenerationResponse",
    "ImageSize",
    "InlineMedia",
    "Modality",
    "Operation",
    "PrimaryVendorResult",
    "Provider",
    "ProviderAttempt",
    "QualityTier",
    "ReferenceMedia",
    "RemoteMedia",
    "ResultRef",
    "SecondaryVendorResult",
    "TextContent",
    "UsageMetrics",
    "UsageRecord",
    "UsageStatus",
    "VendorResult",
]
