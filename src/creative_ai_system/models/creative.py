"""
Provider-neutral request, result and accounting models.
"""

import base64
import binascii
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Modality(str, Enum):
    """Kind of content generated."""

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    SPEECH = "speech"


class AspectRatio(str, Enum):
    """Marketing aspect ratios accepted from callers."""

    SQUARE = "1:1"
    PORTRAIT_STORY = "9:16"
    LANDSCAPE = "16:9"
    LINK_PREVIEW = "1.91:1"
    PORTRAIT_FEED = "4:5"
    PORTRAIT_3_4 = "3:4"
    LANDSCAPE_4_3 = "4:3"
    PORTRAIT_2_3 = "2:3"
    LANDSCAPE_3_2 = "3:2"


class QualityTier(str, Enum):
    STANDARD = "standard"
    PRO = "pro"


class ImageSize(str, Enum):
    """Resolution tier, also the image pricing bucket."""

    SIZE_1K = "1K"
    SIZE_2K = "2K"
    SIZE_4K = "4K"


class Provider(str, Enum):
    """Vendors that can appear in the usage ledger."""

    GOOGLE = "google"
    FAL = "fal"
    OPENROUTER = "openrouter"
    REPLICATE = "replicate"


class Operation(str, Enum):
    """Ledger operation enum."""

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    SPEECH = "speech"
    FLYER = "flyer"
    EDIT_IMAGE = "edit_image"
    CAMPAIGN = "campaign"


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    TRANSIENT_ERROR = "transient-error"
    FATAL_ERROR = "fatal-error"
    TIMEOUT = "timeout"


class UsageStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class ReferenceMedia(BaseModel):
    """A reference image supplied with the brief: raw bytes or a URL."""

    model_config = ConfigDict(frozen=True)

    data: Optional[bytes] = Field(default=None, description="Raw media bytes")
    mime_type: Optional[str] = Field(default=None, description="MIME type of data")
    url: Optional[str] = Field(default=None, description="Publicly reachable URL")

    @field_validator("data", mode="before")
    @classmethod
    def decode_base64(cls, v):
        # JSON callers send reference bytes base64 encoded
        if isinstance(v, str):
            try:
                return base64.b64decode(v, validate=True)
            except (binascii.Error, ValueError) as e:
                raise ValueError("reference data must be base64 encoded") from e
        return v

    @model_validator(mode="after")
    def check_source(self) -> "ReferenceMedia":
        if self.data is None and not self.url:
            raise ValueError("reference media needs either data or url")
        if self.data is not None and not self.mime_type:
            raise ValueError("reference media bytes need a mime_type")
        return self

    @property
    def has_http_url(self) -> bool:
        return bool(self.url and self.url.startswith("http"))


class CreativeRequest(BaseModel):
    """Provider-neutral creative request. Immutable once built."""

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    modality: Modality = Field(..., description="Content kind to generate")
    prompt: str = Field(..., min_length=1, description="Opaque prompt text")
    aspect_ratio: AspectRatio = Field(default=AspectRatio.SQUARE)
    quality_tier: QualityTier = Field(default=QualityTier.PRO)
    duration_seconds: Optional[float] = Field(
        default=None, gt=0, description="Requested video duration, not guaranteed"
    )
    reference_media: List[ReferenceMedia] = Field(default_factory=list)
    model_hint: Optional[str] = Field(default=None, description="Model id selecting routing")
    image_size: ImageSize = Field(default=ImageSize.SIZE_1K)
    voice_name: Optional[str] = Field(default=None, description="Prebuilt voice for speech")

    @field_validator("prompt")
    @classmethod
    def prompt_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("prompt must not be blank")
        return v

    @model_validator(mode="after")
    def check_modality_fields(self) -> "CreativeRequest":
        if self.duration_seconds is not None and self.modality != Modality.VIDEO:
            raise ValueError("duration_seconds only applies to video requests")
        if self.voice_name is not None and self.modality != Modality.SPEECH:
            raise ValueError("voice_name only applies to speech requests")
        return self

    @property
    def first_reference(self) -> Optional[ReferenceMedia]:
        return self.reference_media[0] if self.reference_media else None


class CallerIdentity(BaseModel):
    """Attribution for the usage ledger. Not used for authorization here."""

    model_config = ConfigDict(frozen=True)

    user_id: Optional[str] = None
    organization_id: Optional[str] = None


# Normalized result references ------------------------------------------------


class InlineMedia(BaseModel):
    """Binary result already in memory."""

    kind: Literal["inline"] = "inline"
    data: bytes
    mime_type: Optional[str] = None


class RemoteMedia(BaseModel):
    """Result hosted by the provider, to be downloaded before storage."""

    kind: Literal["remote"] = "remote"
    url: str
    mime_type: Optional[str] = None
    # Applied to the download only, never logged or returned
    auth_params: Dict[str, str] = Field(default_factory=dict, repr=False)


class TextContent(BaseModel):
    """Text result; nothing to persist."""

    kind: Literal["text"] = "text"
    text: str


ResultRef = Annotated[Union[InlineMedia, RemoteMedia, TextContent], Field(discriminator="kind")]


class UsageMetrics(BaseModel):
    """Modality-dependent quantities consumed by one attempt."""

    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    image_count: Optional[int] = None
    image_size: Optional[str] = None
    video_duration_seconds: Optional[float] = None
    audio_duration_seconds: Optional[float] = None
    character_count: Optional[int] = None


class PrimaryVendorResult(BaseModel):
    """Normalized result of a primary-vendor call."""

    vendor: Literal["primary"] = "primary"
    provider: Provider = Provider.GOOGLE
    model_id: str
    result: ResultRef
    usage: UsageMetrics = Field(default_factory=UsageMetrics)


class SecondaryVendorResult(BaseModel):
    """Normalized result of a secondary-vendor call."""

    vendor: Literal["secondary"] = "secondary"
    provider: Provider = Provider.FAL
    model_id: str
    result: ResultRef
    usage: UsageMetrics = Field(default_factory=UsageMetrics)


VendorResult = Annotated[
    Union[PrimaryVendorResult, SecondaryVendorResult], Field(discriminator="vendor")
]


# Execution trace ---------------------------------------------------------------


class ProviderAttempt(BaseModel):
    """One externally observable call to a provider."""

    provider: Provider
    model_id: str
    started_at: datetime = Field(default_factory=utcnow)
    outcome: Optional[AttemptOutcome] = None
    error: Optional[str] = None
    latency_ms: int = 0
    usage: UsageMetrics = Field(default_factory=UsageMetrics)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ExecutionTrace(BaseModel):
    """Ordered attempts made while handling one request."""

    attempts: List[ProviderAttempt] = Field(default_factory=list)

    def start(self, provider: Provider, model_id: str, **metadata: Any) -> ProviderAttempt:
        attempt = ProviderAttempt(provider=provider, model_id=model_id, metadata=metadata)
        self.attempts.append(attempt)
        return attempt

    @property
    def used_fallback(self) -> bool:
        return len({a.provider for a in self.attempts}) > 1

    @property
    def last(self) -> Optional[ProviderAttempt]:
        return self.attempts[-1] if self.attempts else None


class GenerationOutcome(BaseModel):
    """What the orchestrator hands back on success."""

    result_ref: ResultRef
    used_provider: Provider
    used_model: str
    used_fallback: bool = False
    usage: UsageMetrics = Field(default_factory=UsageMetrics)
    attempts: List[ProviderAttempt] = Field(default_factory=list)


# Ledger ------------------------------------------------------------------------


class UsageRecord(BaseModel):
    """Append-only accounting row for one attempt."""

    model_config = ConfigDict(frozen=True)

    request_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    user_id: Optional[str] = None
    organization_id: Optional[str] = None
    endpoint: str
    operation: Operation
    provider: Provider
    model_id: str
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    image_count: Optional[int] = None
    image_size: Optional[str] = None
    video_duration_seconds: Optional[float] = None
    audio_duration_seconds: Optional[float] = None
    character_count: Optional[int] = None
    estimated_cost_cents: int = Field(default=0, ge=0)
    latency_ms: int = Field(default=0, ge=0)
    status: UsageStatus
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def total_tokens(self) -> Optional[int]:
        total = (self.input_tokens or 0) + (self.output_tokens or 0)
        return total or None


class GenerationResponse(BaseModel):
    """Success payload returned to the calling route."""

    success: bool = True
    modality: Modality
    model: str
    provider: Provider
    used_fallback: bool = False
    url: Optional[str] = None
    text: Optional[str] = None
    audio_base64: Optional[str] = None
    request_ids: List[str] = Field(default_factory=list)
