"""Database models for the usage ledger."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Float, Integer, String, Text, Uuid
from sqlalchemy.orm import declarative_base

from creative_ai_system.models import UsageRecord

Base = declarative_base()


class ApiUsageLog(Base):
    """One append-only row per provider attempt."""

    __tablename__ = "api_usage_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    request_id = Column(Uuid(as_uuid=True), nullable=False, unique=True, index=True)
    user_id = Column(String, nullable=True, index=True)
    organization_id = Column(String, nullable=True, index=True)

    # What was called
    endpoint = Column(String, nullable=False)
    operation = Column(String, nullable=False)
    provider = Column(String, nullable=False)
    model_id = Column(String, nullable=False, index=True)

    # Usage
    input_tokens = Column(Integer, nullable=True)
    output_tokens = Column(Integer, nullable=True)
    total_tokens = Column(Integer, nullable=True)
    image_count = Column(Integer, nullable=True)
    image_size = Column(String, nullable=True)
    video_duration_seconds = Column(Float, nullable=True)
    audio_duration_seconds = Column(Float, nullable=True)
    character_count = Column(Integer, nullable=True)

    # Cost and outcome
    estimated_cost_cents = Column(Integer, nullable=False, default=0)
    latency_ms = Column(Integer, nullable=True)
    status = Column(String, nullable=False)
    error_message = Column(Text, nullable=True)
    metadata_ = Column("metadata", JSON, nullable=True)

    created_at = Column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )

    @classmethod
    def from_record(cls, record: UsageRecord) -> "ApiUsageLog":
        return cls(
            request_id=record.request_id,
            user_id=record.user_id,
            organization_id=record.organization_id,
            endpoint=record.endpoint,
            operation=record.operation.value,
            provider=record.provider.value,
            model_id=record.model_id,
            input_tokens=record.input_tokens,
            output_tokens=record.output_tokens,
            total_tokens=record.total_tokens,
            image_count=record.image_count,
            image_size=record.image_size,
            video_duration_seconds=record.video_duration_seconds,
            audio_duration_seconds=record.audio_duration_seconds,
            character_count=record.character_count,
            estimated_cost_cents=record.estimated_cost_cents,
            latency_ms=record.latency_ms,
            status=record.status.value,
            error_message=record.error_message,
            metadata_=record.metadata or None,
            created_at=record.created_at,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "request_id": str(self.request_id),
            "user_id": self.user_id,
            "organization_id": self.organization_id,
            "endpoint": self.endpoint,
            "operation": self.operation,
            "provider": self.provider,
            "model_id": self.model_id,
            "tokens": {
                "input": self.input_tokens,
                "output": self.output_tokens,
                "total": self.total_tokens,
            },
            "image_count": self.image_count,
            "image_size": self.image_size,
            "video_duration_seconds": self.video_duration_seconds,
            "audio_duration_seconds": self.audio_duration_seconds,
            "character_count": self.character_count,
            "estimated_cost_cents": self.estimated_cost_cents,
            "latency_ms": self.latency_ms,
            "status": self.status,
            "error_message": self.error_message,
            "metadata": self.metadata_ or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
