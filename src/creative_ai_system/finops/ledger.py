"""Append-only usage ledger: one record per provider attempt."""

import asyncio
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import structlog

from creative_ai_system.exceptions import LedgerWriteError
from creative_ai_system.models import (
    CallerIdentity,
    Operation,
    Provider,
    UsageMetrics,
    UsageRecord,
    UsageStatus,
)

from .pricing import DEFAULT_PRICING_TABLE, ModelPricingTable

logger = structlog.get_logger(__name__)


class UsageStore(Protocol):
    """Storage collaborator for usage records. Insert only."""

    async def append(self, record: UsageRecord) -> None: ...


class InMemoryUsageStore:
    """Usage store kept in process memory."""

    def __init__(self):
        self._records: List[UsageRecord] = []
        self._lock = asyncio.Lock()

    async def append(self, record: UsageRecord) -> None:
        async with self._lock:
            self._records.append(record)

    @property
    def records(self) -> List[UsageRecord]:
        return list(self._records)

    def total_cost_cents(self) -> int:
        return sum(r.estimated_cost_cents for r in self._records)


@dataclass
class UsageEntry:
    """Everything the ledger needs to account for one attempt."""

    identity: CallerIdentity
    endpoint: str
    operation: Operation
    model_id: str
    status: UsageStatus
    latency_ms: int = 0
    provider: Optional[Provider] = None
    metrics: UsageMetrics = field(default_factory=UsageMetrics)
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class UsageLedger:
    """Builds usage records, prices them, and appends them best-effort."""

    def __init__(self, store: UsageStore, pricing: ModelPricingTable = DEFAULT_PRICING_TABLE):
        self.store = store
        self.pricing = pricing

    def build_record(self, entry: UsageEntry) -> UsageRecord:
        """Create the immutable record with a fresh request id and server-side cost."""
        metrics = entry.metrics
        cost_cents = self.pricing.cost(entry.model_id, metrics)
        provider = entry.provider or self.pricing.provider_for(entry.model_id)

        error_message = entry.error_message
        if entry.status == UsageStatus.FAILED and not error_message:
            error_message = "Unknown error"

        return UsageRecord(
            user_id=entry.identity.user_id,
            organization_id=entry.identity.organization_id,
            endpoint=entry.endpoint,
            operation=entry.operation,
            provider=provider,
            model_id=entry.model_id,
            input_tokens=metrics.input_tokens or None,
            output_tokens=metrics.output_tokens or None,
            image_count=metrics.image_count or None,
            image_size=metrics.image_size,
            video_duration_seconds=metrics.video_duration_seconds or None,
            audio_duration_seconds=metrics.audio_duration_seconds or None,
            character_count=metrics.character_count or None,
            # second rounding step: 2-decimal cents -> integer cents
            estimated_cost_cents=math.floor(cost_cents + 0.5),
            latency_ms=max(int(entry.latency_ms), 0),
            status=entry.status,
            error_message=error_message,
            metadata=dict(entry.metadata),
        )

    async def record(self, entry: UsageEntry) -> Optional[UsageRecord]:
        """Write one usage record. Never raises.

        Returns the record that was written, or None when building or
        storing it failed.
        """
        try:
            record = self.build_record(entry)
            await self.store.append(record)
        except Exception as e:
            error = LedgerWriteError(f"Failed to log usage: {e}")
            logger.error(
                "Usage ledger write failed",
                error=error.message,
                model_id=entry.model_id,
                endpoint=entry.endpoint,
                status=entry.status.value,
            )
            return None

        logger.info(
            "Usage recorded",
            request_id=str(record.request_id),
            operation=record.operation.value,
            model_id=record.model_id,
            status=record.status.value,
            estimated_cost_cents=record.estimated_cost_cents,
        )
        return record
