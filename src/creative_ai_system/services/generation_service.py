"""Per-request handling cycle: validate, orchestrate, persist, record usage."""

import base64
import time
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional

import anyio
import structlog
from pydantic import ValidationError

from creative_ai_system.config import Settings, get_settings
from creative_ai_system.exceptions import PersistenceError, ValidationException
from creative_ai_system.finops import (
    DEFAULT_PRICING_TABLE,
    InMemoryUsageStore,
    UsageEntry,
    UsageLedger,
    UsageStore,
)
from creative_ai_system.models import (
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
    ProviderAttempt,
    QualityTier,
    TextContent,
    UsageRecord,
    UsageStatus,
)
from creative_ai_system.orchestrator import (
    DEFAULT_MODELS,
    AsyncJobPoller,
    ModelRouter,
    ProviderFallbackOrchestrator,
    RetryPolicy,
)
from creative_ai_system.providers import FalProvider, GoogleGenAIProvider, StreamChunk
from creative_ai_system.storage import BlobStore, InMemoryBlobStore, MediaPersistence, VercelBlobStore

logger = structlog.get_logger(__name__)

ENDPOINTS = {
    Modality.TEXT: "/api/ai/text",
    Modality.IMAGE: "/api/ai/image",
    Modality.VIDEO: "/api/ai/video",
    Modality.SPEECH: "/api/ai/speech",
}

OPERATIONS = {
    Modality.TEXT: Operation.TEXT,
    Modality.IMAGE: Operation.IMAGE,
    Modality.VIDEO: Operation.VIDEO,
    Modality.SPEECH: Operation.SPEECH,
}

UNKNOWN_MODEL = "unknown"


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def format_validation_error(error: ValidationError) -> str:
    """First pydantic error as ``field: message``."""
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


class CreativeGenerationService:
    """Turns one creative request into one result and its ledger records.

    Exactly one error reaches the caller per failed request, and every
    provider attempt produces exactly one usage record.
    """

    def __init__(
        self,
        orchestrator: ProviderFallbackOrchestrator,
        persistence: MediaPersistence,
        ledger: UsageLedger,
        default_image_size: ImageSize = ImageSize.SIZE_1K,
    ):
        self.orchestrator = orchestrator
        self.persistence = persistence
        self.ledger = ledger
        self.default_image_size = ImageSize(default_image_size)

    @property
    def router(self) -> ModelRouter:
        return self.orchestrator.router

    async def handle(
        self,
        payload: Any,
        identity: CallerIdentity,
        endpoint: Optional[str] = None,
    ) -> GenerationResponse:
        started = time.perf_counter()
        request = await self._build_request(payload, identity, endpoint, started)
        endpoint = endpoint or ENDPOINTS[request.modality]
        operation = OPERATIONS[request.modality]

        logger.info(
            "Generation requested",
            modality=request.modality.value,
            model_hint=request.model_hint,
            quality_tier=request.quality_tier.value,
        )

        trace = ExecutionTrace()
        try:
            outcome = await self.orchestrator.generate(request, trace)
        except Exception as e:
            await self._record_failure(trace, request, identity, endpoint, operation, e, started)
            raise

        request_ids: List[str] = []
        for attempt in outcome.attempts[:-1]:
            record = await self.ledger.record(
                self._attempt_entry(attempt, request, identity, endpoint, operation)
            )
            self._collect(record, request_ids)

        final_attempt = outcome.attempts[-1]
        try:
            response = await self._deliver(request, outcome)
        except PersistenceError as e:
            # compute was spent: the failed record still carries usage
            entry = self._attempt_entry(final_attempt, request, identity, endpoint, operation)
            entry.status = UsageStatus.FAILED
            entry.error_message = e.message
            entry.latency_ms = _elapsed_ms(started)
            await self.ledger.record(entry)
            logger.error("Generated media could not be persisted", error=e.message)
            raise

        entry = self._attempt_entry(final_attempt, request, identity, endpoint, operation)
        entry.latency_ms = _elapsed_ms(started)
        self._collect(await self.ledger.record(entry), request_ids)

        response.request_ids = request_ids
        logger.info(
            "Generation completed",
            model=outcome.used_model,
            provider=outcome.used_provider.value,
            used_fallback=outcome.used_fallback,
            latency_ms=entry.latency_ms,
        )
        return response

    async def stream_text(
        self,
        payload: Any,
        identity: CallerIdentity,
        endpoint: Optional[str] = None,
    ) -> AsyncIterator[StreamChunk]:
        """Yield text chunks; one usage record is written when the stream ends."""
        started = time.perf_counter()
        endpoint = endpoint or f"{ENDPOINTS[Modality.TEXT]}/stream"
        if isinstance(payload, Mapping):
            payload = {**payload, "modality": Modality.TEXT.value}
        request = await self._build_request(payload, identity, endpoint, started)

        try:
            stream = self.orchestrator.stream_text(request)
        except Exception as e:
            await self._record_failure(
                ExecutionTrace(), request, identity, endpoint, Operation.TEXT, e, started
            )
            raise

        status, error_message = UsageStatus.FAILED, "Stream cancelled"
        try:
            async for chunk in stream:
                yield chunk
            if not stream.cancelled:
                status, error_message = UsageStatus.SUCCESS, None
        except Exception as e:
            error_message = str(e) or type(e).__name__
            raise
        finally:
            # a disconnected client cancels this scope, the record must still land
            with anyio.CancelScope(shield=True):
                await self.ledger.record(
                    UsageEntry(
                        identity=identity,
                        endpoint=endpoint,
                        operation=Operation.TEXT,
                        model_id=stream.model,
                        status=status,
                        latency_ms=_elapsed_ms(started),
                        metrics=stream.usage,
                        error_message=error_message,
                        metadata={"streamed": True, "characters": len(stream.text)},
                    )
                )

    async def _build_request(
        self,
        payload: Any,
        identity: CallerIdentity,
        endpoint: Optional[str],
        started: float,
    ) -> CreativeRequest:
        if isinstance(payload, CreativeRequest):
            return payload
        if not isinstance(payload, Mapping):
            error = ValidationException("Request body must be a JSON object")
            await self._record_rejection(payload, identity, endpoint, error, started)
            raise error

        fields = dict(payload)
        if fields.get("image_size") is None:
            fields["image_size"] = self.default_image_size.value
        try:
            return CreativeRequest.model_validate(fields)
        except ValidationError as e:
            error = ValidationException(format_validation_error(e))
            await self._record_rejection(payload, identity, endpoint, error, started)
            raise error from e

    async def _record_rejection(
        self,
        payload: Any,
        identity: CallerIdentity,
        endpoint: Optional[str],
        error: ValidationException,
        started: float,
    ) -> None:
        modality = self._modality_of(payload, endpoint)
        await self.ledger.record(
            UsageEntry(
                identity=identity,
                endpoint=endpoint or (ENDPOINTS[modality] if modality else "/api/ai"),
                operation=OPERATIONS[modality] if modality else Operation.TEXT,
                model_id=self._model_of(payload, modality),
                status=UsageStatus.FAILED,
                latency_ms=_elapsed_ms(started),
                error_message=error.message,
                metadata={"stage": "validation"},
            )
        )
        logger.warning("Invalid creative request", error=error.message)

    async def _deliver(self, request: CreativeRequest, outcome: GenerationOutcome) -> GenerationResponse:
        response = GenerationResponse(
            modality=request.modality,
            model=outcome.used_model,
            provider=outcome.used_provider,
            used_fallback=outcome.used_fallback,
        )
        result = outcome.result_ref

        if isinstance(result, TextContent):
            response.text = result.text
        elif request.modality == Modality.SPEECH:
            if not isinstance(result, InlineMedia):
                raise PersistenceError("Speech result has no inline audio")
            # PCM audio is returned inline, it is outside the storage allow-list
            response.audio_base64 = base64.b64encode(result.data).decode("ascii")
        else:
            response.url = await self.persistence.persist(result, prefix=request.modality.value)
        return response

    async def _record_failure(
        self,
        trace: ExecutionTrace,
        request: CreativeRequest,
        identity: CallerIdentity,
        endpoint: str,
        operation: Operation,
        error: BaseException,
        started: float,
    ) -> None:
        message = getattr(error, "message", None) or str(error) or type(error).__name__

        if not trace.attempts:
            # failed before any provider was called
            await self.ledger.record(
                UsageEntry(
                    identity=identity,
                    endpoint=endpoint,
                    operation=operation,
                    model_id=self._safe_model_for(request),
                    status=UsageStatus.FAILED,
                    latency_ms=_elapsed_ms(started),
                    error_message=message,
                )
            )
        for attempt in trace.attempts:
            entry = self._attempt_entry(attempt, request, identity, endpoint, operation)
            if entry.status != UsageStatus.FAILED:
                entry.status = UsageStatus.FAILED
                entry.error_message = message
            await self.ledger.record(entry)

        logger.error(
            "Generation failed",
            error_type=type(error).__name__,
            error=message,
            attempts=len(trace.attempts),
        )

    def _attempt_entry(
        self,
        attempt: ProviderAttempt,
        request: CreativeRequest,
        identity: CallerIdentity,
        endpoint: str,
        operation: Operation,
    ) -> UsageEntry:
        succeeded = attempt.outcome == AttemptOutcome.SUCCESS
        metadata: Dict[str, Any] = {
            "aspect_ratio": request.aspect_ratio.value,
            "quality_tier": request.quality_tier.value,
            "has_reference": bool(request.reference_media),
            "outcome": attempt.outcome.value if attempt.outcome else None,
        }
        metadata.update(attempt.metadata)
        return UsageEntry(
            identity=identity,
            endpoint=endpoint,
            operation=operation,
            model_id=attempt.model_id,
            provider=attempt.provider,
            status=UsageStatus.SUCCESS if succeeded else UsageStatus.FAILED,
            latency_ms=attempt.latency_ms,
            metrics=attempt.usage,
            error_message=None if succeeded else attempt.error,
            metadata=metadata,
        )

    def _safe_model_for(self, request: CreativeRequest) -> str:
        try:
            return self.router.model_for(request)
        except KeyError:
            return UNKNOWN_MODEL

    @staticmethod
    def _modality_of(payload: Any, endpoint: Optional[str] = None) -> Optional[Modality]:
        candidates = [payload.get("modality")] if isinstance(payload, Mapping) else []
        # routes end in the modality, e.g. /api/ai/image or /api/ai/text/stream
        candidates.extend(reversed((endpoint or "").split("/")))
        for candidate in candidates:
            try:
                return Modality(candidate)
            except ValueError:
                continue
        return None

    def _model_of(self, payload: Any, modality: Optional[Modality]) -> str:
        if not isinstance(payload, Mapping):
            payload = {}
        hint = payload.get("model_hint")
        if isinstance(hint, str) and hint.strip():
            return hint.strip()
        if modality is None:
            return UNKNOWN_MODEL
        try:
            tier = QualityTier(payload.get("quality_tier") or QualityTier.PRO.value)
        except ValueError:
            tier = QualityTier.PRO
        return DEFAULT_MODELS[(modality, tier)]

    @staticmethod
    def _collect(record: Optional[UsageRecord], request_ids: List[str]) -> None:
        if record is not None:
            request_ids.append(str(record.request_id))


def build_service(
    settings: Optional[Settings] = None,
    usage_store: Optional[UsageStore] = None,
    blob_store: Optional[BlobStore] = None,
) -> CreativeGenerationService:
    """Application factory: wire providers, storage and the ledger from settings."""
    settings = settings or get_settings()

    def secret(value) -> Optional[str]:
        return value.get_secret_value() if value is not None else None

    primary = GoogleGenAIProvider(
        secret(settings.gemini_api_key), timeout=settings.provider_timeout_seconds
    )
    secondary = FalProvider(
        secret(settings.fal_key),
        base_url=settings.fal_base_url,
        timeout=settings.provider_timeout_seconds,
    )

    if blob_store is None:
        if settings.blob_read_write_token is not None:
            blob_store = VercelBlobStore(
                secret(settings.blob_read_write_token), base_url=settings.blob_base_url
            )
        else:
            logger.warning("BLOB_READ_WRITE_TOKEN not set, generated media kept in memory")
            blob_store = InMemoryBlobStore()
    persistence = MediaPersistence(blob_store, download_timeout=settings.provider_timeout_seconds)

    if usage_store is None:
        if settings.database_url:
            from creative_ai_system.database import SqlUsageStore

            usage_store = SqlUsageStore.from_url(settings.database_url, echo=settings.debug)
        else:
            logger.warning("DATABASE_URL not set, usage ledger kept in memory")
            usage_store = InMemoryUsageStore()

    orchestrator = ProviderFallbackOrchestrator(
        primary,
        secondary,
        retry_policy=RetryPolicy(settings.retry_max_attempts, settings.retry_base_delay_ms),
        poller=AsyncJobPoller(settings.video_poll_interval_ms, settings.video_poll_deadline_ms),
        reference_uploader=persistence,
    )
    return CreativeGenerationService(
        orchestrator,
        persistence,
        UsageLedger(usage_store, DEFAULT_PRICING_TABLE),
        default_image_size=settings.default_image_size,
    )
