"""Primary/secondary vendor orchestration with one fallback hop."""

import time
from collections.abc import Awaitable, Callable
from typing import Any, AsyncIterator, List, Optional, Protocol, TypeVar

import structlog

from creative_ai_system.exceptions import (
    GenerationTimeoutError,
    ValidationException,
    is_transient_error,
)
from creative_ai_system.models import (
    AttemptOutcome,
    CreativeRequest,
    ExecutionTrace,
    GenerationOutcome,
    Modality,
    PrimaryVendorResult,
    Provider,
    ReferenceMedia,
    SecondaryVendorResult,
    UsageMetrics,
)
from creative_ai_system.providers.base import ChunkStream, StreamChunk

from .job_poller import AsyncJobPoller, PollableJob
from .model_router import CallShape, ModelRoute, ModelRouter
from .retry_handler import RetryPolicy
from .translation import (
    MAX_REFERENCE_IMAGES,
    SORA_FIXED_DURATION_SECONDS,
    SecondaryFamily,
    SecondaryImageParams,
    SecondaryVideoParams,
    bucket_duration,
    build_image_params,
    build_video_params,
    map_aspect_ratio,
    map_video_aspect_ratio,
)

R = TypeVar("R", PrimaryVendorResult, SecondaryVendorResult)

logger = structlog.get_logger(__name__)


class PrimaryVendor(Protocol):
    async def generate_text(self, model: str, prompt: str) -> PrimaryVendorResult: ...

    def stream_text(self, model: str, prompt: str) -> AsyncIterator[StreamChunk]: ...

    async def generate_image(
        self,
        model: str,
        prompt: str,
        aspect_ratio: str,
        image_size: str = "1K",
        references: Optional[List[ReferenceMedia]] = None,
    ) -> PrimaryVendorResult: ...

    async def generate_speech(
        self, model: str, prompt: str, voice_name: Optional[str] = None
    ) -> PrimaryVendorResult: ...

    def video_job(
        self,
        model: str,
        prompt: str,
        aspect_ratio: str,
        duration_seconds: int,
        reference: Optional[ReferenceMedia] = None,
    ) -> PollableJob: ...


class SecondaryVendor(Protocol):
    async def generate_video(self, params: SecondaryVideoParams) -> SecondaryVendorResult: ...

    async def generate_image(self, params: SecondaryImageParams) -> SecondaryVendorResult: ...


class ReferenceUploader(Protocol):
    async def upload_reference(self, media: ReferenceMedia, prefix: str = "reference") -> str: ...


def classify_outcome(error: BaseException) -> AttemptOutcome:
    if isinstance(error, GenerationTimeoutError):
        return AttemptOutcome.TIMEOUT
    if is_transient_error(error):
        return AttemptOutcome.TRANSIENT_ERROR
    return AttemptOutcome.FATAL_ERROR


class ProviderFallbackOrchestrator:
    """Routes a request to its primary vendor and, on fatal failure, once to the secondary.

    Timeouts of polled jobs and validation errors are terminal. A failure
    of the secondary vendor is terminal. Every call made is appended to
    the caller's ExecutionTrace so that each one can be accounted for.
    """

    def __init__(
        self,
        primary: PrimaryVendor,
        secondary: SecondaryVendor,
        retry_policy: Optional[RetryPolicy] = None,
        poller: Optional[AsyncJobPoller] = None,
        router: Optional[ModelRouter] = None,
        reference_uploader: Optional[ReferenceUploader] = None,
    ):
        self.primary = primary
        self.secondary = secondary
        self.retry_policy = retry_policy or RetryPolicy()
        self.poller = poller or AsyncJobPoller()
        self.router = router or ModelRouter()
        self.reference_uploader = reference_uploader

    async def generate(
        self, request: CreativeRequest, trace: Optional[ExecutionTrace] = None
    ) -> GenerationOutcome:
        trace = trace if trace is not None else ExecutionTrace()
        route = self.router.resolve(request)

        if route.has_primary:
            try:
                result = await self._attempt(
                    trace,
                    Provider.GOOGLE,
                    route.primary_model,
                    lambda: self._call_primary(route, request),
                )
                return self._outcome(result, trace)
            except (GenerationTimeoutError, ValidationException):
                raise
            except Exception as e:
                if not route.allows_fallback:
                    raise
                logger.warning(
                    "Primary provider failed, falling back",
                    model=route.primary_model,
                    secondary=route.secondary_family.value,
                    error_type=type(e).__name__,
                    error=str(e),
                )

        if route.secondary_family is None:
            raise ValidationException(f"No provider configured for model {route.hint}")

        reference_urls = await self._reference_urls(request)
        call, endpoint = self._secondary_call(route.secondary_family, request, reference_urls)
        result = await self._attempt(
            trace,
            Provider.FAL,
            endpoint,
            call,
            fallback=route.has_primary,
        )
        return self._outcome(result, trace)

    def stream_text(self, request: CreativeRequest) -> ChunkStream:
        """Stream a text generation from the primary vendor. No fallback."""
        if request.modality != Modality.TEXT:
            raise ValidationException("Streaming is only available for text requests")
        route = self.router.resolve(request)
        return ChunkStream(
            self.primary.stream_text(route.primary_model, request.prompt),
            model=route.primary_model,
        )

    async def _attempt(
        self,
        trace: ExecutionTrace,
        provider: Provider,
        model_id: str,
        call: Callable[[], Awaitable[R]],
        **metadata: Any,
    ) -> R:
        attempt = trace.start(provider, model_id, **metadata)
        started = time.perf_counter()
        try:
            result = await call()
        except Exception as e:
            attempt.latency_ms = int((time.perf_counter() - started) * 1000)
            attempt.outcome = classify_outcome(e)
            attempt.error = str(e) or type(e).__name__
            raise

        attempt.latency_ms = int((time.perf_counter() - started) * 1000)
        attempt.outcome = AttemptOutcome.SUCCESS
        attempt.model_id = result.model_id
        attempt.usage = result.usage
        return result

    async def _call_primary(self, route: ModelRoute, request: CreativeRequest) -> PrimaryVendorResult:
        model = route.primary_model

        if route.primary_shape == CallShape.POLL:
            duration = bucket_duration(request.duration_seconds)
            job = self.primary.video_job(
                model,
                request.prompt,
                map_video_aspect_ratio(request.aspect_ratio),
                duration,
                request.first_reference,
            )
            result_ref = await self.poller.submit_and_await(job)
            return PrimaryVendorResult(
                model_id=model,
                result=result_ref,
                usage=UsageMetrics(video_duration_seconds=duration),
            )

        if request.modality == Modality.IMAGE:
            return await self.retry_policy.execute(
                lambda: self.primary.generate_image(
                    model,
                    request.prompt,
                    map_aspect_ratio(request.aspect_ratio),
                    request.image_size.value,
                    list(request.reference_media),
                )
            )
        if request.modality == Modality.SPEECH:
            return await self.retry_policy.execute(
                lambda: self.primary.generate_speech(model, request.prompt, request.voice_name)
            )
        if request.modality == Modality.TEXT:
            return await self.retry_policy.execute(
                lambda: self.primary.generate_text(model, request.prompt)
            )
        raise ValidationException(f"Model {model} cannot serve {request.modality.value}")

    def _secondary_call(
        self, family: SecondaryFamily, request: CreativeRequest, reference_urls: List[str]
    ):
        if request.modality == Modality.VIDEO:
            video_params = build_video_params(
                family,
                request.prompt,
                request.aspect_ratio,
                request.duration_seconds,
                reference_urls[0] if reference_urls else None,
            )
            if (
                family == SecondaryFamily.SORA_2
                and request.duration_seconds
                and request.duration_seconds != SORA_FIXED_DURATION_SECONDS
            ):
                logger.info(
                    "Video duration adjusted to model constraint",
                    requested=request.duration_seconds,
                    used=video_params.duration_seconds,
                )
            return (
                lambda: self.retry_policy.execute(lambda: self.secondary.generate_video(video_params)),
                video_params.endpoint,
            )

        image_params = build_image_params(
            family,
            request.prompt,
            request.aspect_ratio,
            request.image_size.value,
            reference_urls,
        )
        return (
            lambda: self.retry_policy.execute(lambda: self.secondary.generate_image(image_params)),
            image_params.endpoint,
        )

    async def _reference_urls(self, request: CreativeRequest) -> List[str]:
        """Public URLs for the references; the secondary vendor cannot take bytes."""
        limit = 1 if request.modality == Modality.VIDEO else MAX_REFERENCE_IMAGES
        urls: List[str] = []
        for media in request.reference_media[:limit]:
            if media.has_http_url:
                urls.append(media.url)
            elif self.reference_uploader is not None:
                urls.append(await self.reference_uploader.upload_reference(media))
            else:
                logger.warning("Dropping reference media without a public URL")
        return urls

    @staticmethod
    def _outcome(result: PrimaryVendorResult | SecondaryVendorResult, trace: ExecutionTrace) -> GenerationOutcome:
        return GenerationOutcome(
            result_ref=result.result,
            used_provider=result.provider,
            used_model=result.model_id,
            used_fallback=trace.used_fallback,
            usage=result.usage,
            attempts=list(trace.attempts),
        )
