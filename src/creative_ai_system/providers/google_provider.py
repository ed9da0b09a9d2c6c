"""
Google GenAI provider: Gemini text, image and speech, Imagen, and Veo video jobs.
"""

from typing import Any, AsyncIterator, List, Optional, Tuple

import httpx
import structlog
from google import genai
from google.genai import types

from creative_ai_system.exceptions import FatalProviderError, PersistenceError, ProviderException
from creative_ai_system.models import (
    InlineMedia,
    PrimaryVendorResult,
    Provider,
    ReferenceMedia,
    RemoteMedia,
    TextContent,
    UsageMetrics,
)
from creative_ai_system.orchestrator.job_poller import JobStatus
from creative_ai_system.storage.media_persistence import parse_data_uri

from .base import BaseMediaProvider, StreamChunk, classify_provider_error

logger = structlog.get_logger(__name__)

# Gemini TTS returns 24 kHz, 16-bit mono PCM
PCM_BYTES_PER_SECOND = 24_000 * 2
DEFAULT_VOICE = "Orus"
DEFAULT_AUDIO_MIME = "audio/L16;codec=pcm;rate=24000"


def _status_of(error: BaseException) -> Optional[int]:
    code = getattr(error, "code", None)
    return code if isinstance(code, int) else None


def _translate(error: BaseException) -> ProviderException:
    return classify_provider_error(error, Provider.GOOGLE, status=_status_of(error))


def _usage_from(response: Any) -> Tuple[Optional[int], Optional[int]]:
    metadata = getattr(response, "usage_metadata", None)
    if metadata is None:
        return None, None
    return (
        getattr(metadata, "prompt_token_count", None),
        getattr(metadata, "candidates_token_count", None),
    )


def _first_inline_part(response: Any) -> Optional[Any]:
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline is not None and getattr(inline, "data", None):
                return inline
    return None


def _blocked_reason(response: Any) -> Optional[str]:
    feedback = getattr(response, "prompt_feedback", None)
    reason = getattr(feedback, "block_reason", None)
    return str(reason) if reason else None


async def load_reference_bytes(
    reference: ReferenceMedia, timeout: float = 60.0
) -> Tuple[bytes, str]:
    """Inline bytes of a reference: data URIs are decoded, other URLs downloaded."""
    if reference.data is not None:
        return reference.data, reference.mime_type or "image/jpeg"
    if reference.url.startswith("data:"):
        try:
            mime_type, data = parse_data_uri(reference.url)
        except PersistenceError as e:
            raise FatalProviderError(
                f"Invalid reference image: {e.message}", provider=Provider.GOOGLE.value
            ) from e
        return data, mime_type or reference.mime_type or "image/jpeg"
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.get(reference.url)
            response.raise_for_status()
    except httpx.HTTPError as e:
        raise FatalProviderError(
            f"Failed to fetch reference image: {e}", provider=Provider.GOOGLE.value
        ) from e
    mime_type = response.headers.get("content-type") or reference.mime_type or "image/jpeg"
    return response.content, mime_type


class VeoVideoJob:
    """Veo long-running video operation, driven by AsyncJobPoller."""

    provider = Provider.GOOGLE.value

    def __init__(
        self,
        client: Any,
        api_key: str,
        model: str,
        prompt: str,
        aspect_ratio: str,
        duration_seconds: int,
        reference: Optional[ReferenceMedia] = None,
        resolution: str = "720p",
    ):
        self._client = client
        self._api_key = api_key
        self.model = model
        self.prompt = prompt
        self.aspect_ratio = aspect_ratio
        self.duration_seconds = duration_seconds
        self.reference = reference
        self.resolution = resolution

    async def submit(self) -> Any:
        image = None
        if self.reference is not None:
            data, mime_type = await load_reference_bytes(self.reference)
            image = types.Image(image_bytes=data, mime_type=mime_type)

        config = types.GenerateVideosConfig(
            number_of_videos=1,
            resolution=self.resolution,
            aspect_ratio=self.aspect_ratio,
            duration_seconds=self.duration_seconds,
        )
        try:
            return await self._client.aio.models.generate_videos(
                model=self.model, prompt=self.prompt, image=image, config=config
            )
        except Exception as e:
            raise _translate(e) from e

    async def poll(self, handle: Any) -> JobStatus:
        operation = await self._client.aio.operations.get(handle)
        logger.debug("Veo operation polled", model=self.model, done=getattr(operation, "done", None))
        error = getattr(operation, "error", None)
        if error:
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            return JobStatus(done=True, handle=operation, error=message)
        return JobStatus(done=bool(getattr(operation, "done", False)), handle=operation)

    def extract(self, status: JobStatus) -> RemoteMedia:
        operation = status.handle
        response = getattr(operation, "response", None) or getattr(operation, "result", None)
        videos = getattr(response, "generated_videos", None) or []
        if not videos:
            raise FatalProviderError("No videos generated by Google Veo", provider=self.provider)

        video = getattr(videos[0], "video", None)
        uri = getattr(video, "uri", None)
        if not uri:
            raise FatalProviderError("Invalid video response from Google Veo", provider=self.provider)

        return RemoteMedia(
            url=uri,
            mime_type=getattr(video, "mime_type", None) or "video/mp4",
            auth_params={"key": self._api_key},
        )


class GoogleGenAIProvider(BaseMediaProvider):
    """Primary vendor, reached through the google-genai SDK."""

    provider = Provider.GOOGLE

    SUPPORTED_MODELS = [
        "gemini-3-flash-preview",
        "gemini-3-pro-preview",
        "gemini-3-pro-image-preview",
        "gemini-2.5-flash-image",
        "imagen-4.0-generate-001",
        "gemini-2.5-flash-preview-tts",
        "gemini-2.5-pro-preview-tts",
        "veo-3.1-fast-generate-preview",
        "veo-3.1-generate-preview",
    ]

    def __init__(self, api_key: Optional[str], timeout: float = 600.0, client: Any = None):
        """
        Initialize the Google provider.

        Args:
            api_key: Gemini API key
            timeout: Request timeout in seconds
            client: Pre-built ``genai.Client``; created on first use otherwise
        """
        super().__init__(api_key, timeout)
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = genai.Client(api_key=self._require_key())
        return self._client

    def get_supported_models(self) -> List[str]:
        return self.SUPPORTED_MODELS

    async def generate_text(self, model: str, prompt: str) -> PrimaryVendorResult:
        self._log_request("text", model, prompt_length=len(prompt))
        try:
            response = await self.client.aio.models.generate_content(model=model, contents=prompt)
        except Exception as e:
            self._log_error(e, model)
            raise _translate(e) from e

        text = getattr(response, "text", None)
        if not text:
            reason = _blocked_reason(response)
            raise FatalProviderError(
                f"Text generation blocked: {reason}" if reason else "Empty text response",
                provider=self.name,
            )

        input_tokens, output_tokens = _usage_from(response)
        return PrimaryVendorResult(
            model_id=model,
            result=TextContent(text=text),
            usage=UsageMetrics(input_tokens=input_tokens, output_tokens=output_tokens),
        )

    async def stream_text(self, model: str, prompt: str) -> AsyncIterator[StreamChunk]:
        """Yield text chunks, then one final chunk carrying token usage."""
        self._log_request("text_stream", model, prompt_length=len(prompt))
        try:
            stream = await self.client.aio.models.generate_content_stream(
                model=model, contents=prompt
            )
        except Exception as e:
            self._log_error(e, model)
            raise _translate(e) from e

        input_tokens = output_tokens = None
        async for chunk in stream:
            chunk_input, chunk_output = _usage_from(chunk)
            input_tokens = chunk_input or input_tokens
            output_tokens = chunk_output or output_tokens
            text = getattr(chunk, "text", None)
            if text:
                yield StreamChunk(content=text)

        yield StreamChunk(
            is_final=True,
            usage=UsageMetrics(input_tokens=input_tokens, output_tokens=output_tokens),
        )

    async def generate_image(
        self,
        model: str,
        prompt: str,
        aspect_ratio: str,
        image_size: str = "1K",
        references: Optional[List[ReferenceMedia]] = None,
    ) -> PrimaryVendorResult:
        self._log_request(
            "image", model, aspect_ratio=aspect_ratio, image_size=image_size,
            reference_count=len(references or []),
        )
        if model.startswith("imagen"):
            return await self._generate_imagen(model, prompt, aspect_ratio)

        parts = [types.Part.from_text(text=prompt)]
        for reference in references or []:
            data, mime_type = await load_reference_bytes(reference)
            parts.append(types.Part.from_bytes(data=data, mime_type=mime_type))

        config = types.GenerateContentConfig(
            image_config=types.ImageConfig(aspect_ratio=aspect_ratio, image_size=image_size),
        )
        try:
            response = await self.client.aio.models.generate_content(
                model=model, contents=parts, config=config
            )
        except Exception as e:
            self._log_error(e, model)
            raise _translate(e) from e

        inline = _first_inline_part(response)
        if inline is None:
            reason = _blocked_reason(response)
            raise FatalProviderError(
                f"Image generation blocked: {reason}" if reason else "Failed to generate image",
                provider=self.name,
            )

        return PrimaryVendorResult(
            model_id=model,
            result=InlineMedia(data=inline.data, mime_type=inline.mime_type or "image/png"),
            usage=UsageMetrics(image_count=1, image_size=image_size),
        )

    async def _generate_imagen(self, model: str, prompt: str, aspect_ratio: str) -> PrimaryVendorResult:
        config = types.GenerateImagesConfig(
            number_of_images=1, output_mime_type="image/png", aspect_ratio=aspect_ratio
        )
        try:
            response = await self.client.aio.models.generate_images(
                model=model, prompt=prompt, config=config
            )
        except Exception as e:
            self._log_error(e, model)
            raise _translate(e) from e

        generated = getattr(response, "generated_images", None) or []
        image = getattr(generated[0], "image", None) if generated else None
        data = getattr(image, "image_bytes", None)
        if not data:
            raise FatalProviderError("Imagen returned no image", provider=self.name)

        return PrimaryVendorResult(
            model_id=model,
            result=InlineMedia(data=data, mime_type="image/png"),
            usage=UsageMetrics(image_count=1, image_size="1K"),
        )

    async def generate_speech(
        self, model: str, prompt: str, voice_name: Optional[str] = None
    ) -> PrimaryVendorResult:
        voice = voice_name or DEFAULT_VOICE
        self._log_request("speech", model, voice=voice, characters=len(prompt))
        config = types.GenerateContentConfig(
            response_modalities=["AUDIO"],
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=voice)
                )
            ),
        )
        try:
            response = await self.client.aio.models.generate_content(
                model=model, contents=prompt, config=config
            )
        except Exception as e:
            self._log_error(e, model)
            raise _translate(e) from e

        inline = _first_inline_part(response)
        if inline is None:
            raise FatalProviderError("Failed to generate speech", provider=self.name)

        input_tokens, output_tokens = _usage_from(response)
        return PrimaryVendorResult(
            model_id=model,
            result=InlineMedia(data=inline.data, mime_type=inline.mime_type or DEFAULT_AUDIO_MIME),
            usage=UsageMetrics(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                character_count=len(prompt),
                audio_duration_seconds=round(len(inline.data) / PCM_BYTES_PER_SECOND, 2),
            ),
        )

    def video_job(
        self,
        model: str,
        prompt: str,
        aspect_ratio: str,
        duration_seconds: int,
        reference: Optional[ReferenceMedia] = None,
    ) -> VeoVideoJob:
        self._log_request(
            "video", model, aspect_ratio=aspect_ratio, duration_seconds=duration_seconds,
            has_reference=reference is not None,
        )
        return VeoVideoJob(
            client=self.client,
            api_key=self._require_key(),
            model=model,
            prompt=prompt,
            aspect_ratio=aspect_ratio,
            duration_seconds=duration_seconds,
            reference=reference,
        )


__all__ = ["GoogleGenAIProvider", "VeoVideoJob", "load_reference_bytes"]
