"""
Base provider class and streaming types shared by the vendor clients.
"""

import uuid
from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Optional

import structlog
from pydantic import BaseModel, Field

from creative_ai_system.exceptions import (
    FatalProviderError,
    ProviderException,
    TransientProviderError,
    is_transient_error,
)
from creative_ai_system.models import Provider, UsageMetrics

logger = structlog.get_logger(__name__)


class StreamChunk(BaseModel):
    """A chunk of streamed text."""

    content: str = Field(default="", description="Chunk content")
    is_final: bool = Field(default=False, description="Whether this is the final chunk")
    usage: Optional[UsageMetrics] = Field(default=None, description="Token usage (if final)")


class ChunkStream:
    """A finite, cancellable sequence of chunks.

    Exactly one chunk with ``is_final=True`` ends every stream, including a
    cancelled one or one whose source ended without a final marker.
    """

    def __init__(self, chunks: AsyncIterator[StreamChunk], model: str, request_id: Optional[str] = None):
        self.chunks = chunks
        self.model = model
        self.request_id = request_id or str(uuid.uuid4())
        self.usage = UsageMetrics()
        self._parts: List[str] = []
        self._cancelled = False
        self._finished = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def cancel(self) -> None:
        """Stop after the chunk currently being delivered."""
        self._cancelled = True

    def __aiter__(self) -> AsyncIterator[StreamChunk]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[StreamChunk]:
        if self._finished:
            return
        try:
            async for chunk in self.chunks:
                if self._cancelled:
                    break
                if chunk.is_final:
                    if chunk.usage is not None:
                        self.usage = chunk.usage
                    if chunk.content:
                        self._parts.append(chunk.content)
                        yield StreamChunk(content=chunk.content)
                    break
                self._parts.append(chunk.content)
                yield chunk
        finally:
            self._finished = True
            aclose = getattr(self.chunks, "aclose", None)
            if aclose is not None:
                await aclose()

        yield StreamChunk(content="", is_final=True, usage=self.usage)


def classify_provider_error(
    error: BaseException, provider: Provider, status: Optional[int] = None
) -> ProviderException:
    """Translate a vendor/SDK error into the transient/fatal taxonomy."""
    if isinstance(error, ProviderException):
        return error
    message = str(error) or type(error).__name__
    if is_transient_error(error) or status == 503:
        return TransientProviderError(message, provider=provider.value)
    return FatalProviderError(message, provider=provider.value, status=status)


class BaseMediaProvider(ABC):
    """Abstract base class for media generation vendors."""

    provider: Provider

    def __init__(self, api_key: Optional[str], timeout: float = 600.0):
        """
        Initialize the provider.

        Args:
            api_key: Vendor credential; never logged
            timeout: Request timeout in seconds
        """
        self._api_key = api_key
        self.timeout = timeout
        self.name = self.provider.value

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    @abstractmethod
    def get_supported_models(self) -> List[str]:
        """List of model or endpoint identifiers this vendor serves."""

    def supports_model(self, model: str) -> bool:
        return model in self.get_supported_models()

    def _require_key(self) -> str:
        if not self._api_key:
            raise FatalProviderError(
                f"{self.name} API key not configured", provider=self.name, status=401
            )
        return self._api_key

    def _log_request(self, operation: str, model: str, **kwargs) -> None:
        logger.info(
            "Provider request",
            provider=self.name,
            operation=operation,
            model=model,
            **kwargs,
        )

    def _log_error(self, error: BaseException, model: Optional[str] = None) -> None:
        logger.error(
            "Provider error",
            provider=self.name,
            model=model,
            error_type=type(error).__name__,
            error_message=str(error),
        )
