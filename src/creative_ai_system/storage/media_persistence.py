"""Moves generated media into durable storage and returns a stable URL."""

import base64
import binascii
import secrets
import time
from collections.abc import Callable
from typing import Optional, Tuple

import httpx
import structlog

from creative_ai_system.exceptions import PersistenceError
from creative_ai_system.models import InlineMedia, ReferenceMedia, RemoteMedia, TextContent

from .blob_store import BlobStore

logger = structlog.get_logger(__name__)

ALLOWED_UPLOAD_CONTENT_TYPES = (
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/heic",
    "image/heif",
    "image/gif",
    "video/mp4",
    "video/webm",
)

EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/heic": "heic",
    "image/heif": "heif",
    "image/gif": "gif",
    "video/mp4": "mp4",
    "video/webm": "webm",
}

MAX_UPLOAD_BYTES = 100 * 1024 * 1024


def validate_content_type(content_type: Optional[str]) -> str:
    """Exact-match check against the allow-list.

    Case variants and parameterized forms (``image/png; name=x``) are rejected.
    """
    if not content_type:
        raise PersistenceError("Content type is required")
    if content_type not in ALLOWED_UPLOAD_CONTENT_TYPES:
        raise PersistenceError(
            f"Invalid content type: {content_type}. "
            f"Allowed types: {', '.join(ALLOWED_UPLOAD_CONTENT_TYPES)}"
        )
    return content_type


def parse_data_uri(uri: str) -> Tuple[str, bytes]:
    """Split ``data:<mime>;base64,<payload>`` into mime type and bytes."""
    if not uri.startswith("data:") or "," not in uri:
        raise PersistenceError("Invalid data URI")
    header, payload = uri[len("data:"):].split(",", 1)
    if not header.endswith(";base64"):
        raise PersistenceError("Only base64 data URIs are supported")
    mime_type = header[: -len(";base64")]
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise PersistenceError("Invalid base64 payload in data URI") from e
    return mime_type, data


class MediaPersistence:
    """Validates, names and uploads generated assets."""

    def __init__(
        self,
        store: BlobStore,
        download_timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
        token_factory: Callable[[], str] = lambda: secrets.token_hex(4),
    ):
        self.store = store
        self.download_timeout = download_timeout
        self._transport = transport
        self._clock = clock
        self._token_factory = token_factory

    def generate_key(self, prefix: str, content_type: str) -> str:
        """``{prefix}-{unix_ms}-{random}.{ext}``"""
        timestamp_ms = int(self._clock() * 1000)
        extension = EXTENSIONS.get(content_type, "bin")
        return f"{prefix}-{timestamp_ms}-{self._token_factory()}.{extension}"

    async def persist(self, result_ref, prefix: str = "creative") -> str:
        """Store a normalized result and return its durable URL."""
        if isinstance(result_ref, TextContent):
            raise PersistenceError("Text results have no media to persist")

        if isinstance(result_ref, InlineMedia):
            data, content_type = result_ref.data, result_ref.mime_type
        elif isinstance(result_ref, RemoteMedia):
            if result_ref.url.startswith("data:"):
                content_type, data = parse_data_uri(result_ref.url)
            else:
                data, content_type = await self._download(result_ref)
        else:
            raise PersistenceError(f"Unsupported result type: {type(result_ref).__name__}")

        return await self._upload(data, content_type, prefix)

    async def persist_data_uri(self, uri: str, prefix: str = "creative") -> str:
        content_type, data = parse_data_uri(uri)
        return await self._upload(data, content_type, prefix)

    async def upload_reference(self, media: ReferenceMedia, prefix: str = "reference") -> str:
        """Public URL for a reference; URL references pass through unchanged."""
        if media.has_http_url:
            return media.url
        if media.data is None and media.url and media.url.startswith("data:"):
            return await self.persist_data_uri(media.url, prefix)
        if media.data is None:
            raise PersistenceError("Reference media has no data to upload")
        return await self._upload(media.data, media.mime_type, prefix)

    async def _download(self, ref: RemoteMedia) -> Tuple[bytes, Optional[str]]:
        try:
            async with httpx.AsyncClient(
                timeout=self.download_timeout, follow_redirects=True, transport=self._transport
            ) as client:
                response = await client.get(ref.url, params=ref.auth_params or None)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise PersistenceError(
                f"Failed to download generated media (status {e.response.status_code})"
            ) from e
        except httpx.HTTPError as e:
            raise PersistenceError(f"Failed to download generated media: {type(e).__name__}") from e

        # Provider-reported type wins over the download's header
        content_type = ref.mime_type or response.headers.get("content-type")
        return response.content, content_type

    async def _upload(self, data: bytes, content_type: Optional[str], prefix: str) -> str:
        content_type = validate_content_type(content_type)
        if not data:
            raise PersistenceError("Generated media is empty")
        if len(data) > MAX_UPLOAD_BYTES:
            raise PersistenceError(
                f"File too large. Max size is {MAX_UPLOAD_BYTES // (1024 * 1024)}MB"
            )

        key = self.generate_key(prefix, content_type)
        try:
            blob = await self.store.put(key, data, content_type=content_type, access="public")
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Blob upload failed: {type(e).__name__}") from e

        logger.info("Media persisted", key=key, content_type=content_type, size=len(data))
        return blob.url
