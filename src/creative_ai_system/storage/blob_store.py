"""Durable blob storage backends."""

import asyncio
from dataclasses import dataclass
from typing import Dict, Optional, Protocol, Tuple

import httpx
import structlog

from creative_ai_system.exceptions import PersistenceError

logger = structlog.get_logger(__name__)

VERCEL_BLOB_API_VERSION = "7"


@dataclass(frozen=True)
class StoredBlob:
    url: str
    pathname: str
    content_type: str


class BlobStore(Protocol):
    """Storage collaborator: put bytes under a key, get a public URL back."""

    async def put(
        self, key: str, data: bytes, *, content_type: str, access: str = "public"
    ) -> StoredBlob: ...


class VercelBlobStore:
    """Vercel Blob over its HTTP API."""

    def __init__(
        self,
        token: Optional[str],
        base_url: str = "https://blob.vercel-storage.com",
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def put(
        self, key: str, data: bytes, *, content_type: str, access: str = "public"
    ) -> StoredBlob:
        if not self._token:
            raise PersistenceError("Blob storage token not configured")

        headers = {
            "authorization": f"Bearer {self._token}",
            "x-api-version": VERCEL_BLOB_API_VERSION,
            "x-content-type": content_type,
            "x-add-random-suffix": "0",
            "x-access": access,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.put(f"{self.base_url}/{key}", content=data, headers=headers)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as e:
            raise PersistenceError(
                f"Blob upload failed with status {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise PersistenceError(f"Blob upload failed: {type(e).__name__}") from e

        url = body.get("url") if isinstance(body, dict) else None
        if not url:
            raise PersistenceError("Blob upload returned no URL")

        logger.info("Blob stored", pathname=body.get("pathname", key), size=len(data))
        return StoredBlob(
            url=url,
            pathname=body.get("pathname", key),
            content_type=body.get("contentType", content_type),
        )


class InMemoryBlobStore:
    """Blob store kept in process memory."""

    def __init__(self, base_url: str = "https://blob.local"):
        self.base_url = base_url.rstrip("/")
        self._blobs: Dict[str, Tuple[bytes, str]] = {}
        self._lock = asyncio.Lock()

    async def put(
        self, key: str, data: bytes, *, content_type: str, access: str = "public"
    ) -> StoredBlob:
        async with self._lock:
            self._blobs[key] = (data, content_type)
        return StoredBlob(url=f"{self.base_url}/{key}", pathname=key, content_type=content_type)

    def get(self, key: str) -> Optional[Tuple[bytes, str]]:
        return self._blobs.get(key)

    @property
    def keys(self) -> list[str]:
        return list(self._blobs)

    def __len__(self) -> int:
        return len(self._blobs)
