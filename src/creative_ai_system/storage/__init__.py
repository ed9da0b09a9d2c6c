"""Durable storage for generated media."""

from .blob_store import BlobStore, InMemoryBlobStore, StoredBlob, VercelBlobStore
from .media_persistence import (
    ALLOWED_UPLOAD_CONTENT_TYPES,
    MediaPersistence,
    parse_data_uri,
    validate_content_type,
)

__all__ = [
    "ALLOWED_UPLOAD_CONTENT_TYPES",
    "BlobStore",
    "InMemoryBlobStore",
    "MediaPersistence",
    "StoredBlob",
    "VercelBlobStore",
    "parse_data_uri",
    "validate_content_type",
]
