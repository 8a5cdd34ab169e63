"""Storage module for short-lived blobs."""

from tmpstore.storage.blob_store import BlobStore, StoreStats
from tmpstore.storage.errors import (
    AlreadyExists,
    BlobIOError,
    BlobStoreError,
    InitializationError,
    InvalidName,
    NotFound,
    PayloadTooLarge,
)
from tmpstore.storage.scheduler import EvictionScheduler

__all__ = [
    "BlobStore",
    "StoreStats",
    "EvictionScheduler",
    "BlobStoreError",
    "AlreadyExists",
    "BlobIOError",
    "InitializationError",
    "InvalidName",
    "NotFound",
    "PayloadTooLarge",
]
