"""Object store access and transfer data models."""

from .object_store import ObjectStore, HttpObjectStore
from .models import (
    ObjectLocator, ByteRange, ObjectMetadata, TransferPlan, RangeStatus,
    Digest, DownloadOptions, TransferResult, ResumeState
)
from .exceptions import (
    DownloadError, ObjectStoreError, NotFoundError, AccessDeniedError,
    InvalidRangeError, TransientError, ProtocolError, FetchExhaustedError,
    ChunkExhaustedError, DigestMismatchError, FileSystemError,
    InvalidTransitionError, UseAfterFinalizeError
)

__all__ = [
    "ObjectStore",
    "HttpObjectStore",
    "ObjectLocator",
    "ByteRange",
    "ObjectMetadata",
    "TransferPlan",
    "RangeStatus",
    "Digest",
    "DownloadOptions",
    "TransferResult",
    "ResumeState",
    "DownloadError",
    "ObjectStoreError",
    "NotFoundError",
    "AccessDeniedError",
    "InvalidRangeError",
    "TransientError",
    "ProtocolError",
    "FetchExhaustedError",
    "ChunkExhaustedError",
    "DigestMismatchError",
    "FileSystemError",
    "InvalidTransitionError",
    "UseAfterFinalizeError"
]
