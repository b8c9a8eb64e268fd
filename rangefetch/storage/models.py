"""Data models for object transfers."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple, Union
from pydantic import BaseModel, Field, field_validator

from rangefetch.config.settings import Settings, validate_digest_algorithm
from rangefetch.utils.constants import (
    DEFAULT_CHUNK_SIZE, DEFAULT_CONCURRENCY_LIMIT, DEFAULT_DIGEST_ALGORITHM,
    DEFAULT_FETCH_ATTEMPTS, DEFAULT_INITIAL_BACKOFF, DEFAULT_MAX_BACKOFF,
    DEFAULT_MAX_RETRIES_PER_CHUNK, MAX_CONCURRENCY_LIMIT, RESUME_STATE_VERSION
)
from rangefetch.utils.helpers import parse_s3_uri


class RangeStatus(str, Enum):
    """Lifecycle state of a byte range within one transfer."""
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ObjectLocator:
    """Identifies a remote object."""
    bucket: str
    key: str

    def __post_init__(self):
        if not self.bucket or not self.key:
            raise ValueError("bucket and key must be non-empty")

    @classmethod
    def from_uri(cls, uri: str) -> "ObjectLocator":
        bucket, key = parse_s3_uri(uri)
        return cls(bucket=bucket, key=key)

    def __str__(self) -> str:
        return f"s3://{self.bucket}/{self.key}"


@dataclass(frozen=True, order=True)
class ByteRange:
    """Half-open byte interval ``[offset, offset + length)``."""
    offset: int
    length: int

    def __post_init__(self):
        if self.offset < 0:
            raise ValueError(f"offset must be >= 0, got {self.offset}")
        if self.length <= 0:
            raise ValueError(f"length must be > 0, got {self.length}")

    @property
    def end(self) -> int:
        """Exclusive end offset."""
        return self.offset + self.length

    def http_header(self) -> str:
        """Render as an HTTP ``Range`` header value (inclusive end)."""
        return f"bytes={self.offset}-{self.end - 1}"

    def __str__(self) -> str:
        return f"[{self.offset}, {self.end})"


@dataclass(frozen=True)
class Digest:
    """Output of a finalized hash computation."""
    algorithm: str
    value: bytes

    def hexdigest(self) -> str:
        return self.value.hex()

    def matches(self, other: Union["Digest", str]) -> bool:
        """Compare against another digest or a hex string (case-insensitive)."""
        if isinstance(other, Digest):
            return self.algorithm == other.algorithm and self.value == other.value
        return self.hexdigest() == other.strip().lower()

    def __str__(self) -> str:
        return f"{self.algorithm}:{self.hexdigest()}"


class ObjectMetadata(BaseModel):
    """Result of a HEAD-equivalent query."""
    size: int = Field(..., ge=0)
    etag: Optional[str] = None


@dataclass(frozen=True)
class TransferPlan:
    """Ordered, gap-free partition of ``[0, size)`` into ranges."""
    size: int
    chunk_size: int
    ranges: Tuple[ByteRange, ...]

    @classmethod
    def build(cls, size: int, chunk_size: int) -> "TransferPlan":
        """Split an object of ``size`` bytes into ``chunk_size`` ranges.

        The tail range is shorter when ``size`` is not a multiple of
        ``chunk_size``; an empty object yields an empty plan.
        """
        if size < 0:
            raise ValueError(f"size must be >= 0, got {size}")
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be > 0, got {chunk_size}")

        ranges = tuple(
            ByteRange(offset, min(chunk_size, size - offset))
            for offset in range(0, size, chunk_size)
        )
        return cls(size=size, chunk_size=chunk_size, ranges=ranges)

    @classmethod
    def single(cls, size: int) -> "TransferPlan":
        """Whole-object plan: one range covering everything."""
        return cls.build(size, max(size, 1))

    def __len__(self) -> int:
        return len(self.ranges)

    def __iter__(self):
        return iter(self.ranges)


class DownloadOptions(BaseModel):
    """Per-transfer options."""
    chunk_size: int = Field(DEFAULT_CHUNK_SIZE, ge=1)
    concurrency_limit: int = Field(DEFAULT_CONCURRENCY_LIMIT, ge=1, le=MAX_CONCURRENCY_LIMIT)
    max_retries_per_chunk: int = Field(DEFAULT_MAX_RETRIES_PER_CHUNK, ge=1)
    fetch_attempts: int = Field(DEFAULT_FETCH_ATTEMPTS, ge=1)
    initial_backoff_seconds: float = Field(DEFAULT_INITIAL_BACKOFF, ge=0.0)
    max_backoff_seconds: float = Field(DEFAULT_MAX_BACKOFF, ge=0.0)
    digest_algorithm: str = DEFAULT_DIGEST_ALGORITHM
    expected_digest: Optional[str] = None
    persist_resume_state: bool = True
    checkpoint_save_interval: float = Field(0.0, ge=0.0)

    @field_validator("digest_algorithm")
    @classmethod
    def validate_digest(cls, v: str) -> str:
        return validate_digest_algorithm(v)

    @field_validator("expected_digest")
    @classmethod
    def normalize_expected_digest(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().lower()
        try:
            bytes.fromhex(v)
        except ValueError:
            raise ValueError("expected_digest must be a hex string")
        return v

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> "DownloadOptions":
        """Seed options from settings, letting keyword arguments win."""
        values = {
            'chunk_size': settings.chunk_size,
            'concurrency_limit': settings.concurrency_limit,
            'max_retries_per_chunk': settings.max_retries_per_chunk,
            'fetch_attempts': settings.fetch_attempts,
            'initial_backoff_seconds': settings.initial_backoff_seconds,
            'max_backoff_seconds': settings.max_backoff_seconds,
            'digest_algorithm': settings.digest_algorithm,
            'persist_resume_state': settings.persist_resume_state,
            'checkpoint_save_interval': settings.checkpoint_save_interval,
        }
        values.update(overrides)
        return cls(**values)


class TransferResult(BaseModel):
    """Terminal outcome of a successful transfer."""
    model_config = {"arbitrary_types_allowed": True}

    bytes_written: int
    digest: Digest
    duration_seconds: float
    chunk_count: int = 0
    resumed_bytes: int = 0

    @property
    def download_speed_mbps(self) -> float:
        """Get transfer speed in MB/s over the bytes fetched in this call."""
        if self.duration_seconds <= 0:
            return 0.0
        fetched = self.bytes_written - self.resumed_bytes
        return (fetched / (1024 * 1024)) / self.duration_seconds


class ResumeState(BaseModel):
    """Persisted progress of an interrupted transfer."""
    bucket: str
    key: str
    size: int
    etag: Optional[str] = None
    chunk_size: int
    digest_algorithm: str = DEFAULT_DIGEST_ALGORITHM
    completed_ranges: List[Tuple[int, int]] = Field(default_factory=list)
    last_updated: Optional[datetime] = None
    version: str = RESUME_STATE_VERSION

    @property
    def locator(self) -> ObjectLocator:
        return ObjectLocator(bucket=self.bucket, key=self.key)

    def done_ranges(self) -> List[ByteRange]:
        return [ByteRange(offset, length) for offset, length in self.completed_ranges]

    @property
    def completed_bytes(self) -> int:
        return sum(length for _, length in self.completed_ranges)
