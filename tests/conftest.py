"""Shared fixtures: an in-memory object store with programmable faults."""

import asyncio
from typing import Dict, List, Optional

import pytest

from rangefetch.config.settings import Settings
from rangefetch.storage.exceptions import NotFoundError
from rangefetch.storage.models import ByteRange, DownloadOptions, ObjectLocator, ObjectMetadata
from rangefetch.storage.object_store import ObjectStore


class InMemoryObjectStore(ObjectStore):
    """Object store backed by a dict, recording every range request.

    ``fail(offset, *errors)`` queues exceptions raised by successive
    requests for the range starting at ``offset``; ``short_read(offset)``
    makes that range come back one byte short.
    """

    def __init__(self, objects: Optional[Dict[ObjectLocator, bytes]] = None, delay: float = 0.0):
        self.objects: Dict[ObjectLocator, bytes] = dict(objects or {})
        self.etags: Dict[ObjectLocator, str] = {}
        self.delay = delay
        self.calls: List[ByteRange] = []
        self.head_calls = 0
        self._failures: Dict[int, List[Exception]] = {}
        self._short_reads = set()

    def put(self, locator: ObjectLocator, data: bytes, etag: Optional[str] = None) -> None:
        self.objects[locator] = data
        if etag:
            self.etags[locator] = etag

    def fail(self, offset: int, *errors: Exception) -> None:
        self._failures.setdefault(offset, []).extend(errors)

    def short_read(self, offset: int) -> None:
        self._short_reads.add(offset)

    def calls_for(self, offset: int) -> int:
        return sum(1 for r in self.calls if r.offset == offset)

    async def head(self, locator: ObjectLocator) -> ObjectMetadata:
        self.head_calls += 1
        if locator not in self.objects:
            raise NotFoundError(f"Object not found: {locator}")
        return ObjectMetadata(size=len(self.objects[locator]), etag=self.etags.get(locator))

    async def get_range(self, locator: ObjectLocator, byte_range: ByteRange) -> bytes:
        self.calls.append(byte_range)
        if self.delay:
            await asyncio.sleep(self.delay)
        else:
            await asyncio.sleep(0)

        queued = self._failures.get(byte_range.offset)
        if queued:
            raise queued.pop(0)

        if locator not in self.objects:
            raise NotFoundError(f"Object not found: {locator}")
        data = self.objects[locator][byte_range.offset:byte_range.end]
        if byte_range.offset in self._short_reads:
            data = data[:-1]
        return data


def make_payload(size: int) -> bytes:
    """Deterministic, non-repeating-per-chunk test content."""
    block = bytes((i * 31 + 7) % 251 for i in range(4096))
    repeats = size // len(block) + 1
    return (block * repeats)[:size]


@pytest.fixture
def locator():
    return ObjectLocator(bucket="ctesias", key="test_data/kjv.txt")


@pytest.fixture
def store():
    return InMemoryObjectStore()


@pytest.fixture
def settings():
    return Settings(
        initial_backoff_seconds=0.0,
        max_backoff_seconds=0.01,
        checkpoint_save_interval=0.0,
        log_level="WARNING",
    )


@pytest.fixture
def fast_options():
    """Options with no backoff delay and small chunks."""
    return DownloadOptions(
        chunk_size=1024,
        concurrency_limit=4,
        max_retries_per_chunk=3,
        fetch_attempts=1,
        initial_backoff_seconds=0.0,
        max_backoff_seconds=0.0,
        checkpoint_save_interval=0.0,
    )
