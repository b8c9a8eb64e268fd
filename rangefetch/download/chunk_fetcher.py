"""Fetches a single byte range with retry on transient failures."""

from typing import Optional

from rangefetch.logs.logger import get_logger, log_chunk_retry
from rangefetch.storage.exceptions import FetchExhaustedError, ProtocolError, TransientError
from rangefetch.storage.models import ByteRange, ObjectLocator
from rangefetch.storage.object_store import ObjectStore
from .retry_manager import RetriesExhaustedError, RetryManager

logger = get_logger(__name__)


class ChunkFetcher:
    """Reads one range of a remote object.

    Transient store errors are retried with backoff; not-found, access-denied
    and invalid-range errors propagate on the first occurrence. A body whose
    length differs from the requested range is a ``ProtocolError`` and is not
    retried.
    """

    def __init__(
        self,
        store: ObjectStore,
        retry_manager: Optional[RetryManager] = None,
        max_attempts: Optional[int] = None
    ):
        self.store = store
        self.retry_manager = retry_manager or RetryManager()
        self.max_attempts = max_attempts

    async def fetch(self, locator: ObjectLocator, byte_range: ByteRange) -> bytes:
        """Fetch ``byte_range`` of ``locator``.

        Raises:
            FetchExhaustedError: If every attempt failed transiently
            ProtocolError: If the store returned the wrong number of bytes
            ObjectStoreError: Non-retryable store errors, unchanged
        """
        def on_retry(attempt: int, max_attempts: int, delay: float, error: Exception) -> None:
            log_chunk_retry(str(byte_range), attempt + 1, max_attempts, delay)

        try:
            data = await self.retry_manager.retry_with_backoff(
                self.store.get_range,
                locator,
                byte_range,
                retryable_exceptions=(TransientError,),
                max_attempts=self.max_attempts,
                on_retry=on_retry
            )
        except RetriesExhaustedError as e:
            raise FetchExhaustedError(byte_range, e.attempts, e.last_error) from e.last_error

        if len(data) != byte_range.length:
            raise ProtocolError(
                f"Store returned {len(data)} bytes for {locator} {byte_range}, "
                f"expected {byte_range.length}"
            )
        return data
