"""Concurrent range transfer with fail-fast cancellation."""

import asyncio
from pathlib import Path
from typing import Optional

from rangefetch.filesystem.file_manager import FileManager
from rangefetch.logs.logger import get_logger
from rangefetch.progress.checkpoint_manager import CheckpointManager
from rangefetch.storage.exceptions import ChunkExhaustedError, DownloadError, FetchExhaustedError
from rangefetch.storage.models import DownloadOptions, ObjectLocator, TransferPlan
from rangefetch.storage.object_store import ObjectStore
from .chunk_fetcher import ChunkFetcher
from .range_tracker import RangeTracker
from .retry_manager import RetryManager

logger = get_logger(__name__)


class TransferScheduler:
    """Drives a bounded pool of workers over the ranges of a plan.

    Workers claim ranges from the tracker, fetch them and write them at
    their offsets. The first fatal error aborts the pool: remaining workers
    stop claiming, in-flight fetches are cancelled and their ranges go back
    to pending. The destination is left in place for a later resume.
    """

    def __init__(
        self,
        store: ObjectStore,
        options: DownloadOptions,
        file_manager: Optional[FileManager] = None,
        checkpoint: Optional[CheckpointManager] = None
    ):
        self.store = store
        self.options = options
        self.file_manager = file_manager or FileManager()
        self.checkpoint = checkpoint
        self.fetcher = ChunkFetcher(
            store,
            RetryManager(
                max_attempts=options.fetch_attempts,
                initial_backoff=options.initial_backoff_seconds,
                max_backoff=options.max_backoff_seconds,
            )
        )
        self.abort_event = asyncio.Event()
        self.bytes_fetched = 0

    async def run(
        self,
        locator: ObjectLocator,
        destination: Path,
        plan: TransferPlan,
        tracker: RangeTracker
    ) -> int:
        """Transfer every pending range of ``plan`` into ``destination``.

        Returns:
            Number of bytes fetched by this run

        Raises:
            DownloadError: The first fatal error observed by any worker
        """
        self.abort_event.clear()
        self.bytes_fetched = 0

        worker_count = min(self.options.concurrency_limit, len(plan))
        if worker_count == 0:
            return 0

        logger.debug(f"Starting {worker_count} workers for {len(plan)} ranges of {locator}")
        workers = [
            asyncio.create_task(self._worker(worker_id, locator, destination, tracker))
            for worker_id in range(worker_count)
        ]

        try:
            done, pending = await asyncio.wait(workers, return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            self.abort_event.set()
            await self._cancel(workers)
            raise

        error = next((t.exception() for t in done if t.exception() is not None), None)
        if error is not None:
            self.abort_event.set()
            await self._cancel(pending)
            logger.debug(f"Transfer of {locator} aborted: {type(error).__name__}: {error}")
            raise error

        if not tracker.is_complete():
            raise DownloadError(f"Transfer of {locator} ended with ranges outstanding: {tracker.counts()}")

        return self.bytes_fetched

    async def _cancel(self, tasks) -> None:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _worker(
        self,
        worker_id: int,
        locator: ObjectLocator,
        destination: Path,
        tracker: RangeTracker
    ) -> None:
        while not self.abort_event.is_set():
            byte_range = tracker.next_pending()
            if byte_range is None:
                return

            try:
                data = await self.fetcher.fetch(locator, byte_range)
                if self.abort_event.is_set():
                    tracker.release(byte_range)
                    return
                await asyncio.to_thread(self.file_manager.write_at, destination, byte_range.offset, data)
            except FetchExhaustedError as e:
                logger.debug(f"Worker {worker_id}: {e}")
                try:
                    tracker.mark_failed(byte_range)
                except ChunkExhaustedError:
                    self.abort_event.set()
                    raise
                continue
            except asyncio.CancelledError:
                tracker.release(byte_range)
                raise
            except Exception:
                tracker.release(byte_range)
                self.abort_event.set()
                raise

            tracker.mark_done(byte_range)
            self.bytes_fetched += byte_range.length
            if self.checkpoint:
                await asyncio.to_thread(self.checkpoint.save_checkpoint, tracker)
