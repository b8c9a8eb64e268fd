"""Public download entry points."""

import asyncio
import time
from pathlib import Path
from typing import Optional, Union

from rangefetch.config.settings import Settings, get_settings
from rangefetch.filesystem.file_manager import FileManager
from rangefetch.logs.logger import (
    get_logger, log_download_complete, log_download_error, log_download_start
)
from rangefetch.progress.checkpoint_manager import CheckpointManager
from rangefetch.storage.exceptions import DigestMismatchError
from rangefetch.storage.models import (
    DownloadOptions, ObjectLocator, ObjectMetadata, ResumeState, TransferPlan, TransferResult
)
from rangefetch.storage.object_store import HttpObjectStore, ObjectStore
from .integrity_checker import IntegrityChecker
from .range_tracker import RangeTracker
from .transfer_scheduler import TransferScheduler

logger = get_logger(__name__)

LocatorLike = Union[ObjectLocator, str]
PathLike = Union[str, Path]


def _as_locator(locator: LocatorLike) -> ObjectLocator:
    if isinstance(locator, ObjectLocator):
        return locator
    return ObjectLocator.from_uri(locator)


class Downloader:
    """Downloads objects into local files and verifies them.

    A download succeeds only when every range has been written and the
    file's digest (checked against ``expected_digest`` when given) has been
    computed over the finished file. Failed transfers leave the partial file
    and a resume state beside it; a digest mismatch leaves the file with an
    invalid marker.
    """

    def __init__(
        self,
        store: ObjectStore,
        settings: Optional[Settings] = None,
        file_manager: Optional[FileManager] = None,
        integrity_checker: Optional[IntegrityChecker] = None
    ):
        """Initialize downloader.

        Args:
            store: Object store to read from
            settings: Application settings used for default options
            file_manager: Local file operations
            integrity_checker: Post-transfer verification
        """
        self.store = store
        self.settings = settings or get_settings()
        self.file_manager = file_manager or FileManager()
        self.integrity_checker = integrity_checker or IntegrityChecker()

    def _resolve_options(self, options: Optional[DownloadOptions]) -> DownloadOptions:
        return options or DownloadOptions.from_settings(self.settings)

    async def download(
        self,
        locator: LocatorLike,
        destination: PathLike,
        options: Optional[DownloadOptions] = None
    ) -> TransferResult:
        """Download an object, overwriting ``destination``.

        Raises:
            NotFoundError, AccessDeniedError, InvalidRangeError: Store refused the object
            ChunkExhaustedError: A range kept failing transiently
            ProtocolError: The store returned the wrong number of bytes
            DigestMismatchError: The finished file does not match ``expected_digest``
            FileSystemError: Local I/O failed
        """
        locator = _as_locator(locator)
        destination = Path(destination)
        options = self._resolve_options(options)
        start_time = time.monotonic()

        metadata = await self.store.head(locator)
        plan = TransferPlan.build(metadata.size, options.chunk_size)
        return await self._run_fresh(locator, destination, metadata, plan, options, start_time)

    async def simple_download(
        self,
        locator: LocatorLike,
        destination: PathLike,
        options: Optional[DownloadOptions] = None
    ) -> TransferResult:
        """Download an object as a single range with one worker."""
        locator = _as_locator(locator)
        destination = Path(destination)
        options = self._resolve_options(options).model_copy(update={'concurrency_limit': 1})
        start_time = time.monotonic()

        metadata = await self.store.head(locator)
        plan = TransferPlan.single(metadata.size)
        return await self._run_fresh(locator, destination, metadata, plan, options, start_time)

    async def download_with_resume(
        self,
        locator: LocatorLike,
        destination: PathLike,
        resume_state: Optional[ResumeState] = None,
        options: Optional[DownloadOptions] = None
    ) -> TransferResult:
        """Continue an interrupted download without refetching finished ranges.

        ``resume_state`` defaults to the state persisted beside
        ``destination``. When there is no usable state (missing, for another
        object, or the remote object changed size or etag) this falls back to
        a fresh download.
        """
        locator = _as_locator(locator)
        destination = Path(destination)
        options = self._resolve_options(options)
        start_time = time.monotonic()

        checkpoint = CheckpointManager(destination, options.checkpoint_save_interval)
        state = resume_state or checkpoint.load_checkpoint()
        metadata = await self.store.head(locator)

        reason = self._resume_blocker(state, locator, metadata, destination)
        tracker = None
        if reason is None:
            plan = TransferPlan.build(metadata.size, state.chunk_size)
            try:
                tracker = RangeTracker.from_resume_state(
                    plan, state.done_ranges(), options.max_retries_per_chunk
                )
            except ValueError as e:
                reason = str(e)

        if tracker is None:
            logger.info(f"Starting fresh download of {locator}: {reason}")
            plan = TransferPlan.build(metadata.size, options.chunk_size)
            return await self._run_fresh(locator, destination, metadata, plan, options, start_time)

        checkpoint.start(locator, metadata, plan.chunk_size, options.digest_algorithm)
        resumed_bytes = tracker.completed_bytes()
        logger.info(f"Resuming {locator}: {resumed_bytes:,} of {metadata.size:,} bytes already present")
        return await self._transfer(
            locator, destination, metadata, plan, tracker, options, checkpoint,
            start_time, resumed_bytes
        )

    def _resume_blocker(
        self,
        state: Optional[ResumeState],
        locator: ObjectLocator,
        metadata: ObjectMetadata,
        destination: Path
    ) -> Optional[str]:
        """Return why ``state`` cannot be resumed, or None if it can."""
        if state is None:
            return "no resume state"
        if state.locator != locator:
            return f"resume state belongs to {state.locator}"
        if state.size != metadata.size:
            return f"object size changed from {state.size} to {metadata.size}"
        if state.etag and metadata.etag and state.etag != metadata.etag:
            return f"object etag changed from {state.etag} to {metadata.etag}"
        if not self.file_manager.can_resume_into(destination, metadata.size):
            return "partial file missing or wrong size"
        if self.integrity_checker.is_marked_invalid(destination):
            return "destination is marked invalid"
        return None

    async def _run_fresh(
        self,
        locator: ObjectLocator,
        destination: Path,
        metadata: ObjectMetadata,
        plan: TransferPlan,
        options: DownloadOptions,
        start_time: float
    ) -> TransferResult:
        self.file_manager.ensure_sufficient_space(destination, metadata.size)
        self.integrity_checker.clear_invalid_marker(destination)

        checkpoint = CheckpointManager(destination, options.checkpoint_save_interval)
        checkpoint.clear_checkpoint()
        self.file_manager.prepare_destination(destination, metadata.size)
        checkpoint.start(locator, metadata, plan.chunk_size, options.digest_algorithm)

        tracker = RangeTracker(plan, max_retries=options.max_retries_per_chunk)
        return await self._transfer(
            locator, destination, metadata, plan, tracker, options, checkpoint, start_time, 0
        )

    async def _transfer(
        self,
        locator: ObjectLocator,
        destination: Path,
        metadata: ObjectMetadata,
        plan: TransferPlan,
        tracker: RangeTracker,
        options: DownloadOptions,
        checkpoint: CheckpointManager,
        start_time: float,
        resumed_bytes: int
    ) -> TransferResult:
        persist = options.persist_resume_state
        scheduler = TransferScheduler(
            self.store, options, self.file_manager, checkpoint if persist else None
        )
        log_download_start(str(destination), metadata.size, len(plan))

        try:
            await scheduler.run(locator, destination, plan, tracker)
            digest = await asyncio.to_thread(
                self.integrity_checker.verify,
                destination,
                metadata.size,
                options.digest_algorithm,
                options.expected_digest
            )
        except DigestMismatchError as e:
            # Every range arrived; there is nothing left to resume
            checkpoint.clear_checkpoint()
            log_download_error(str(destination), e)
            raise
        except (Exception, asyncio.CancelledError) as e:
            if persist:
                checkpoint.save_checkpoint(tracker, force=True)
            else:
                self.integrity_checker.mark_incomplete(destination, e)
            log_download_error(str(destination), e)
            raise

        checkpoint.clear_checkpoint()
        duration = time.monotonic() - start_time
        log_download_complete(str(destination), duration, metadata.size)

        result = TransferResult(
            bytes_written=metadata.size,
            digest=digest,
            duration_seconds=duration,
            chunk_count=len(plan),
            resumed_bytes=resumed_bytes,
        )
        logger.debug(f"{locator}: {result.download_speed_mbps:.2f} MB/s")
        return result


async def download(
    locator: LocatorLike,
    destination: PathLike,
    options: Optional[DownloadOptions] = None,
    endpoint_url: Optional[str] = None,
    settings: Optional[Settings] = None
) -> TransferResult:
    """Download one object over HTTP using configured settings."""
    settings = settings or get_settings()
    async with _http_store(endpoint_url, settings) as store:
        return await Downloader(store, settings).download(locator, destination, options)


async def download_with_resume(
    locator: LocatorLike,
    destination: PathLike,
    resume_state: Optional[ResumeState] = None,
    options: Optional[DownloadOptions] = None,
    endpoint_url: Optional[str] = None,
    settings: Optional[Settings] = None
) -> TransferResult:
    """Resume (or start) a download over HTTP using configured settings."""
    settings = settings or get_settings()
    async with _http_store(endpoint_url, settings) as store:
        return await Downloader(store, settings).download_with_resume(
            locator, destination, resume_state, options
        )


def _http_store(endpoint_url: Optional[str], settings: Settings) -> HttpObjectStore:
    endpoint = endpoint_url or settings.endpoint_url
    if not endpoint:
        raise ValueError("No object store endpoint configured (set RANGEFETCH_ENDPOINT_URL)")
    return HttpObjectStore(endpoint, settings)
