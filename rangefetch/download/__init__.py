"""Download management package for rangefetch."""

from .downloader import Downloader, download, download_with_resume
from .transfer_scheduler import TransferScheduler
from .chunk_fetcher import ChunkFetcher
from .range_tracker import RangeTracker
from .retry_manager import RetryManager, compute_backoff
from .integrity_checker import IntegrityChecker
from .digest import DigestAccumulator, digest_file

__all__ = [
    "Downloader",
    "download",
    "download_with_resume",
    "TransferScheduler",
    "ChunkFetcher",
    "RangeTracker",
    "RetryManager",
    "compute_backoff",
    "IntegrityChecker",
    "DigestAccumulator",
    "digest_file"
]
