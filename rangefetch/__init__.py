"""Chunked, concurrent, resumable object downloads with integrity verification."""

from rangefetch.download import Downloader, download, download_with_resume
from rangefetch.storage import (
    ObjectStore, HttpObjectStore, ObjectLocator, ByteRange, TransferPlan,
    DownloadOptions, TransferResult, ResumeState, Digest
)

__version__ = "0.1.0"

__all__ = [
    "Downloader",
    "download",
    "download_with_resume",
    "ObjectStore",
    "HttpObjectStore",
    "ObjectLocator",
    "ByteRange",
    "TransferPlan",
    "DownloadOptions",
    "TransferResult",
    "ResumeState",
    "Digest"
]
