"""Exceptions raised while transferring objects."""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ByteRange


class DownloadError(Exception):
    """Base exception for rangefetch errors."""


class ObjectStoreError(DownloadError):
    """Exception raised when the object store rejects or fails a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(ObjectStoreError):
    """Exception raised when the requested object does not exist."""

    def __init__(self, message: str = "Object not found"):
        super().__init__(message, status_code=404)


class AccessDeniedError(ObjectStoreError):
    """Exception raised when the caller may not read the object."""

    def __init__(self, message: str = "Access denied", status_code: int = 403):
        super().__init__(message, status_code=status_code)


class InvalidRangeError(ObjectStoreError):
    """Exception raised when the store cannot satisfy a byte range."""

    def __init__(self, message: str = "Requested range not satisfiable"):
        super().__init__(message, status_code=416)


class TransientError(ObjectStoreError):
    """Exception raised for failures expected to clear up on retry.

    Timeouts, connection resets, throttling and server-side errors all map here.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after
        self.original_error = original_error


class ProtocolError(ObjectStoreError):
    """Exception raised when the store violates the range contract."""


class FetchExhaustedError(DownloadError):
    """Exception raised when a fetch runs out of attempts on transient errors."""

    def __init__(self, byte_range: "ByteRange", attempts: int, last_error: Optional[Exception] = None):
        super().__init__(f"Range {byte_range} failed after {attempts} attempts: {last_error}")
        self.byte_range = byte_range
        self.attempts = attempts
        self.last_error = last_error


class ChunkExhaustedError(DownloadError):
    """Exception raised when a range reaches its terminal failed state."""

    def __init__(self, byte_range: "ByteRange", failures: int):
        super().__init__(f"Range {byte_range} failed {failures} times; giving up")
        self.byte_range = byte_range
        self.failures = failures


class DigestMismatchError(DownloadError):
    """Exception raised when the downloaded file does not match the expected digest."""

    def __init__(self, expected: str, actual: str, path: Optional[str] = None):
        super().__init__(f"Digest mismatch for {path}: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual
        self.path = path


class FileSystemError(DownloadError):
    """Exception raised for local filesystem failures."""

    def __init__(self, message: str, path: Optional[str] = None, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.path = path
        self.original_error = original_error


class InvalidTransitionError(DownloadError):
    """Exception raised when a range is moved to a state it cannot reach."""


class UseAfterFinalizeError(DownloadError):
    """Exception raised when a finalized digest accumulator is used again."""
