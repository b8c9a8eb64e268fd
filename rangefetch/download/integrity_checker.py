"""File integrity verification for downloaded objects."""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from rangefetch.logs.logger import get_logger
from rangefetch.storage.exceptions import DigestMismatchError, FileSystemError
from rangefetch.storage.models import Digest
from rangefetch.utils.constants import INVALID_MARKER_SUFFIX, VERIFY_BLOCK_SIZE
from .digest import digest_file

logger = get_logger(__name__)


class IntegrityChecker:
    """Verifies completed destinations and flags ones that fail."""

    def __init__(self, block_size: int = VERIFY_BLOCK_SIZE):
        self.block_size = block_size

    @staticmethod
    def marker_path(file_path: Path) -> Path:
        return file_path.with_name(file_path.name + INVALID_MARKER_SUFFIX)

    def verify_file_size(self, file_path: Path, expected_size: int) -> None:
        """Verify file size matches expected size.

        Raises:
            FileSystemError: If the file is missing or has the wrong size
        """
        try:
            actual_size = os.path.getsize(file_path)
        except OSError as e:
            raise FileSystemError(f"Cannot stat {file_path}: {e}", str(file_path), e) from e

        if actual_size != expected_size:
            raise FileSystemError(
                f"Size mismatch for {file_path}: expected {expected_size:,} bytes, got {actual_size:,} bytes",
                str(file_path)
            )
        logger.debug(f"Size verified for {file_path}: {actual_size:,} bytes")

    def calculate_file_digest(self, file_path: Path, algorithm: str) -> Digest:
        """Hash a file sequentially, so bytes are fed in offset order."""
        digest = digest_file(file_path, algorithm, self.block_size)
        logger.debug(f"Calculated {digest.algorithm} digest for {file_path}: {digest.hexdigest()}")
        return digest

    def verify(
        self,
        file_path: Path,
        expected_size: int,
        algorithm: str,
        expected_digest: Optional[str] = None
    ) -> Digest:
        """Verify size and digest of a completed download.

        A digest mismatch leaves the file in place and writes an invalid
        marker beside it.

        Returns:
            The digest of the file

        Raises:
            FileSystemError: If the file is missing, unreadable or mis-sized
            DigestMismatchError: If ``expected_digest`` does not match
        """
        self.verify_file_size(file_path, expected_size)
        digest = self.calculate_file_digest(file_path, algorithm)

        if expected_digest is not None and not digest.matches(expected_digest):
            self.mark_invalid(file_path, expected_digest, digest)
            raise DigestMismatchError(expected_digest, digest.hexdigest(), str(file_path))

        return digest

    def mark_invalid(self, file_path: Path, expected: str, actual: Digest) -> Path:
        """Write the invalid marker for ``file_path``."""
        marker = self.marker_path(file_path)
        payload = {
            'file_path': str(file_path),
            'algorithm': actual.algorithm,
            'expected': expected,
            'actual': actual.hexdigest(),
            'timestamp': datetime.now().isoformat(),
        }
        try:
            marker.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to write invalid marker {marker}: {e}")
        logger.warning(f"Digest mismatch for {file_path}; marked invalid")
        return marker

    def mark_incomplete(self, file_path: Path, error: BaseException) -> Path:
        """Flag a destination left with unfetched ranges and no resume state."""
        marker = self.marker_path(file_path)
        payload = {
            'file_path': str(file_path),
            'reason': 'incomplete',
            'error': str(error) or type(error).__name__,
            'timestamp': datetime.now().isoformat(),
        }
        try:
            marker.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to write invalid marker {marker}: {e}")
        logger.warning(f"Transfer into {file_path} did not finish; marked invalid")
        return marker

    def is_marked_invalid(self, file_path: Path) -> bool:
        return self.marker_path(file_path).exists()

    def clear_invalid_marker(self, file_path: Path) -> None:
        marker = self.marker_path(file_path)
        try:
            marker.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Failed to remove invalid marker {marker}: {e}")
