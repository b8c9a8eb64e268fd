"""Local file operations for transfer destinations."""

import os
import shutil
from pathlib import Path
from typing import Optional

from rangefetch.logs.logger import get_logger
from rangefetch.storage.exceptions import FileSystemError
from rangefetch.utils.constants import DISK_SPACE_BUFFER_PERCENT, ERROR_INSUFFICIENT_DISK_SPACE
from rangefetch.utils.helpers import format_bytes

logger = get_logger(__name__)


class FileManager:
    """Creates destinations and performs positioned writes into them."""

    def __init__(self, buffer_percent: float = DISK_SPACE_BUFFER_PERCENT):
        self.buffer_percent = buffer_percent

    def prepare_destination(self, file_path: Path, size: int) -> None:
        """Create or truncate ``file_path`` and size it to ``size`` bytes.

        Raises:
            FileSystemError: If the file cannot be created
        """
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(file_path, 'wb') as f:
                f.truncate(size)
            logger.debug(f"Prepared destination {file_path} ({format_bytes(size)})")
        except OSError as e:
            raise FileSystemError(f"Cannot create {file_path}: {e}", str(file_path), e) from e

    def can_resume_into(self, file_path: Path, size: int) -> bool:
        """Check that an existing partial file has the preallocated size."""
        try:
            return file_path.is_file() and file_path.stat().st_size == size
        except OSError:
            return False

    def write_at(self, file_path: Path, offset: int, data: bytes) -> None:
        """Write ``data`` at ``offset`` through a handle private to this call.

        Raises:
            FileSystemError: If the write fails
        """
        try:
            with open(file_path, 'r+b') as f:
                f.seek(offset)
                f.write(data)
        except OSError as e:
            raise FileSystemError(
                f"Failed to write {len(data)} bytes at offset {offset} of {file_path}: {e}",
                str(file_path), e
            ) from e

    def get_available_space(self, path: Path) -> Optional[int]:
        """Get available disk space for a path.

        Args:
            path: Path to check (file or directory); the nearest existing
                ancestor is used

        Returns:
            Available space in bytes or None if cannot determine
        """
        probe = path
        while not probe.exists() and probe != probe.parent:
            probe = probe.parent
        if probe.is_file():
            probe = probe.parent

        try:
            return shutil.disk_usage(probe).free
        except OSError as e:
            logger.warning(f"Cannot determine available space for {path}: {e}")
            return None

    def ensure_sufficient_space(self, path: Path, required_bytes: int) -> None:
        """Ensure sufficient disk space is available.

        Space already taken by an existing file at ``path`` counts as
        available, since it is overwritten.

        Raises:
            FileSystemError: If the free space is known to be too small
        """
        available = self.get_available_space(path)
        if available is None:
            # Cannot determine space, assume it's available
            return

        if path.is_file():
            available += os.path.getsize(path)

        required_with_buffer = required_bytes * (1 + self.buffer_percent / 100)
        if available < required_with_buffer:
            raise FileSystemError(
                f"{ERROR_INSUFFICIENT_DISK_SPACE}: {format_bytes(available)} available, "
                f"{format_bytes(int(required_with_buffer))} required for {path}",
                str(path)
            )
