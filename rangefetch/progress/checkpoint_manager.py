"""Checkpoint management for resumable transfers."""

import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from pydantic import ValidationError

from rangefetch.logs.logger import get_logger, log_checkpoint_load, log_checkpoint_save
from rangefetch.storage.models import ObjectLocator, ObjectMetadata, ResumeState
from rangefetch.utils.constants import CHECKPOINT_SAVE_INTERVAL, RESUME_STATE_SUFFIX

if TYPE_CHECKING:
    from rangefetch.download.range_tracker import RangeTracker

logger = get_logger(__name__)


class CheckpointManager:
    """Persists the completed ranges of a transfer next to its destination."""

    def __init__(
        self,
        destination: Path,
        save_interval: float = CHECKPOINT_SAVE_INTERVAL,
        checkpoint_file: Optional[Path] = None
    ):
        """Initialize checkpoint manager.

        Args:
            destination: File being downloaded
            save_interval: Minimum seconds between non-forced saves
            checkpoint_file: Optional custom checkpoint file path
        """
        self.destination = Path(destination)
        self.checkpoint_file = Path(checkpoint_file) if checkpoint_file else self.path_for(self.destination)
        self.save_interval = save_interval
        self.state: Optional[ResumeState] = None
        self._last_save_time: Optional[datetime] = None
        # Saves run in worker threads
        self._save_lock = threading.Lock()

    @staticmethod
    def path_for(destination: Path) -> Path:
        destination = Path(destination)
        return destination.with_name(destination.name + RESUME_STATE_SUFFIX)

    def start(
        self,
        locator: ObjectLocator,
        metadata: ObjectMetadata,
        chunk_size: int,
        digest_algorithm: str
    ) -> None:
        """Begin tracking a transfer."""
        self.state = ResumeState(
            bucket=locator.bucket,
            key=locator.key,
            size=metadata.size,
            etag=metadata.etag,
            chunk_size=chunk_size,
            digest_algorithm=digest_algorithm,
        )
        self._last_save_time = None

    def load_checkpoint(self) -> Optional[ResumeState]:
        """Load checkpoint from file.

        Returns:
            The persisted state, or None if absent or unreadable
        """
        if not self.checkpoint_file.exists():
            logger.debug(f"No checkpoint file found at {self.checkpoint_file}")
            return None

        try:
            state = ResumeState.model_validate_json(self.checkpoint_file.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as e:
            logger.error(f"Failed to load checkpoint {self.checkpoint_file}: {e}")
            return None

        self.state = state
        log_checkpoint_load(str(self.checkpoint_file))
        logger.info(
            f"Resuming {state.locator}: {len(state.completed_ranges)} ranges "
            f"({state.completed_bytes:,} bytes) already downloaded"
        )
        return state

    def save_checkpoint(self, tracker: "RangeTracker", force: bool = False) -> bool:
        """Save checkpoint to file.

        Args:
            tracker: Tracker whose completed ranges are recorded
            force: Force save even if the save interval hasn't elapsed

        Returns:
            True if checkpoint was saved (or skipped by the interval)
        """
        with self._save_lock:
            if self.state is None:
                return False

            if not force and self._last_save_time:
                elapsed = (datetime.now() - self._last_save_time).total_seconds()
                if elapsed < self.save_interval:
                    return True

            try:
                self.state.completed_ranges = [(r.offset, r.length) for r in tracker.completed_ranges()]
                self.state.last_updated = datetime.now()

                self.checkpoint_file.parent.mkdir(parents=True, exist_ok=True)
                tmp_file = self.checkpoint_file.with_name(self.checkpoint_file.name + ".tmp")
                tmp_file.write_text(self.state.model_dump_json(indent=2), encoding="utf-8")
                os.replace(tmp_file, self.checkpoint_file)

                self._last_save_time = datetime.now()
                log_checkpoint_save(str(self.checkpoint_file))
                return True

            except OSError as e:
                logger.error(f"Failed to save checkpoint: {e}")
                return False

    def clear_checkpoint(self) -> bool:
        """Clear checkpoint file and data.

        Returns:
            True if checkpoint was cleared successfully
        """
        with self._save_lock:
            try:
                if self.checkpoint_file.exists():
                    self.checkpoint_file.unlink()
                self.state = None
                logger.debug("Checkpoint cleared")
                return True

            except OSError as e:
                logger.error(f"Failed to clear checkpoint: {e}")
                return False
