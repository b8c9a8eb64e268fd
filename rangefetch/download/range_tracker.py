"""Per-range transfer state with atomic work claiming."""

import threading
from typing import Dict, Iterable, List, Optional

from rangefetch.logs.logger import get_logger
from rangefetch.storage.exceptions import ChunkExhaustedError, InvalidTransitionError
from rangefetch.storage.models import ByteRange, RangeStatus, TransferPlan
from rangefetch.utils.constants import DEFAULT_MAX_RETRIES_PER_CHUNK

logger = get_logger(__name__)


class RangeTracker:
    """Tracks the status of every range in a transfer plan.

    All transitions happen under one lock, so ``next_pending`` may be called
    from many tasks or threads without two callers claiming the same range.
    """

    def __init__(self, plan: TransferPlan, max_retries: int = DEFAULT_MAX_RETRIES_PER_CHUNK):
        """Initialize tracker with every range pending.

        Args:
            plan: Transfer plan to track
            max_retries: Failed fetches after which a range is given up
        """
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self.plan = plan
        self.max_retries = max_retries
        self._lock = threading.Lock()
        self._status: Dict[ByteRange, RangeStatus] = {r: RangeStatus.PENDING for r in plan.ranges}
        self._failures: Dict[ByteRange, int] = {r: 0 for r in plan.ranges}

    @classmethod
    def from_resume_state(
        cls,
        plan: TransferPlan,
        done_ranges: Iterable[ByteRange],
        max_retries: int = DEFAULT_MAX_RETRIES_PER_CHUNK
    ) -> "RangeTracker":
        """Rebuild a tracker with previously completed ranges marked done."""
        tracker = cls(plan, max_retries=max_retries)
        for byte_range in done_ranges:
            if byte_range not in tracker._status:
                raise ValueError(f"Range {byte_range} is not part of the plan")
            tracker._status[byte_range] = RangeStatus.DONE
        return tracker

    def _transition(self, byte_range: ByteRange, expected: RangeStatus, new: RangeStatus) -> None:
        current = self._status.get(byte_range)
        if current is None:
            raise InvalidTransitionError(f"Unknown range {byte_range}")
        if current is not expected:
            raise InvalidTransitionError(
                f"Range {byte_range} is {current.value}, expected {expected.value} to move to {new.value}"
            )
        self._status[byte_range] = new

    def mark_in_flight(self, byte_range: ByteRange) -> None:
        with self._lock:
            self._transition(byte_range, RangeStatus.PENDING, RangeStatus.IN_FLIGHT)

    def mark_done(self, byte_range: ByteRange) -> None:
        with self._lock:
            self._transition(byte_range, RangeStatus.IN_FLIGHT, RangeStatus.DONE)

    def mark_failed(self, byte_range: ByteRange) -> RangeStatus:
        """Record a failed fetch of an in-flight range.

        The range goes back to pending for another attempt until it has
        failed ``max_retries`` times, at which point it becomes terminally
        failed.

        Returns:
            The range's new status (always ``PENDING`` when it returns)

        Raises:
            ChunkExhaustedError: If the range has reached its failure budget
            InvalidTransitionError: If the range is not in flight
        """
        with self._lock:
            if self._status.get(byte_range) is not RangeStatus.IN_FLIGHT:
                raise InvalidTransitionError(f"Range {byte_range} is not in flight")

            self._failures[byte_range] += 1
            failures = self._failures[byte_range]
            if failures >= self.max_retries:
                self._status[byte_range] = RangeStatus.FAILED
                logger.debug(f"Range {byte_range} exhausted after {failures} failures")
                raise ChunkExhaustedError(byte_range, failures)

            self._status[byte_range] = RangeStatus.PENDING
            logger.debug(f"Range {byte_range} requeued after failure {failures}/{self.max_retries}")
            return RangeStatus.PENDING

    def release(self, byte_range: ByteRange) -> None:
        """Return an in-flight range to pending without counting a failure."""
        with self._lock:
            if self._status.get(byte_range) is RangeStatus.IN_FLIGHT:
                self._status[byte_range] = RangeStatus.PENDING

    def next_pending(self) -> Optional[ByteRange]:
        """Claim the lowest-offset pending range, or None if there is none."""
        with self._lock:
            for byte_range in self.plan.ranges:
                if self._status[byte_range] is RangeStatus.PENDING:
                    self._status[byte_range] = RangeStatus.IN_FLIGHT
                    return byte_range
            return None

    def is_complete(self) -> bool:
        with self._lock:
            return all(status is RangeStatus.DONE for status in self._status.values())

    def has_failed(self) -> bool:
        with self._lock:
            return any(status is RangeStatus.FAILED for status in self._status.values())

    def status(self, byte_range: ByteRange) -> RangeStatus:
        with self._lock:
            return self._status[byte_range]

    def failures(self, byte_range: ByteRange) -> int:
        with self._lock:
            return self._failures[byte_range]

    def in_flight_count(self) -> int:
        with self._lock:
            return sum(1 for s in self._status.values() if s is RangeStatus.IN_FLIGHT)

    def completed_ranges(self) -> List[ByteRange]:
        with self._lock:
            return [r for r in self.plan.ranges if self._status[r] is RangeStatus.DONE]

    def completed_bytes(self) -> int:
        return sum(r.length for r in self.completed_ranges())

    def counts(self) -> Dict[str, int]:
        """Number of ranges in each status."""
        with self._lock:
            result = {status.value: 0 for status in RangeStatus}
            for status in self._status.values():
                result[status.value] += 1
            return result
