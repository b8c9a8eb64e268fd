"""Tests for resume state persistence."""

import json
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from rangefetch.download.range_tracker import RangeTracker
from rangefetch.progress.checkpoint_manager import CheckpointManager
from rangefetch.storage.models import ObjectLocator, ObjectMetadata, TransferPlan


@pytest.fixture
def destination(tmp_path):
    return tmp_path / "downloads" / "kjv.txt"


@pytest.fixture
def tracker():
    plan = TransferPlan.build(4096, 1024)
    tracker = RangeTracker(plan)
    for _ in range(2):
        tracker.mark_done(tracker.next_pending())
    return tracker


def started(destination, save_interval=0.0):
    manager = CheckpointManager(destination, save_interval)
    manager.start(
        ObjectLocator("ctesias", "test_data/kjv.txt"),
        ObjectMetadata(size=4096, etag='"abc"'),
        chunk_size=1024,
        digest_algorithm="sha512",
    )
    return manager


class TestCheckpointManager:

    def test_path_sits_beside_destination(self, destination):
        assert CheckpointManager.path_for(destination) == destination.with_name("kjv.txt.rfstate.json")

    def test_save_and_load(self, destination, tracker):
        assert started(destination).save_checkpoint(tracker)

        state = CheckpointManager(destination).load_checkpoint()

        assert state.locator == ObjectLocator("ctesias", "test_data/kjv.txt")
        assert state.size == 4096
        assert state.etag == '"abc"'
        assert state.chunk_size == 1024
        assert state.completed_ranges == [(0, 1024), (1024, 1024)]
        assert state.completed_bytes == 2048
        assert state.last_updated is not None

    def test_saved_file_is_json(self, destination, tracker):
        started(destination).save_checkpoint(tracker)

        raw = json.loads(CheckpointManager.path_for(destination).read_text())

        assert raw["bucket"] == "ctesias"
        assert raw["digest_algorithm"] == "sha512"
        assert not destination.with_name("kjv.txt.rfstate.json.tmp").exists()

    def test_interval_throttles_saves(self, destination, tracker):
        manager = started(destination, save_interval=3600.0)
        manager.save_checkpoint(tracker)
        tracker.mark_done(tracker.next_pending())

        manager.save_checkpoint(tracker)
        assert len(CheckpointManager(destination).load_checkpoint().completed_ranges) == 2

        manager.save_checkpoint(tracker, force=True)
        assert len(CheckpointManager(destination).load_checkpoint().completed_ranges) == 3

    def test_zero_interval_saves_every_time(self, destination, tracker):
        manager = started(destination)
        manager.save_checkpoint(tracker)
        tracker.mark_done(tracker.next_pending())
        time.sleep(0.001)

        manager.save_checkpoint(tracker)

        assert len(CheckpointManager(destination).load_checkpoint().completed_ranges) == 3

    def test_save_before_start_is_refused(self, destination, tracker):
        assert not CheckpointManager(destination).save_checkpoint(tracker)
        assert not CheckpointManager.path_for(destination).exists()

    def test_missing_file_loads_none(self, destination):
        assert CheckpointManager(destination).load_checkpoint() is None

    def test_corrupt_file_loads_none(self, destination):
        path = CheckpointManager.path_for(destination)
        path.parent.mkdir(parents=True)
        path.write_text("{not json")

        assert CheckpointManager(destination).load_checkpoint() is None

    def test_clear(self, destination, tracker):
        manager = started(destination)
        manager.save_checkpoint(tracker)

        assert manager.clear_checkpoint()
        assert not CheckpointManager.path_for(destination).exists()
        assert manager.state is None

    def test_concurrent_saves_leave_a_readable_file(self, destination):
        plan = TransferPlan.build(64 * 1024, 1024)
        tracker = RangeTracker(plan)
        manager = started(destination)

        def finish_and_save():
            byte_range = tracker.next_pending()
            tracker.mark_done(byte_range)
            assert manager.save_checkpoint(tracker)

        with ThreadPoolExecutor(max_workers=16) as executor:
            for future in [executor.submit(finish_and_save) for _ in range(len(plan))]:
                future.result()
        manager.save_checkpoint(tracker, force=True)

        state = CheckpointManager(destination).load_checkpoint()
        assert len(state.completed_ranges) == len(plan)
