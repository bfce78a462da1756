from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from fleetsync.exceptions import FleetSyncError
from fleetsync.models.asset import AssetKind
from fleetsync.models.position import PositionRecord
from fleetsync.models.status import JobState, JobStatus
from fleetsync.state.cache import FetchCache
from fleetsync.state.status import StatusBoard


def _record(plate: str = "ABC1234") -> PositionRecord:
    return PositionRecord(kind=AssetKind.VEHICLE, identifier=plate, timestamp="2025-11-03 11:38:12")


def test_cache_holds_one_immutable_batch() -> None:
    cache = FetchCache(clock=lambda: 42.0)
    source = [_record("AAA0001"), _record("BBB0002")]

    stored = cache.store(source)
    source.append(_record("CCC0003"))

    assert cache.get() == stored
    assert cache.size == 2
    assert cache.stored_at == 42.0
    assert not cache.is_empty


def test_cache_refuses_to_merge_a_second_batch() -> None:
    cache = FetchCache()
    cache.store([_record()])

    with pytest.raises(FleetSyncError):
        cache.store([_record("XYZ9999")])

    cache.clear()
    assert cache.is_empty
    assert cache.get() is None
    assert cache.stored_at is None


def test_status_board_snapshot_and_listeners() -> None:
    now = datetime(2025, 11, 3, 12, 0, tzinfo=UTC)
    board = StatusBoard(clock=lambda: now)
    seen: list[JobStatus] = []
    unsubscribe = board.subscribe(seen.append)

    board.update("Atualcargo", JobState.RUNNING, "Fetching")
    board.update("Sitrax", JobState.IDLE, "Done", next_run=now + timedelta(minutes=5))
    unsubscribe()
    board.update("Sitrax", JobState.ERROR, "boom")

    assert [status.message for status in seen] == ["Fetching", "Done"]
    snapshot = board.snapshot()
    assert set(snapshot) == {"atualcargo", "sitrax"}
    assert snapshot["atualcargo"].last_update == now
    assert board.get("SITRAX") is not None


def test_failing_listener_does_not_break_updates() -> None:
    board = StatusBoard()

    def _broken(_status: JobStatus) -> None:
        raise RuntimeError("listener failure")

    board.subscribe(_broken)
    status = board.update("Atualcargo", JobState.IDLE, "ok")

    assert board.get("atualcargo") == status


def test_next_run_only_kept_while_idle() -> None:
    later = datetime(2025, 11, 3, 12, 5, tzinfo=UTC)

    assert JobStatus(name="a", state=JobState.IDLE, next_run=later).next_run == later
    assert JobStatus(name="a", state=JobState.ERROR, next_run=later).next_run is None
    assert JobStatus(name="a", state=JobState.RUNNING, next_run=later).next_run is None
