"""Per-job holding area for a fetched batch awaiting commit."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable

from fleetsync.exceptions import FleetSyncError
from fleetsync.models.position import PositionRecord


class FetchCache:
    """Zero or one pending batch of normalized records.

    The batch is stored as an immutable tuple: retries of the destination
    steps see exactly what was fetched, never merged with newer data.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._batch: tuple[PositionRecord, ...] | None = None
        self._stored_at: float | None = None

    def store(self, records: Iterable[PositionRecord]) -> tuple[PositionRecord, ...]:
        if self._batch is not None:
            raise FleetSyncError("A batch is already pending; clear it before storing another")
        self._batch = tuple(records)
        self._stored_at = self._clock()
        return self._batch

    def get(self) -> tuple[PositionRecord, ...] | None:
        return self._batch

    @property
    def is_empty(self) -> bool:
        return self._batch is None

    @property
    def size(self) -> int:
        return 0 if self._batch is None else len(self._batch)

    @property
    def stored_at(self) -> float | None:
        """Monotonic time the pending batch was stored."""
        return self._stored_at

    def clear(self) -> None:
        self._batch = None
        self._stored_at = None
