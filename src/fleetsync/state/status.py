"""In-memory job status board.

Holds the latest :class:`JobStatus` per job and pushes every change to
subscribers (the monitoring surface).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from fleetsync.models.status import JobState, JobStatus

_logger = logging.getLogger(__name__)

StatusListener = Callable[[JobStatus], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class StatusBoard:
    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._statuses: dict[str, JobStatus] = {}
        self._listeners: list[StatusListener] = []

    def update(
        self,
        name: str,
        state: JobState,
        message: str = "",
        *,
        next_run: datetime | None = None,
    ) -> JobStatus:
        """Record a job transition and notify subscribers."""
        status = JobStatus(name=name, state=state, message=message, last_update=self._clock(), next_run=next_run)
        self._statuses[name.lower()] = status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                _logger.debug("Status listener failed", exc_info=True)
        return status

    def get(self, name: str) -> JobStatus | None:
        return self._statuses.get(name.lower())

    def snapshot(self) -> dict[str, JobStatus]:
        """Point-in-time copy keyed by lowercase job name."""
        return dict(self._statuses)

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register *listener*; the returned callable unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe
