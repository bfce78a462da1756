"""Fixed-interval scheduling of sync jobs."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

from fleetsync.models.status import JobState
from fleetsync.state.status import StatusBoard
from fleetsync.sync.job import CycleOutcome, SyncJob

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class JobLoop:
    """Run one job forever, never overlapping its own cycles.

    The next cycle starts ``interval`` seconds after a successful one and
    ``error_delay`` seconds after a failed one.
    """

    def __init__(
        self,
        job: SyncJob,
        status: StatusBoard,
        *,
        interval: float,
        error_delay: float,
        initial_delay: float = 1.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._job = job
        self._status = status
        self._interval = interval
        self._error_delay = error_delay
        self._initial_delay = initial_delay
        self._clock = clock
        self._stopped = asyncio.Event()

    @property
    def job(self) -> SyncJob:
        return self._job

    def stop(self) -> None:
        """End the loop after the cycle in progress."""
        self._stopped.set()

    async def _wait(self, delay: float) -> bool:
        """Sleep up to *delay* seconds; True when stopped meanwhile."""
        if self._stopped.is_set():
            return True
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=max(delay, 0.0))
        except TimeoutError:
            return False
        return True

    def _next_delay(self, outcome: CycleOutcome | None) -> float:
        if outcome is not None and outcome.success:
            next_run = self._clock() + timedelta(seconds=self._interval)
            self._status.update(self._job.name, JobState.IDLE, outcome.message, next_run=next_run)
            return self._interval
        _logger.info("[%s] Waiting %.0fs before retrying", self._job.name, self._error_delay)
        return self._error_delay

    async def run(self, max_cycles: int | None = None) -> int:
        """Run cycles until :meth:`stop` (or *max_cycles*); return the cycle count."""
        _logger.info("[%s] Scheduled every %.0fs", self._job.name, self._interval)
        self._status.update(
            self._job.name,
            JobState.IDLE,
            "Waiting for first run",
            next_run=self._clock() + timedelta(seconds=self._initial_delay),
        )
        delay = self._initial_delay
        cycles = 0
        while not await self._wait(delay):
            outcome: CycleOutcome | None
            try:
                outcome = await self._job.run_cycle()
            except Exception:
                _logger.exception("[%s] Unhandled error in cycle", self._job.name)
                self._status.update(self._job.name, JobState.ERROR, "Unhandled error")
                outcome = None
            cycles += 1
            delay = self._next_delay(outcome)
            if max_cycles is not None and cycles >= max_cycles:
                break
        _logger.info("[%s] Stopped after %d cycles", self._job.name, cycles)
        return cycles


async def run_jobs(loops: Iterable[JobLoop]) -> None:
    """Run several job loops concurrently until all of them stop."""
    await asyncio.gather(*(loop.run() for loop in loops))
