"""Service assembly: build the shared state, the jobs and their loops."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from fleetsync._api.atualcargo import AtualcargoSource
from fleetsync._api.sitrax import SitraxSource
from fleetsync._transport import JsonTransport, Transport
from fleetsync.config import SyncConfig
from fleetsync.context import SyncContext
from fleetsync.exceptions import ConfigError, FleetSyncError
from fleetsync.state.status import StatusBoard
from fleetsync.sync.destination import DestinationGateway
from fleetsync.sync.job import CycleOutcome, PositionSource, SyncJob
from fleetsync.sync.scheduler import JobLoop, run_jobs

_logger = logging.getLogger(__name__)


def build_sources(config: SyncConfig, transport: Transport) -> list[PositionSource]:
    """Instantiate a client for every enabled provider."""
    sources: list[PositionSource] = []
    if config.atualcargo is not None:
        sources.append(AtualcargoSource(config.atualcargo, transport))
    if config.sitrax is not None:
        sources.append(SitraxSource(config.sitrax, transport))
    return sources


class FleetSyncService:
    """Async context manager owning the HTTP session and every job.

    Usage::

        async with FleetSyncService(SyncConfig.from_env()) as service:
            await service.run()
    """

    def __init__(
        self,
        config: SyncConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        status: StatusBoard | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._status = status or StatusBoard()
        self._context: SyncContext | None = None
        self._jobs: list[SyncJob] = []
        self._loops: list[JobLoop] = []

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FleetSyncService:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        transport = JsonTransport(self._http_session, timeout=self._config.request_timeout)
        self.build(transport)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.stop()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    def build(self, transport: Transport) -> None:
        """Create the shared context, one job per enabled provider and their loops.

        Raises
        ------
        ConfigError
            If no provider is enabled.
        """
        sources = build_sources(self._config, transport)
        if not sources:
            raise ConfigError("No provider is enabled (set ATUALCARGO_* or SITRAX_* variables)")

        destination = DestinationGateway(self._config.destination, transport, self._config.tzinfo)
        self._context = SyncContext(config=self._config, destination=destination, status=self._status)
        self._jobs = [SyncJob(source, self._context) for source in sources]
        self._loops = [
            JobLoop(
                job,
                self._status,
                interval=source.interval,
                error_delay=self._config.error_delay,
            )
            for job, source in zip(self._jobs, sources, strict=True)
        ]
        _logger.info("Configured jobs: %s", ", ".join(job.name for job in self._jobs))

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def status(self) -> StatusBoard:
        return self._status

    @property
    def context(self) -> SyncContext:
        if self._context is None:
            raise FleetSyncError("Service not initialized. Use 'async with FleetSyncService(...) as service:'")
        return self._context

    @property
    def jobs(self) -> list[SyncJob]:
        return list(self._jobs)

    @property
    def loops(self) -> list[JobLoop]:
        return list(self._loops)

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Run every job on its schedule until :meth:`stop`."""
        await run_jobs(self._loops)

    async def run_once(self) -> list[CycleOutcome]:
        """Run a single cycle of every job concurrently."""
        return list(await asyncio.gather(*(job.run_cycle() for job in self._jobs)))

    def stop(self) -> None:
        for loop in self._loops:
            loop.stop()
