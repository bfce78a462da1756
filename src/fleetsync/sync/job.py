"""One fetch → map → commit cycle for one provider."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from fleetsync.exceptions import ErrorKind, classify_error
from fleetsync.models.asset import AssetKind
from fleetsync.models.position import PositionRecord
from fleetsync.models.status import JobState
from fleetsync.session import Credential, SessionManager
from fleetsync.state.cache import FetchCache
from fleetsync.sync.commit import CommitEngine
from fleetsync.sync.mapper import Deduplicator

if TYPE_CHECKING:
    from fleetsync.context import SyncContext

_logger = logging.getLogger(__name__)

# Vehicles are written before tags.
_COMMIT_ORDER = (AssetKind.VEHICLE, AssetKind.TAG)


class PositionSource(Protocol):
    """A tracking provider as seen by :class:`SyncJob`."""

    name: str

    @property
    def manufacturer_id(self) -> str: ...

    @property
    def interval(self) -> float: ...

    async def fetch_positions(self, credential: Credential | None) -> Any: ...

    def normalize(self, payload: Any) -> list[PositionRecord]: ...


@runtime_checkable
class LoginSource(PositionSource, Protocol):
    """A provider whose fetches need a session token."""

    @property
    def token_ttl(self) -> float | None: ...

    async def login(self) -> Credential: ...


@dataclasses.dataclass(frozen=True)
class CycleOutcome:
    """Result of :meth:`SyncJob.run_cycle`."""

    success: bool
    message: str = ""
    fetched: int = 0
    committed: int = 0
    from_cache: bool = False
    error_kind: ErrorKind | None = None


class SyncJob:
    """Drive sync cycles for one provider.

    The fetched batch is kept in a :class:`FetchCache` until it is fully
    committed. A destination failure keeps it, so the next cycle skips the
    provider and retries the ERP steps with the same records. Provider
    failures discard it.

    Parameters
    ----------
    source : PositionSource
        Provider client.
    context : SyncContext
        Shared ERP gateway, status board and configuration.
    sleep : callable
        Coroutine used for the post-login wait.
    """

    def __init__(
        self,
        source: PositionSource,
        context: SyncContext,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._source = source
        self._context = context
        self._sleep = sleep
        self._cache = FetchCache()
        self._sessions: SessionManager | None = None
        if isinstance(source, LoginSource):
            self._sessions = SessionManager(source.name, source.login, ttl=source.token_ttl)
        self._deduplicator = Deduplicator(context.destination, context.tz)
        self._committer = CommitEngine(context.destination, context.tz)

    @property
    def name(self) -> str:
        return self._source.name

    @property
    def cache(self) -> FetchCache:
        return self._cache

    @property
    def sessions(self) -> SessionManager | None:
        return self._sessions

    def _report(self, state: JobState, message: str) -> None:
        self._context.status.update(self.name, state, message)

    async def _ensure_source_credential(self) -> Credential | None:
        if self._sessions is None:
            return None
        logins = self._sessions.login_count
        if not self._sessions.has_valid_credential:
            self._report(JobState.RUNNING, f"Authenticating with {self.name}")
        credential = await self._sessions.ensure()
        wait = self._context.config.wait_after_login
        if self._sessions.login_count != logins and wait > 0:
            _logger.info("[%s] Waiting %.0fs after login", self.name, wait)
            await self._sleep(wait)
        return credential

    async def _fetch_into_cache(self) -> int:
        self._report(JobState.RUNNING, "Cache empty; fetching positions")
        credential = await self._ensure_source_credential()
        self._report(JobState.RUNNING, f"Fetching positions from {self.name}")
        payload = await self._source.fetch_positions(credential)
        records = self._source.normalize(payload) if payload else []
        if records:
            self._cache.store(records)
            _logger.info("[%s] Cached %d positions", self.name, len(records))
            self._report(JobState.RUNNING, f"{len(records)} positions cached")
        return len(records)

    async def _process(self) -> CycleOutcome:
        from_cache = not self._cache.is_empty
        fetched = 0
        if from_cache:
            _logger.info("[%s] Retrying %d cached positions", self.name, self._cache.size)
            self._report(JobState.RUNNING, "Using cached positions (retry)")
        else:
            fetched = await self._fetch_into_cache()
            if not fetched:
                _logger.info("[%s] No positions received", self.name)
                message = "No positions received"
                self._report(JobState.IDLE, message)
                return CycleOutcome(success=True, message=message)

        batch = self._cache.get() or ()
        self._report(JobState.RUNNING, f"Processing {len(batch)} positions")
        result = await self._deduplicator.select_new(batch, manufacturer_id=self._source.manufacturer_id)

        committed = 0
        for kind in _COMMIT_ORDER:
            committed += await self._committer.commit(kind, result.for_kind(kind))

        self._context.destination.handle_success()
        self._cache.clear()
        message = f"Cycle completed: {committed} rows inserted"
        _logger.info("[%s] %s", self.name, message)
        self._report(JobState.IDLE, message)
        return CycleOutcome(
            success=True,
            message=message,
            fetched=fetched,
            committed=committed,
            from_cache=from_cache,
        )

    def _handle_failure(self, exc: Exception, *, from_cache: bool) -> CycleOutcome:
        kind = classify_error(exc)
        destination = self._context.destination

        if kind is ErrorKind.UPSTREAM_AUTH:
            _logger.warning("[%s] Provider rejected credentials; re-login next cycle: %s", self.name, exc)
            if self._sessions is not None:
                self._sessions.invalidate("rejected by provider")
            self._cache.clear()
        elif kind is ErrorKind.UPSTREAM_TRANSIENT:
            _logger.warning("[%s] Provider request failed; discarding cache: %s", self.name, exc)
            self._cache.clear()
        elif kind is ErrorKind.DESTINATION_AUTH:
            _logger.warning(
                "[%s] Sankhya authentication failed; keeping %d cached positions: %s",
                self.name,
                self._cache.size,
                exc,
            )
            destination.handle_auth_failure()
        elif kind is ErrorKind.DESTINATION_TRANSIENT:
            _logger.warning("[%s] Sankhya unreachable; keeping %d cached positions: %s", self.name, self._cache.size, exc)
            destination.handle_transient_failure()
        else:
            _logger.error("[%s] Cycle failed", self.name, exc_info=exc)

        message = str(exc) or type(exc).__name__
        self._report(JobState.ERROR, message)
        return CycleOutcome(success=False, message=message, from_cache=from_cache, error_kind=kind)

    async def run_cycle(self) -> CycleOutcome:
        """Run one cycle; failures are classified and returned, never raised."""
        from_cache = not self._cache.is_empty
        try:
            return await self._process()
        except Exception as exc:
            return self._handle_failure(exc, from_cache=from_cache)
