"""Destination gateway: the ERP operations used by sync jobs.

One gateway is shared by every job in the process. It owns the ERP
session manager and the endpoint failover controller, so a single login
serves all jobs and a swap decided by one job applies to the others.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, tzinfo
from typing import Any, TypeVar

from fleetsync._api import sankhya
from fleetsync._api.layouts import TableLayout, build_layouts
from fleetsync._transport import Transport
from fleetsync.config import DestinationConfig
from fleetsync.dates import parse_destination_timestamp
from fleetsync.exceptions import DestinationSessionExpiredError
from fleetsync.ingestion.normalize import safe_int
from fleetsync.models.asset import AssetKind
from fleetsync.session import Credential, SessionManager
from fleetsync.state.failover import EndpointFailover

_logger = logging.getLogger(__name__)

T = TypeVar("T")


def _registry_key(value: Any) -> str:
    return str(value).strip().upper()


class DestinationGateway:
    """Lookup, history and write operations against the active ERP endpoint.

    Every call runs with a credential bound to the currently active
    endpoint. A session rejected mid-call is renewed and the call retried
    exactly once; a second rejection propagates.
    """

    def __init__(
        self,
        config: DestinationConfig,
        transport: Transport,
        tz: tzinfo,
        *,
        failover: EndpointFailover | None = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._tz = tz
        self._failover = failover or EndpointFailover(
            config.url,
            config.contingency_url,
            threshold=config.retry_limit_before_swap,
        )
        self._sessions = SessionManager("Sankhya", self._login, on_login=self._on_login)
        self._layouts = build_layouts(config.tag_dataset_id)

    @property
    def failover(self) -> EndpointFailover:
        return self._failover

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    def layout(self, kind: AssetKind) -> TableLayout:
        return self._layouts[kind]

    # ------------------------------------------------------------------
    # Session handling
    # ------------------------------------------------------------------

    async def _login(self) -> Credential:
        return await sankhya.login(self._config, self._transport, self._failover.active_url)

    def _on_login(self, credential: Credential) -> None:
        if credential.endpoint == self._failover.active_url:
            self._failover.record_login_success()

    async def _credential(self) -> Credential:
        credential = await self._sessions.ensure()
        if credential.endpoint != self._failover.active_url:
            self._sessions.invalidate("endpoint changed", credential=credential)
            credential = await self._sessions.ensure()
        return credential

    async def _call_with_reauth(self, fn: Callable[[Credential], Awaitable[T]]) -> T:
        """Run an ERP call, retrying once on session expiry."""
        credential = await self._credential()
        try:
            return await fn(credential)
        except DestinationSessionExpiredError:
            _logger.warning("Sankhya session rejected; re-authenticating and retrying once")
            self._sessions.invalidate("session rejected", credential=credential)
            credential = await self._credential()
            return await fn(credential)

    # ------------------------------------------------------------------
    # Failure policy hooks (called by the job after a failed cycle)
    # ------------------------------------------------------------------

    def handle_auth_failure(self) -> None:
        """Drop the session and let the failover controller react."""
        self._sessions.invalidate("authentication failure")
        self._failover.record_auth_failure()

    def handle_transient_failure(self) -> None:
        if self._failover.record_transient_failure():
            self._sessions.invalidate("endpoint switched")

    def handle_success(self) -> None:
        self._failover.record_success()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def query_by_keys(
        self,
        kind: AssetKind,
        keys: Iterable[str],
        *,
        manufacturer_id: str | None = None,
    ) -> dict[str, int]:
        """Resolve registry keys to destination identities.

        Keys with no match are absent from the result.
        """
        unique = sorted({key.strip() for key in keys if key and key.strip()})
        if not unique:
            return {}
        layout = self.layout(kind)
        sql = layout.lookup_sql(unique, manufacturer_id)
        _logger.info("Resolving %d %s identities on %s", len(unique), kind, self._failover.active_url)

        rows = await self._call_with_reauth(lambda cred: sankhya.execute_query(self._transport, cred, sql))
        mapping: dict[str, int] = {}
        for row in rows:
            if len(row) < 2:
                continue
            identity = safe_int(row[0])
            if identity is None:
                continue
            mapping[_registry_key(row[1])] = identity
        return mapping

    async def query_last_timestamps(self, kind: AssetKind) -> dict[int, datetime | None]:
        """Most recent committed ``DATHOR`` per destination identity.

        An identity whose stored ``DATHOR`` cannot be read maps to ``None``:
        it has history, but its latest instant is unknown.
        """
        sql = self.layout(kind).history_sql()
        rows = await self._call_with_reauth(lambda cred: sankhya.execute_query(self._transport, cred, sql))
        history: dict[int, datetime | None] = {}
        for row in rows:
            if len(row) < 2:
                continue
            identity = safe_int(row[0])
            if identity is None:
                _logger.warning("Skipping %s history row without identity: %r", kind, row)
                continue
            recorded = parse_destination_timestamp(row[1], self._tz)
            if recorded is None:
                _logger.warning("Unreadable %s history timestamp for %d: %r", kind, identity, row[1])
            history[identity] = recorded
        return history

    async def write_batch(self, kind: AssetKind, rows: list[dict[str, Any]]) -> None:
        """Append *rows* (``foreignKey``/``values`` records) to the kind's history table."""
        if not rows:
            return
        layout = self.layout(kind)
        _logger.info("Inserting %d rows into %s", len(rows), layout.entity_name)
        await self._call_with_reauth(
            lambda cred: sankhya.save_records(
                self._transport,
                cred,
                entity_name=layout.entity_name,
                dataset_id=layout.dataset_id,
                fields=layout.fields,
                records=rows,
            )
        )
