from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any
from zoneinfo import ZoneInfo

import pytest

from fleetsync.config import DestinationConfig, SyncConfig
from fleetsync.context import SyncContext
from fleetsync.exceptions import TransportError
from fleetsync.models.asset import AssetKind
from fleetsync.models.position import PositionRecord
from fleetsync.session import Credential
from fleetsync.state.status import StatusBoard
from fleetsync.sync.destination import DestinationGateway

PRIMARY = "https://erp.example.com/mge"
CONTINGENCY = "https://erp-backup.example.com/mge"
TZ = ZoneInfo("America/Sao_Paulo")

_IN_RE = re.compile(r"IN \(([^)]*)\)")
_MANUFACTURER_RE = re.compile(r"FABRICANTE = (\S+)")


class FakeSankhya:
    """In-memory Sankhya speaking the MGE service protocol over a fake transport.

    ``script`` maps a service name to queued actions consumed one per call:
    ``"timeout"`` raises a transport timeout, ``"unauthorized"`` answers
    ``status=3`` and ``"error"`` answers ``status=0``.
    """

    def __init__(self) -> None:
        self.vehicles: dict[str, int] = {}
        self.tags: dict[tuple[str, str], int] = {}
        self.history: dict[str, dict[int, str]] = {"AD_LOCATCAR": {}, "AD_LOCATISC": {}}
        self.saved: list[dict[str, Any]] = []
        self.logins: list[str] = []
        self.calls: list[tuple[str, str]] = []
        self.down: set[str] = set()
        self.reject_login: set[str] = set()
        self.script: dict[str, list[str]] = {}
        self._sessions: dict[str, str] = {}

    def expire_sessions(self) -> None:
        self._sessions.clear()

    def _action(self, service: str) -> str | None:
        queue = self.script.get(service)
        return queue.pop(0) if queue else None

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        payload: Any = None,
        headers: Mapping[str, str] | None = None,
        encoding: str | None = None,
    ) -> Any:
        base, _, query = url.partition("/service.sbr?")
        service = query.split("&")[0].removeprefix("serviceName=")
        self.calls.append((base, service))

        if base in self.down:
            raise TransportError(f"Timeout calling {url}", url=url, timeout=True)
        action = self._action(service)
        if action == "timeout":
            raise TransportError(f"Timeout calling {url}", url=url, timeout=True)

        if service == "MobileLoginSP.login":
            if base in self.reject_login or action == "error":
                return {"status": "0", "statusMessage": "Usuário/Senha inválido."}
            token = f"JS{len(self.logins) + 1}"
            self.logins.append(base)
            self._sessions[token] = base
            return {"status": "1", "responseBody": {"jsessionid": {"$": token}}}

        cookie = (headers or {}).get("cookie", "")
        token = cookie.removeprefix("JSESSIONID=")
        if action == "unauthorized" or self._sessions.get(token) != base:
            return {"status": "3", "statusMessage": "Não autorizado."}
        if action == "error":
            return {"status": "0", "statusMessage": "ORA-00942"}

        body = payload["requestBody"]
        if service == "DbExplorerSP.executeQuery":
            return {"status": "1", "responseBody": {"rows": self._query(body["sql"])}}
        if service == "DatasetSP.save":
            self.saved.append(body)
            entity = body["entityName"]
            for record in body["records"]:
                identity = int(next(iter(record["foreignKey"].values())))
                self.history[entity][identity] = record["values"]["3"]
            return {"status": "1", "responseBody": {}}
        return {"status": "0", "statusMessage": f"Unknown service {service}"}

    def _query(self, sql: str) -> list[list[Any]]:
        keys: list[str] = []
        match = _IN_RE.search(sql)
        if match:
            keys = [part.strip().strip("'") for part in match.group(1).split(",")]
        if "FROM TGFVEI" in sql:
            return [[self.vehicles[key], key] for key in keys if key in self.vehicles]
        if "FROM AD_CADISCA" in sql:
            manufacturer_match = _MANUFACTURER_RE.search(sql)
            manufacturer = manufacturer_match.group(1) if manufacturer_match else ""
            return [[self.tags[(manufacturer, key)], key] for key in keys if (manufacturer, key) in self.tags]
        for entity, rows in self.history.items():
            if f"FROM {entity}" in sql:
                return [[identity, dathor] for identity, dathor in rows.items()]
        return []

    def saved_rows(self, entity: str) -> list[dict[str, Any]]:
        return [record for body in self.saved if body["entityName"] == entity for record in body["records"]]


class FakeSource:
    """Scripted position provider without sessions.

    ``batches`` are returned by successive fetches; an exception in the
    queue is raised instead.
    """

    def __init__(self, name: str = "Sitrax", *, manufacturer_id: str = "3", interval: float = 300.0) -> None:
        self.name = name
        self.manufacturer_id = manufacturer_id
        self.interval = interval
        self.batches: list[Any] = []
        self.fetch_calls = 0
        self.credentials_seen: list[Credential | None] = []

    async def fetch_positions(self, credential: Credential | None) -> Any:
        self.fetch_calls += 1
        self.credentials_seen.append(credential)
        item = self.batches.pop(0) if self.batches else []
        if isinstance(item, Exception):
            raise item
        return item

    def normalize(self, payload: Any) -> list[PositionRecord]:
        return list(payload)


class FakeLoginSource(FakeSource):
    """Scripted provider that hands out a fresh token per login."""

    def __init__(
        self,
        name: str = "Atualcargo",
        *,
        token_ttl: float | None = 270.0,
        manufacturer_id: str = "2",
        interval: float = 300.0,
    ) -> None:
        super().__init__(name, manufacturer_id=manufacturer_id, interval=interval)
        self.token_ttl = token_ttl
        self.login_calls = 0
        self.login_error: Exception | None = None

    async def login(self) -> Credential:
        self.login_calls += 1
        if self.login_error is not None:
            raise self.login_error
        return Credential(token=f"token-{self.login_calls}")


def vehicle(plate: str, timestamp: str, **kwargs: Any) -> PositionRecord:
    return PositionRecord(
        kind=AssetKind.VEHICLE,
        identifier=plate,
        timestamp=timestamp,
        latitude=kwargs.pop("latitude", -23.5),
        longitude=kwargs.pop("longitude", -46.6),
        **kwargs,
    )


def tag(serial: str, timestamp: str, **kwargs: Any) -> PositionRecord:
    return PositionRecord(
        kind=AssetKind.TAG,
        identifier=serial,
        timestamp=timestamp,
        latitude=kwargs.pop("latitude", -22.9),
        longitude=kwargs.pop("longitude", -43.2),
        **kwargs,
    )


def make_config(*, contingency: str | None = CONTINGENCY, threshold: int = 2, **overrides: Any) -> SyncConfig:
    destination = DestinationConfig(
        url=PRIMARY,
        username="integracao",
        password="s3cret",
        contingency_url=contingency,
        retry_limit_before_swap=threshold,
    )
    return SyncConfig(destination=destination, **overrides)


@pytest.fixture
def sankhya() -> FakeSankhya:
    return FakeSankhya()


@pytest.fixture
def config() -> SyncConfig:
    return make_config()


@pytest.fixture
def gateway(config: SyncConfig, sankhya: FakeSankhya) -> DestinationGateway:
    return DestinationGateway(config.destination, sankhya, TZ)


@pytest.fixture
def context(config: SyncConfig, gateway: DestinationGateway) -> SyncContext:
    return SyncContext(config=config, destination=gateway, status=StatusBoard())
