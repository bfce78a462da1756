"""Atualcargo tracking API.

Endpoints:
  - POST /api/auth/v1/login
  - GET  /api/positions/v1/last

The bearer token expires after a fixed period (about five minutes) and is
renewed lazily by the job's session manager.
"""

from __future__ import annotations

import logging
from typing import Any

from fleetsync._transport import Transport
from fleetsync.config import AtualcargoConfig
from fleetsync.exceptions import TransportError, UpstreamAuthError, UpstreamError, UpstreamTransientError
from fleetsync.ingestion import atualcargo as _ingest
from fleetsync.models.position import PositionRecord
from fleetsync.session import Credential

_logger = logging.getLogger(__name__)

SOURCE_NAME = "Atualcargo"
LOGIN_PATH = "/api/auth/v1/login"
POSITIONS_PATH = "/api/positions/v1/last"

_AUTH_STATUS_CODES = frozenset({401, 403})


def translate_transport_error(exc: TransportError, source: str, action: str) -> UpstreamError:
    """Classify a provider HTTP failure; 401/403 are credential problems, the rest transient."""
    if exc.status_code in _AUTH_STATUS_CODES:
        return UpstreamAuthError(f"{source} {action} rejected: {exc}", source=source)
    return UpstreamTransientError(f"{source} {action} failed: {exc}", source=source)


def parse_login_response(response: Any) -> str:
    if isinstance(response, dict):
        for key in ("token", "access_token", "accessToken"):
            token = response.get(key)
            if isinstance(token, str) and token.strip():
                return token.strip()
        data = response.get("data")
        if isinstance(data, dict):
            return parse_login_response(data)
    raise UpstreamAuthError(f"{SOURCE_NAME} login response missing token", source=SOURCE_NAME)


class AtualcargoSource:
    """Position source for the Atualcargo API (vehicles and tags)."""

    name = SOURCE_NAME

    def __init__(self, config: AtualcargoConfig, transport: Transport) -> None:
        self._config = config
        self._transport = transport

    @property
    def manufacturer_id(self) -> str:
        return self._config.manufacturer_id

    @property
    def token_ttl(self) -> float | None:
        return self._config.token_ttl if self._config.token_ttl > 0 else None

    @property
    def interval(self) -> float:
        return self._config.interval

    def _headers(self) -> dict[str, str]:
        return {"x-api-key": self._config.api_key}

    async def login(self) -> Credential:
        _logger.info("Requesting %s token", SOURCE_NAME)
        try:
            response = await self._transport.request_json(
                "POST",
                f"{self._config.url}{LOGIN_PATH}",
                payload={"username": self._config.username, "password": self._config.password},
                headers=self._headers(),
            )
        except TransportError as exc:
            raise translate_transport_error(exc, SOURCE_NAME, "login") from exc
        return Credential(token=parse_login_response(response))

    async def fetch_positions(self, credential: Credential | None) -> Any:
        if credential is None:
            raise UpstreamAuthError(f"{SOURCE_NAME} requires a token", source=SOURCE_NAME)
        headers = {**self._headers(), "authorization": f"Bearer {credential.token}"}
        try:
            return await self._transport.request_json(
                "GET",
                f"{self._config.url}{POSITIONS_PATH}",
                headers=headers,
            )
        except TransportError as exc:
            raise translate_transport_error(exc, SOURCE_NAME, "positions request") from exc

    def normalize(self, payload: Any) -> list[PositionRecord]:
        return _ingest.normalize_positions(payload)
