"""Sitrax tracking API.

Sitrax has no session: the group and user keys go with every request.
"""

from __future__ import annotations

from typing import Any

from fleetsync._api.atualcargo import translate_transport_error
from fleetsync._transport import Transport
from fleetsync.config import SitraxConfig
from fleetsync.exceptions import TransportError, UpstreamAuthError, UpstreamTransientError
from fleetsync.ingestion import sitrax as _ingest
from fleetsync.models.position import PositionRecord
from fleetsync.session import Credential

SOURCE_NAME = "Sitrax"

_AUTH_MARKERS = ("autentica", "login", "chave", "unauthorized", "não autorizado")


class SitraxSource:
    """Position source for the Sitrax API (tags only)."""

    name = SOURCE_NAME

    def __init__(self, config: SitraxConfig, transport: Transport) -> None:
        self._config = config
        self._transport = transport

    @property
    def manufacturer_id(self) -> str:
        return self._config.manufacturer_id

    @property
    def interval(self) -> float:
        return self._config.interval

    async def fetch_positions(self, credential: Credential | None) -> Any:
        payload = {
            "login": self._config.login,
            "cgruChave": self._config.cgru_chave,
            "cusuChave": self._config.cusu_chave,
        }
        try:
            response = await self._transport.request_json("POST", self._config.url, payload=payload)
        except TransportError as exc:
            raise translate_transport_error(exc, SOURCE_NAME, "positions request") from exc

        if isinstance(response, dict):
            error = response.get("erro") or response.get("error")
            if error:
                message = str(error)
                if any(marker in message.lower() for marker in _AUTH_MARKERS):
                    raise UpstreamAuthError(f"{SOURCE_NAME} rejected credentials: {message}", source=SOURCE_NAME)
                raise UpstreamTransientError(f"{SOURCE_NAME} returned an error: {message}", source=SOURCE_NAME)
        return response

    def normalize(self, payload: Any) -> list[PositionRecord]:
        return _ingest.normalize_positions(payload)
