"""Sitrax payload adapter (tags only)."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from fleetsync._constants import TAG_PREFIX
from fleetsync.ingestion.normalize import join_address, safe_float, safe_str
from fleetsync.models.asset import AssetKind, is_tag_identifier
from fleetsync.models.position import PositionRecord

_logger = logging.getLogger(__name__)


class SitraxPosition(BaseModel):
    """One Sitrax tracker position."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    serial: str | None = Field(
        default=None,
        validation_alias=AliasChoices("equipamento", "numeroSerie", "serial", "isca"),
    )
    date: str | None = Field(
        default=None,
        validation_alias=AliasChoices("dataHora", "dataPosicao", "date"),
    )
    latitude: float | None = Field(default=None, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float | None = Field(default=None, validation_alias=AliasChoices("longitude", "lon", "lng"))
    speed: float | None = Field(default=None, validation_alias=AliasChoices("velocidade", "speed"))
    reference: str | None = Field(default=None, validation_alias=AliasChoices("referencia", "proximity"))
    address: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _flatten(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        merged = dict(values)
        endereco = values.get("endereco")
        if isinstance(endereco, dict):
            merged["address"] = join_address(endereco.get("logradouro"), endereco.get("cidade"))
        elif endereco is not None:
            merged["address"] = endereco
        merged.setdefault("raw", values)
        return merged

    @field_validator("latitude", "longitude", "speed", mode="before")
    @classmethod
    def _coerce_floats(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("serial", "date", "reference", "address", mode="before")
    @classmethod
    def _coerce_strings(cls, value: Any) -> str | None:
        return safe_str(value)

    def to_record(self) -> PositionRecord | None:
        if not self.serial:
            return None
        identifier = self.serial if is_tag_identifier(self.serial) else f"{TAG_PREFIX}{self.serial}"
        return PositionRecord(
            kind=AssetKind.TAG,
            identifier=identifier,
            timestamp=self.date or "",
            latitude=self.latitude or 0.0,
            longitude=self.longitude or 0.0,
            speed=self.speed or 0.0,
            location=self.reference or self.address,
            raw=self.raw,
        )


def normalize_positions(entries: Any) -> list[PositionRecord]:
    """Convert a Sitrax response body into tag position records."""
    if isinstance(entries, dict):
        entries = entries.get("posicoes") or entries.get("data") or []
    if not isinstance(entries, list):
        return []

    records: list[PositionRecord] = []
    for entry in entries:
        try:
            record = SitraxPosition.model_validate(entry).to_record()
        except ValidationError:
            _logger.debug("Unparseable Sitrax entry: %s", entry, exc_info=True)
            continue
        if record is not None:
            records.append(record)
    return records
