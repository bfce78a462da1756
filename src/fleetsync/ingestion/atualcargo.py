"""Atualcargo payload adapter.

Atualcargo reports vehicles and tags in the same list; tags are the
entries whose plate carries the tag prefix (``ISCA3969``).
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from fleetsync.ingestion.normalize import join_address, parse_ignition, safe_float, safe_str
from fleetsync.models.asset import AssetKind, is_tag_identifier
from fleetsync.models.position import PositionRecord

_logger = logging.getLogger(__name__)


class AtualcargoPosition(BaseModel):
    """One entry of the Atualcargo last-position list."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    plate: str | None = Field(default=None, validation_alias=AliasChoices("plate", "placa"))
    date: str | None = Field(default=None, validation_alias=AliasChoices("date", "dateTime", "dataHora"))
    latitude: float | None = None
    longitude: float | None = None
    speed: float | None = Field(default=None, validation_alias=AliasChoices("speed", "velocidade"))
    ignition: bool | None = Field(default=None, validation_alias=AliasChoices("ignition", "ignicao"))
    proximity: str | None = None
    address: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _flatten(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        merged = dict(values)
        latlong = values.get("latlong")
        if isinstance(latlong, dict):
            merged.setdefault("latitude", latlong.get("latitude"))
            merged.setdefault("longitude", latlong.get("longitude"))
        address = values.get("address")
        if isinstance(address, dict):
            merged["address"] = join_address(address.get("street"), address.get("city"))
        merged.setdefault("raw", values)
        return merged

    @field_validator("latitude", "longitude", "speed", mode="before")
    @classmethod
    def _coerce_floats(cls, value: Any) -> float | None:
        return safe_float(value)

    @field_validator("plate", "date", "proximity", "address", mode="before")
    @classmethod
    def _coerce_strings(cls, value: Any) -> str | None:
        return safe_str(value)

    @field_validator("ignition", mode="before")
    @classmethod
    def _coerce_ignition(cls, value: Any) -> bool | None:
        return parse_ignition(value)

    def to_record(self) -> PositionRecord | None:
        if not self.plate:
            return None
        kind = AssetKind.TAG if is_tag_identifier(self.plate) else AssetKind.VEHICLE
        return PositionRecord(
            kind=kind,
            identifier=self.plate,
            timestamp=self.date or "",
            latitude=self.latitude or 0.0,
            longitude=self.longitude or 0.0,
            speed=self.speed or 0.0,
            ignition=self.ignition if kind is AssetKind.VEHICLE else None,
            location=self.proximity or self.address,
            raw=self.raw,
        )


def normalize_positions(entries: Any) -> list[PositionRecord]:
    """Convert the raw Atualcargo list into position records."""
    if isinstance(entries, dict):
        entries = entries.get("data") or entries.get("positions") or []
    if not isinstance(entries, list):
        return []

    records: list[PositionRecord] = []
    skipped = 0
    for entry in entries:
        try:
            record = AtualcargoPosition.model_validate(entry).to_record()
        except ValidationError:
            _logger.debug("Unparseable Atualcargo entry: %s", entry, exc_info=True)
            record = None
        if record is None:
            skipped += 1
            continue
        records.append(record)

    if skipped:
        _logger.debug("Skipped %d Atualcargo entries without a plate", skipped)
    return records
