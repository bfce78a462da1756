"""Normalized position records."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fleetsync.models.asset import AssetKind, TrackedAsset


class PositionRecord(BaseModel):
    """One telemetry sample, normalized from a provider payload.

    Parameters
    ----------
    kind : AssetKind
        Vehicle or tag.
    identifier : str
        Source identifier: license plate or prefixed tag serial.
    timestamp : str
        Provider timestamp as received. It is parsed (and validated)
        by the mapper, so a malformed value is dropped there.
    latitude, longitude : float
        Coordinates in degrees.
    speed : float
        Speed in km/h.
    ignition : bool or None
        Ignition state, vehicles only.
    location : str or None
        Free-text location or proximity label.
    raw : dict
        Original provider entry.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    kind: AssetKind
    identifier: str
    timestamp: str
    latitude: float = 0.0
    longitude: float = 0.0
    speed: float = 0.0
    ignition: bool | None = None
    location: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict)

    @field_validator("identifier")
    @classmethod
    def _normalize_identifier(cls, value: str) -> str:
        identifier = value.strip().upper()
        if not identifier:
            raise ValueError("identifier must be non-empty")
        return identifier

    @property
    def asset(self) -> TrackedAsset:
        return TrackedAsset.of(self.kind, self.identifier)


class ResolvedRecord(BaseModel):
    """A position matched to its ERP identity and ready for commit."""

    model_config = ConfigDict(frozen=True)

    record: PositionRecord
    destination_id: int
    recorded_at: datetime
