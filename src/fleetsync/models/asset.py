"""Tracked asset identities."""

from __future__ import annotations

import dataclasses
import re
from enum import StrEnum
from typing import ClassVar

from fleetsync._constants import TAG_PREFIX

_TAG_PREFIX_RE = re.compile(re.escape(TAG_PREFIX), re.IGNORECASE)


class AssetKind(StrEnum):
    VEHICLE = "vehicle"
    TAG = "tag"


def strip_tag_prefix(serial: str) -> str:
    """Extract the numeric part of a tag serial (``"ISCA3969"`` -> ``"3969"``)."""
    return _TAG_PREFIX_RE.sub("", serial, count=1).strip()


def is_tag_identifier(identifier: str) -> bool:
    return identifier.strip().upper().startswith(TAG_PREFIX)


@dataclasses.dataclass(frozen=True)
class TrackedAsset:
    """Source-side identity of something that reports positions.

    ``lookup_key`` is the value matched against the ERP registry table.
    """

    kind: ClassVar[AssetKind]

    identifier: str

    @property
    def lookup_key(self) -> str:
        return self.identifier.strip()

    @staticmethod
    def of(kind: AssetKind, identifier: str) -> TrackedAsset:
        if kind is AssetKind.TAG:
            return Tag(identifier)
        return Vehicle(identifier)


@dataclasses.dataclass(frozen=True)
class Vehicle(TrackedAsset):
    """Registered vehicle, keyed by license plate (``TGFVEI.PLACA``)."""

    kind: ClassVar[AssetKind] = AssetKind.VEHICLE


@dataclasses.dataclass(frozen=True)
class Tag(TrackedAsset):
    """Tracking tag ("isca"), keyed by its prefixed serial (``AD_CADISCA.NUMISCA``)."""

    kind: ClassVar[AssetKind] = AssetKind.TAG

    @property
    def lookup_key(self) -> str:
        return strip_tag_prefix(self.identifier)
