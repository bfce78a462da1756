"""Date/time conversions between provider, ERP display and ERP query formats.

Three representations meet in a sync cycle:

* provider strings, ``2025-11-03 11:38:12`` or ISO-8601 (``T`` separator,
  optional fraction and UTC offset);
* the ERP display string written into ``DATHOR``, ``03/11/2025 11:38:12``;
* the ERP query-result string read back from ``DATHOR``, ``03112025 11:38:12``.

Naive values are interpreted in the configured zone, so every parsed
value is an aware :class:`~datetime.datetime` and comparisons are between
absolute instants.
"""

from __future__ import annotations

from datetime import datetime, tzinfo
from typing import Any

_SOURCE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
)
_QUERY_FORMATS = (
    "%d%m%Y %H:%M:%S",
    "%d/%m/%Y %H:%M:%S",
)
DISPLAY_FORMAT = "%d/%m/%Y %H:%M:%S"


def _localize(value: datetime, tz: tzinfo) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value


def parse_source_timestamp(value: Any, tz: tzinfo) -> datetime | None:
    """Parse a provider timestamp; ``None`` when absent or malformed."""
    if isinstance(value, datetime):
        return _localize(value, tz)
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None

    for fmt in _SOURCE_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=tz)
        except ValueError:
            continue

    iso = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        parsed = datetime.fromisoformat(iso)
    except ValueError:
        return None
    return _localize(parsed, tz)


def parse_destination_timestamp(value: Any, tz: tzinfo) -> datetime | None:
    """Parse a ``DATHOR`` value returned by an ERP query."""
    if isinstance(value, datetime):
        return _localize(value, tz)
    if not isinstance(value, str):
        return None
    text = value.strip()
    for fmt in _QUERY_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=tz)
        except ValueError:
            continue
    return None


def format_for_destination(value: datetime, tz: tzinfo) -> str:
    """Render an instant as the ERP display string in the configured zone."""
    return _localize(value, tz).astimezone(tz).strftime(DISPLAY_FORMAT)


def is_newer(candidate: datetime, last: datetime | None) -> bool:
    """Strict instant comparison; equal timestamps are stale."""
    if last is None:
        return True
    return candidate > last
