"""Normalization helpers.

Centralizes lenient parsing of provider payload values.
"""

from __future__ import annotations

import math
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or value == "--":
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def parse_ignition(value: Any) -> bool | None:
    """Map provider ignition flags (``"ON"``, ``1``, ``true``) to a bool."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    text = str(value).strip().upper()
    if text in {"ON", "1", "TRUE", "S", "SIM", "LIGADA"}:
        return True
    if text in {"OFF", "0", "FALSE", "N", "NAO", "NÃO", "DESLIGADA"}:
        return False
    return None


def join_address(*parts: Any) -> str | None:
    """Join the non-empty address parts with ``", "``."""
    cleaned = [text for text in (safe_str(part) for part in parts) if text]
    return ", ".join(cleaned) if cleaned else None
