"""Convert resolved records into ERP history rows and write them."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import tzinfo
from typing import Any

from fleetsync._api.layouts import TableLayout
from fleetsync._constants import DEFAULT_LOCATION, IGNITION_OFF, IGNITION_ON, MAPS_LINK_TEMPLATE
from fleetsync.dates import format_for_destination
from fleetsync.models.asset import AssetKind
from fleetsync.models.position import ResolvedRecord
from fleetsync.sync.destination import DestinationGateway

_logger = logging.getLogger(__name__)


def _number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def maps_link(latitude: float, longitude: float) -> str:
    return MAPS_LINK_TEMPLATE.format(lat=latitude, lon=longitude)


def build_row(layout: TableLayout, resolved: ResolvedRecord, tz: tzinfo) -> dict[str, Any]:
    """Build one ``DatasetSP.save`` record.

    ``values`` are keyed by the position of each column in
    ``layout.fields`` (``NUMREG`` is 0 and the identity column travels in
    ``foreignKey``), so they start at ``"2"``.
    """
    record = resolved.record
    values: dict[str, str] = {
        "2": record.location or DEFAULT_LOCATION,
        "3": format_for_destination(resolved.recorded_at, tz),
        "4": record.identifier,
        "5": str(record.latitude),
        "6": str(record.longitude),
        "7": _number(record.speed),
        "8": maps_link(record.latitude, record.longitude),
    }
    if layout.has_ignition:
        values["9"] = IGNITION_ON if record.ignition else IGNITION_OFF
    return {
        "foreignKey": {layout.identity_field: str(resolved.destination_id)},
        "values": values,
    }


class CommitEngine:
    """Append selected records to the ERP, one write per kind.

    Errors from the destination propagate unchanged; retries are decided
    by the job.
    """

    def __init__(self, gateway: DestinationGateway, tz: tzinfo) -> None:
        self._gateway = gateway
        self._tz = tz

    async def commit(self, kind: AssetKind, records: Sequence[ResolvedRecord]) -> int:
        if not records:
            _logger.debug("No new %s rows to insert", kind)
            return 0
        layout = self._gateway.layout(kind)
        rows = [build_row(layout, resolved, self._tz) for resolved in records]
        await self._gateway.write_batch(kind, rows)
        _logger.info("Inserted %d rows into %s", len(rows), layout.entity_name)
        return len(rows)
