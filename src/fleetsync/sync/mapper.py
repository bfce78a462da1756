"""Identity resolution and staleness filtering for a cached batch."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Sequence
from datetime import datetime, tzinfo

from fleetsync.dates import is_newer, parse_source_timestamp
from fleetsync.exceptions import RecordValidationError, UnmappedRecordError
from fleetsync.models.asset import AssetKind
from fleetsync.models.position import PositionRecord, ResolvedRecord
from fleetsync.sync.destination import DestinationGateway

_logger = logging.getLogger(__name__)


@dataclasses.dataclass
class DedupResult:
    """Records selected for commit, split by kind, plus drop counters.

    ``unmapped`` counts records with no ERP identity, ``invalid`` those with
    an unreadable timestamp and ``ignored`` those not newer than the last
    committed row, or whose last committed row has an unreadable instant.
    """

    vehicles: list[ResolvedRecord] = dataclasses.field(default_factory=list)
    tags: list[ResolvedRecord] = dataclasses.field(default_factory=list)
    unmapped: int = 0
    invalid: int = 0
    ignored: int = 0

    def for_kind(self, kind: AssetKind) -> list[ResolvedRecord]:
        return self.tags if kind is AssetKind.TAG else self.vehicles

    @property
    def selected(self) -> int:
        return len(self.vehicles) + len(self.tags)


@dataclasses.dataclass(frozen=True)
class _KindIndex:
    identities: dict[str, int]
    history: dict[int, datetime | None]


class Deduplicator:
    """Select the records of a batch that are newer than what the ERP holds.

    Lookups and history are queried fresh on every call and the input batch
    is never modified, so calling :meth:`select_new` twice against the same
    ERP state yields the same result.
    """

    def __init__(self, gateway: DestinationGateway, tz: tzinfo) -> None:
        self._gateway = gateway
        self._tz = tz

    async def _index(self, kind: AssetKind, records: Sequence[PositionRecord], manufacturer_id: str | None) -> _KindIndex:
        keys = [record.asset.lookup_key for record in records]
        identities, history = await asyncio.gather(
            self._gateway.query_by_keys(
                kind,
                keys,
                manufacturer_id=manufacturer_id if kind is AssetKind.TAG else None,
            ),
            self._gateway.query_last_timestamps(kind),
        )
        return _KindIndex(identities=identities, history=history)

    def _resolve(self, record: PositionRecord, index: _KindIndex) -> ResolvedRecord | None:
        key = record.asset.lookup_key.upper()
        identity = index.identities.get(key)
        if identity is None:
            raise UnmappedRecordError(f"{record.kind} {record.identifier} is not registered")

        recorded_at = parse_source_timestamp(record.timestamp, self._tz)
        if recorded_at is None:
            raise RecordValidationError(f"{record.identifier}: unreadable timestamp {record.timestamp!r}")

        if identity in index.history and index.history[identity] is None:
            _logger.warning(
                "Holding back %s %s: last committed instant is unreadable",
                record.kind,
                record.identifier,
            )
            return None
        if not is_newer(recorded_at, index.history.get(identity)):
            return None
        return ResolvedRecord(record=record, destination_id=identity, recorded_at=recorded_at)

    async def select_new(
        self,
        records: Sequence[PositionRecord],
        *,
        manufacturer_id: str | None = None,
    ) -> DedupResult:
        result = DedupResult()
        by_kind: dict[AssetKind, list[PositionRecord]] = {kind: [] for kind in AssetKind}
        for record in records:
            by_kind[record.kind].append(record)

        kinds = [kind for kind in AssetKind if by_kind[kind]]
        indexes = dict(
            zip(
                kinds,
                await asyncio.gather(*(self._index(kind, by_kind[kind], manufacturer_id) for kind in kinds)),
                strict=True,
            )
        )

        seen: set[tuple[AssetKind, int, datetime]] = set()
        for kind in kinds:
            index = indexes[kind]
            selected = result.for_kind(kind)
            for record in by_kind[kind]:
                try:
                    resolved = self._resolve(record, index)
                except UnmappedRecordError as exc:
                    result.unmapped += 1
                    _logger.debug("Skipping record: %s", exc)
                    continue
                except RecordValidationError as exc:
                    result.invalid += 1
                    _logger.warning("Dropping record: %s", exc)
                    continue

                if resolved is None:
                    result.ignored += 1
                    continue
                marker = (kind, resolved.destination_id, resolved.recorded_at)
                if marker in seen:
                    result.ignored += 1
                    continue
                seen.add(marker)
                selected.append(resolved)

        _logger.info(
            "Selected %d vehicle and %d tag rows (%d unmapped, %d invalid, %d not newer)",
            len(result.vehicles),
            len(result.tags),
            result.unmapped,
            result.invalid,
            result.ignored,
        )
        return result
