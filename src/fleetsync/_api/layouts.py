"""Sankhya table layouts for each asset kind.

Vehicles and tags share one write/lookup implementation; what differs
(registry table, history table, identity column, dataset id, ignition
column) is described here as data.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable

from fleetsync._constants import DEFAULT_TAG_DATASET_ID, VEHICLE_DATASET_ID
from fleetsync.models.asset import AssetKind

_POSITION_FIELDS = ("LATITUDE", "LONGITUDE", "VELOC", "LINK")


def sql_literal(value: object) -> str:
    """Quote a value as a SQL string literal."""
    text = str(value).strip().replace("'", "''")
    return f"'{text}'"


def _sql_scalar(value: object) -> str:
    text = str(value).strip()
    return text if text.isdigit() else sql_literal(text)


@dataclasses.dataclass(frozen=True)
class TableLayout:
    """Where and how one asset kind is stored in Sankhya.

    Parameters
    ----------
    kind : AssetKind
        Asset kind described by this layout.
    entity_name : str
        History table receiving position rows.
    dataset_id : str
        ``dataSetID`` sent with ``DatasetSP.save``.
    identity_field : str
        Column holding the destination identity (foreign key).
    registry_select : str
        ``SELECT <identity>, <key> FROM <registry>`` head of the lookup query.
    registry_key : str
        Registry column matched against the source lookup keys.
    registry_filter : str
        Extra ``AND`` conditions; may reference ``{manufacturer}``.
    label_field : str
        Column receiving the source identifier.
    has_ignition : bool
        Whether rows carry the ``IGNIT`` column.
    """

    kind: AssetKind
    entity_name: str
    dataset_id: str
    identity_field: str
    registry_select: str
    registry_key: str
    registry_filter: str = ""
    label_field: str = "PLACA"
    has_ignition: bool = False

    @property
    def fields(self) -> list[str]:
        fields = ["NUMREG", self.identity_field, "LOCAL", "DATHOR", self.label_field, *_POSITION_FIELDS]
        if self.has_ignition:
            fields.append("IGNIT")
        return fields

    def lookup_sql(self, keys: Iterable[str], manufacturer_id: str | None = None) -> str:
        in_clause = ",".join(sql_literal(key) for key in keys)
        sql = f"{self.registry_select} WHERE {self.registry_key} IN ({in_clause})"
        if self.registry_filter:
            manufacturer = _sql_scalar(manufacturer_id) if manufacturer_id is not None else "NULL"
            sql += " " + self.registry_filter.format(manufacturer=manufacturer)
        return sql

    def history_sql(self) -> str:
        identity = self.identity_field
        return (
            "WITH UltimoRegistro AS ("
            f"SELECT {identity}, DATHOR, ROW_NUMBER() OVER (PARTITION BY {identity} ORDER BY NUMREG DESC) AS RN "
            f"FROM {self.entity_name}) "
            f"SELECT {identity}, DATHOR FROM UltimoRegistro WHERE RN = 1"
        )


def build_layouts(tag_dataset_id: str = DEFAULT_TAG_DATASET_ID) -> dict[AssetKind, TableLayout]:
    return {
        AssetKind.VEHICLE: TableLayout(
            kind=AssetKind.VEHICLE,
            entity_name="AD_LOCATCAR",
            dataset_id=VEHICLE_DATASET_ID,
            identity_field="CODVEICULO",
            registry_select="SELECT VEI.CODVEICULO, VEI.PLACA FROM TGFVEI VEI",
            registry_key="VEI.PLACA",
            has_ignition=True,
        ),
        AssetKind.TAG: TableLayout(
            kind=AssetKind.TAG,
            entity_name="AD_LOCATISC",
            dataset_id=tag_dataset_id,
            identity_field="SEQUENCIA",
            registry_select="SELECT SCA.SEQUENCIA, SCA.NUMISCA FROM AD_CADISCA SCA",
            registry_key="SCA.NUMISCA",
            registry_filter="AND SCA.FABRICANTE = {manufacturer} AND SCA.ATIVO = 'S'",
            label_field="ISCA",
        ),
    }
