"""Ingestion layer.

Adapters that turn provider payloads (Atualcargo, Sitrax) into
normalized :class:`~fleetsync.models.PositionRecord` lists.
"""

__all__: list[str] = []
