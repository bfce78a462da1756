"""Process-wide state handed to every sync job."""

from __future__ import annotations

import dataclasses
from datetime import tzinfo

from fleetsync.config import SyncConfig
from fleetsync.state.status import StatusBoard
from fleetsync.sync.destination import DestinationGateway


@dataclasses.dataclass
class SyncContext:
    """What jobs share: the configuration, one ERP gateway and the status board.

    Jobs built from the same context share the ERP session and the endpoint
    failover state; jobs built from different contexts are fully isolated.
    """

    config: SyncConfig
    destination: DestinationGateway
    status: StatusBoard = dataclasses.field(default_factory=StatusBoard)

    @property
    def tz(self) -> tzinfo:
        return self.config.tzinfo
