"""Job status records published to the monitoring layer."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class JobState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    ERROR = "error"


class JobStatus(BaseModel):
    """Point-in-time status of one job.

    ``next_run`` only survives on ``idle``; a running or failed job has no
    countdown to show.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    state: JobState = JobState.IDLE
    message: str = ""
    last_update: datetime = Field(default_factory=lambda: datetime.now(UTC))
    next_run: datetime | None = None

    @model_validator(mode="after")
    def _clear_next_run_when_busy(self) -> JobStatus:
        if self.state is not JobState.IDLE and self.next_run is not None:
            object.__setattr__(self, "next_run", None)
        return self
