"""fleetsync - Async sync of fleet tracking positions into the Sankhya ERP."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fleetsync")
except PackageNotFoundError:
    __version__ = "0+local"
from fleetsync.config import AtualcargoConfig, DestinationConfig, SitraxConfig, SyncConfig
from fleetsync.context import SyncContext
from fleetsync.exceptions import (
    ConfigError,
    DestinationAuthError,
    DestinationError,
    DestinationSessionExpiredError,
    DestinationTransientError,
    ErrorKind,
    FleetSyncError,
    RecordValidationError,
    TransportError,
    UnmappedRecordError,
    UpstreamAuthError,
    UpstreamError,
    UpstreamTransientError,
    classify_error,
)
from fleetsync.models import (
    AssetKind,
    JobState,
    JobStatus,
    PositionRecord,
    ResolvedRecord,
    Tag,
    TrackedAsset,
    Vehicle,
)
from fleetsync.service import FleetSyncService
from fleetsync.session import Credential, SessionManager
from fleetsync.state import EndpointFailover, EndpointRole, FetchCache, StatusBoard
from fleetsync.sync.job import CycleOutcome, SyncJob
from fleetsync.sync.scheduler import JobLoop, run_jobs

__all__ = [
    "__version__",
    "AssetKind",
    "AtualcargoConfig",
    "ConfigError",
    "Credential",
    "CycleOutcome",
    "DestinationAuthError",
    "DestinationConfig",
    "DestinationError",
    "DestinationSessionExpiredError",
    "DestinationTransientError",
    "EndpointFailover",
    "EndpointRole",
    "ErrorKind",
    "FetchCache",
    "FleetSyncError",
    "FleetSyncService",
    "JobLoop",
    "JobState",
    "JobStatus",
    "PositionRecord",
    "RecordValidationError",
    "ResolvedRecord",
    "SessionManager",
    "SitraxConfig",
    "StatusBoard",
    "SyncConfig",
    "SyncContext",
    "SyncJob",
    "Tag",
    "TrackedAsset",
    "TransportError",
    "UnmappedRecordError",
    "UpstreamAuthError",
    "UpstreamError",
    "UpstreamTransientError",
    "Vehicle",
    "classify_error",
    "run_jobs",
]
