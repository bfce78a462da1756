"""Data models for fleetsync."""

from fleetsync.models.asset import AssetKind, Tag, TrackedAsset, Vehicle, is_tag_identifier, strip_tag_prefix
from fleetsync.models.position import PositionRecord, ResolvedRecord
from fleetsync.models.status import JobState, JobStatus

__all__ = [
    "AssetKind",
    "JobState",
    "JobStatus",
    "PositionRecord",
    "ResolvedRecord",
    "Tag",
    "TrackedAsset",
    "Vehicle",
    "is_tag_identifier",
    "strip_tag_prefix",
]
