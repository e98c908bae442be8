"""Pydantic data models.

- scene: Scene, Asset and matching options/stats
- job: acquisition job records, progress events and run summaries
"""

from clipbinder.models.job import (
    AcquisitionState,
    DownloadJob,
    JobStatus,
    MediaTier,
    ProgressEvent,
    RunSummary,
)
from clipbinder.models.scene import Asset, AssetType, AssignmentOptions, AssignmentStats, Scene

__all__ = [
    "AcquisitionState",
    "Asset",
    "AssetType",
    "AssignmentOptions",
    "AssignmentStats",
    "DownloadJob",
    "JobStatus",
    "MediaTier",
    "ProgressEvent",
    "RunSummary",
    "Scene",
]
