"""Acquisition job, progress and summary models.

Everything here lives only for the duration of one orchestrator run;
nothing is persisted.
"""

from enum import Enum

from pydantic import BaseModel, Field

from clipbinder.models.scene import AssignmentStats


class MediaTier(str, Enum):
    """Waterfall tier (also the ``media_type`` of progress events)."""

    VIDEO = "video"
    PHOTO = "photo"
    AI = "ai"


class JobStatus(str, Enum):
    """Caller-facing status of a scene's acquisition."""

    QUEUED = "queued"
    SEARCHING = "searching"
    DOWNLOADING = "downloading"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class AcquisitionState(str, Enum):
    """Per-scene pipeline state.

    IDLE → SEARCHING_VIDEO → DOWNLOADING_VIDEO → DONE
    on failure → SEARCHING_PHOTO → DOWNLOADING_PHOTO → DONE
    on failure → GENERATING_IMAGE → DONE | FAILED
    Any non-terminal state may move to CANCELLED.
    """

    IDLE = "idle"
    SEARCHING_VIDEO = "searching_video"
    DOWNLOADING_VIDEO = "downloading_video"
    SEARCHING_PHOTO = "searching_photo"
    DOWNLOADING_PHOTO = "downloading_photo"
    GENERATING_IMAGE = "generating_image"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def job_status(self) -> JobStatus:
        """Map the fine-grained state to the caller-facing status."""
        return _STATE_STATUS[self]


_STATE_STATUS: dict[AcquisitionState, JobStatus] = {
    AcquisitionState.IDLE: JobStatus.QUEUED,
    AcquisitionState.SEARCHING_VIDEO: JobStatus.SEARCHING,
    AcquisitionState.DOWNLOADING_VIDEO: JobStatus.DOWNLOADING,
    AcquisitionState.SEARCHING_PHOTO: JobStatus.SEARCHING,
    AcquisitionState.DOWNLOADING_PHOTO: JobStatus.DOWNLOADING,
    AcquisitionState.GENERATING_IMAGE: JobStatus.GENERATING,
    AcquisitionState.DONE: JobStatus.COMPLETED,
    AcquisitionState.FAILED: JobStatus.FAILED,
    AcquisitionState.CANCELLED: JobStatus.CANCELLED,
}


class DownloadJob(BaseModel):
    """Ephemeral per-scene acquisition record.

    Attributes:
        scene_id: Scene being filled
        keyword: Search keyword (may be empty)
        tier: Current or last tier
        state: Pipeline state
        status: Caller-facing status
        progress_percent: 0-100
        provider: Provider currently in use
        filename: Installed file name once done
        error: Failure reason (terminal failures only)
    """

    scene_id: str
    keyword: str = ""
    tier: MediaTier | None = None
    state: AcquisitionState = AcquisitionState.IDLE
    status: JobStatus = JobStatus.QUEUED
    progress_percent: float = Field(default=0.0, ge=0.0, le=100.0)
    provider: str | None = None
    filename: str | None = None
    error: str | None = None


class ProgressEvent(BaseModel):
    """One progress notification, emitted per state transition per scene.

    Attributes:
        scene_id: Scene the event belongs to
        keyword: Scene keyword
        status: Caller-facing status
        progress: Scene progress 0-100
        media_type: Tier in use
        provider: Provider in use
        video_index: 1-based index of this scene in the acquisition queue
        total_videos: Size of the acquisition queue
        filename: Installed file name (completed events)
        error: Failure reason (failed events)
        completed: Scenes finished so far (any terminal status)
        total: Same as total_videos
        eta_seconds: Estimated seconds remaining (None until a scene finishes)
    """

    scene_id: str
    keyword: str = ""
    status: JobStatus
    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    media_type: MediaTier | None = None
    provider: str | None = None
    video_index: int = 0
    total_videos: int = 0
    filename: str | None = None
    error: str | None = None
    completed: int = 0
    total: int = 0
    eta_seconds: float | None = None


class RunSummary(BaseModel):
    """Result of an orchestrator run.

    Attributes:
        success: Eligible scenes with media at the end of the run
        total: Eligible scenes in the document
        failed: Scenes whose acquisition failed
        matched_locally: Scenes newly assigned by the matching pass
        acquired: Scenes filled by acquisition
        cancelled: True when the run was cut short
        by_provider: Scenes filled by acquisition per provider
        failures: Failure reason per scene id
        jobs: Final per-scene job records
        elapsed_seconds: Wall-clock run time
        assignment: Stats of the matching pass
    """

    success: int = 0
    total: int = 0
    failed: int = 0
    matched_locally: int = 0
    acquired: int = 0
    cancelled: bool = False
    by_provider: dict[str, int] = Field(default_factory=dict)
    failures: dict[str, str] = Field(default_factory=dict)
    jobs: list[DownloadJob] = Field(default_factory=list)
    elapsed_seconds: float = 0.0
    assignment: AssignmentStats = Field(default_factory=AssignmentStats)


__all__ = [
    "AcquisitionState",
    "DownloadJob",
    "JobStatus",
    "MediaTier",
    "ProgressEvent",
    "RunSummary",
]
