"""Tests for acquisition job models."""

import pytest
from pydantic import ValidationError

from clipbinder.models.job import (
    AcquisitionState,
    DownloadJob,
    JobStatus,
    ProgressEvent,
    RunSummary,
)


class TestAcquisitionState:
    """Tests for the state to status mapping."""

    @pytest.mark.parametrize(
        ("state", "status"),
        [
            (AcquisitionState.IDLE, JobStatus.QUEUED),
            (AcquisitionState.SEARCHING_VIDEO, JobStatus.SEARCHING),
            (AcquisitionState.SEARCHING_PHOTO, JobStatus.SEARCHING),
            (AcquisitionState.DOWNLOADING_VIDEO, JobStatus.DOWNLOADING),
            (AcquisitionState.DOWNLOADING_PHOTO, JobStatus.DOWNLOADING),
            (AcquisitionState.GENERATING_IMAGE, JobStatus.GENERATING),
            (AcquisitionState.DONE, JobStatus.COMPLETED),
            (AcquisitionState.FAILED, JobStatus.FAILED),
            (AcquisitionState.CANCELLED, JobStatus.CANCELLED),
        ],
    )
    def test_job_status(self, state, status):
        assert state.job_status == status

    def test_terminal_statuses(self):
        """Only completed, failed and cancelled are terminal."""
        terminal = {s for s in JobStatus if s.is_terminal}
        assert terminal == {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}


class TestDownloadJob:
    """Tests for DownloadJob."""

    def test_defaults(self):
        job = DownloadJob(scene_id="s1")

        assert job.state == AcquisitionState.IDLE
        assert job.status == JobStatus.QUEUED
        assert job.progress_percent == 0.0
        assert job.tier is None

    def test_progress_bounds(self):
        with pytest.raises(ValidationError):
            DownloadJob(scene_id="s1", progress_percent=120.0)


class TestProgressEvent:
    """Tests for ProgressEvent serialization."""

    def test_json_shape(self):
        """Events serialize with plain string enums."""
        event = ProgressEvent(scene_id="s1", status=JobStatus.DOWNLOADING, progress=40.0)

        data = event.model_dump(mode="json")
        assert data["status"] == "downloading"
        assert data["eta_seconds"] is None


class TestRunSummary:
    """Tests for RunSummary."""

    def test_defaults(self):
        summary = RunSummary()

        assert summary.success == 0
        assert summary.cancelled is False
        assert summary.by_provider == {}
        assert summary.assignment.total_scenes == 0
