"""Progress events and ETA for orchestrator runs."""

import time
from collections import deque
from collections.abc import Callable

from clipbinder.core.logging import get_logger
from clipbinder.models.job import DownloadJob, JobStatus, ProgressEvent

logger = get_logger(__name__)

ProgressListener = Callable[[ProgressEvent], None]


class EtaEstimator:
    """Remaining-time estimate from a rolling average of scene durations.

    With ``workers`` scenes processed in parallel, the remaining queue
    drains ``workers`` scenes per average duration.

    Example:
        >>> eta = EtaEstimator(window=10, workers=3)
        >>> eta.estimate(remaining=6) is None
        True
        >>> eta.record(4.0)
        >>> eta.estimate(remaining=6)
        8.0
    """

    def __init__(self, window: int = 10, workers: int = 1) -> None:
        self._samples: deque[float] = deque(maxlen=max(1, window))
        self._workers = max(1, workers)

    @property
    def samples(self) -> int:
        return len(self._samples)

    def record(self, seconds: float) -> None:
        """Add the duration of one finished scene."""
        self._samples.append(max(0.0, seconds))

    def average(self) -> float | None:
        if not self._samples:
            return None
        return sum(self._samples) / len(self._samples)

    def estimate(self, remaining: int) -> float | None:
        """Seconds until ``remaining`` scenes are done (None before any sample)."""
        average = self.average()
        if average is None:
            return None
        if remaining <= 0:
            return 0.0
        parallel = min(self._workers, remaining)
        return round(average * remaining / parallel, 2)


class ProgressEmitter:
    """Turns job updates into ProgressEvents for the caller's listener.

    Tracks aggregate ``completed/total`` and feeds scene durations into the
    ETA estimator when a job reaches a terminal status. Listener errors are
    logged and never propagate into the run.
    """

    def __init__(
        self,
        listener: ProgressListener | None,
        total: int,
        eta: EtaEstimator | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._listener = listener
        self._clock = clock
        self.total = total
        self.eta = eta or EtaEstimator()
        self._started: dict[str, float] = {}
        self._finished: set[str] = set()

    @property
    def completed(self) -> int:
        return len(self._finished)

    def update(self, position: int, job: DownloadJob) -> ProgressEvent:
        """Record a job change and emit its event.

        Args:
            position: 1-based position of the scene in the acquisition queue
            job: Job after the change

        Returns:
            Emitted event
        """
        now = self._clock()
        if job.status != JobStatus.QUEUED:
            self._started.setdefault(job.scene_id, now)

        if job.status.is_terminal and job.scene_id not in self._finished:
            self._finished.add(job.scene_id)
            started = self._started.get(job.scene_id)
            if started is not None and job.status != JobStatus.CANCELLED:
                self.eta.record(now - started)

        event = ProgressEvent(
            scene_id=job.scene_id,
            keyword=job.keyword,
            status=job.status,
            progress=job.progress_percent,
            media_type=job.tier,
            provider=job.provider,
            video_index=position,
            total_videos=self.total,
            filename=job.filename if job.status == JobStatus.COMPLETED else None,
            error=job.error if job.status == JobStatus.FAILED else None,
            completed=self.completed,
            total=self.total,
            eta_seconds=self.eta.estimate(self.total - self.completed),
        )
        self._emit(event)
        return event

    def _emit(self, event: ProgressEvent) -> None:
        if self._listener is None:
            return
        try:
            self._listener(event)
        except Exception as e:
            logger.warning(
                "Progress listener failed",
                scene_id=event.scene_id,
                status=event.status.value,
                error=str(e),
            )


__all__ = ["EtaEstimator", "ProgressEmitter", "ProgressListener"]
