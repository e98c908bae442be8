"""Job orchestrator.

``JobOrchestrator.run`` is the batch entry point:

1. Match scenes against a snapshot of the local asset index (no I/O).
2. Queue every eligible scene that is still empty.
3. Drain the queue with a fixed pool of asyncio workers, each driving the
   acquisition pipeline for one scene at a time.
4. Return the updated scenes and a RunSummary.

Only input contract violations (InvalidInputError, malformed options)
escape ``run``. Provider failures end up in the summary, and cancellation
returns a partial summary with ``cancelled=True``.
"""

import asyncio
import time
from collections import Counter
from functools import partial
from typing import Any

from clipbinder.config.acquisition import OrchestratorConfig
from clipbinder.core.exceptions import OperationCancelled, SceneAcquisitionFailed
from clipbinder.core.logging import get_logger, scene_context
from clipbinder.models.job import AcquisitionState, DownloadJob, JobStatus, RunSummary
from clipbinder.models.scene import Asset, AssignmentOptions, AssignmentStats, Scene
from clipbinder.services.acquisition.cancellation import CancelToken
from clipbinder.services.acquisition.pipeline import AcquisitionPipeline
from clipbinder.services.acquisition.progress import (
    EtaEstimator,
    ProgressEmitter,
    ProgressListener,
)
from clipbinder.services.assets.index import LocalAssetIndex
from clipbinder.services.matching.engine import MatchingEngine

logger = get_logger(__name__)


class JobOrchestrator:
    """Batch media assignment: local matching, then bounded concurrent acquisition.

    Example:
        >>> orchestrator = JobOrchestrator(index, pipeline)
        >>> token = CancelToken()
        >>> scenes, summary = await orchestrator.run(scenes, on_progress=print, cancel_token=token)
        >>> summary.success, summary.total
        (5, 5)
    """

    def __init__(
        self,
        index: LocalAssetIndex,
        pipeline: AcquisitionPipeline,
        engine: MatchingEngine | None = None,
        config: OrchestratorConfig | None = None,
    ) -> None:
        """Initialize JobOrchestrator.

        Args:
            index: Local asset index (matching reads a snapshot of it)
            pipeline: Per-scene acquisition pipeline
            engine: Matching engine
            config: Worker pool settings (defaults to the pipeline's config)
        """
        self._index = index
        self._pipeline = pipeline
        self._engine = engine or MatchingEngine()
        self.config = config or pipeline.config.orchestrator

    async def run(
        self,
        scenes: list[Scene],
        options: AssignmentOptions | dict[str, Any] | None = None,
        on_progress: ProgressListener | None = None,
        cancel_token: CancelToken | None = None,
    ) -> tuple[list[Scene], RunSummary]:
        """Assign media to every eligible scene.

        Args:
            scenes: Scenes of the document (not mutated)
            options: Matching policy
            on_progress: Receives one ProgressEvent per job change
            cancel_token: Cancellation handle

        Returns:
            (updated scene copies in input order, run summary)

        Raises:
            InvalidInputError: On duplicate ids or overlapping scenes
            pydantic.ValidationError: On malformed options
        """
        started = time.monotonic()
        token = cancel_token or CancelToken()

        matched, stats = self._engine.match(scenes, self._index.snapshot(), options)

        pending = sorted(
            (s for s in matched if s.is_eligible and not s.is_occupied),
            key=lambda s: s.start,
        )
        jobs = {s.id: DownloadJob(scene_id=s.id, keyword=s.search_keyword) for s in pending}

        emitter = ProgressEmitter(
            on_progress,
            total=len(pending),
            eta=EtaEstimator(self.config.eta_window, self.config.concurrency),
        )
        queue: asyncio.Queue[tuple[int, Scene]] = asyncio.Queue()
        for position, scene in enumerate(pending, start=1):
            queue.put_nowait((position, scene))
            emitter.update(position, jobs[scene.id])

        logger.info(
            "Run started",
            scenes=len(scenes),
            matched_locally=stats.new_assignments,
            queued=len(pending),
            concurrency=self.config.concurrency,
        )

        acquired: dict[str, Asset] = {}
        failures: dict[str, str] = {}
        claimed: set[tuple[str, str]] = set()

        worker_count = min(self.config.concurrency, len(pending))
        workers = [
            asyncio.create_task(
                self._worker(queue, jobs, emitter, token, claimed, acquired, failures),
                name=f"acquisition-worker-{i}",
            )
            for i in range(worker_count)
        ]
        try:
            await asyncio.gather(*workers)
        finally:
            for worker in workers:
                if not worker.done():
                    worker.cancel()

        results = [
            scene.with_asset(acquired[scene.id]) if scene.id in acquired else scene
            for scene in matched
        ]
        summary = self._summarize(results, stats, jobs, acquired, failures, token)
        summary.elapsed_seconds = round(time.monotonic() - started, 3)

        logger.info(
            "Run finished",
            success=summary.success,
            total=summary.total,
            failed=summary.failed,
            acquired=summary.acquired,
            cancelled=summary.cancelled,
            elapsed_seconds=summary.elapsed_seconds,
        )
        return results, summary

    async def _worker(
        self,
        queue: asyncio.Queue[tuple[int, Scene]],
        jobs: dict[str, DownloadJob],
        emitter: ProgressEmitter,
        token: CancelToken,
        claimed: set[tuple[str, str]],
        acquired: dict[str, Asset],
        failures: dict[str, str],
    ) -> None:
        while True:
            try:
                position, scene = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            job = jobs[scene.id]
            try:
                if token.is_cancelled:
                    self._mark(job, AcquisitionState.CANCELLED)
                    emitter.update(position, job)
                    continue

                try:
                    with scene_context(scene.id, position=position):
                        acquired[scene.id] = await self._pipeline.acquire(
                            scene,
                            job=job,
                            cancel_token=token,
                            on_update=partial(emitter.update, position),
                            claimed=claimed,
                        )
                except OperationCancelled:
                    logger.info("Scene cancelled", scene_id=scene.id)
                except SceneAcquisitionFailed as e:
                    failures[scene.id] = str(e)
                except Exception as e:
                    # Unexpected errors stay local to the scene
                    logger.exception("Scene acquisition crashed", scene_id=scene.id)
                    failures[scene.id] = f"{type(e).__name__}: {e}"
                    job.error = failures[scene.id]
                    self._mark(job, AcquisitionState.FAILED)
                    emitter.update(position, job)
            finally:
                queue.task_done()

    @staticmethod
    def _mark(job: DownloadJob, state: AcquisitionState) -> None:
        job.state = state
        job.status = state.job_status

    def _summarize(
        self,
        scenes: list[Scene],
        stats: AssignmentStats,
        jobs: dict[str, DownloadJob],
        acquired: dict[str, Asset],
        failures: dict[str, str],
        token: CancelToken,
    ) -> RunSummary:
        eligible = [s for s in scenes if s.is_eligible]
        return RunSummary(
            success=sum(1 for s in eligible if s.is_occupied),
            total=len(eligible),
            failed=len(failures),
            matched_locally=stats.new_assignments,
            acquired=len(acquired),
            cancelled=token.is_cancelled
            or any(j.status == JobStatus.CANCELLED for j in jobs.values()),
            by_provider=dict(Counter(a.provider for a in acquired.values())),
            failures=failures,
            jobs=list(jobs.values()),
            assignment=stats,
        )


__all__ = ["JobOrchestrator"]
