"""Media acquisition: per-scene tier waterfall and the batch orchestrator."""

from clipbinder.services.acquisition.cancellation import CancelToken
from clipbinder.services.acquisition.orchestrator import JobOrchestrator
from clipbinder.services.acquisition.pipeline import AcquisitionPipeline
from clipbinder.services.acquisition.progress import EtaEstimator, ProgressEmitter
from clipbinder.services.acquisition.retry import call_with_retries, call_with_timeout
from clipbinder.services.acquisition.tiers import (
    AI_TIER,
    PHOTO_TIER,
    VIDEO_TIER,
    TierDescriptor,
    build_transitions,
    resolve_tiers,
)

__all__ = [
    "AI_TIER",
    "AcquisitionPipeline",
    "CancelToken",
    "EtaEstimator",
    "JobOrchestrator",
    "PHOTO_TIER",
    "ProgressEmitter",
    "TierDescriptor",
    "VIDEO_TIER",
    "build_transitions",
    "call_with_retries",
    "call_with_timeout",
    "resolve_tiers",
]
