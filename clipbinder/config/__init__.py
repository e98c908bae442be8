"""Acquisition configuration models."""

from clipbinder.config.acquisition import (
    AcquisitionConfig,
    AspectRatio,
    DALLEConfig,
    DownloadConstraints,
    OrchestratorConfig,
    PexelsConfig,
    PixabayConfig,
    RetryConfig,
    StableDiffusionConfig,
    TierName,
)

__all__ = [
    "AcquisitionConfig",
    "AspectRatio",
    "DALLEConfig",
    "DownloadConstraints",
    "OrchestratorConfig",
    "PexelsConfig",
    "PixabayConfig",
    "RetryConfig",
    "StableDiffusionConfig",
    "TierName",
]
