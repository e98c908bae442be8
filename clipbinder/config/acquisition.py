"""Acquisition pipeline configuration models.

This module provides typed Pydantic configuration for every acquisition
component:
- Download constraints (resolution, aspect ratio, byte window)
- Retry and timeout budgets
- Orchestrator worker pool
- Per-provider settings (Pexels, Pixabay, DALL-E, Stable Diffusion)
- Tier order
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

AspectRatio = Literal["portrait", "landscape", "square", "any"]
TierName = Literal["video", "photo", "ai"]


class DownloadConstraints(BaseModel):
    """Constraints every downloaded candidate must satisfy.

    Defaults target vertical Shorts at 1080x1920.

    Attributes:
        target_width: Preferred width; variants closest to it are chosen
        target_height: Preferred height
        aspect_ratio: Required orientation ("any" disables the check)
        min_width: Reject candidates narrower than this
        min_height: Reject candidates shorter than this
        min_bytes: Reject files smaller than this (0 disables)
        max_bytes: Abort downloads larger than this (None disables)
        per_page: Results requested per search call
    """

    target_width: int = Field(default=1080, ge=16, le=8192, description="Target width")
    target_height: int = Field(default=1920, ge=16, le=8192, description="Target height")
    aspect_ratio: AspectRatio = Field(default="portrait", description="Required orientation")
    min_width: int = Field(default=0, ge=0, description="Minimum width")
    min_height: int = Field(default=0, ge=0, description="Minimum height")
    min_bytes: int = Field(default=0, ge=0, description="Minimum file size in bytes")
    max_bytes: int | None = Field(
        default=200 * 1024 * 1024, ge=1, description="Maximum file size in bytes"
    )
    per_page: int = Field(default=10, ge=1, le=80, description="Results per search")

    @model_validator(mode="after")
    def validate_byte_window(self) -> "DownloadConstraints":
        """Reject an empty byte window."""
        if self.max_bytes is not None and self.max_bytes < self.min_bytes:
            raise ValueError("max_bytes must be >= min_bytes")
        return self


class RetryConfig(BaseModel):
    """Retry and timeout budgets for tier-local calls.

    Attributes:
        retries_per_candidate: Extra download attempts per candidate
        max_candidates: Candidates tried per tier, across all of its providers,
            before abandoning it
        search_retries: Extra search attempts per provider
        generation_retries: Extra generation attempts
        search_timeout: Seconds allowed per search call
        download_timeout: Seconds allowed per download
        generation_timeout: Seconds allowed per generation call
        backoff_base: First rate-limit backoff delay in seconds
        backoff_max: Upper bound for any rate-limit wait
        rate_limit_retries: 429 retries before RateLimitError is raised
    """

    retries_per_candidate: int = Field(default=1, ge=0, le=10)
    max_candidates: int = Field(default=2, ge=1, le=20)
    search_retries: int = Field(default=1, ge=0, le=10)
    generation_retries: int = Field(default=1, ge=0, le=10)
    search_timeout: float = Field(default=15.0, gt=0, le=600.0)
    download_timeout: float = Field(default=60.0, gt=0, le=3600.0)
    generation_timeout: float = Field(default=120.0, gt=0, le=3600.0)
    backoff_base: float = Field(default=1.2, ge=0.0, le=60.0)
    backoff_max: float = Field(default=60.0, ge=0.0, le=600.0)
    rate_limit_retries: int = Field(default=3, ge=0, le=10)


class OrchestratorConfig(BaseModel):
    """Job orchestrator configuration.

    Attributes:
        concurrency: Number of asyncio workers processing scenes
        items_per_scene: Assets installed per successful tier (the first is bound)
        eta_window: Completed scenes used for the rolling ETA average
    """

    concurrency: int = Field(default=3, ge=1, le=32, description="Worker pool size")
    items_per_scene: int = Field(default=1, ge=1, le=10, description="Assets per scene")
    eta_window: int = Field(default=10, ge=1, le=1000, description="ETA rolling window")


class PexelsConfig(BaseModel):
    """Pexels API configuration.

    Attributes:
        enabled: Use Pexels in stock tiers
        api_base: API root URL
    """

    enabled: bool = Field(default=True, description="Use Pexels")
    api_base: str = Field(default="https://api.pexels.com", description="API root")


class PixabayConfig(BaseModel):
    """Pixabay API configuration.

    Pixabay provides free stock videos and images without attribution requirement.

    Attributes:
        enabled: Use Pixabay in stock tiers
        api_base: API root URL
        image_type: Type of images to search
        safesearch: Enable safe search
    """

    enabled: bool = Field(default=True, description="Use Pixabay")
    api_base: str = Field(default="https://pixabay.com/api", description="API root")
    image_type: Literal["all", "photo", "illustration", "vector"] = Field(
        default="photo", description="Image type filter"
    )
    safesearch: bool = Field(default=True, description="Safe search")


class DALLEConfig(BaseModel):
    """DALL-E image generation configuration.

    Attributes:
        enabled: Use DALL-E in the AI tier
        model: Model name
        quality: Image quality
        style: Image style
        prompt_suffix: Quality hints appended to every prompt
    """

    enabled: bool = Field(default=True, description="Use DALL-E")
    model: str = Field(default="dall-e-3", description="Model name")
    quality: Literal["standard", "hd"] = Field(default="standard", description="Quality")
    style: Literal["vivid", "natural"] = Field(default="natural", description="Style")
    prompt_suffix: str = Field(
        default="high quality, detailed, cinematic lighting, no text",
        description="Appended quality hints",
    )


class StableDiffusionConfig(BaseModel):
    """Stable Diffusion service configuration.

    SD runs as a separate HTTP service; the URL comes from the process Config.

    Attributes:
        base_width: Generation width for portrait output
        base_height: Generation height for portrait output
        num_inference_steps: Number of denoising steps
        guidance_scale: CFG scale
        negative_prompt: Default negative prompt
    """

    base_width: int = Field(default=768, ge=256, le=1024, description="Base width")
    base_height: int = Field(default=1024, ge=256, le=1024, description="Base height")
    num_inference_steps: int = Field(default=8, ge=1, le=50, description="Inference steps")
    guidance_scale: float = Field(default=2.0, ge=0.0, le=20.0, description="CFG scale")
    negative_prompt: str = Field(
        default="blurry, low quality, distorted, deformed, text, watermark",
        description="Default negative prompt",
    )


class AcquisitionConfig(BaseModel):
    """Complete acquisition configuration.

    Attributes:
        tier_order: Waterfall order; the AI tier must come last if present
        constraints: Download constraints
        retry: Retry and timeout budgets
        orchestrator: Worker pool settings
        pexels: Pexels settings
        pixabay: Pixabay settings
        dalle: DALL-E settings
        stable_diffusion: Stable Diffusion settings
    """

    tier_order: list[TierName] = Field(default_factory=lambda: ["video", "photo", "ai"])
    constraints: DownloadConstraints = Field(default_factory=DownloadConstraints)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    pexels: PexelsConfig = Field(default_factory=PexelsConfig)
    pixabay: PixabayConfig = Field(default_factory=PixabayConfig)
    dalle: DALLEConfig = Field(default_factory=DALLEConfig)
    stable_diffusion: StableDiffusionConfig = Field(default_factory=StableDiffusionConfig)

    @field_validator("tier_order")
    @classmethod
    def validate_tier_order(cls, v: list[str]) -> list[str]:
        """Tiers must be unique and the generation tier must be terminal."""
        if not v:
            raise ValueError("tier_order must not be empty")
        if len(set(v)) != len(v):
            raise ValueError("tier_order must not repeat tiers")
        if "ai" in v and v[-1] != "ai":
            raise ValueError("the 'ai' tier must be last")
        return v


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
