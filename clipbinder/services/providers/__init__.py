"""Provider clients for stock media search and AI image generation.

Stock providers (Pexels, Pixabay) implement StockMediaProvider; generators
(DALL-E, Stable Diffusion) implement ImageGenerator.
"""

from clipbinder.services.providers.base import (
    Candidate,
    ImageGenerator,
    ProgressCallback,
    SearchConstraints,
    StockMediaProvider,
    check_constraints,
    select_variant,
)
from clipbinder.services.providers.dall_e import AI_PROVIDER, DALLEGenerator
from clipbinder.services.providers.pexels import PexelsClient
from clipbinder.services.providers.pixabay import PixabayClient
from clipbinder.services.providers.rate_limit import RateLimiter
from clipbinder.services.providers.stable_diffusion import StableDiffusionGenerator

__all__ = [
    "AI_PROVIDER",
    "Candidate",
    "DALLEGenerator",
    "ImageGenerator",
    "PexelsClient",
    "PixabayClient",
    "ProgressCallback",
    "RateLimiter",
    "SearchConstraints",
    "StableDiffusionGenerator",
    "StockMediaProvider",
    "check_constraints",
    "select_variant",
]
