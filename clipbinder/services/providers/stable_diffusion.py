"""Stable Diffusion HTTP client for image generation.

Communicates with a local SD service via HTTP API:
- ``GET /health`` returns ``{"status": "ok", "device": ..., "model_loaded": ...}``
- ``POST /generate`` returns ``{"image": <base64 PNG>, "seed": ..., "width": ..., "height": ...}``
"""

import base64
import binascii
import logging
from pathlib import Path

import httpx

from clipbinder.config.acquisition import StableDiffusionConfig
from clipbinder.core.exceptions import GenerationError, NoCredentialsError
from clipbinder.infrastructure.http_client import HTTPClient
from clipbinder.models.scene import Asset, AssetType
from clipbinder.services.providers.base import SearchConstraints
from clipbinder.services.providers.dall_e import AI_PROVIDER
from clipbinder.services.providers.download import write_atomic

logger = logging.getLogger(__name__)


class StableDiffusionGenerator:
    """Stable Diffusion HTTP client implementing ImageGenerator.

    The service health is checked once and cached; a transport error resets
    the cache so the next call checks again.

    Example:
        >>> generator = StableDiffusionGenerator("http://localhost:7860", enabled=True)
        >>> if await generator.is_available():
        ...     asset = await generator.generate("sunset", Path("x.png"), SearchConstraints())
    """

    name = "stable_diffusion"

    def __init__(
        self,
        service_url: str = "http://localhost:7860",
        enabled: bool = False,
        config: StableDiffusionConfig | None = None,
        http_client: HTTPClient | None = None,
    ) -> None:
        """Initialize StableDiffusionGenerator.

        Args:
            service_url: SD service HTTP endpoint
            enabled: Whether local generation is switched on
            config: Generation parameters
            http_client: Shared HTTP client (a private one is created otherwise)
        """
        self._service_url = service_url.rstrip("/")
        self._enabled = enabled
        self._config = config or StableDiffusionConfig()
        self._shared = http_client
        self._client: httpx.AsyncClient | None = None
        self._service_available: bool | None = None

    @property
    def is_configured(self) -> bool:
        return self._enabled

    async def _get_client(self) -> httpx.AsyncClient:
        """Get the shared client or create a private one."""
        if self._shared is not None:
            return self._shared.client
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(120.0, connect=10.0))
        return self._client

    async def is_available(self) -> bool:
        """Check if SD service is available.

        Returns:
            True if service is healthy and responding
        """
        if not self._enabled:
            return False
        if self._service_available is not None:
            return self._service_available

        try:
            client = await self._get_client()
            response = await client.get(f"{self._service_url}/health", timeout=5.0)
            if response.status_code == 200:
                data = response.json()
                self._service_available = data.get("status") == "ok"
                logger.info(
                    f"SD service available: device={data.get('device')}, "
                    f"model_loaded={data.get('model_loaded')}"
                )
                return self._service_available
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"SD service unavailable: {e}")

        self._service_available = False
        return False

    def output_size(self, constraints: SearchConstraints) -> tuple[int, int]:
        """Generation size for the requested orientation."""
        return self._get_dimensions(constraints.aspect_ratio)

    async def generate(self, prompt: str, dest_path: Path, constraints: SearchConstraints) -> Asset:
        """Generate an image and install it at ``dest_path``.

        Raises:
            NoCredentialsError: If local generation is disabled
            GenerationError: If the service is down or generation fails
        """
        if not self._enabled:
            raise NoCredentialsError(self.name)
        if not await self.is_available():
            raise GenerationError("SD service not available", provider=self.name, prompt=prompt)

        width, height = self._get_dimensions(constraints.aspect_ratio)
        client = await self._get_client()

        try:
            response = await client.post(
                f"{self._service_url}/generate",
                json={
                    "prompt": prompt,
                    "negative_prompt": self._config.negative_prompt,
                    "width": width,
                    "height": height,
                    "num_inference_steps": self._config.num_inference_steps,
                    "guidance_scale": self._config.guidance_scale,
                    "seed": None,
                },
                timeout=constraints.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"SD API error: {e.response.status_code} - {e.response.text[:500]}")
            raise GenerationError(
                f"SD generation failed with HTTP {e.response.status_code}",
                provider=self.name,
                prompt=prompt,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"SD request failed: {e}")
            # Mark service as potentially unavailable
            self._service_available = None
            raise GenerationError(
                f"SD request failed: {e}", provider=self.name, prompt=prompt
            ) from e
        except ValueError as e:
            raise GenerationError(
                f"SD returned invalid JSON: {e}", provider=self.name, prompt=prompt
            ) from e

        image_base64 = data.get("image")
        if not image_base64:
            raise GenerationError("SD response has no image", provider=self.name, prompt=prompt)

        try:
            written = write_atomic(dest_path, base64.b64decode(image_base64))
        except (binascii.Error, ValueError, OSError) as e:
            raise GenerationError(
                f"Failed to save image: {e}", provider=self.name, prompt=prompt
            ) from e

        seed = data.get("seed")
        logger.info(f"Generated SD image (seed={seed}) for prompt: {prompt[:50]}")
        return Asset(
            path=dest_path,
            type=AssetType.IMAGE,
            provider=AI_PROVIDER,
            keyword=prompt,
            width=data.get("width") or width,
            height=data.get("height") or height,
            size_bytes=written,
            source_id=f"sd{seed}" if seed is not None else None,
        )

    def _get_dimensions(self, aspect_ratio: str) -> tuple[int, int]:
        """Get generation dimensions based on orientation.

        Args:
            aspect_ratio: Desired orientation

        Returns:
            Tuple of (width, height)
        """
        if aspect_ratio == "landscape":
            return self._config.base_height, self._config.base_width
        elif aspect_ratio == "square":
            return self._config.base_width, self._config.base_width
        else:
            return self._config.base_width, self._config.base_height

    async def close(self) -> None:
        """Close the private HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()


__all__ = ["StableDiffusionGenerator"]
