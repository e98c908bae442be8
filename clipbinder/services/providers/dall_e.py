"""AI image generation using DALL-E 3.

Generates a custom image for a scene when no stock media qualified.
"""

import base64
import binascii
import logging
import uuid
from pathlib import Path

import httpx

from clipbinder.config.acquisition import DALLEConfig
from clipbinder.core.exceptions import (
    ConstraintViolationError,
    DownloadError,
    GenerationError,
    NoCredentialsError,
)
from clipbinder.infrastructure.http_client import HTTPClient
from clipbinder.models.scene import Asset, AssetType
from clipbinder.services.providers.base import SearchConstraints
from clipbinder.services.providers.download import stream_to_file, write_atomic

logger = logging.getLogger(__name__)

OPENAI_IMAGES_URL = "https://api.openai.com/v1/images/generations"

AI_PROVIDER = "ai"


class DALLEGenerator:
    """AI image generator using DALL-E 3, implementing ImageGenerator.

    Features:
    - Custom image generation from the scene keyword (or text)
    - Portrait format support for Shorts
    - Returned URLs are downloaded immediately (they expire)

    Example:
        >>> generator = DALLEGenerator(api_key="your-key")
        >>> asset = await generator.generate("city at night", Path("x.png"), SearchConstraints())
    """

    name = "dalle"

    def __init__(
        self,
        api_key: str | None = None,
        config: DALLEConfig | None = None,
        http_client: HTTPClient | None = None,
    ) -> None:
        """Initialize DALLEGenerator.

        Args:
            api_key: OpenAI API key (already resolved by the caller)
            config: DALL-E configuration
            http_client: Shared HTTP client (a private one is created otherwise)
        """
        self._api_key = api_key or None
        self._config = config or DALLEConfig()
        self._shared = http_client
        self._client: httpx.AsyncClient | None = None

        if not self._api_key:
            logger.warning("OpenAI API key not set, DALL-E generation will be skipped")

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key) and self._config.enabled

    async def _get_client(self) -> httpx.AsyncClient:
        """Get the shared client or create a private one."""
        if self._shared is not None:
            return self._shared.client
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=120.0, follow_redirects=True)
        return self._client

    def output_size(self, constraints: SearchConstraints) -> tuple[int, int]:
        """DALL-E 3 size for the requested orientation."""
        size = self._get_size_for_orientation(constraints.aspect_ratio)
        width, height = map(int, size.split("x"))
        return width, height

    async def generate(self, prompt: str, dest_path: Path, constraints: SearchConstraints) -> Asset:
        """Generate an image and install it at ``dest_path``.

        Args:
            prompt: Image description (scene keyword or text)
            dest_path: Final file path
            constraints: Orientation and timeout

        Returns:
            Installed asset with provider ``ai``

        Raises:
            NoCredentialsError: If no API key is configured
            GenerationError: On API, download or decoding errors
        """
        if not self.is_configured:
            raise NoCredentialsError(self.name)

        size = self._get_size_for_orientation(constraints.aspect_ratio)
        enhanced_prompt = self._enhance_prompt(prompt)
        client = await self._get_client()

        try:
            response = await client.post(
                OPENAI_IMAGES_URL,
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self._config.model,
                    "prompt": enhanced_prompt,
                    "n": 1,
                    "size": size,
                    "quality": self._config.quality,
                    "style": self._config.style,
                },
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"DALL-E API error: {e.response.status_code} - {e.response.text[:500]}")
            raise GenerationError(
                f"DALL-E generation failed with HTTP {e.response.status_code}",
                provider=self.name,
                prompt=prompt,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"DALL-E generation failed: {e}")
            raise GenerationError(
                f"DALL-E generation failed: {e}", provider=self.name, prompt=prompt
            ) from e
        except ValueError as e:
            raise GenerationError(
                f"DALL-E returned invalid JSON: {e}", provider=self.name, prompt=prompt
            ) from e

        images = data.get("data") or []
        if not images:
            raise GenerationError("DALL-E returned no image", provider=self.name, prompt=prompt)
        image_data = images[0]

        if image_data.get("b64_json"):
            try:
                written = write_atomic(dest_path, base64.b64decode(image_data["b64_json"]))
            except (binascii.Error, ValueError, OSError) as e:
                raise GenerationError(
                    f"Invalid image payload: {e}", provider=self.name, prompt=prompt
                ) from e
        elif image_data.get("url"):
            try:
                written = await stream_to_file(
                    client, image_data["url"], dest_path, provider=self.name
                )
            except (DownloadError, ConstraintViolationError) as e:
                raise GenerationError(
                    f"Downloading generated image failed: {e}", provider=self.name, prompt=prompt
                ) from e
        else:
            raise GenerationError("DALL-E response has no image", provider=self.name, prompt=prompt)

        width, height = map(int, size.split("x"))
        logger.info(f"Generated AI image for prompt: {prompt[:50]}")
        return Asset(
            path=dest_path,
            type=AssetType.IMAGE,
            provider=AI_PROVIDER,
            keyword=prompt,
            width=width,
            height=height,
            size_bytes=written,
            source_id=uuid.uuid4().hex[:10],
        )

    def _get_size_for_orientation(self, aspect_ratio: str) -> str:
        """Get DALL-E size parameter for orientation.

        Args:
            aspect_ratio: Desired orientation

        Returns:
            Size string (e.g., "1024x1792")
        """
        if aspect_ratio == "portrait":
            return "1024x1792"
        elif aspect_ratio == "landscape":
            return "1792x1024"
        else:
            return "1024x1024"

    def _enhance_prompt(self, prompt: str) -> str:
        """Append quality hints to the prompt."""
        if not self._config.prompt_suffix:
            return prompt
        return f"{prompt}, {self._config.prompt_suffix}"

    async def close(self) -> None:
        """Close the private HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()


__all__ = ["AI_PROVIDER", "DALLEGenerator"]
