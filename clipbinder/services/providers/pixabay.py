"""Pixabay API client for stock video and photo sourcing.

Pixabay provides free stock videos and images without attribution requirement.
API documentation: https://pixabay.com/api/docs/
"""

import logging
from pathlib import Path
from typing import Any

import httpx

from clipbinder.config.acquisition import PixabayConfig
from clipbinder.core.exceptions import NoCredentialsError, SearchError
from clipbinder.infrastructure.http_client import HTTPClient
from clipbinder.models.scene import Asset, AssetType
from clipbinder.services.providers.base import (
    Candidate,
    ProgressCallback,
    SearchConstraints,
    select_variant,
)
from clipbinder.services.providers.download import stream_to_file
from clipbinder.services.providers.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

# Longest side of ``largeImageURL``
LARGE_IMAGE_SIDE = 1280

VIDEO_SIZES = ("large", "medium", "small", "tiny")


def _calculate_metadata_score(query: str, result: dict[str, Any]) -> float:
    """Calculate metadata matching score between query and result.

    Uses tags and the page URL slug. Score is the share of query tokens
    found in that text.

    Args:
        query: Search query
        result: API result dict with potential metadata

    Returns:
        Score between 0.0 and 1.0
    """
    query_tokens = set(query.lower().split())
    if not query_tokens:
        return 0.0

    metadata_text = []

    tags = result.get("tags") or ""
    if tags:
        metadata_text.append(tags.lower().replace(",", " "))

    page_url = result.get("pageURL") or ""
    if page_url:
        metadata_text.append(page_url.replace("-", " ").replace("/", " ").lower())

    full_text = " ".join(metadata_text)
    if not full_text.strip():
        return 0.5

    matches = query_tokens & set(full_text.split())
    return min(1.0, len(matches) / len(query_tokens))


def _scaled_dimensions(
    width: int | None, height: int | None, longest: int
) -> tuple[int | None, int | None]:
    """Dimensions after fitting the longest side into ``longest``."""
    if not width or not height:
        return width, height
    side = max(width, height)
    if side <= longest:
        return width, height
    ratio = longest / side
    return round(width * ratio), round(height * ratio)


class PixabayClient:
    """Pixabay API client implementing StockMediaProvider.

    Features:
    - Video search (``/api/videos/``) across large/medium/small/tiny renditions
    - Photo search (``/api/``)
    - 100 requests per minute; 429 answers go through RateLimiter

    Example:
        >>> client = PixabayClient(api_key="your-key")
        >>> hits = await client.search("ocean", SearchConstraints(), AssetType.IMAGE)
    """

    name = "pixabay"

    def __init__(
        self,
        api_key: str | None = None,
        config: PixabayConfig | None = None,
        http_client: HTTPClient | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        """Initialize PixabayClient.

        Args:
            api_key: Pixabay API key (already resolved by the caller)
            config: Pixabay configuration
            http_client: Shared HTTP client (a private one is created otherwise)
            rate_limiter: 429 handling state
        """
        self._api_key = api_key or None
        self._config = config or PixabayConfig()
        self._shared = http_client
        self._client: httpx.AsyncClient | None = None
        self._limiter = rate_limiter or RateLimiter(self.name)

        if not self._api_key:
            logger.warning("Pixabay API key not set, Pixabay search will be skipped")

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key) and self._config.enabled

    async def _get_client(self) -> httpx.AsyncClient:
        """Get the shared client or create a private one."""
        if self._shared is not None:
            return self._shared.client
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=30.0, follow_redirects=True)
        return self._client

    async def search(
        self, query: str, constraints: SearchConstraints, media_type: AssetType
    ) -> list[Candidate]:
        """Search videos or photos.

        Raises:
            NoCredentialsError: If no API key is configured
            SearchError: On HTTP/transport errors (RateLimitError on 429) or an
                unexpected response shape
        """
        try:
            if media_type == AssetType.VIDEO:
                return await self.search_videos(query, constraints)
            return await self.search_photos(query, constraints)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Unexpected Pixabay payload for query {query!r}: {e}")
            raise SearchError(
                f"Pixabay returned an unexpected payload: {e}", provider=self.name
            ) from e

    def _map_orientation(self, aspect_ratio: str) -> str:
        """Map orientation to Pixabay's parameter.

        Pixabay uses: horizontal, vertical, all
        """
        mapping = {
            "portrait": "vertical",
            "landscape": "horizontal",
        }
        return mapping.get(aspect_ratio, "all")

    def _base_params(self, query: str, constraints: SearchConstraints) -> dict[str, Any]:
        if not self.is_configured or self._api_key is None:
            raise NoCredentialsError(self.name)
        params: dict[str, Any] = {
            "key": self._api_key,
            "q": query,
            # Pixabay rejects per_page below 3
            "per_page": max(3, min(constraints.per_page, 200)),
            "safesearch": "true" if self._config.safesearch else "false",
        }
        orientation = self._map_orientation(constraints.aspect_ratio)
        if orientation != "all":
            params["orientation"] = orientation
        return params

    async def _get_json(self, path: str, params: dict[str, Any], timeout: float) -> dict[str, Any]:
        client = await self._get_client()
        url = f"{self._config.api_base}{path}"

        try:
            response = await self._limiter.request(
                lambda: client.get(url, params=params, timeout=timeout)
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Pixabay API error: {e.response.status_code} - {e.response.text[:500]}")
            raise SearchError(
                f"Pixabay search failed with HTTP {e.response.status_code}",
                provider=self.name,
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Pixabay search failed: {e}")
            raise SearchError(f"Pixabay search failed: {e}", provider=self.name) from e
        except ValueError as e:
            raise SearchError(f"Pixabay returned invalid JSON: {e}", provider=self.name) from e

        return data if isinstance(data, dict) else {}

    async def search_videos(self, query: str, constraints: SearchConstraints) -> list[Candidate]:
        """Search for stock videos, picking the rendition closest to the target."""
        params = self._base_params(query, constraints)
        params["video_type"] = "all"
        data = await self._get_json("/videos/", params, constraints.timeout)

        candidates: list[Candidate] = []
        for video in data.get("hits") or []:
            renditions = video.get("videos") or {}
            variants = [
                {
                    "url": renditions[size].get("url"),
                    "width": renditions[size].get("width") or 0,
                    "height": renditions[size].get("height") or 0,
                    "size": renditions[size].get("size") or 0,
                    "quality": size,
                }
                for size in VIDEO_SIZES
                if isinstance(renditions.get(size), dict)
            ]
            best = select_variant(variants, constraints)
            if best is None:
                continue

            candidates.append(
                Candidate(
                    provider=self.name,
                    source_id=str(video.get("id")),
                    url=best["url"],
                    asset_type=AssetType.VIDEO,
                    width=best["width"],
                    height=best["height"],
                    size_bytes=best["size"] or None,
                    keyword=query,
                    score=_calculate_metadata_score(query, video),
                    metadata={
                        "author": video.get("user"),
                        "page_url": video.get("pageURL"),
                        "duration": video.get("duration"),
                        "quality": best["quality"],
                    },
                )
            )

        logger.info(f"Found {len(candidates)} Pixabay videos for query: {query}")
        return candidates

    async def search_photos(self, query: str, constraints: SearchConstraints) -> list[Candidate]:
        """Search for stock photos (``largeImageURL`` renditions)."""
        params = self._base_params(query, constraints)
        params["image_type"] = self._config.image_type
        data = await self._get_json("/", params, constraints.timeout)

        candidates: list[Candidate] = []
        for photo in data.get("hits") or []:
            url = photo.get("largeImageURL") or photo.get("webformatURL")
            if not url:
                continue

            width, height = _scaled_dimensions(
                photo.get("imageWidth"), photo.get("imageHeight"), LARGE_IMAGE_SIDE
            )
            candidates.append(
                Candidate(
                    provider=self.name,
                    source_id=str(photo.get("id")),
                    url=url,
                    asset_type=AssetType.IMAGE,
                    width=width,
                    height=height,
                    keyword=query,
                    score=_calculate_metadata_score(query, photo),
                    metadata={
                        "author": photo.get("user"),
                        "page_url": photo.get("pageURL"),
                        "tags": photo.get("tags"),
                    },
                )
            )

        logger.info(f"Found {len(candidates)} Pixabay photos for query: {query}")
        return candidates

    async def fetch(
        self,
        candidate: Candidate,
        dest_path: Path,
        constraints: SearchConstraints,
        on_progress: ProgressCallback | None = None,
    ) -> Asset:
        """Download a candidate to ``dest_path``.

        Raises:
            DownloadError: On HTTP/transport errors
            ConstraintViolationError: If the body is outside the byte window
        """
        client = await self._get_client()
        size = await stream_to_file(
            client,
            candidate.url,
            dest_path,
            provider=self.name,
            min_bytes=constraints.min_bytes,
            max_bytes=constraints.max_bytes,
            on_progress=on_progress,
        )
        return Asset(
            path=dest_path,
            type=candidate.asset_type,
            provider=self.name,
            keyword=candidate.keyword,
            width=candidate.width or None,
            height=candidate.height or None,
            size_bytes=size,
            source_id=candidate.source_id,
        )

    async def close(self) -> None:
        """Close the private HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()


__all__ = ["PixabayClient"]
