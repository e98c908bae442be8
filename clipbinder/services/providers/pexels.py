"""Pexels API client for stock video and photo sourcing.

Pexels provides free stock videos and images with attribution.
API documentation: https://www.pexels.com/api/documentation/
"""

import logging
from pathlib import Path
from typing import Any

import httpx

from clipbinder.config.acquisition import PexelsConfig
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


def _calculate_metadata_score(query: str, result: dict[str, Any]) -> float:
    """Calculate metadata matching score between query and result.

    Uses the page URL slug, alt text and author name. Score is the share of
    query tokens found in that text.

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

    # Page URLs carry a slug like "pexels-photo-1234-mountain-sunset"
    url = result.get("url") or ""
    if url:
        metadata_text.append(url.replace("-", " ").replace("/", " ").lower())

    author = (result.get("user") or {}).get("name", "") or result.get("photographer", "")
    if author:
        metadata_text.append(author.lower())

    alt = result.get("alt") or ""
    if alt:
        metadata_text.append(alt.lower())

    full_text = " ".join(metadata_text)
    if not full_text.strip():
        return 0.5

    matches = query_tokens & set(full_text.split())
    return min(1.0, len(matches) / len(query_tokens))


class PexelsClient:
    """Pexels API client implementing StockMediaProvider.

    Features:
    - Video search (``/videos/search``) with per-hit variant selection
    - Photo search (``/v1/search``)
    - Shared 429 cool-down via RateLimiter

    Example:
        >>> client = PexelsClient(api_key="your-key")
        >>> hits = await client.search("sunset", SearchConstraints(), AssetType.VIDEO)
        >>> asset = await client.fetch(hits[0], Path("media/video/x.mp4"), SearchConstraints())
    """

    name = "pexels"

    def __init__(
        self,
        api_key: str | None = None,
        config: PexelsConfig | None = None,
        http_client: HTTPClient | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        """Initialize PexelsClient.

        Args:
            api_key: Pexels API key (already resolved by the caller)
            config: Pexels configuration
            http_client: Shared HTTP client (a private one is created otherwise)
            rate_limiter: 429 handling state
        """
        self._api_key = api_key or None
        self._config = config or PexelsConfig()
        self._shared = http_client
        self._client: httpx.AsyncClient | None = None
        self._limiter = rate_limiter or RateLimiter(self.name)

        if not self._api_key:
            logger.warning("Pexels API key not set, Pexels search will be skipped")

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

    def _require_key(self) -> str:
        if not self.is_configured or self._api_key is None:
            raise NoCredentialsError(self.name)
        return self._api_key

    async def search(
        self, query: str, constraints: SearchConstraints, media_type: AssetType
    ) -> list[Candidate]:
        """Search videos or photos.

        Args:
            query: Search query
            constraints: Target resolution, orientation, byte window
            media_type: VIDEO or IMAGE

        Returns:
            Candidates in API order

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
            logger.error(f"Unexpected Pexels payload for query {query!r}: {e}")
            raise SearchError(
                f"Pexels returned an unexpected payload: {e}", provider=self.name
            ) from e

    async def _get_json(self, path: str, params: dict[str, Any], timeout: float) -> dict[str, Any]:
        api_key = self._require_key()
        client = await self._get_client()
        url = f"{self._config.api_base}{path}"

        try:
            response = await self._limiter.request(
                lambda: client.get(
                    url, params=params, headers={"Authorization": api_key}, timeout=timeout
                )
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Pexels API error: {e.response.status_code} - {e.response.text[:500]}")
            raise SearchError(
                f"Pexels search failed with HTTP {e.response.status_code}",
                provider=self.name,
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Pexels search failed: {e}")
            raise SearchError(f"Pexels search failed: {e}", provider=self.name) from e
        except ValueError as e:
            raise SearchError(f"Pexels returned invalid JSON: {e}", provider=self.name) from e

        return data if isinstance(data, dict) else {}

    def _base_params(self, query: str, constraints: SearchConstraints) -> dict[str, Any]:
        params: dict[str, Any] = {"query": query, "per_page": min(constraints.per_page, 80)}
        if constraints.aspect_ratio != "any":
            params["orientation"] = constraints.aspect_ratio
        return params

    async def search_videos(self, query: str, constraints: SearchConstraints) -> list[Candidate]:
        """Search for stock videos.

        Each hit contributes the MP4 variant closest to the target resolution
        among variants inside the byte window (all variants if none is).
        """
        data = await self._get_json(
            "/videos/search", self._base_params(query, constraints), constraints.timeout
        )

        candidates: list[Candidate] = []
        for video in data.get("videos") or []:
            variants = [
                {
                    "url": f.get("link"),
                    "width": f.get("width") or 0,
                    "height": f.get("height") or 0,
                    "size": f.get("file_size") or 0,
                    "quality": f.get("quality") or "",
                }
                for f in video.get("video_files") or []
                if str(f.get("file_type") or "video/mp4").lower() == "video/mp4"
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
                        "author": (video.get("user") or {}).get("name"),
                        "page_url": video.get("url"),
                        "duration": video.get("duration"),
                        "quality": best["quality"],
                    },
                )
            )

        logger.info(f"Found {len(candidates)} Pexels videos for query: {query}")
        return candidates

    async def search_photos(self, query: str, constraints: SearchConstraints) -> list[Candidate]:
        """Search for stock photos."""
        data = await self._get_json(
            "/v1/search", self._base_params(query, constraints), constraints.timeout
        )

        candidates: list[Candidate] = []
        for photo in data.get("photos") or []:
            src = photo.get("src") or {}
            url = src.get("large2x") or src.get("large") or src.get("original")
            if not url:
                continue

            candidates.append(
                Candidate(
                    provider=self.name,
                    source_id=str(photo.get("id")),
                    url=url,
                    asset_type=AssetType.IMAGE,
                    width=photo.get("width"),
                    height=photo.get("height"),
                    keyword=query,
                    score=_calculate_metadata_score(query, photo),
                    metadata={
                        "author": photo.get("photographer"),
                        "page_url": photo.get("url"),
                        "avg_color": photo.get("avg_color"),
                    },
                )
            )

        logger.info(f"Found {len(candidates)} Pexels photos for query: {query}")
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


__all__ = ["PexelsClient"]
