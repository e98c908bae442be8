"""Pytest configuration and fixtures.

This module provides common fixtures used across all tests: scene and
candidate factories, a temporary media root, and in-memory provider fakes
implementing the StockMediaProvider and ImageGenerator protocols.
"""

import asyncio
from pathlib import Path

import pytest

from clipbinder.config.acquisition import AcquisitionConfig
from clipbinder.core.logging import setup_logging
from clipbinder.models.scene import Asset, AssetType, Scene
from clipbinder.services.assets.index import LocalAssetIndex
from clipbinder.services.providers.base import Candidate, SearchConstraints
from clipbinder.services.providers.download import partial_path, write_atomic

# Setup logging for tests
setup_logging()


class FakeStockProvider:
    """StockMediaProvider with canned results.

    Attributes:
        results: Candidates returned per media type
        search_errors: Errors raised by successive searches (None = succeed)
        fetch_errors: Errors raised by successive fetches (None = succeed)
        hang: When set, fetch writes a partial file and blocks until cancelled
    """

    def __init__(
        self,
        name: str = "pexels",
        results: dict[AssetType, list[Candidate]] | None = None,
        configured: bool = True,
        search_errors: list[Exception | None] | None = None,
        fetch_errors: list[Exception | None] | None = None,
        payload: bytes = b"\x00" * 2048,
        fetch_delay: float = 0.0,
        hang: bool = False,
    ) -> None:
        self.name = name
        self.results = results or {}
        self.configured = configured
        self.search_errors = list(search_errors or [])
        self.fetch_errors = list(fetch_errors or [])
        self.payload = payload
        self.fetch_delay = fetch_delay
        self.hang = hang
        self.search_calls: list[tuple[str, AssetType]] = []
        self.fetch_calls: list[str] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def search(
        self, query: str, constraints: SearchConstraints, media_type: AssetType
    ) -> list[Candidate]:
        self.search_calls.append((query, media_type))
        if self.search_errors:
            error = self.search_errors.pop(0)
            if error is not None:
                raise error
        return list(self.results.get(media_type, []))

    async def fetch(
        self,
        candidate: Candidate,
        dest_path: Path,
        constraints: SearchConstraints,
        on_progress=None,
    ) -> Asset:
        self.fetch_calls.append(candidate.source_id)
        if self.hang:
            part = partial_path(dest_path)
            part.write_bytes(b"partial")
            try:
                await asyncio.Event().wait()
            except BaseException:
                part.unlink(missing_ok=True)
                raise
        if self.fetch_delay:
            await asyncio.sleep(self.fetch_delay)
        if self.fetch_errors:
            error = self.fetch_errors.pop(0)
            if error is not None:
                raise error

        size = write_atomic(dest_path, self.payload)
        if on_progress is not None:
            on_progress(50.0)
            on_progress(100.0)
        return Asset(
            path=dest_path,
            type=candidate.asset_type,
            provider=self.name,
            keyword=candidate.keyword,
            width=candidate.width,
            height=candidate.height,
            size_bytes=size,
            source_id=candidate.source_id,
        )


class FakeImageGenerator:
    """ImageGenerator writing a small PNG-like payload."""

    def __init__(
        self,
        name: str = "dalle",
        configured: bool = True,
        errors: list[Exception | None] | None = None,
        size: tuple[int, int] = (1024, 1792),
    ) -> None:
        self.name = name
        self.configured = configured
        self.errors = list(errors or [])
        self.size = size
        self.prompts: list[str] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    def output_size(self, constraints: SearchConstraints) -> tuple[int, int]:
        return self.size

    async def generate(self, prompt: str, dest_path: Path, constraints: SearchConstraints) -> Asset:
        self.prompts.append(prompt)
        if self.errors:
            error = self.errors.pop(0)
            if error is not None:
                raise error
        size = write_atomic(dest_path, b"\x89PNG fake")
        return Asset(
            path=dest_path,
            type=AssetType.IMAGE,
            provider="ai",
            keyword=prompt,
            width=self.size[0],
            height=self.size[1],
            size_bytes=size,
            source_id="generated",
        )


@pytest.fixture
def fake_provider_cls() -> type[FakeStockProvider]:
    """Class of the in-memory stock provider fake."""
    return FakeStockProvider


@pytest.fixture
def fake_generator_cls() -> type[FakeImageGenerator]:
    """Class of the in-memory image generator fake."""
    return FakeImageGenerator


@pytest.fixture
def media_root(tmp_path: Path) -> Path:
    """Empty project media directory."""
    root = tmp_path / "media"
    root.mkdir()
    return root


@pytest.fixture
def asset_index(media_root: Path) -> LocalAssetIndex:
    """Index over the temporary media root."""
    return LocalAssetIndex(media_root)


@pytest.fixture
def make_scene():
    """Factory for scenes laid out back to back (2 seconds each)."""

    def _make(
        index: int,
        keyword: str | None = None,
        text: str | None = None,
        asset: Asset | None = None,
    ) -> Scene:
        return Scene(
            id=f"s{index}",
            start=index * 2.0,
            end=index * 2.0 + 2.0,
            text=text if text is not None else f"Scene {index} about {keyword or 'things'}",
            keyword=keyword,
            asset=asset,
        )

    return _make


@pytest.fixture
def make_asset(tmp_path: Path):
    """Factory for assets (files are not created)."""

    def _make(
        name: str,
        keyword: str | None = None,
        provider: str = "local",
        asset_type: AssetType = AssetType.IMAGE,
    ) -> Asset:
        return Asset(
            path=tmp_path / "pool" / name,
            type=asset_type,
            provider=provider,
            keyword=keyword,
            width=1080,
            height=1920,
        )

    return _make


@pytest.fixture
def make_candidate():
    """Factory for portrait candidates."""

    def _make(
        source_id: str,
        provider: str = "pexels",
        asset_type: AssetType = AssetType.VIDEO,
        keyword: str = "sunset",
        width: int = 1080,
        height: int = 1920,
        size_bytes: int | None = 2048,
        score: float = 0.5,
    ) -> Candidate:
        ext = "mp4" if asset_type == AssetType.VIDEO else "jpeg"
        return Candidate(
            provider=provider,
            source_id=source_id,
            url=f"https://cdn.example.com/{provider}/{source_id}.{ext}",
            asset_type=asset_type,
            width=width,
            height=height,
            size_bytes=size_bytes,
            keyword=keyword,
            score=score,
        )

    return _make


@pytest.fixture
def acquisition_config() -> AcquisitionConfig:
    """Acquisition config with short timeouts for tests."""
    return AcquisitionConfig.model_validate(
        {
            "constraints": {"max_bytes": 10_000},
            "retry": {
                "search_timeout": 2.0,
                "download_timeout": 2.0,
                "generation_timeout": 2.0,
            },
        }
    )
