"""Provider contracts and shared data structures.

The acquisition pipeline depends only on the two Protocols below, never on
a provider's concrete API shape:
- StockMediaProvider: search + fetch (video and photo tiers)
- ImageGenerator: generate (AI tier, no "no results" outcome)
"""

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from clipbinder.config.acquisition import AspectRatio, DownloadConstraints
from clipbinder.models.scene import Asset, AssetType

# Receives download/generation progress in percent (0-100)
ProgressCallback = Callable[[float], None]


@dataclass(frozen=True)
class SearchConstraints:
    """Constraints passed to providers for one search/fetch.

    Attributes:
        target_width: Preferred width
        target_height: Preferred height
        aspect_ratio: Required orientation ("any" disables the check)
        min_width: Minimum width
        min_height: Minimum height
        min_bytes: Minimum file size (0 disables)
        max_bytes: Maximum file size (None disables)
        per_page: Results requested per search
        timeout: Seconds allowed for one HTTP call
    """

    target_width: int = 1080
    target_height: int = 1920
    aspect_ratio: AspectRatio = "portrait"
    min_width: int = 0
    min_height: int = 0
    min_bytes: int = 0
    max_bytes: int | None = None
    per_page: int = 10
    timeout: float = 15.0

    @classmethod
    def from_config(cls, config: DownloadConstraints, timeout: float = 15.0) -> "SearchConstraints":
        """Build from the configured download constraints."""
        return cls(
            target_width=config.target_width,
            target_height=config.target_height,
            aspect_ratio=config.aspect_ratio,
            min_width=config.min_width,
            min_height=config.min_height,
            min_bytes=config.min_bytes,
            max_bytes=config.max_bytes,
            per_page=config.per_page,
            timeout=timeout,
        )

    def with_timeout(self, timeout: float) -> "SearchConstraints":
        return replace(self, timeout=timeout)

    def bytes_in_window(self, size: int | None) -> bool:
        """Check a known file size against the byte window."""
        if not size or size <= 0:
            return False
        if self.min_bytes and size < self.min_bytes:
            return False
        if self.max_bytes and size > self.max_bytes:
            return False
        return True


@dataclass
class Candidate:
    """Search hit that can be fetched.

    Attributes:
        provider: Provider name
        source_id: Identifier on the provider platform
        url: Download URL of the chosen variant
        asset_type: Video or image
        width: Variant width
        height: Variant height
        size_bytes: Variant size, when the provider reports it
        keyword: Query that produced the hit
        score: Metadata relevance score in [0, 1]
        metadata: Provider-specific extras (author, page URL, ...)
    """

    provider: str
    source_id: str
    url: str
    asset_type: AssetType
    width: int | None = None
    height: int | None = None
    size_bytes: int | None = None
    keyword: str | None = None
    score: float = 0.5
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def dedup_key(self) -> tuple[str, str]:
        return (self.provider, self.source_id)


def orientation_of(width: int, height: int) -> str:
    """Orientation label for a width/height pair."""
    if width == height:
        return "square"
    return "portrait" if height > width else "landscape"


def check_constraints(candidate: Candidate, constraints: SearchConstraints) -> list[str]:
    """Validate a candidate's known metadata against constraints.

    Unknown values (None) are not violations; the byte limit is enforced
    again while streaming.

    Returns:
        Human-readable violations, empty when the candidate is acceptable
    """
    violations: list[str] = []
    w, h = candidate.width, candidate.height

    if w and h:
        if constraints.aspect_ratio != "any" and orientation_of(w, h) != constraints.aspect_ratio:
            violations.append(f"orientation {orientation_of(w, h)} != {constraints.aspect_ratio}")
        if w < constraints.min_width or h < constraints.min_height:
            violations.append(
                f"resolution {w}x{h} below {constraints.min_width}x{constraints.min_height}"
            )

    size = candidate.size_bytes
    if size is not None:
        if constraints.max_bytes and size > constraints.max_bytes:
            violations.append(f"size {size} exceeds {constraints.max_bytes} bytes")
        if constraints.min_bytes and size < constraints.min_bytes:
            violations.append(f"size {size} below {constraints.min_bytes} bytes")

    return violations


def select_variant(
    variants: list[dict[str, Any]], constraints: SearchConstraints
) -> dict[str, Any] | None:
    """Pick the file variant closest to the target resolution.

    Only variants inside the byte window are considered; when none is, all
    variants are. Variants need ``url``, ``width`` and ``height``; ``size``
    is optional.

    Args:
        variants: Variant dicts
        constraints: Target resolution and byte window

    Returns:
        Best variant or None
    """
    usable = [v for v in variants if v.get("url") and v.get("width") and v.get("height")]
    if not usable:
        return None

    sized = [v for v in usable if constraints.bytes_in_window(v.get("size"))]
    pool = sized or usable

    def distance(v: dict[str, Any]) -> int:
        return abs(v["width"] - constraints.target_width) + abs(
            v["height"] - constraints.target_height
        )

    return min(pool, key=distance)


@runtime_checkable
class StockMediaProvider(Protocol):
    """Stock media search + fetch contract (video and photo tiers)."""

    @property
    def name(self) -> str: ...

    @property
    def is_configured(self) -> bool: ...

    async def search(
        self, query: str, constraints: SearchConstraints, media_type: AssetType
    ) -> list[Candidate]:
        """Search for candidates.

        Raises:
            NoCredentialsError: If the provider has no API key
            SearchError: On HTTP/transport errors (RateLimitError on 429)
        """
        ...

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
            ConstraintViolationError: If the stream exceeds the byte window
        """
        ...


@runtime_checkable
class ImageGenerator(Protocol):
    """AI image generation contract (terminal tier)."""

    @property
    def name(self) -> str: ...

    @property
    def is_configured(self) -> bool: ...

    def output_size(self, constraints: SearchConstraints) -> tuple[int, int]:
        """Pixel size ``generate`` will produce for these constraints."""
        ...

    async def generate(self, prompt: str, dest_path: Path, constraints: SearchConstraints) -> Asset:
        """Generate an image at ``dest_path``.

        Raises:
            NoCredentialsError: If the generator is not configured
            GenerationError: If generation fails
        """
        ...


__all__ = [
    "Candidate",
    "ImageGenerator",
    "ProgressCallback",
    "SearchConstraints",
    "StockMediaProvider",
    "check_constraints",
    "orientation_of",
    "select_variant",
]
