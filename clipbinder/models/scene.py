"""Scene and asset data models for media assignment.

This module defines the core data structures shared by the matching
engine and the acquisition pipeline:
- AssetType enum for video vs image media
- Asset, an immutable local media file with provenance metadata
- Scene, a timed subtitle span with an optional bound Asset
- AssignmentOptions and AssignmentStats for a matching run
"""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AssetType(str, Enum):
    """Kind of media file."""

    VIDEO = "video"
    IMAGE = "image"


class Asset(BaseModel):
    """Concrete local media file with provenance metadata.

    Assets are frozen. Replacing a scene's media means binding a new Asset,
    never editing the existing one.

    Attributes:
        path: Local file path
        type: Video or image
        provider: Origin tag (local, pexels, pixabay, ai, or user-supplied)
        keyword: Search term that produced it (None for user imports)
        width: Width in pixels
        height: Height in pixels
        size_bytes: File size
        source_id: Identifier on the provider platform

    Example:
        Asset(
            path=Path("media/video/sunset_s1a2b3c_pexels-123_1080x1920.mp4"),
            type=AssetType.VIDEO,
            provider="pexels",
            keyword="sunset",
            width=1080,
            height=1920,
            source_id="123",
        )
    """

    model_config = ConfigDict(frozen=True)

    path: Path
    type: AssetType
    provider: str = Field(default="local", min_length=1, description="Origin tag")
    keyword: str | None = Field(default=None, description="Search term that produced it")
    width: int | None = Field(default=None, ge=1, description="Width in pixels")
    height: int | None = Field(default=None, ge=1, description="Height in pixels")
    size_bytes: int | None = Field(default=None, ge=0, description="File size in bytes")
    source_id: str | None = Field(default=None, description="Provider-side identifier")

    @property
    def resolution(self) -> str | None:
        """Resolution as ``WxH`` (None when unknown)."""
        if self.width is None or self.height is None:
            return None
        return f"{self.width}x{self.height}"

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def is_video(self) -> bool:
        """Check if this asset is a video."""
        return self.type == AssetType.VIDEO

    @property
    def dedup_key(self) -> tuple[str, str] | None:
        """(provider, source_id) pair identifying the remote original."""
        if not self.source_id:
            return None
        return (self.provider, self.source_id)


class Scene(BaseModel):
    """Timed subtitle span that should end up bound to a visual asset.

    Attributes:
        id: Stable identifier within the document
        start: Start time in seconds
        end: End time in seconds (strictly after start)
        text: Subtitle text; blank scenes are never assigned media
        keyword: Search keyword supplied by keyword extraction
        asset: Bound media, if any
    """

    id: str = Field(..., min_length=1, description="Scene identifier")
    start: float = Field(..., ge=0.0, description="Start time in seconds")
    end: float = Field(..., description="End time in seconds")
    text: str = Field(default="", description="Subtitle text")
    keyword: str | None = Field(default=None, description="Search keyword")
    asset: Asset | None = Field(default=None, description="Bound media asset")

    @model_validator(mode="after")
    def validate_timing(self) -> "Scene":
        """Ensure end is after start."""
        if self.end <= self.start:
            raise ValueError(
                f"Scene {self.id}: end ({self.end}) must be after start ({self.start})"
            )
        return self

    @property
    def is_occupied(self) -> bool:
        """Check if the scene already has media bound."""
        return self.asset is not None and bool(str(self.asset.path))

    @property
    def is_eligible(self) -> bool:
        """Check if the scene should have media at all (non-blank text)."""
        return bool(self.text.strip())

    @property
    def search_keyword(self) -> str:
        """Stripped keyword, empty string when absent."""
        return (self.keyword or "").strip()

    @property
    def duration(self) -> float:
        return self.end - self.start

    def with_asset(self, asset: Asset | None) -> "Scene":
        """Return a copy of this scene bound to ``asset``."""
        return self.model_copy(update={"asset": asset})


class AssignmentOptions(BaseModel):
    """Policy for a matching run.

    Malformed values raise pydantic.ValidationError.

    Attributes:
        empty_only: Only consider scenes without media
        by_keywords: Score assets against scene keywords
        by_order: Fall back to the next unused asset in pool order
        overwrite: Allow replacing an existing assignment
        allow_duplicates: Allow one asset on several scenes in the same run
        min_score: Minimum keyword score for a match
    """

    model_config = ConfigDict(frozen=True)

    empty_only: bool = Field(default=True, description="Only fill empty scenes")
    by_keywords: bool = Field(default=True, description="Match by keyword score")
    by_order: bool = Field(default=True, description="Positional fallback")
    overwrite: bool = Field(default=False, description="Replace existing assignments")
    allow_duplicates: bool = Field(default=False, description="Reuse assets across scenes")
    min_score: float = Field(default=0.5, ge=0.0, le=1.0, description="Minimum match score")


class AssignmentStats(BaseModel):
    """Summary of a matching run.

    Attributes:
        total_scenes: Number of scenes in the document
        assigned_count: Scenes with media after the run
        missing_count: Eligible scenes still without media
        new_assignments: Scenes whose media changed during the run
        by_provider: Assigned scene count per asset provider
    """

    total_scenes: int = 0
    assigned_count: int = 0
    missing_count: int = 0
    new_assignments: int = 0
    by_provider: dict[str, int] = Field(default_factory=dict)


__all__ = [
    "Asset",
    "AssetType",
    "AssignmentOptions",
    "AssignmentStats",
    "Scene",
]
