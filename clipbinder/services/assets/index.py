"""Local asset index.

The index is simply the media files present under the project's media
root plus the metadata derivable from their names:

    <media_root>/video/   *.mp4 *.mov *.webm *.mkv
    <media_root>/images/  *.jpg *.jpeg *.png *.webp

Files following the naming scheme in ``naming`` carry keyword, provider,
source id and resolution. Other files are indexed as ``local`` assets
without a keyword (matching scores their file name instead); image
dimensions are then read with Pillow.
"""

from pathlib import Path

from PIL import Image

from clipbinder.core.logging import get_logger
from clipbinder.models.scene import Asset, AssetType
from clipbinder.services.assets.naming import parse_filename

logger = get_logger(__name__)

VIDEO_DIR = "video"
IMAGE_DIR = "images"

VIDEO_EXTENSIONS = frozenset({".mp4", ".mov", ".webm", ".mkv"})
IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".webp"})

PARTIAL_SUFFIX = ".part"


class LocalAssetIndex:
    """Assets available under a project media root.

    The index keeps assets in insertion order: scanned files sorted by name,
    then registered assets in registration order. Matching reads a
    ``snapshot()``; acquisition workers ``register()`` new files.

    Example:
        >>> index = LocalAssetIndex(Path("media"))
        >>> index.scan()
        >>> [a.filename for a in index.find("sunset")]
        ['sunset_s1a2b3c_pexels-123_1080x1920.mp4']
    """

    def __init__(self, media_root: Path | str) -> None:
        """Initialize LocalAssetIndex.

        Args:
            media_root: Directory containing ``video/`` and ``images/``
        """
        self.media_root = Path(media_root)
        self._assets: dict[Path, Asset] = {}
        self._source_keys: set[tuple[str, str]] = set()

    def directory_for(self, asset_type: AssetType) -> Path:
        """Install directory for an asset type (created on demand)."""
        name = VIDEO_DIR if asset_type == AssetType.VIDEO else IMAGE_DIR
        path = self.media_root / name
        path.mkdir(parents=True, exist_ok=True)
        return path

    def scan(self) -> list[Asset]:
        """Rebuild the index from the media directories.

        Returns:
            Snapshot of indexed assets
        """
        self._assets.clear()
        self._source_keys.clear()

        for dirname, asset_type, extensions in (
            (VIDEO_DIR, AssetType.VIDEO, VIDEO_EXTENSIONS),
            (IMAGE_DIR, AssetType.IMAGE, IMAGE_EXTENSIONS),
        ):
            directory = self.media_root / dirname
            if not directory.is_dir():
                continue
            for path in sorted(directory.iterdir(), key=lambda p: p.name):
                if not path.is_file() or path.suffix.lower() not in extensions:
                    continue
                self._add(self.asset_from_path(path, asset_type))

        logger.info("Asset index scanned", media_root=str(self.media_root), count=len(self._assets))
        return self.snapshot()

    def asset_from_path(self, path: Path, asset_type: AssetType) -> Asset:
        """Derive an Asset from a file on disk.

        Args:
            path: Media file
            asset_type: Video or image

        Returns:
            Asset with metadata from the file name (or image header)
        """
        size_bytes = path.stat().st_size if path.exists() else None
        parsed = parse_filename(path.stem)
        if parsed is not None:
            return Asset(
                path=path,
                type=asset_type,
                provider=parsed.provider,
                keyword=parsed.keyword,
                width=parsed.width or None,
                height=parsed.height or None,
                size_bytes=size_bytes,
                source_id=parsed.source_id,
            )

        width = height = None
        if asset_type == AssetType.IMAGE:
            width, height = self._read_image_size(path)
        return Asset(
            path=path,
            type=asset_type,
            provider="local",
            keyword=None,
            width=width,
            height=height,
            size_bytes=size_bytes,
        )

    @staticmethod
    def _read_image_size(path: Path) -> tuple[int | None, int | None]:
        try:
            with Image.open(path) as img:
                return img.size
        except OSError as e:
            logger.warning("Could not read image size", path=str(path), error=str(e))
            return None, None

    def register(self, asset: Asset) -> None:
        """Add an installed asset (no-op if its path is already indexed)."""
        if asset.path in self._assets:
            return
        self._add(asset)
        logger.debug("Asset registered", path=str(asset.path), provider=asset.provider)

    def _add(self, asset: Asset) -> None:
        self._assets[asset.path] = asset
        if asset.dedup_key is not None:
            self._source_keys.add(asset.dedup_key)

    def has_source(self, provider: str, source_id: str) -> bool:
        """Check if a remote original is already installed."""
        return (provider, source_id) in self._source_keys

    def find(self, keyword: str) -> list[Asset]:
        """Assets whose keyword equals ``keyword`` (case-insensitive)."""
        needle = keyword.strip().lower()
        return [a for a in self._assets.values() if (a.keyword or "").lower() == needle]

    def snapshot(self) -> list[Asset]:
        """Copy of the indexed assets in insertion order."""
        return list(self._assets.values())

    @property
    def assets(self) -> list[Asset]:
        return self.snapshot()

    def __len__(self) -> int:
        return len(self._assets)

    def __contains__(self, path: object) -> bool:
        return path in self._assets


__all__ = [
    "IMAGE_DIR",
    "IMAGE_EXTENSIONS",
    "LocalAssetIndex",
    "PARTIAL_SUFFIX",
    "VIDEO_DIR",
    "VIDEO_EXTENSIONS",
]
