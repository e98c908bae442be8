"""Local asset index and file naming."""

from clipbinder.services.assets.index import LocalAssetIndex
from clipbinder.services.assets.naming import build_filename, parse_filename, safe_component

__all__ = ["LocalAssetIndex", "build_filename", "parse_filename", "safe_component"]
