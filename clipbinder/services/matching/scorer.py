"""Keyword scoring between scenes and assets.

Score = |scene tokens ∩ asset tokens| / |scene tokens ∪ asset tokens|
(Jaccard). Scene tokens come from the keyword, or from the subtitle text
when the scene has no keyword. Asset tokens come from the asset keyword,
or from its file name when the asset has none.
"""

from functools import lru_cache

from clipbinder.infrastructure.tokenizer import filename_tokens, keyword_tokens
from clipbinder.models.scene import Asset, Scene


@lru_cache(maxsize=4096)
def _cached_keyword_tokens(text: str) -> frozenset[str]:
    return frozenset(keyword_tokens(text))


@lru_cache(maxsize=4096)
def _cached_filename_tokens(stem: str) -> frozenset[str]:
    return frozenset(filename_tokens(stem))


def scene_tokens(scene: Scene) -> frozenset[str]:
    """Tokens describing what a scene needs."""
    if scene.search_keyword:
        tokens = _cached_keyword_tokens(scene.search_keyword)
        if tokens:
            return tokens
    return _cached_keyword_tokens(scene.text.strip())


def asset_tokens(asset: Asset) -> frozenset[str]:
    """Tokens describing what an asset shows."""
    if asset.keyword and asset.keyword.strip():
        tokens = _cached_keyword_tokens(asset.keyword.strip())
        if tokens:
            return tokens
    return _cached_filename_tokens(asset.path.stem)


def jaccard(a: frozenset[str] | set[str], b: frozenset[str] | set[str]) -> float:
    """Intersection over union, 0.0 when either side is empty."""
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def score(scene: Scene, asset: Asset) -> float:
    """Keyword score of ``asset`` for ``scene`` in [0, 1]."""
    return jaccard(scene_tokens(scene), asset_tokens(asset))


def clear_token_cache() -> None:
    _cached_keyword_tokens.cache_clear()
    _cached_filename_tokens.cache_clear()


__all__ = ["asset_tokens", "clear_token_cache", "jaccard", "scene_tokens", "score"]
