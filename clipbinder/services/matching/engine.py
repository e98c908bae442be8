"""Matching engine: assign locally available assets to scenes.

``match`` is pure and synchronous. It never touches the filesystem or the
network, never mutates its inputs and returns new Scene copies together
with AssignmentStats.

Algorithm:
1. Candidates are eligible scenes (non-blank text) without media, plus
   occupied scenes when ``overwrite`` is set and ``empty_only`` is not.
2. The pool is the asset list in insertion order (duplicate paths dropped).
   Without ``allow_duplicates`` every path bound to a scene is reserved for
   that scene, and each asset assigned during the run leaves the pool.
3. Candidates are processed by ``start`` ascending:
   a. ``by_keywords``: best Jaccard score >= ``min_score``; ties go to the
      earlier pool entry.
   b. Otherwise ``by_order``: the next unused pool asset, or a round-robin
      cursor over the pool when duplicates are allowed.
   c. Otherwise the scene is left for acquisition.
"""

from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

from clipbinder.core.exceptions import InvalidInputError
from clipbinder.core.logging import get_logger
from clipbinder.models.scene import Asset, AssignmentOptions, AssignmentStats, Scene
from clipbinder.services.matching.scorer import asset_tokens, jaccard, scene_tokens

logger = get_logger(__name__)


def validate_scenes(scenes: Sequence[Scene]) -> None:
    """Check the document-level scene contract.

    Raises:
        InvalidInputError: On duplicate ids or overlapping scenes
    """
    seen: set[str] = set()
    for scene in scenes:
        if scene.id in seen:
            raise InvalidInputError(f"Duplicate scene id: {scene.id}", field="id")
        seen.add(scene.id)

    ordered = sorted(scenes, key=lambda s: s.start)
    for prev, current in zip(ordered, ordered[1:]):
        if current.start < prev.end:
            raise InvalidInputError(
                f"Scenes {prev.id} and {current.id} overlap",
                field="start",
                context={"previous_end": prev.end, "start": current.start},
            )


def compute_stats(scenes: Iterable[Scene], new_assignments: int = 0) -> AssignmentStats:
    """Derive AssignmentStats from a scene list."""
    scenes = list(scenes)
    by_provider: Counter[str] = Counter()
    assigned = missing = 0
    for scene in scenes:
        if scene.is_occupied:
            assigned += 1
            by_provider[scene.asset.provider] += 1
        elif scene.is_eligible:
            missing += 1
    return AssignmentStats(
        total_scenes=len(scenes),
        assigned_count=assigned,
        missing_count=missing,
        new_assignments=new_assignments,
        by_provider=dict(by_provider),
    )


class MatchingEngine:
    """Assign local assets to scenes by keyword score and pool order.

    Example:
        >>> engine = MatchingEngine()
        >>> scenes, stats = engine.match(scenes, index.snapshot())
        >>> stats.missing_count
        2
    """

    def __init__(self, options: AssignmentOptions | None = None) -> None:
        """Initialize MatchingEngine.

        Args:
            options: Default options used when ``match`` gets none
        """
        self._options = options or AssignmentOptions()

    def match(
        self,
        scenes: Sequence[Scene],
        assets: Sequence[Asset],
        options: AssignmentOptions | Mapping[str, Any] | None = None,
    ) -> tuple[list[Scene], AssignmentStats]:
        """Assign assets to scenes.

        Args:
            scenes: Scenes of one document (any order)
            assets: Asset pool in insertion order
            options: Assignment policy (dicts are validated)

        Returns:
            Tuple of (new scene list in input order, stats)

        Raises:
            InvalidInputError: On duplicate ids or overlapping scenes
            pydantic.ValidationError: On malformed options
        """
        opts = self._resolve_options(options)
        validate_scenes(scenes)

        result = [scene.model_copy() for scene in scenes]
        order = sorted(range(len(scenes)), key=lambda i: scenes[i].start)
        candidates = [i for i in order if self._is_candidate(scenes[i], opts)]

        pool: list[Asset] = []
        seen_paths: set[Path] = set()
        for asset in assets:
            if asset.path not in seen_paths:
                seen_paths.add(asset.path)
                pool.append(asset)

        reserved: Counter[Path] = Counter()
        if not opts.allow_duplicates:
            reserved.update(s.asset.path for s in scenes if s.is_occupied)

        cursor = 0
        new_assignments = 0

        for i in candidates:
            scene = scenes[i]
            own = scene.asset.path if scene.is_occupied else None

            if opts.allow_duplicates:
                available = pool
            else:
                available = [a for a in pool if reserved[a.path] == 0 or a.path == own]

            chosen: Asset | None = None
            if opts.by_keywords:
                chosen = self._best_by_keyword(scene, available, opts.min_score)
            if chosen is None and opts.by_order and pool:
                if opts.allow_duplicates:
                    chosen = pool[cursor % len(pool)]
                    cursor += 1
                elif available:
                    chosen = available[0]

            if chosen is None:
                continue

            if not opts.allow_duplicates and chosen.path != own:
                reserved[chosen.path] += 1
                if own is not None:
                    reserved[own] -= 1

            if chosen.path != own:
                result[i] = scene.with_asset(chosen)
                new_assignments += 1

        stats = compute_stats(result, new_assignments)
        logger.info(
            "Matching complete",
            total_scenes=stats.total_scenes,
            candidates=len(candidates),
            new_assignments=new_assignments,
            missing=stats.missing_count,
        )
        return result, stats

    def recommend(
        self, scene: Scene, assets: Sequence[Asset], limit: int = 5
    ) -> list[tuple[Asset, float]]:
        """Rank assets for manual selection.

        Args:
            scene: Scene to find media for
            assets: Candidate assets
            limit: Maximum number of results

        Returns:
            (asset, score) pairs with score > 0, best first
        """
        tokens = scene_tokens(scene)
        scored = [(asset, jaccard(tokens, asset_tokens(asset))) for asset in assets]
        ranked = sorted((pair for pair in scored if pair[1] > 0), key=lambda p: -p[1])
        return ranked[: max(limit, 0)]

    def _resolve_options(
        self, options: AssignmentOptions | Mapping[str, Any] | None
    ) -> AssignmentOptions:
        if options is None:
            return self._options
        if isinstance(options, AssignmentOptions):
            return options
        return AssignmentOptions.model_validate(options)

    @staticmethod
    def _is_candidate(scene: Scene, opts: AssignmentOptions) -> bool:
        if not scene.is_eligible:
            return False
        if not scene.is_occupied:
            return True
        return opts.overwrite and not opts.empty_only

    @staticmethod
    def _best_by_keyword(
        scene: Scene, available: Sequence[Asset], min_score: float
    ) -> Asset | None:
        tokens = scene_tokens(scene)
        if not tokens:
            return None
        best: Asset | None = None
        best_score = -1.0
        for asset in available:
            value = jaccard(tokens, asset_tokens(asset))
            # strict > keeps the earlier pool entry on ties
            if value > best_score:
                best, best_score = asset, value
        if best_score < min_score:
            return None
        return best


def match(
    scenes: Sequence[Scene],
    assets: Sequence[Asset],
    options: AssignmentOptions | Mapping[str, Any] | None = None,
) -> tuple[list[Scene], AssignmentStats]:
    """Module-level shortcut for ``MatchingEngine().match``."""
    return MatchingEngine().match(scenes, assets, options)


def recommend(scene: Scene, assets: Sequence[Asset], limit: int = 5) -> list[tuple[Asset, float]]:
    """Module-level shortcut for ``MatchingEngine().recommend``."""
    return MatchingEngine().recommend(scene, assets, limit)


__all__ = ["MatchingEngine", "compute_stats", "match", "recommend", "validate_scenes"]
