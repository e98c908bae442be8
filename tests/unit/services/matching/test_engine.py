"""Unit tests for the matching engine."""

import pytest
from pydantic import ValidationError

from clipbinder.core.exceptions import InvalidInputError
from clipbinder.models.scene import AssignmentOptions, Scene
from clipbinder.services.matching.engine import MatchingEngine, match, recommend


@pytest.fixture
def engine() -> MatchingEngine:
    return MatchingEngine()


class TestKeywordMatching:
    """Tests for keyword-driven assignment."""

    def test_consumed_asset_is_not_reused(self, engine, make_scene, make_asset) -> None:
        """A lone matching asset goes to the first scene; repeats fall to acquisition."""
        scenes = [
            make_scene(i, kw) for i, kw in enumerate(["sunset", "ocean", "sunset", "city", "ocean"])
        ]
        sunset = make_asset("sunset.mp4", keyword="sunset")

        result, stats = engine.match(scenes, [sunset], AssignmentOptions(allow_duplicates=False))

        assert result[0].asset == sunset
        assert result[2].asset is None
        assert all(s.asset is None for s in result[1:])
        assert stats.new_assignments == 1
        assert stats.missing_count == 4
        assert stats.by_provider == {"local": 1}

    def test_best_score_wins(self, engine, make_scene, make_asset) -> None:
        scenes = [make_scene(0, "ocean sunset")]
        pool = [
            make_asset("a.jpg", keyword="sunset"),
            make_asset("b.jpg", keyword="ocean sunset"),
        ]

        result, _ = engine.match(scenes, pool, {"by_order": False})

        assert result[0].asset == pool[1]

    def test_ties_go_to_earlier_pool_entry(self, engine, make_scene, make_asset) -> None:
        scenes = [make_scene(0, "city")]
        pool = [make_asset("first.jpg", keyword="city"), make_asset("second.jpg", keyword="city")]

        result, _ = engine.match(scenes, pool)

        assert result[0].asset == pool[0]

    def test_min_score_threshold(self, engine, make_scene, make_asset) -> None:
        """Partial overlap below min_score is not a match."""
        scenes = [make_scene(0, "city ocean forest mountain")]
        pool = [make_asset("a.jpg", keyword="city")]

        result, _ = engine.match(scenes, pool, {"by_order": False, "min_score": 0.5})
        assert result[0].asset is None

        result, _ = engine.match(scenes, pool, {"by_order": False, "min_score": 0.2})
        assert result[0].asset == pool[0]

    def test_zero_min_score_accepts_zero_overlap(self, engine, make_scene, make_asset) -> None:
        scenes = [make_scene(0, "sunset")]
        pool = [make_asset("a.jpg", keyword="city"), make_asset("b.jpg", keyword="forest")]

        result, stats = engine.match(scenes, pool, {"by_order": False, "min_score": 0.0})

        assert result[0].asset == pool[0]
        assert stats.new_assignments == 1

    def test_asset_without_keyword_scores_its_file_name(
        self, engine, make_scene, make_asset
    ) -> None:
        scenes = [make_scene(0, "mountain")]
        pool = [make_asset("forest.jpg"), make_asset("mountain.jpg")]

        result, _ = engine.match(scenes, pool, {"by_order": False})

        assert result[0].asset == pool[1]

    def test_scene_without_keyword_uses_text(self, engine, make_scene, make_asset) -> None:
        scenes = [make_scene(0, None, text="forest")]
        pool = [make_asset("a.jpg", keyword="forest")]

        result, _ = engine.match(scenes, pool, {"by_order": False})

        assert result[0].asset == pool[0]


class TestOrderFallback:
    """Tests for positional assignment."""

    def test_next_unused_asset(self, engine, make_scene, make_asset) -> None:
        scenes = [make_scene(i, kw) for i, kw in enumerate(["city", "ocean", "forest"])]
        pool = [make_asset("a.jpg"), make_asset("b.jpg")]

        result, stats = engine.match(scenes, pool, {"by_keywords": False})

        assert [s.asset for s in result] == [pool[0], pool[1], None]
        assert stats.missing_count == 1

    def test_keyword_miss_falls_back_to_order(self, engine, make_scene, make_asset) -> None:
        scenes = [make_scene(0, "sunset"), make_scene(1, "ocean")]
        pool = [make_asset("sunset.jpg", keyword="sunset"), make_asset("x.jpg", keyword="city")]

        result, _ = engine.match(scenes, pool)

        assert result[0].asset == pool[0]
        assert result[1].asset == pool[1]

    def test_round_robin_with_duplicates(self, engine, make_scene, make_asset) -> None:
        scenes = [make_scene(i) for i in range(5)]
        pool = [make_asset("a.jpg"), make_asset("b.jpg")]

        result, _ = engine.match(
            scenes, pool, {"by_keywords": False, "allow_duplicates": True}
        )

        assert [s.asset.filename for s in result] == ["a.jpg", "b.jpg", "a.jpg", "b.jpg", "a.jpg"]

    def test_no_order_no_keywords_assigns_nothing(self, engine, make_scene, make_asset) -> None:
        scenes = [make_scene(0, "city")]
        pool = [make_asset("city.jpg", keyword="city")]
        result, stats = engine.match(scenes, pool, {"by_keywords": False, "by_order": False})

        assert result[0].asset is None
        assert stats.new_assignments == 0


class TestPolicy:
    """Tests for eligibility, overwrite and duplicates."""

    def test_blank_scenes_are_never_assigned(self, engine, make_scene, make_asset) -> None:
        scenes = [make_scene(0, "city", text="   ")]

        result, stats = engine.match(scenes, [make_asset("a.jpg", keyword="city")])

        assert result[0].asset is None
        assert stats.missing_count == 0

    def test_occupied_scenes_kept_without_overwrite(self, engine, make_scene, make_asset) -> None:
        existing = make_asset("old.jpg", keyword="city")
        scenes = [make_scene(0, "city", asset=existing)]

        result, stats = engine.match(
            scenes, [make_asset("new.jpg", keyword="city")], {"overwrite": True}
        )

        # empty_only still on
        assert result[0].asset == existing
        assert stats.new_assignments == 0

    def test_overwrite_replaces_assignment(self, engine, make_scene, make_asset) -> None:
        existing = make_asset("old.jpg", keyword="forest")
        new = make_asset("new.jpg", keyword="city")
        scenes = [make_scene(0, "city", asset=existing)]

        result, stats = engine.match(
            scenes, [existing, new], {"overwrite": True, "empty_only": False}
        )

        assert result[0].asset == new
        assert stats.new_assignments == 1

    def test_bound_assets_are_reserved(self, engine, make_scene, make_asset) -> None:
        """Without duplicates, an asset bound elsewhere is not reassigned."""
        taken = make_asset("sunset.jpg", keyword="sunset")
        scenes = [make_scene(0, "sunset", asset=taken), make_scene(1, "sunset")]

        result, _ = engine.match(scenes, [taken], {"by_order": False})

        assert result[1].asset is None

    def test_no_duplicates_across_run(self, engine, make_scene, make_asset) -> None:
        scenes = [make_scene(i, "ocean") for i in range(4)]
        pool = [make_asset(f"{i}.jpg", keyword="ocean") for i in range(3)]

        result, _ = engine.match(scenes, pool)

        paths = [s.asset.path for s in result if s.asset is not None]
        assert len(paths) == 3
        assert len(set(paths)) == 3

    def test_duplicate_pool_paths_count_once(self, engine, make_scene, make_asset) -> None:
        asset = make_asset("a.jpg", keyword="city")
        scenes = [make_scene(0, "city"), make_scene(1, "city")]

        result, _ = engine.match(scenes, [asset, asset])

        assert result[1].asset is None


class TestDeterminism:
    """Tests for purity and determinism."""

    def test_inputs_not_mutated_and_order_kept(self, engine, make_scene, make_asset) -> None:
        scenes = [make_scene(2, "city"), make_scene(0, "ocean"), make_scene(1, "forest")]
        pool = [make_asset("ocean.jpg", keyword="ocean")]

        result, _ = engine.match(scenes, pool, {"by_order": False})

        assert [s.id for s in result] == ["s2", "s0", "s1"]
        assert all(s.asset is None for s in scenes)
        assert result[1].asset == pool[0]

    def test_processing_follows_start_time(self, engine, make_scene, make_asset) -> None:
        """The earliest scene gets the asset regardless of input order."""
        scenes = [make_scene(3, "city"), make_scene(1, "city")]
        pool = [make_asset("city.jpg", keyword="city")]

        result, _ = engine.match(scenes, pool)

        assert result[0].asset is None
        assert result[1].asset == pool[0]

    def test_repeatable_and_idempotent(self, engine, make_scene, make_asset) -> None:
        scenes = [make_scene(i, kw) for i, kw in enumerate(["city", "ocean", "sunset"])]
        pool = [make_asset("x.jpg", keyword="ocean"), make_asset("y.jpg", keyword="city")]

        first, _ = engine.match(scenes, pool)
        second, _ = engine.match(scenes, pool)
        again, stats = engine.match(first, pool)

        assert first == second
        assert again == first
        assert stats.new_assignments == 0

    def test_module_level_match(self, make_scene, make_asset) -> None:
        scenes = [make_scene(0, "city")]
        result, stats = match(scenes, [make_asset("a.jpg", keyword="city")])

        assert result[0].asset is not None
        assert stats.assigned_count == 1


class TestValidation:
    """Tests for input contract errors."""

    def test_duplicate_ids(self, engine) -> None:
        scenes = [
            Scene(id="s1", start=0, end=1, text="a"),
            Scene(id="s1", start=1, end=2, text="b"),
        ]
        with pytest.raises(InvalidInputError):
            engine.match(scenes, [])

    def test_overlapping_scenes(self, engine) -> None:
        scenes = [
            Scene(id="s1", start=0, end=2, text="a"),
            Scene(id="s2", start=1.5, end=3, text="b"),
        ]
        with pytest.raises(InvalidInputError):
            engine.match(scenes, [])

    def test_touching_scenes_are_valid(self, engine) -> None:
        scenes = [
            Scene(id="s1", start=0, end=2, text="a"),
            Scene(id="s2", start=2, end=3, text="b"),
        ]
        result, _ = engine.match(scenes, [])
        assert len(result) == 2

    def test_malformed_options(self, engine, make_scene) -> None:
        with pytest.raises(ValidationError):
            engine.match([make_scene(0)], [], {"min_score": "high"})


class TestRecommend:
    """Tests for recommend."""

    def test_ranked_by_score(self, make_scene, make_asset) -> None:
        scene = make_scene(0, "ocean sunset")
        pool = [
            make_asset("a.jpg", keyword="ocean"),
            make_asset("b.jpg", keyword="ocean sunset"),
            make_asset("c.jpg", keyword="forest"),
        ]

        ranked = recommend(scene, pool)

        assert [a.filename for a, _ in ranked] == ["b.jpg", "a.jpg"]
        assert ranked[0][1] == 1.0
        assert ranked[1][1] == 0.5

    def test_limit(self, make_scene, make_asset) -> None:
        scene = make_scene(0, "city")
        pool = [make_asset(f"{i}.jpg", keyword="city") for i in range(10)]

        assert len(MatchingEngine().recommend(scene, pool, limit=3)) == 3
