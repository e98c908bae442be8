"""Unit tests for the per-scene acquisition pipeline."""

import asyncio

import pytest

from clipbinder.config.acquisition import OrchestratorConfig
from clipbinder.core.exceptions import (
    ConstraintViolationError,
    DownloadError,
    GenerationError,
    OperationCancelled,
    SceneAcquisitionFailed,
    SearchError,
)
from clipbinder.models.job import AcquisitionState, DownloadJob, JobStatus, MediaTier
from clipbinder.models.scene import Asset, AssetType
from clipbinder.services.acquisition.cancellation import CancelToken
from clipbinder.services.acquisition.pipeline import AcquisitionPipeline, SceneRun
from clipbinder.services.acquisition.tiers import build_transitions, resolve_tiers


@pytest.fixture
def generator(fake_generator_cls):
    return fake_generator_cls()


@pytest.fixture
def scene(make_scene):
    return make_scene(1, keyword="sunset")


class TestWaterfall:
    """Tests for tier fall-through."""

    @pytest.mark.asyncio
    async def test_video_tier_wins(
        self, asset_index, media_root, acquisition_config, scene, generator,
        fake_provider_cls, make_candidate,
    ) -> None:
        provider = fake_provider_cls(results={AssetType.VIDEO: [make_candidate("v1")]})
        pipeline = AcquisitionPipeline(asset_index, [provider], [generator], acquisition_config)
        job = DownloadJob(scene_id=scene.id, keyword=scene.search_keyword)

        asset = await pipeline.acquire(scene, job=job)

        assert asset.provider == "pexels"
        assert asset.type == AssetType.VIDEO
        assert asset.path.parent == media_root / "video"
        assert asset.path.exists()
        assert asset.filename.startswith("sunset_")
        assert asset_index.has_source("pexels", "v1")
        assert generator.prompts == []

        assert job.state == AcquisitionState.DONE
        assert job.status == JobStatus.COMPLETED
        assert job.tier == MediaTier.VIDEO
        assert job.filename == asset.filename
        assert job.progress_percent == 100.0

    @pytest.mark.asyncio
    async def test_empty_results_fall_through_to_ai(
        self, asset_index, media_root, acquisition_config, scene, generator, fake_provider_cls
    ) -> None:
        provider = fake_provider_cls()
        pipeline = AcquisitionPipeline(asset_index, [provider], [generator], acquisition_config)
        job = DownloadJob(scene_id=scene.id, keyword="sunset")

        asset = await pipeline.acquire(scene, job=job)

        assert provider.search_calls == [("sunset", AssetType.VIDEO), ("sunset", AssetType.IMAGE)]
        assert generator.prompts == ["sunset"]
        assert asset.provider == "ai"
        assert asset.keyword == "sunset"
        assert asset.source_id != "generated"
        assert len(asset.source_id) == 10
        assert "_ai-" in asset.filename
        assert asset.path.parent == media_root / "images"
        assert asset_index.has_source("ai", asset.source_id)
        assert job.tier == MediaTier.AI

    @pytest.mark.asyncio
    async def test_oversized_photo_is_never_downloaded(
        self, asset_index, acquisition_config, scene, generator, fake_provider_cls, make_candidate
    ) -> None:
        """A photo above max_bytes is rejected before any download."""
        photo = make_candidate("p1", asset_type=AssetType.IMAGE, size_bytes=50_000)
        provider = fake_provider_cls(results={AssetType.IMAGE: [photo]})
        pipeline = AcquisitionPipeline(asset_index, [provider], [generator], acquisition_config)

        asset = await pipeline.acquire(scene)

        assert provider.fetch_calls == []
        assert asset.provider == "ai"

    @pytest.mark.asyncio
    async def test_stock_tiers_skipped_without_keyword(
        self, asset_index, acquisition_config, make_scene, generator, fake_provider_cls
    ) -> None:
        scene = make_scene(1, text="A quiet moment")
        provider = fake_provider_cls()
        pipeline = AcquisitionPipeline(asset_index, [provider], [generator], acquisition_config)

        asset = await pipeline.acquire(scene)

        assert provider.search_calls == []
        assert generator.prompts == ["A quiet moment"]
        assert asset.keyword == "A quiet moment"

    @pytest.mark.asyncio
    async def test_unconfigured_providers_are_ignored(
        self, asset_index, acquisition_config, scene, generator, fake_provider_cls, make_candidate
    ) -> None:
        provider = fake_provider_cls(
            results={AssetType.VIDEO: [make_candidate("v1")]}, configured=False
        )
        pipeline = AcquisitionPipeline(asset_index, [provider], [generator], acquisition_config)

        asset = await pipeline.acquire(scene)

        assert provider.search_calls == []
        assert asset.provider == "ai"

    @pytest.mark.asyncio
    async def test_second_provider_after_search_errors(
        self, asset_index, acquisition_config, scene, generator, fake_provider_cls, make_candidate
    ) -> None:
        failing = fake_provider_cls(
            search_errors=[SearchError("down", "pexels"), SearchError("down", "pexels")]
        )
        backup = fake_provider_cls(
            name="pixabay",
            results={AssetType.VIDEO: [make_candidate("77", provider="pixabay")]},
        )
        pipeline = AcquisitionPipeline(
            asset_index, [failing, backup], [generator], acquisition_config
        )

        asset = await pipeline.acquire(scene)

        assert len(failing.search_calls) == 2
        assert asset.provider == "pixabay"
        assert asset.source_id == "77"

    @pytest.mark.asyncio
    async def test_crashing_provider_falls_through(
        self, asset_index, acquisition_config, scene, generator, fake_provider_cls
    ) -> None:
        """A provider bug is a tier-local failure; the AI tier still runs."""
        broken = fake_provider_cls(
            search_errors=[
                AttributeError("'NoneType' object has no attribute 'get'"),
                AttributeError("'NoneType' object has no attribute 'get'"),
            ]
        )
        pipeline = AcquisitionPipeline(asset_index, [broken], [generator], acquisition_config)
        job = DownloadJob(scene_id=scene.id)

        asset = await pipeline.acquire(scene, job=job)

        # Faults are not retried
        assert broken.search_calls == [("sunset", AssetType.VIDEO), ("sunset", AssetType.IMAGE)]
        assert asset.provider == "ai"
        assert generator.prompts == ["sunset"]
        assert job.status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_crashing_generator_tries_next_one(
        self, asset_index, acquisition_config, make_scene, fake_generator_cls
    ) -> None:
        broken = fake_generator_cls(name="sd", errors=[TypeError("bad response")])
        backup = fake_generator_cls()
        pipeline = AcquisitionPipeline(asset_index, [], [broken, backup], acquisition_config)

        asset = await pipeline.acquire(make_scene(0, keyword="city"))

        assert broken.prompts == ["city"]
        assert backup.prompts == ["city"]
        assert asset.provider == "ai"

    @pytest.mark.asyncio
    async def test_tier_order_is_configurable(
        self, asset_index, acquisition_config, scene, generator, fake_provider_cls
    ) -> None:
        config = acquisition_config.model_copy(update={"tier_order": ["photo", "ai"]})
        provider = fake_provider_cls()
        pipeline = AcquisitionPipeline(asset_index, [provider], [generator], config)

        await pipeline.acquire(scene)

        assert provider.search_calls == [("sunset", AssetType.IMAGE)]
        assert [t.name for t in pipeline.tiers] == ["photo", "ai"]


class TestFailure:
    """Tests for exhausted waterfalls."""

    @pytest.mark.asyncio
    async def test_all_tiers_fail(
        self, asset_index, acquisition_config, scene, fake_generator_cls, fake_provider_cls
    ) -> None:
        generator = fake_generator_cls(
            errors=[GenerationError("policy", "dalle"), GenerationError("policy", "dalle")]
        )
        pipeline = AcquisitionPipeline(
            asset_index, [fake_provider_cls()], [generator], acquisition_config
        )
        job = DownloadJob(scene_id=scene.id, keyword="sunset")

        with pytest.raises(SceneAcquisitionFailed) as exc_info:
            await pipeline.acquire(scene, job=job)

        assert set(exc_info.value.attempts) == {"video", "photo", "ai"}
        assert "no results" in exc_info.value.attempts["video"]
        assert len(generator.prompts) == 2
        assert job.state == AcquisitionState.FAILED
        assert job.status == JobStatus.FAILED
        assert job.error == str(exc_info.value)
        assert len(asset_index) == 0

    @pytest.mark.asyncio
    async def test_nothing_configured(self, asset_index, acquisition_config, scene) -> None:
        pipeline = AcquisitionPipeline(asset_index, [], [], acquisition_config)

        with pytest.raises(SceneAcquisitionFailed) as exc_info:
            await pipeline.acquire(scene)

        assert exc_info.value.attempts == {
            "video": "skipped (no provider configured)",
            "photo": "skipped (no provider configured)",
            "ai": "skipped (no generator configured)",
        }


class TestCandidates:
    """Tests for candidate selection and retries."""

    @pytest.mark.asyncio
    async def test_installed_and_claimed_sources_are_skipped(
        self, asset_index, acquisition_config, scene, generator, fake_provider_cls,
        make_candidate, tmp_path,
    ) -> None:
        asset_index.register(
            Asset(
                path=tmp_path / "old.mp4",
                type=AssetType.VIDEO,
                provider="pexels",
                keyword="sunset",
                source_id="v1",
            )
        )
        candidates = [make_candidate(sid) for sid in ("v1", "v2", "v3")]
        provider = fake_provider_cls(results={AssetType.VIDEO: candidates})
        pipeline = AcquisitionPipeline(asset_index, [provider], [generator], acquisition_config)
        claimed = {("pexels", "v2")}

        asset = await pipeline.acquire(scene, claimed=claimed)

        assert provider.fetch_calls == ["v3"]
        assert asset.source_id == "v3"
        assert ("pexels", "v3") in claimed

    @pytest.mark.asyncio
    async def test_failed_candidate_releases_claim(
        self, asset_index, acquisition_config, scene, generator, fake_provider_cls, make_candidate
    ) -> None:
        provider = fake_provider_cls(
            results={AssetType.VIDEO: [make_candidate("v1"), make_candidate("v2")]},
            fetch_errors=[DownloadError("reset"), DownloadError("reset")],
        )
        pipeline = AcquisitionPipeline(asset_index, [provider], [generator], acquisition_config)
        claimed: set[tuple[str, str]] = set()

        asset = await pipeline.acquire(scene, claimed=claimed)

        assert provider.fetch_calls == ["v1", "v1", "v2"]
        assert asset.source_id == "v2"
        assert claimed == {("pexels", "v2")}

    @pytest.mark.asyncio
    async def test_constraint_violation_is_not_retried(
        self, asset_index, acquisition_config, scene, generator, fake_provider_cls, make_candidate
    ) -> None:
        provider = fake_provider_cls(
            results={AssetType.VIDEO: [make_candidate("v1"), make_candidate("v2")]},
            fetch_errors=[ConstraintViolationError(["size 20000 exceeds 10000 bytes"])],
        )
        pipeline = AcquisitionPipeline(asset_index, [provider], [generator], acquisition_config)

        asset = await pipeline.acquire(scene)

        assert provider.fetch_calls == ["v1", "v2"]
        assert asset.source_id == "v2"

    @pytest.mark.asyncio
    async def test_best_score_first_and_extras(
        self, asset_index, acquisition_config, scene, generator, fake_provider_cls, make_candidate
    ) -> None:
        """With items_per_scene=2 the runner-up is installed but not bound."""
        config = acquisition_config.model_copy(
            update={"orchestrator": OrchestratorConfig(items_per_scene=2)}
        )
        candidates = [
            make_candidate("low", score=0.1),
            make_candidate("high", score=0.9),
            make_candidate("mid", score=0.5),
        ]
        provider = fake_provider_cls(results={AssetType.VIDEO: candidates})
        pipeline = AcquisitionPipeline(asset_index, [provider], [generator], config)

        asset = await pipeline.acquire(scene)

        assert asset.source_id == "high"
        assert provider.fetch_calls == ["high", "mid"]
        assert asset_index.has_source("pexels", "mid")
        assert not asset_index.has_source("pexels", "low")

    @pytest.mark.asyncio
    async def test_candidate_budget(
        self, asset_index, acquisition_config, scene, generator, fake_provider_cls, make_candidate
    ) -> None:
        """Only the top max_candidates candidates are tried in a tier."""
        provider = fake_provider_cls(
            results={AssetType.VIDEO: [make_candidate(f"v{i}") for i in range(4)]},
            fetch_errors=[DownloadError("reset")] * 4,
        )
        pipeline = AcquisitionPipeline(asset_index, [provider], [generator], acquisition_config)

        asset = await pipeline.acquire(scene)

        assert provider.fetch_calls == ["v0", "v0", "v1", "v1"]
        assert asset.provider == "ai"

    @pytest.mark.asyncio
    async def test_candidate_budget_spans_providers(
        self, asset_index, acquisition_config, scene, generator, fake_provider_cls, make_candidate
    ) -> None:
        retry = acquisition_config.retry.model_copy(
            update={"max_candidates": 1, "retries_per_candidate": 0}
        )
        config = acquisition_config.model_copy(update={"retry": retry})
        first = fake_provider_cls(
            results={AssetType.VIDEO: [make_candidate("a1")]},
            fetch_errors=[DownloadError("reset")],
        )
        second = fake_provider_cls(
            name="pixabay",
            results={AssetType.VIDEO: [make_candidate("b1", provider="pixabay")]},
            fetch_errors=[DownloadError("reset")],
        )
        pipeline = AcquisitionPipeline(asset_index, [first, second], [generator], config)

        asset = await pipeline.acquire(scene)

        assert first.fetch_calls == ["a1"]
        assert second.fetch_calls == []
        # The photo tier gets its own budget
        assert first.search_calls == [("sunset", AssetType.VIDEO), ("sunset", AssetType.IMAGE)]
        assert asset.provider == "ai"


class TestReporting:
    """Tests for job updates."""

    @pytest.mark.asyncio
    async def test_state_sequence(
        self, asset_index, acquisition_config, scene, generator, fake_provider_cls, make_candidate
    ) -> None:
        provider = fake_provider_cls(results={AssetType.VIDEO: [make_candidate("v1")]})
        pipeline = AcquisitionPipeline(asset_index, [provider], [generator], acquisition_config)
        updates: list[tuple[AcquisitionState, float]] = []

        await pipeline.acquire(
            scene, on_update=lambda job: updates.append((job.state, job.progress_percent))
        )

        assert updates == [
            (AcquisitionState.SEARCHING_VIDEO, 0.0),
            (AcquisitionState.DOWNLOADING_VIDEO, 0.0),
            (AcquisitionState.DOWNLOADING_VIDEO, 50.0),
            (AcquisitionState.DOWNLOADING_VIDEO, 100.0),
            (AcquisitionState.DONE, 100.0),
        ]

    @pytest.mark.asyncio
    async def test_download_progress_is_throttled(
        self, asset_index, acquisition_config, scene, generator, fake_provider_cls, make_candidate
    ) -> None:
        class ChattyProvider(fake_provider_cls):
            async def fetch(self, candidate, dest_path, constraints, on_progress=None):
                for percent in range(1, 101):
                    on_progress(float(percent))
                return await super().fetch(candidate, dest_path, constraints)

        provider = ChattyProvider(results={AssetType.VIDEO: [make_candidate("v1")]})
        pipeline = AcquisitionPipeline(asset_index, [provider], [generator], acquisition_config)
        progress: list[float] = []

        def on_update(job: DownloadJob) -> None:
            if job.state == AcquisitionState.DOWNLOADING_VIDEO:
                progress.append(job.progress_percent)

        await pipeline.acquire(scene, on_update=on_update)

        assert progress == [0.0, 10.0, 20.0, 30.0, 40.0, 50.0, 60.0, 70.0, 80.0, 90.0, 100.0]

    @pytest.mark.asyncio
    async def test_listener_errors_do_not_break_acquisition(
        self, asset_index, acquisition_config, scene, generator, fake_provider_cls
    ) -> None:
        def broken(job: DownloadJob) -> None:
            raise RuntimeError("listener bug")

        pipeline = AcquisitionPipeline(
            asset_index, [fake_provider_cls()], [generator], acquisition_config
        )

        asset = await pipeline.acquire(scene, on_update=broken)

        assert asset.provider == "ai"


class TestCancellation:
    """Tests for cancellation inside the pipeline."""

    @pytest.mark.asyncio
    async def test_cancelled_before_start(
        self, asset_index, acquisition_config, scene, generator, fake_provider_cls
    ) -> None:
        token = CancelToken()
        token.cancel()
        provider = fake_provider_cls()
        pipeline = AcquisitionPipeline(asset_index, [provider], [generator], acquisition_config)
        job = DownloadJob(scene_id=scene.id)

        with pytest.raises(OperationCancelled):
            await pipeline.acquire(scene, job=job, cancel_token=token)

        assert provider.search_calls == []
        assert job.status == JobStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_during_download_removes_partial(
        self, asset_index, media_root, acquisition_config, scene, generator,
        fake_provider_cls, make_candidate,
    ) -> None:
        provider = fake_provider_cls(results={AssetType.VIDEO: [make_candidate("v1")]}, hang=True)
        pipeline = AcquisitionPipeline(asset_index, [provider], [generator], acquisition_config)
        token = CancelToken()
        job = DownloadJob(scene_id=scene.id)
        claimed: set[tuple[str, str]] = set()

        task = asyncio.create_task(
            pipeline.acquire(scene, job=job, cancel_token=token, claimed=claimed)
        )
        while not list(media_root.rglob("*.part")):
            await asyncio.sleep(0.01)
        token.cancel("stop")

        with pytest.raises(OperationCancelled):
            await task

        assert list(media_root.rglob("*.part")) == []
        assert job.state == AcquisitionState.CANCELLED
        assert claimed == set()
        assert generator.prompts == []

    @pytest.mark.asyncio
    async def test_cancel_during_extras_keeps_primary(
        self, asset_index, media_root, acquisition_config, scene, generator,
        fake_provider_cls, make_candidate,
    ) -> None:
        class StallOnSecond(fake_provider_cls):
            async def fetch(self, candidate, dest_path, constraints, on_progress=None):
                self.hang = candidate.source_id == "v2"
                return await super().fetch(candidate, dest_path, constraints, on_progress)

        config = acquisition_config.model_copy(
            update={"orchestrator": OrchestratorConfig(items_per_scene=2)}
        )
        provider = StallOnSecond(
            results={AssetType.VIDEO: [make_candidate("v1"), make_candidate("v2")]}
        )
        pipeline = AcquisitionPipeline(asset_index, [provider], [generator], config)
        token = CancelToken()
        job = DownloadJob(scene_id=scene.id)
        claimed: set[tuple[str, str]] = set()

        task = asyncio.create_task(
            pipeline.acquire(scene, job=job, cancel_token=token, claimed=claimed)
        )
        while not list(media_root.rglob("*.part")):
            await asyncio.sleep(0.01)
        token.cancel("stop")
        asset = await asyncio.wait_for(task, timeout=5.0)

        assert asset.source_id == "v1"
        assert asset.path.exists()
        assert job.state == AcquisitionState.DONE
        assert job.status == JobStatus.COMPLETED
        assert asset_index.has_source("pexels", "v1")
        assert not asset_index.has_source("pexels", "v2")
        assert claimed == {("pexels", "v1")}
        assert list(media_root.rglob("*.part")) == []
        assert generator.prompts == []


class TestSceneRun:
    """Tests for the per-scene run state."""

    def test_starts_idle_and_mirrors_transitions(self, scene) -> None:
        states: list[AcquisitionState] = []
        run = SceneRun(
            scene=scene,
            job=DownloadJob(scene_id=scene.id),
            token=CancelToken(),
            claimed=set(),
            transitions=build_transitions(resolve_tiers(["video", "photo", "ai"])),
            listener=lambda job: states.append(job.state),
        )

        assert run.state == AcquisitionState.IDLE

        run.transition(AcquisitionState.SEARCHING_VIDEO)

        assert run.job.state == AcquisitionState.SEARCHING_VIDEO
        assert run.job.status == JobStatus.SEARCHING
        assert states == [AcquisitionState.SEARCHING_VIDEO]
