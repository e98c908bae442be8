"""Per-scene acquisition pipeline.

Walks the tier waterfall (video → photo → AI image by default) for one scene
that local matching could not fill:

    idle → searching_video → downloading_video → done
         ↘ searching_photo → downloading_photo → done
         ↘ generating_image → done | failed

Stock tiers are skipped when the scene has no keyword or no provider of the
tier is configured. Inside a stock tier each configured provider is searched
in turn and the candidates that pass the constraint checks are downloaded,
best score first, with ``retries_per_candidate`` retries each. At most
``max_candidates`` downloads are tried per tier, counted across providers.
A tier is abandoned once that budget or every provider is exhausted, and
the waterfall never goes back to an earlier tier.

Every state change is mirrored on the scene's DownloadJob and reported to
the listener passed to ``acquire``.
"""

import uuid
from collections.abc import Callable
from dataclasses import InitVar, dataclass, field
from functools import partial
from pathlib import Path

from clipbinder.config.acquisition import AcquisitionConfig
from clipbinder.core.exceptions import (
    AcquisitionError,
    OperationCancelled,
    SceneAcquisitionFailed,
)
from clipbinder.core.logging import get_logger
from clipbinder.core.state_machine import StateMachine, TransitionMap
from clipbinder.models.job import AcquisitionState, DownloadJob
from clipbinder.models.scene import Asset, Scene
from clipbinder.services.acquisition.cancellation import CancelToken
from clipbinder.services.acquisition.retry import call_with_retries, call_with_timeout
from clipbinder.services.acquisition.tiers import (
    TierDescriptor,
    build_transitions,
    resolve_tiers,
)
from clipbinder.services.assets.index import LocalAssetIndex
from clipbinder.services.assets.naming import build_filename, guess_extension, safe_component
from clipbinder.services.providers.base import (
    Candidate,
    ImageGenerator,
    ProgressCallback,
    SearchConstraints,
    StockMediaProvider,
    check_constraints,
)
from clipbinder.services.providers.dall_e import AI_PROVIDER

logger = get_logger(__name__)

JobListener = Callable[[DownloadJob], None]

# Minimum percent change between two download progress notifications
PROGRESS_STEP = 10.0


@dataclass
class SceneRun:
    """Mutable state of one scene's trip through the waterfall."""

    scene: Scene
    job: DownloadJob
    token: CancelToken
    claimed: set[tuple[str, str]]
    transitions: InitVar[TransitionMap[AcquisitionState]]
    listener: JobListener | None = None
    attempts: dict[str, str] = field(default_factory=dict)
    machine: StateMachine[AcquisitionState] = field(init=False)

    def __post_init__(self, transitions: TransitionMap[AcquisitionState]) -> None:
        self.machine = StateMachine(
            AcquisitionState.IDLE, transitions, on_transition=self.on_transition
        )

    @property
    def state(self) -> AcquisitionState:
        return self.machine.current

    def transition(self, state: AcquisitionState) -> None:
        self.machine.transition(state)

    def on_transition(self, previous: AcquisitionState, state: AcquisitionState) -> None:
        self.job.state = state
        self.job.status = state.job_status
        self.notify()

    def notify(self) -> None:
        """Report the job to the listener; listener errors are logged."""
        if self.listener is None:
            return
        try:
            self.listener(self.job)
        except Exception as e:
            logger.warning("Job listener failed", scene_id=self.scene.id, error=str(e))


class AcquisitionPipeline:
    """Tiered media acquisition for single scenes.

    The pipeline only depends on the StockMediaProvider and ImageGenerator
    protocols. Providers are consulted in the order given; a provider that
    is not configured is ignored.

    Example:
        >>> pipeline = AcquisitionPipeline(index, [pexels, pixabay], [dalle])
        >>> asset = await pipeline.acquire(scene)
        >>> asset.provider
        'pexels'
    """

    def __init__(
        self,
        index: LocalAssetIndex,
        providers: list[StockMediaProvider] | None = None,
        generators: list[ImageGenerator] | None = None,
        config: AcquisitionConfig | None = None,
    ) -> None:
        """Initialize AcquisitionPipeline.

        Args:
            index: Index that receives installed assets
            providers: Stock providers for the video and photo tiers
            generators: Image generators for the AI tier
            config: Acquisition configuration
        """
        self.config = config or AcquisitionConfig()
        self._index = index
        self._providers = list(providers or [])
        self._generators = list(generators or [])
        self._tiers = resolve_tiers(self.config.tier_order)
        self._transitions = build_transitions(self._tiers)
        self._constraints = SearchConstraints.from_config(self.config.constraints)

    @property
    def tiers(self) -> list[TierDescriptor]:
        return list(self._tiers)

    @property
    def index(self) -> LocalAssetIndex:
        return self._index

    def _configured_providers(self) -> list[StockMediaProvider]:
        return [p for p in self._providers if p.is_configured]

    def _configured_generators(self) -> list[ImageGenerator]:
        return [g for g in self._generators if g.is_configured]

    def skip_reason(self, tier: TierDescriptor, scene: Scene) -> str | None:
        """Why ``tier`` would be skipped for ``scene`` (None if it runs)."""
        if tier.is_generative:
            if not self._configured_generators():
                return "no generator configured"
            return None
        if not scene.search_keyword:
            return "scene has no keyword"
        if not self._configured_providers():
            return "no provider configured"
        return None

    async def acquire(
        self,
        scene: Scene,
        *,
        job: DownloadJob | None = None,
        cancel_token: CancelToken | None = None,
        on_update: JobListener | None = None,
        claimed: set[tuple[str, str]] | None = None,
    ) -> Asset:
        """Run the waterfall for one scene.

        The returned asset is installed and registered in the index; binding
        it to the scene is left to the caller.

        Args:
            scene: Scene to fill
            job: Job record to update (created if omitted)
            cancel_token: Run cancellation handle
            on_update: Called with the job after every change
            claimed: (provider, source_id) keys taken by other scenes of the run

        Returns:
            Installed asset

        Raises:
            SceneAcquisitionFailed: If every tier failed or was skipped
            OperationCancelled: If the token fired
        """
        run = SceneRun(
            scene=scene,
            job=job or DownloadJob(scene_id=scene.id, keyword=scene.search_keyword),
            token=cancel_token or CancelToken(),
            claimed=claimed if claimed is not None else set(),
            transitions=self._transitions,
            listener=on_update,
        )

        try:
            for tier in self._tiers:
                run.token.raise_if_cancelled()

                reason = self.skip_reason(tier, scene)
                if reason is not None:
                    run.attempts[tier.name] = f"skipped ({reason})"
                    logger.debug("Tier skipped", scene_id=scene.id, tier=tier.name, reason=reason)
                    continue

                run.job.tier = tier.tier
                try:
                    if tier.is_generative:
                        asset = await self._run_generative_tier(tier, run)
                    else:
                        asset = await self._run_stock_tier(tier, run)
                except AcquisitionError as e:
                    run.attempts[tier.name] = str(e)
                    logger.info(
                        "Tier abandoned", scene_id=scene.id, tier=tier.name, reason=str(e)
                    )
                    continue

                run.job.provider = asset.provider
                run.job.filename = asset.filename
                run.job.progress_percent = 100.0
                run.transition(AcquisitionState.DONE)
                logger.info(
                    "Scene acquired",
                    scene_id=scene.id,
                    tier=tier.name,
                    provider=asset.provider,
                    filename=asset.filename,
                )
                return asset
        except OperationCancelled:
            if not run.machine.is_terminal:
                run.transition(AcquisitionState.CANCELLED)
            raise

        failure = SceneAcquisitionFailed(scene.id, run.attempts)
        run.job.error = str(failure)
        run.transition(AcquisitionState.FAILED)
        logger.warning("Scene acquisition failed", scene_id=scene.id, attempts=run.attempts)
        raise failure

    # ------------------------------------------------------------------
    # Stock tiers (search + fetch)
    # ------------------------------------------------------------------

    async def _run_stock_tier(self, tier: TierDescriptor, run: SceneRun) -> Asset:
        retry = self.config.retry
        query = run.scene.search_keyword
        constraints = self._constraints.with_timeout(retry.search_timeout)
        errors: list[str] = []
        tried = 0

        for provider in self._configured_providers():
            if tried >= retry.max_candidates:
                errors.append(f"candidate budget of {retry.max_candidates} used up")
                break
            self._begin(run, tier.entry_state, provider.name)
            try:
                candidates = await call_with_retries(
                    partial(provider.search, query, constraints, tier.asset_type),
                    retries=retry.search_retries,
                    timeout=retry.search_timeout,
                    cancel_token=run.token,
                    label=f"{tier.name} search",
                    provider=provider.name,
                )
            except AcquisitionError as e:
                errors.append(f"{provider.name}: {e}")
                continue

            usable = self._usable_candidates(candidates, constraints, run)
            if not usable:
                reason = "no results" if not candidates else "no candidate passed constraints"
                errors.append(f"{provider.name}: {reason}")
                continue

            for position, candidate in enumerate(usable):
                if tried >= retry.max_candidates:
                    break
                if self._is_taken(candidate, run):
                    continue
                tried += 1
                asset = await self._fetch_candidate(
                    tier, provider, candidate, constraints, run, errors
                )
                if asset is not None:
                    await self._install_extras(
                        tier, provider, usable[position + 1 :], constraints, run
                    )
                    return asset

        raise AcquisitionError("; ".join(errors) or "no provider available")

    def _usable_candidates(
        self, candidates: list[Candidate], constraints: SearchConstraints, run: SceneRun
    ) -> list[Candidate]:
        """Drop already-installed and out-of-bounds candidates, best score first."""
        usable: list[Candidate] = []
        for candidate in candidates:
            if self._is_taken(candidate, run):
                logger.debug(
                    "Candidate already installed",
                    scene_id=run.scene.id,
                    provider=candidate.provider,
                    source_id=candidate.source_id,
                )
                continue
            violations = check_constraints(candidate, constraints)
            if violations:
                logger.debug(
                    "Candidate rejected",
                    scene_id=run.scene.id,
                    provider=candidate.provider,
                    source_id=candidate.source_id,
                    violations=violations,
                )
                continue
            usable.append(candidate)
        return sorted(usable, key=lambda c: c.score, reverse=True)

    def _is_taken(self, candidate: Candidate, run: SceneRun) -> bool:
        return candidate.dedup_key in run.claimed or self._index.has_source(*candidate.dedup_key)

    async def _fetch_candidate(
        self,
        tier: TierDescriptor,
        provider: StockMediaProvider,
        candidate: Candidate,
        constraints: SearchConstraints,
        run: SceneRun,
        errors: list[str],
    ) -> Asset | None:
        """Download one candidate with the retry budget (None on failure)."""
        assert tier.download_state is not None
        if self._is_taken(candidate, run):
            return None

        key = candidate.dedup_key
        run.claimed.add(key)
        self._begin(run, tier.download_state, provider.name)
        dest = self._stock_destination(tier, candidate, run.scene)

        try:
            asset = await call_with_retries(
                partial(provider.fetch, candidate, dest, constraints, self._progress_reporter(run)),
                retries=self.config.retry.retries_per_candidate,
                timeout=self.config.retry.download_timeout,
                cancel_token=run.token,
                label=f"{tier.name} download",
                provider=provider.name,
            )
        except OperationCancelled:
            run.claimed.discard(key)
            raise
        except AcquisitionError as e:
            run.claimed.discard(key)
            errors.append(f"{provider.name}/{candidate.source_id}: {e}")
            logger.info(
                "Candidate failed",
                scene_id=run.scene.id,
                provider=provider.name,
                source_id=candidate.source_id,
                error=str(e),
            )
            return None

        self._index.register(asset)
        return asset

    async def _install_extras(
        self,
        tier: TierDescriptor,
        provider: StockMediaProvider,
        candidates: list[Candidate],
        constraints: SearchConstraints,
        run: SceneRun,
    ) -> int:
        """Install up to ``items_per_scene - 1`` more candidates into the index.

        Extras are not bound to the scene; they only enlarge the pool for
        later matching runs. Their failures are ignored, and a cancellation
        only stops the extras: the primary asset is already installed.
        """
        wanted = self.config.orchestrator.items_per_scene - 1
        installed = 0
        for candidate in candidates:
            if installed >= wanted or run.token.is_cancelled:
                break
            if self._is_taken(candidate, run):
                continue

            key = candidate.dedup_key
            run.claimed.add(key)
            dest = self._stock_destination(tier, candidate, run.scene)
            try:
                asset = await call_with_timeout(
                    partial(provider.fetch, candidate, dest, constraints),
                    self.config.retry.download_timeout,
                    run.token,
                    label=f"{tier.name} download",
                    provider=provider.name,
                )
            except OperationCancelled:
                run.claimed.discard(key)
                logger.info("Extra assets stopped by cancellation", scene_id=run.scene.id)
                break
            except AcquisitionError as e:
                run.claimed.discard(key)
                logger.debug("Extra asset skipped", scene_id=run.scene.id, error=str(e))
                continue

            self._index.register(asset)
            installed += 1

        if installed:
            logger.info("Extra assets installed", scene_id=run.scene.id, count=installed)
        return installed

    def _stock_destination(self, tier: TierDescriptor, candidate: Candidate, scene: Scene) -> Path:
        filename = build_filename(
            candidate.keyword or scene.search_keyword,
            scene.id,
            candidate.provider,
            candidate.source_id,
            candidate.width or 0,
            candidate.height or 0,
            guess_extension(candidate.url, tier.default_extension),
        )
        return self._index.directory_for(tier.asset_type) / filename

    # ------------------------------------------------------------------
    # Generative tier
    # ------------------------------------------------------------------

    async def _run_generative_tier(self, tier: TierDescriptor, run: SceneRun) -> Asset:
        retry = self.config.retry
        prompt = run.scene.search_keyword or run.scene.text.strip()
        # Keyword as it reads back from the installed file name
        label = safe_component(prompt).replace("_", " ")
        constraints = self._constraints.with_timeout(retry.generation_timeout)
        errors: list[str] = []

        for generator in self._configured_generators():
            self._begin(run, tier.entry_state, generator.name)

            width, height = generator.output_size(constraints)
            source_id = uuid.uuid4().hex[:10]
            dest = self._index.directory_for(tier.asset_type) / build_filename(
                label, run.scene.id, AI_PROVIDER, source_id, width, height, tier.default_extension
            )

            try:
                asset = await call_with_retries(
                    partial(generator.generate, prompt, dest, constraints),
                    retries=retry.generation_retries,
                    timeout=retry.generation_timeout,
                    cancel_token=run.token,
                    label="generation",
                    provider=generator.name,
                )
            except AcquisitionError as e:
                errors.append(f"{generator.name}: {e}")
                continue

            asset = asset.model_copy(update={"keyword": label, "source_id": source_id})
            self._index.register(asset)
            return asset

        raise AcquisitionError("; ".join(errors) or "no generator available")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _begin(run: SceneRun, state: AcquisitionState, provider: str) -> None:
        """Enter ``state`` (or re-announce it) for a new provider/candidate."""
        run.token.raise_if_cancelled()
        run.job.provider = provider
        run.job.progress_percent = 0.0
        if run.state == state:
            run.notify()
        else:
            run.transition(state)

    @staticmethod
    def _progress_reporter(run: SceneRun) -> ProgressCallback:
        def report(percent: float) -> None:
            percent = max(0.0, min(100.0, percent))
            if percent < 100.0 and percent - run.job.progress_percent < PROGRESS_STEP:
                return
            run.job.progress_percent = percent
            run.notify()

        return report


__all__ = ["AcquisitionPipeline", "JobListener", "SceneRun"]
