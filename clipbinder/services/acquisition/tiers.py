"""Acquisition tier descriptors.

The waterfall order is an explicit list of TierDescriptors. The pipeline's
transition map is derived from that list, so adding a tier means adding a
descriptor (and its states), not editing pipeline control flow.
"""

from dataclasses import dataclass

from clipbinder.core.exceptions import ConfigValidationError
from clipbinder.core.state_machine import TransitionMap
from clipbinder.models.job import AcquisitionState, MediaTier
from clipbinder.models.scene import AssetType


@dataclass(frozen=True)
class TierDescriptor:
    """One stage of the acquisition waterfall.

    Attributes:
        tier: Tier identifier
        entry_state: State entered when the tier starts (searching/generating)
        download_state: State while fetching a candidate (None for generators)
        asset_type: Kind of media the tier produces
        default_extension: Extension used when a URL has none
    """

    tier: MediaTier
    entry_state: AcquisitionState
    download_state: AcquisitionState | None
    asset_type: AssetType
    default_extension: str

    @property
    def name(self) -> str:
        return self.tier.value

    @property
    def is_generative(self) -> bool:
        """Generative tiers call an ImageGenerator instead of search + fetch."""
        return self.download_state is None

    @property
    def states(self) -> list[AcquisitionState]:
        if self.download_state is None:
            return [self.entry_state]
        return [self.entry_state, self.download_state]


VIDEO_TIER = TierDescriptor(
    tier=MediaTier.VIDEO,
    entry_state=AcquisitionState.SEARCHING_VIDEO,
    download_state=AcquisitionState.DOWNLOADING_VIDEO,
    asset_type=AssetType.VIDEO,
    default_extension="mp4",
)

PHOTO_TIER = TierDescriptor(
    tier=MediaTier.PHOTO,
    entry_state=AcquisitionState.SEARCHING_PHOTO,
    download_state=AcquisitionState.DOWNLOADING_PHOTO,
    asset_type=AssetType.IMAGE,
    default_extension="jpg",
)

AI_TIER = TierDescriptor(
    tier=MediaTier.AI,
    entry_state=AcquisitionState.GENERATING_IMAGE,
    download_state=None,
    asset_type=AssetType.IMAGE,
    default_extension="png",
)

TIERS: dict[MediaTier, TierDescriptor] = {t.tier: t for t in (VIDEO_TIER, PHOTO_TIER, AI_TIER)}

DEFAULT_TIER_ORDER: list[TierDescriptor] = [VIDEO_TIER, PHOTO_TIER, AI_TIER]


def resolve_tiers(order: list[str]) -> list[TierDescriptor]:
    """Map configured tier names to descriptors, keeping their order.

    Raises:
        ConfigValidationError: On unknown or repeated tier names
    """
    tiers: list[TierDescriptor] = []
    for name in order:
        try:
            tier = TIERS[MediaTier(name)]
        except ValueError as e:
            raise ConfigValidationError(
                field="tier_order", value=name, reason="unknown tier"
            ) from e
        if tier in tiers:
            raise ConfigValidationError(field="tier_order", value=name, reason="duplicate tier")
        tiers.append(tier)
    return tiers


def build_transitions(tiers: list[TierDescriptor]) -> TransitionMap[AcquisitionState]:
    """Build the per-scene transition map for an ordered tier list.

    From every tier state the machine may fall through to the entry state
    of any later tier (skipped tiers are jumped over), give up with FAILED,
    or stop with CANCELLED. Download states may also go back to their
    tier's search state to try the next provider of the same tier.

    Args:
        tiers: Ordered tier descriptors

    Returns:
        Transition map usable with StateMachine
    """
    done = AcquisitionState.DONE
    failed = AcquisitionState.FAILED
    cancelled = AcquisitionState.CANCELLED

    entries = [t.entry_state for t in tiers]
    transitions: TransitionMap[AcquisitionState] = {
        AcquisitionState.IDLE: [*entries, failed, cancelled],
    }

    for i, tier in enumerate(tiers):
        fall_through = [*entries[i + 1 :], failed, cancelled]
        if tier.download_state is None:
            transitions[tier.entry_state] = [done, *fall_through]
        else:
            transitions[tier.entry_state] = [tier.download_state, *fall_through]
            transitions[tier.download_state] = [done, tier.entry_state, *fall_through]

    transitions[done] = []
    transitions[failed] = []
    transitions[cancelled] = []
    return transitions


__all__ = [
    "AI_TIER",
    "DEFAULT_TIER_ORDER",
    "PHOTO_TIER",
    "TIERS",
    "TierDescriptor",
    "VIDEO_TIER",
    "build_transitions",
    "resolve_tiers",
]
