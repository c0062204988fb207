from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .fitness import FitnessCriterion


class EraEvent(str, Enum):
    NONE = "none"
    CATACLYSM = "cataclysm"
    RESURRECTION = "resurrection"


CRITERIA_ROTATION = (
    FitnessCriterion.NORMAL,
    FitnessCriterion.FAVOR_EXPLORATION,
    FitnessCriterion.FAVOR_SURVIVAL,
)


@dataclass(frozen=True)
class EraState:
    gens_since_max: int
    era: int
    is_boundary: bool
    criterion: FitnessCriterion
    multiplier: float
    event: EraEvent


def event_for_era(era: int) -> EraEvent:
    if era <= 0:
        return EraEvent.NONE
    return EraEvent.CATACLYSM if era % 2 == 1 else EraEvent.RESURRECTION


def era_state(generation: int, last_max_generation: int | None, era_length: int) -> EraState:
    """Where ``generation`` sits in the stagnation clock.

    The clock counts generations since the most recent all-time best. Before
    any best exists it stays at zero.
    """
    if era_length < 1:
        raise ValueError(f"era_length must be positive, got {era_length}")
    since = 0 if last_max_generation is None else max(0, generation - last_max_generation)
    era = since // era_length
    if since % era_length < era_length / 2:
        criterion = CRITERIA_ROTATION[era % len(CRITERIA_ROTATION)]
    else:
        criterion = FitnessCriterion.NORMAL
    return EraState(
        gens_since_max=since,
        era=era,
        is_boundary=since > 0 and since % era_length == 0,
        criterion=criterion,
        multiplier=float(1 + era),
        event=event_for_era(era),
    )
