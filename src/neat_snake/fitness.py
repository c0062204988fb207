from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Sequence

import numpy as np

if TYPE_CHECKING:
    from .envs.snake_env import EpisodeResult


GOAL_REWARD = 10_000.0


class FitnessCriterion(str, Enum):
    NORMAL = "normal"
    FAVOR_EXPLORATION = "favor_exploration"
    FAVOR_SURVIVAL = "favor_survival"


@dataclass(frozen=True)
class FitnessRecord:
    fitness: float
    goals: float = 0.0
    visited: float = 0.0
    moves: float = 0.0
    criterion: FitnessCriterion = FitnessCriterion.NORMAL

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["criterion"] = self.criterion.value
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FitnessRecord":
        return cls(
            fitness=float(data["fitness"]),
            goals=float(data.get("goals", 0.0)),
            visited=float(data.get("visited", 0.0)),
            moves=float(data.get("moves", 0.0)),
            criterion=FitnessCriterion(data.get("criterion", FitnessCriterion.NORMAL.value)),
        )

    def __str__(self) -> str:
        return (
            f"{self.fitness:.1f} (goals:{self.goals:.1f}, visited:{self.visited:.1f}, "
            f"moves:{self.moves:.1f}, {self.criterion.value})"
        )


# Ranks below every scored genome.
UNEVALUATED = float("-inf")


def fitness_value(record: FitnessRecord | None) -> float:
    return record.fitness if record is not None else UNEVALUATED


def game_score(goals: int, visited: int, moves: int, criterion: FitnessCriterion) -> float:
    if criterion is FitnessCriterion.FAVOR_EXPLORATION:
        return 0.5 * GOAL_REWARD * goals + visited
    # Wandering is mildly rewarded until the agent can reach goals, then mildly penalized.
    adjustment = -1.0 if goals < 2 else 1.0
    return GOAL_REWARD * goals - adjustment * 0.001 * ((moves - visited) / (goals + 1)) + visited


def score_games(results: Sequence["EpisodeResult"], criterion: FitnessCriterion) -> FitnessRecord:
    """Fold several episodes of one genome into a single record.

    Both rotated criteria are bounded above by NORMAL for the same episodes,
    so a rotated criterion can only set a new all-time best when the genome
    would also have set one under NORMAL.
    """
    if not results:
        raise ValueError("At least one episode is required to score a genome")

    scores = np.array(
        [game_score(r.goals, r.visited, r.moves, criterion) for r in results],
        dtype=float,
    )
    if criterion is FitnessCriterion.NORMAL:
        fitness = 0.75 * float(np.max(scores)) + 0.25 * float(np.mean(scores))
    elif criterion is FitnessCriterion.FAVOR_EXPLORATION:
        fitness = float(np.mean(scores))
    else:
        fitness = float(np.min(scores))

    return FitnessRecord(
        fitness=fitness,
        goals=float(np.mean([r.goals for r in results])),
        visited=float(np.mean([r.visited for r in results])),
        moves=float(np.mean([r.moves for r in results])),
        criterion=criterion,
    )
