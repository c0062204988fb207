from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class MutationConfig:
    prob_mutate_activation: float = 0.05
    prob_mutate_weight: float = 0.10
    max_weight_change: float = 1.0
    prob_toggle_enabled: float = 0.025
    prob_add_connection: float = 0.05
    prob_add_node: float = 0.05
    # Applied as exclusions during crossover, not as standalone operators.
    prob_remove_connection: float = 0.01
    prob_remove_node: float = 0.025


@dataclass
class ReproductionConfig:
    elitism: int = 4
    copy_fraction: float = 0.25
    swap_winner_prob: float = 0.2


@dataclass
class EraConfig:
    era_length: int = 200


@dataclass
class GameConfig:
    width: int = 40
    height: int = 30
    grow_increment: int = 5
    games_per_genome: int = 10
    step_budget_base: int = 500
    step_budget_per_goal: int = 100


@dataclass
class EvolutionConfig:
    pop_size: int = 500
    generations: int = 1000
    input_size: int = 12
    output_size: int = 4
    seed: int = 0
    mutation: MutationConfig = field(default_factory=MutationConfig)
    reproduction: ReproductionConfig = field(default_factory=ReproductionConfig)
    era: EraConfig = field(default_factory=EraConfig)
    game: GameConfig = field(default_factory=GameConfig)
