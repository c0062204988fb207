from __future__ import annotations

from typing import Callable, Iterable

import numpy as np

from .config import EvolutionConfig
from .crossover import crossover
from .fitness import FitnessCriterion, FitnessRecord, fitness_value
from .genome import Genome
from .innovation import GENE_IDS, GeneIdAllocator
from .mutation import mutate

FitnessFn = Callable[[Genome, FitnessCriterion], FitnessRecord]


def fitness_key(genome: Genome) -> float:
    return fitness_value(genome.fitness)


class Population:
    """A flat, unspeciated population driven through populate, evaluate and reproduce."""

    def __init__(
        self,
        cfg: EvolutionConfig,
        rng: np.random.Generator,
        ids: GeneIdAllocator = GENE_IDS,
    ):
        self.cfg = cfg
        self.rng = rng
        self.ids = ids
        self.genomes: list[Genome] = []

    def __len__(self) -> int:
        return len(self.genomes)

    def populate(self) -> int:
        added = 0
        while len(self.genomes) < self.cfg.pop_size:
            genome = Genome.new(self.cfg.input_size, self.cfg.output_size, self.ids)
            mutate(genome, self.rng, self.cfg.mutation, ids=self.ids)
            self.genomes.append(genome)
            added += 1
        return added

    def evaluate(
        self,
        fitness_fn: FitnessFn,
        criterion: FitnessCriterion = FitnessCriterion.NORMAL,
        force: bool = False,
    ) -> list[Genome]:
        """Score every genome whose record is missing or was made under another criterion.

        Returns the genomes that were scored, in population order.
        """
        scored: list[Genome] = []
        for genome in self.genomes:
            if not force and genome.fitness is not None and genome.fitness.criterion is criterion:
                continue
            genome.fitness = fitness_fn(genome, criterion)
            scored.append(genome)
        return scored

    def ranked(self) -> list[Genome]:
        return sorted(self.genomes, key=fitness_key, reverse=True)

    def best(self) -> Genome:
        if not self.genomes:
            raise ValueError("Population is empty")
        return max(self.genomes, key=fitness_key)

    def _rank_biased_index(self, n: int) -> int:
        u = float(self.rng.random())
        return min(int(u * u * n), n - 1)

    def select_and_reproduce(self, multiplier: float = 1.0) -> None:
        ranked = self.ranked()
        n = len(ranked)
        if n == 0:
            return
        target = self.cfg.pop_size
        repro = self.cfg.reproduction

        # Elites and copies keep their genome IDs and cached fitness.
        next_gen = [g.clone() for g in ranked[: min(repro.elitism, n, target)]]

        chosen = {g.genome_id for g in next_gen}
        copies = min(int(round(repro.copy_fraction * target)), n - len(chosen), target - len(next_gen))
        attempts = 0
        while copies > 0 and attempts < 20 * target:
            attempts += 1
            pick = ranked[self._rank_biased_index(n)]
            if pick.genome_id in chosen:
                continue
            chosen.add(pick.genome_id)
            next_gen.append(pick.clone())
            copies -= 1

        while len(next_gen) < target:
            if n < 2:
                child = ranked[0].clone(self.ids.new_genome_id())
                child.fitness = None
                mutate(child, self.rng, self.cfg.mutation, multiplier, self.ids)
                next_gen.append(child)
                continue
            i = self._rank_biased_index(n)
            j = self._rank_biased_index(n)
            if i == j:
                continue
            next_gen.append(
                crossover(
                    self.rng,
                    ranked[i],
                    ranked[j],
                    self.cfg.mutation,
                    multiplier,
                    self.ids,
                    repro.swap_winner_prob,
                )
            )

        self.genomes = next_gen

    def cull(self, threshold: float) -> int:
        """Drop genomes scoring below ``threshold``; the best genome always survives."""
        if not self.genomes:
            return 0
        best = self.best()
        before = len(self.genomes)
        self.genomes = [g for g in self.genomes if g is best or fitness_key(g) >= threshold]
        return before - len(self.genomes)

    def inject(self, genomes: Iterable[Genome]) -> int:
        added = list(genomes)
        self.genomes.extend(added)
        return len(added)

    def fitness_values(self) -> np.ndarray:
        return np.array([fitness_key(g) for g in self.genomes if g.fitness is not None], dtype=float)
