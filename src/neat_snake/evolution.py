from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any

import numpy as np

from .config import EvolutionConfig
from .envs.snake_env import SnakeEvaluator
from .eras import EraEvent, EraState, era_state
from .fitness import FitnessCriterion, FitnessRecord, score_games
from .genes import NodeKind
from .genome import Genome
from .innovation import GENE_IDS, GeneIdAllocator
from .persistence import StashEntry, save_genome_json, save_stash_json
from .population import FitnessFn, Population


class NEATTrainer:
    def __init__(
        self,
        cfg: EvolutionConfig,
        out_dir: Path,
        evaluator: SnakeEvaluator | None = None,
        ids: GeneIdAllocator = GENE_IDS,
    ):
        if cfg.pop_size < 1 or cfg.generations < 1:
            raise ValueError("pop_size and generations must both be positive")

        self.cfg = cfg
        self.out_dir = out_dir
        self.out_dir.mkdir(parents=True, exist_ok=True)

        self.rng = np.random.default_rng(cfg.seed)
        self.ids = ids
        self.evaluator = evaluator or SnakeEvaluator(cfg.game)
        self.population = Population(cfg, self.rng, ids)

        self.stash: list[StashEntry] = []
        self.history: list[dict[str, Any]] = []
        self.events: list[dict[str, Any]] = []
        self.live_history_path = self.out_dir / "history_live.csv"
        self.live_progress_path = self.out_dir / "progress.json"
        self.live_champion_path = self.out_dir / "champion_genome_live.json"

    @property
    def best_record(self) -> FitnessRecord | None:
        return self.stash[-1].genome.fitness if self.stash else None

    @property
    def last_max_generation(self) -> int | None:
        return self.stash[-1].generation if self.stash else None

    def run(self) -> tuple[Genome, dict[str, Path]]:
        self._write_live_progress(generation_completed=-1, status="starting")
        for gen in range(self.cfg.generations):
            state = era_state(gen, self.last_max_generation, self.cfg.era.era_length)
            self.population.populate()
            self._write_live_progress(
                generation_completed=gen - 1,
                status=f"evaluating_generation_{gen}",
            )

            fitness_fn = self._fitness_fn(gen)
            scored = self.population.evaluate(fitness_fn, state.criterion, force=state.is_boundary)
            self._update_stash(scored, gen)
            evaluated = len(scored)

            event = EraEvent.NONE
            if state.is_boundary and state.event is not EraEvent.NONE:
                event = state.event
                self._dispatch_event(state, gen)
                # Resurrected genomes arrive without a record.
                scored = self.population.evaluate(fitness_fn, state.criterion)
                self._update_stash(scored, gen)
                evaluated += len(scored)

            self._record_generation(gen, state, event, evaluated)
            self._write_live_generation_files(gen)

            if gen < self.cfg.generations - 1:
                self.population.select_and_reproduce(state.multiplier)

        champion = self.champion()
        artifacts = self._save_artifacts(champion)
        self._write_live_progress(
            generation_completed=self.cfg.generations - 1,
            status="finished",
        )
        return champion, artifacts

    def champion(self) -> Genome:
        if self.stash:
            return self.stash[-1].genome
        return self.population.best()

    # ------------------------------------------------------------------
    # Fitness and the stash
    # ------------------------------------------------------------------
    def _episode_seed(self, gen: int, ep: int) -> int:
        return (self.cfg.seed + 99991 * (gen + 1) + 31 * (ep + 1)) & 0xFFFFFFFF

    def _fitness_fn(self, gen: int) -> FitnessFn:
        # Every genome of a generation plays the same layouts.
        seeds = [self._episode_seed(gen, ep) for ep in range(self.cfg.game.games_per_genome)]

        def fitness_of(genome: Genome, criterion: FitnessCriterion) -> FitnessRecord:
            results = [self.evaluator.play(genome, np.random.default_rng(s)) for s in seeds]
            return score_games(results, criterion)

        return fitness_of

    def _update_stash(self, scored: list[Genome], gen: int) -> None:
        for genome in scored:
            best = self.best_record
            if genome.fitness is None or (best is not None and genome.fitness.fitness <= best.fitness):
                continue
            self.stash.append(StashEntry(genome=genome.clone(), generation=gen))
            print(f"New max gen={gen}: genome {genome.genome_id}: fitness={genome.fitness}")

    # ------------------------------------------------------------------
    # Era events
    # ------------------------------------------------------------------
    def _dispatch_event(self, state: EraState, gen: int) -> None:
        if state.event is EraEvent.CATACLYSM:
            detail = self._cataclysm()
        elif state.event is EraEvent.RESURRECTION:
            detail = self._resurrection()
        else:
            raise ValueError(f"Unsupported era event: {state.event}")

        record = {"generation": gen, "era": state.era, "event": state.event.value, **detail}
        self.events.append(record)
        print(
            f"[event] gen={gen} era={state.era} {state.event.value}: "
            + ", ".join(f"{k}={v}" for k, v in detail.items())
        )

    def _cataclysm(self) -> dict[str, Any]:
        values = self.population.fitness_values()
        if values.size == 0:
            return {"rule": "none", "threshold": None, "removed": 0}
        best = float(np.max(values))
        if self.rng.random() < 0.5:
            rule, threshold = "half_best", 0.5 * best
        else:
            rule, threshold = "mean", float(np.mean(values))
        threshold = min(threshold, best)
        removed = self.population.cull(threshold)
        return {"rule": rule, "threshold": round(threshold, 3), "removed": removed}

    def _resurrection(self) -> dict[str, Any]:
        revived = []
        for entry in self.stash:
            genome = entry.genome.clone(self.ids.new_genome_id())
            genome.fitness = None
            revived.append(genome)
        return {"revived": self.population.inject(revived)}

    # ------------------------------------------------------------------
    # History and files
    # ------------------------------------------------------------------
    def activation_usage(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for genome in self.population.genomes:
            for node in genome.hidden_nodes:
                counts[node.activation.value] = counts.get(node.activation.value, 0) + 1
        return counts

    def _record_generation(self, gen: int, state: EraState, event: EraEvent, evaluated: int) -> None:
        genomes = self.population.genomes
        fitness = self.population.fitness_values()
        best = self.population.best()
        best_hidden, best_conn = best.complexity()
        all_time = self.best_record

        record: dict[str, Any] = {
            "generation": gen,
            "best_fitness": float(np.max(fitness)),
            "mean_fitness": float(np.mean(fitness)),
            "all_time_best": all_time.fitness if all_time is not None else float("nan"),
            "best_goals": best.fitness.goals if best.fitness is not None else 0.0,
            "mean_hidden_nodes": float(np.mean([g.complexity()[0] for g in genomes])),
            "mean_enabled_connections": float(np.mean([g.complexity()[1] for g in genomes])),
            "champ_hidden_nodes": float(best_hidden),
            "champ_enabled_connections": float(best_conn),
            "population": len(genomes),
            "evaluated": evaluated,
            "gens_since_max": state.gens_since_max,
            "era": state.era,
            "criterion": state.criterion.value,
            "multiplier": state.multiplier,
            "event": event.value,
            "stash_size": len(self.stash),
        }
        self.history.append(record)

        print(
            f"[gen {gen + 1:03d}/{self.cfg.generations:03d}] "
            f"best={record['best_fitness']:.3f} "
            f"mean={record['mean_fitness']:.3f} "
            f"era={state.era} "
            f"criterion={state.criterion.value} "
            f"multiplier={state.multiplier:.1f} "
            f"stash={len(self.stash)}"
        )

    def _write_live_generation_files(self, gen: int) -> None:
        # These files are rewritten every generation so progress is visible while training is running.
        self._write_history_csv(self.live_history_path)
        save_genome_json(self.champion(), self.live_champion_path, meta={"generation": gen})
        self._write_live_progress(
            generation_completed=gen,
            status=f"completed_generation_{gen}",
        )

    def _write_live_progress(self, generation_completed: int, status: str) -> None:
        last = self.history[-1] if self.history else None
        progress = {
            "generation_completed": generation_completed,
            "generations_total": self.cfg.generations,
            "status": status,
            "out_dir": str(self.out_dir),
            "best_fitness": last["best_fitness"] if last else None,
            "mean_fitness": last["mean_fitness"] if last else None,
            "era": last["era"] if last else None,
            "stash_size": len(self.stash),
        }
        with self.live_progress_path.open("w", encoding="utf-8") as f:
            json.dump(progress, f, indent=2)
            f.flush()

    def _save_artifacts(self, champion: Genome) -> dict[str, Path]:
        artifacts: dict[str, Path] = {}

        self._write_history_csv(self.out_dir / "history.csv")
        artifacts["history_csv"] = self.out_dir / "history.csv"
        artifacts["champion_json"] = save_genome_json(
            champion,
            self.out_dir / "champion_genome.json",
            meta={
                "generation": self.last_max_generation,
                "seed": self.cfg.seed,
                "hidden_activations": sorted(
                    {n.activation.value for n in champion.nodes if n.kind is NodeKind.HIDDEN}
                ),
            },
        )
        artifacts["stash_json"] = save_stash_json(self.stash, self.out_dir / "stash.json")
        if self.events:
            events_path = self.out_dir / "events.json"
            with events_path.open("w", encoding="utf-8") as f:
                json.dump(self.events, f, indent=2)
            artifacts["events_json"] = events_path
        artifacts["history_live_csv"] = self.live_history_path
        artifacts["progress_json"] = self.live_progress_path
        artifacts["champion_live_json"] = self.live_champion_path
        return artifacts

    def _write_history_csv(self, path: Path) -> None:
        if not self.history:
            return
        fieldnames = list(self.history[0].keys())
        with path.open("w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames)
            writer.writeheader()
            for row in self.history:
                writer.writerow(row)
