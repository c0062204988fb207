from __future__ import annotations

import argparse
import datetime as dt
from pathlib import Path

import numpy as np

from .config import EraConfig, EvolutionConfig, GameConfig
from .envs.snake_env import SnakeEvaluator
from .evolution import NEATTrainer
from .persistence import StashEntry, load_genome_json
from .reporting import write_markdown_report
from .visualization import plot_activation_usage, plot_genome, plot_history


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="NEAT neuroevolution of a grid-snake agent")
    p.add_argument("--pop-size", type=int, default=500)
    p.add_argument("--generations", type=int, default=1000)
    p.add_argument("--games-per-genome", type=int, default=10)
    p.add_argument("--era-length", type=int, default=200)
    p.add_argument("--width", type=int, default=40)
    p.add_argument("--height", type=int, default=30)
    p.add_argument("--seed", type=int, default=0)
    p.add_argument("--out-root", type=str, default="artifacts")
    p.add_argument("--replay", type=str, default=None, help="Play a saved genome instead of training")
    p.add_argument("--replay-games", type=int, default=5)
    args = p.parse_args(argv)

    for name in ("pop_size", "generations", "games_per_genome", "era_length", "replay_games"):
        if getattr(args, name) < 1:
            p.error(f"--{name.replace('_', '-')} must be positive")
    if args.width < 5 or args.height < 5:
        p.error("--width and --height must be at least 5")
    return args


def _game_config(args: argparse.Namespace) -> GameConfig:
    return GameConfig(width=args.width, height=args.height, games_per_genome=args.games_per_genome)


def key_stash_entries(stash: list[StashEntry]) -> list[StashEntry]:
    """The first all-time best and the one halfway through the stash, one plot per generation."""
    if not stash:
        return []
    picked: dict[int, StashEntry] = {}
    for entry in (stash[0], stash[len(stash) // 2]):
        picked.setdefault(entry.generation, entry)
    return list(picked.values())


def replay(args: argparse.Namespace) -> None:
    genome, meta = load_genome_json(Path(args.replay))
    evaluator = SnakeEvaluator(_game_config(args))
    print(f"Replaying genome {genome.genome_id} (saved fitness: {genome.fitness}, meta: {meta})")
    for ep in range(args.replay_games):
        result = evaluator.play(genome, np.random.default_rng(args.seed + ep))
        print(
            f"[game {ep + 1:02d}/{args.replay_games:02d}] goals={result.goals} "
            f"visited={result.visited} moves={result.moves} crashed={result.crashed}"
        )


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    if args.replay:
        replay(args)
        return

    cfg = EvolutionConfig(
        pop_size=args.pop_size,
        generations=args.generations,
        seed=args.seed,
        era=EraConfig(era_length=args.era_length),
        game=_game_config(args),
    )

    ts = dt.datetime.now().strftime("%Y%m%d_%H%M%S")
    out_dir = Path(args.out_root).resolve() / f"snake_{ts}"

    trainer = NEATTrainer(cfg=cfg, out_dir=out_dir)
    champion, artifacts = trainer.run()

    plots_dir = out_dir / "plots"
    plot_history(trainer.history, plots_dir / "fitness_complexity.png")
    plot_genome(champion, plots_dir / "champion_network.png", title="Champion Topology")

    for entry in key_stash_entries(trainer.stash):
        plot_genome(
            entry.genome,
            plots_dir / f"stash_network_gen_{entry.generation}.png",
            title=f"All-time Best (Generation {entry.generation})",
        )

    for rank, genome in enumerate(trainer.population.ranked()[:3], start=1):
        plot_genome(genome, plots_dir / f"network_rank_{rank}.png", title=f"Final Population Rank {rank}")

    plot_activation_usage(trainer.activation_usage(), plots_dir / "final_activation_usage.png")

    report_path = out_dir / "report.md"
    write_markdown_report(
        path=report_path,
        history=trainer.history,
        champion=champion,
        artifacts={**artifacts, "plots_dir": plots_dir},
        events=trainer.events,
    )

    print(f"Run complete: {out_dir}")
    for name, p in sorted({**artifacts, "report": report_path}.items()):
        print(f"{name}: {p}")


if __name__ == "__main__":
    main()
