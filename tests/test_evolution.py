import json

import pytest

from neat_snake.cli import key_stash_entries, main
from neat_snake.config import EraConfig, EvolutionConfig, GameConfig
from neat_snake.eras import EraEvent, EraState
from neat_snake.evolution import NEATTrainer
from neat_snake.fitness import FitnessCriterion
from neat_snake.persistence import StashEntry, load_genome_json, load_stash_json
from neat_snake.innovation import GeneIdAllocator


def _tiny_config(generations=4, era_length=200):
    return EvolutionConfig(
        pop_size=8,
        generations=generations,
        seed=3,
        era=EraConfig(era_length=era_length),
        game=GameConfig(width=12, height=10, games_per_genome=2, step_budget_base=60),
    )


@pytest.fixture
def trained(tmp_path, ids):
    trainer = NEATTrainer(_tiny_config(), tmp_path / "run", ids=ids)
    champion, artifacts = trainer.run()
    return trainer, champion, artifacts


class TestTrainerRun:
    def test_writes_artifacts(self, trained):
        trainer, champion, artifacts = trained
        for key in ("history_csv", "champion_json", "stash_json", "progress_json", "history_live_csv"):
            assert artifacts[key].exists()
        progress = json.loads(artifacts["progress_json"].read_text(encoding="utf-8"))
        assert progress["status"] == "finished"
        assert progress["generation_completed"] == 3

    def test_history_has_one_row_per_generation(self, trained):
        trainer, _, artifacts = trained
        assert [h["generation"] for h in trainer.history] == [0, 1, 2, 3]
        lines = artifacts["history_csv"].read_text(encoding="utf-8").strip().splitlines()
        assert len(lines) == 5
        assert "criterion" in lines[0]

    def test_stash_only_records_improvements(self, trained):
        trainer, champion, _ = trained
        assert trainer.stash
        fitness = [e.genome.fitness.fitness for e in trainer.stash]
        assert fitness == sorted(fitness) and len(set(fitness)) == len(fitness)
        generations = [e.generation for e in trainer.stash]
        assert generations == sorted(generations)
        assert champion is trainer.stash[-1].genome

    def test_saved_champion_reloads(self, trained):
        _, champion, artifacts = trained
        restored, meta = load_genome_json(artifacts["champion_json"], GeneIdAllocator())
        assert restored.to_dict() == champion.to_dict()
        assert "generation" in meta
        stash = load_stash_json(artifacts["stash_json"], GeneIdAllocator())
        assert stash[-1].genome.to_dict() == champion.to_dict()

    def test_same_seed_same_run(self, tmp_path):
        first = NEATTrainer(_tiny_config(3), tmp_path / "a", ids=GeneIdAllocator())
        second = NEATTrainer(_tiny_config(3), tmp_path / "b", ids=GeneIdAllocator())
        first.run()
        second.run()
        assert [h["best_fitness"] for h in first.history] == [h["best_fitness"] for h in second.history]

    def test_prints_progress(self, tmp_path, ids, capsys):
        NEATTrainer(_tiny_config(2), tmp_path / "run", ids=ids).run()
        out = capsys.readouterr().out
        assert "[gen 001/002]" in out
        assert "New max gen=0" in out


class TestEraEvents:
    def test_short_eras_dispatch_events(self, tmp_path, ids):
        trainer = NEATTrainer(_tiny_config(generations=3, era_length=1), tmp_path / "run", ids=ids)
        _, artifacts = trainer.run()
        assert trainer.events
        assert trainer.events[0]["generation"] == 1
        assert trainer.events[0]["event"] == "cataclysm"
        assert trainer.history[1]["event"] == "cataclysm"
        assert artifacts["events_json"].exists()

    def _state(self, event):
        return EraState(
            gens_since_max=400,
            era=2 if event is EraEvent.RESURRECTION else 1,
            is_boundary=True,
            criterion=FitnessCriterion.NORMAL,
            multiplier=3.0,
            event=event,
        )

    def test_cataclysm_keeps_the_best(self, trained):
        trainer, _, _ = trained
        best = trainer.population.best()
        trainer._dispatch_event(self._state(EraEvent.CATACLYSM), 99)
        assert best in trainer.population.genomes
        assert trainer.events[-1]["rule"] in ("half_best", "mean")

    def test_resurrection_reinjects_the_stash(self, trained):
        trainer, _, _ = trained
        before = len(trainer.population)
        ids_before = {g.genome_id for g in trainer.population.genomes}
        trainer._dispatch_event(self._state(EraEvent.RESURRECTION), 99)
        revived = trainer.population.genomes[before:]
        assert len(revived) == len(trainer.stash)
        assert all(g.fitness is None for g in revived)
        assert not ids_before & {g.genome_id for g in revived}
        assert [g.to_dict()["nodes"] for g in revived] == [e.genome.to_dict()["nodes"] for e in trainer.stash]


class TestCli:
    def test_train_then_replay(self, tmp_path, capsys):
        common = ["--width", "10", "--height", "8", "--seed", "1"]
        main(
            ["--pop-size", "6", "--generations", "2", "--games-per-genome", "1", "--out-root", str(tmp_path)]
            + common
        )
        run_dir = next(tmp_path.iterdir())
        assert (run_dir / "report.md").exists()
        assert (run_dir / "plots" / "champion_network.png").exists()

        main(["--replay", str(run_dir / "champion_genome.json"), "--replay-games", "2"] + common)
        out = capsys.readouterr().out
        assert "Replaying genome" in out
        assert "[game 02/02]" in out

    def test_rejects_bad_arguments(self):
        with pytest.raises(SystemExit):
            main(["--pop-size", "0"])

    def test_key_stash_entries_plot_each_generation_once(self, chain):
        assert key_stash_entries([]) == []
        single = [StashEntry(chain, 0)]
        assert key_stash_entries(single) == single
        repeated = [StashEntry(chain.clone(), gen) for gen in (0, 0, 0, 9)]
        assert [e.generation for e in key_stash_entries(repeated)] == [0]
        spread = [StashEntry(chain.clone(), gen) for gen in (0, 3, 4, 9)]
        assert [e.generation for e in key_stash_entries(spread)] == [0, 4]
