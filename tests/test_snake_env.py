from collections import deque

import numpy as np
import pytest

from neat_snake.config import GameConfig, MutationConfig
from neat_snake.envs.snake_env import (
    BODY,
    EMPTY,
    GOAL,
    SENSOR_NAMES,
    WALL,
    Direction,
    SnakeEvaluator,
    SnakeGame,
    choose_direction,
)
from neat_snake.genome import Genome
from neat_snake.mutation import mutate


def _arrange(game, body, goal):
    """Replace the random start with a known snake (head first) and goal."""
    game.reset(np.random.default_rng(0))
    game.grid[1:-1, 1:-1] = EMPTY
    game.body = deque(body)
    for cell in body:
        game.grid[cell] = BODY
    game.goal = goal
    game.grid[goal] = GOAL
    game.to_grow = 0


class TestChooseDirection:
    def test_strict_argmax(self):
        assert choose_direction([0.1, 0.2, 0.9, 0.3]) is Direction.SOUTH
        assert choose_direction([0.0, 0.0, 0.0, 1.0]) is Direction.WEST

    def test_ties_go_to_the_lowest_index(self):
        assert choose_direction([0.5, 0.5, 0.5, 0.5]) is Direction.NORTH
        assert choose_direction([0.1, 0.9, 0.9, 0.2]) is Direction.EAST

    def test_wrong_length(self):
        with pytest.raises(ValueError):
            choose_direction([1.0, 0.0])


class TestSnakeGame:
    def test_reset_places_snake_and_goal(self):
        game = SnakeGame()
        game.reset(np.random.default_rng(3))
        assert game.running
        assert game.length == 2
        assert game.grid[game.goal] == GOAL
        assert all(game.grid[c] == BODY for c in game.body)
        assert (game.grid[0, :] == WALL).all() and (game.grid[:, -1] == WALL).all()
        hx, hy = game.head
        assert 1 <= hx <= 38 and 1 <= hy <= 28

    def test_reset_is_deterministic_per_seed(self):
        a, b = SnakeGame(), SnakeGame()
        a.reset(np.random.default_rng(9))
        b.reset(np.random.default_rng(9))
        assert list(a.body) == list(b.body)
        assert a.goal == b.goal

    def test_wall_ends_the_game(self):
        game = SnakeGame()
        _arrange(game, [(1, 5), (2, 5)], goal=(10, 10))
        assert not game.step(Direction.WEST)
        assert not game.running
        assert game.moves == 1

    def test_goal_grows_and_resets_visited(self):
        game = SnakeGame()
        _arrange(game, [(5, 5), (5, 4)], goal=(5, 6))
        game.step(Direction.NORTH)
        assert game.goals == 1
        assert game.to_grow == 5
        assert game.visited_since_goal == {(5, 6)}
        assert game.goal != (5, 6)
        game.step(Direction.NORTH)
        assert game.length == 3

    def test_tail_vacates_before_collision(self):
        game = SnakeGame()
        _arrange(game, [(5, 5), (5, 6), (6, 6), (6, 5)], goal=(10, 10))
        assert game.step(Direction.EAST)
        assert game.head == (6, 5)

    def test_body_collision(self):
        game = SnakeGame()
        _arrange(game, [(5, 5), (5, 6), (6, 6), (6, 5), (7, 5)], goal=(10, 10))
        assert not game.step(Direction.EAST)

    def test_visited_counts_unique_cells(self):
        game = SnakeGame()
        _arrange(game, [(10, 10), (10, 9)], goal=(30, 20))
        for d in (Direction.EAST, Direction.NORTH, Direction.WEST, Direction.SOUTH):
            game.step(d)
        # The last move returns to (10, 10), which was never entered during play.
        assert game.total_visited == 4
        game.step(Direction.EAST)
        assert game.total_visited == 4

    def test_sensors(self):
        game = SnakeGame()
        _arrange(game, [(1, 5), (2, 5)], goal=(4, 9))
        readings = game.sensors()
        assert len(readings) == len(SENSOR_NAMES) == 12
        assert readings[-1] == 1.0
        assert readings[3] == 0.0  # wall immediately to the west
        assert readings[1] == pytest.approx(37 / 40)
        assert readings[5] == 0.0  # body immediately to the east
        assert readings[8] == pytest.approx((1 - 4) / 40)
        assert readings[9] == pytest.approx((5 - 9) / 30)
        assert readings[10] == pytest.approx(2 / 40)


class TestSnakeEvaluator:
    def test_budget_tracks_progress(self):
        evaluator = SnakeEvaluator(GameConfig(step_budget_base=50, step_budget_per_goal=20))
        evaluator.game.total_visited = 7
        evaluator.game.goals = 2
        assert evaluator.step_budget() == 50 + 7 + 40

    def test_unconnected_genome_runs_north_into_the_wall(self, ids):
        genome = Genome.new(12, 4, ids)
        result = SnakeEvaluator().play(genome, np.random.default_rng(4))
        assert result.crashed
        assert 1 <= result.moves <= 29
        assert result.visited == result.moves

    def test_play_is_deterministic(self, ids, rng):
        genome = Genome.new(12, 4, ids)
        params = MutationConfig(prob_add_connection=1.0, prob_mutate_weight=1.0, prob_add_node=0.5)
        for _ in range(15):
            mutate(genome, rng, params, ids=ids)
        evaluator = SnakeEvaluator()
        first = evaluator.play(genome, np.random.default_rng(77))
        second = evaluator.play(genome, np.random.default_rng(77))
        assert first == second
        assert first.moves <= 500 + first.visited + 100 * first.goals + 1
