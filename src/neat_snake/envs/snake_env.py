from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import IntEnum
from typing import Sequence

import numpy as np

from ..config import GameConfig
from ..genome import Genome

EMPTY, WALL, BODY, GOAL = 0, 1, 2, 3

SENSOR_NAMES = (
    "wall_n",
    "wall_e",
    "wall_s",
    "wall_w",
    "body_n",
    "body_e",
    "body_s",
    "body_w",
    "goal_dx",
    "goal_dy",
    "length",
    "bias",
)
OUTPUT_NAMES = ("move_n", "move_e", "move_s", "move_w")


class Direction(IntEnum):
    NORTH = 0
    EAST = 1
    SOUTH = 2
    WEST = 3

    @property
    def offset(self) -> tuple[int, int]:
        return _OFFSETS[self]


_OFFSETS = {
    Direction.NORTH: (0, 1),
    Direction.EAST: (1, 0),
    Direction.SOUTH: (0, -1),
    Direction.WEST: (-1, 0),
}


def choose_direction(outputs: Sequence[float]) -> Direction:
    """Strict argmax over the four move intents; the lowest index wins ties."""
    if len(outputs) != len(Direction):
        raise ValueError(f"Expected {len(Direction)} outputs, got {len(outputs)}")
    best = 0
    for i in range(1, len(outputs)):
        if outputs[i] > outputs[best]:
            best = i
    return Direction(best)


class SnakeGame:
    """Headless walled grid with one snake and one goal cell."""

    def __init__(self, width: int = 40, height: int = 30, grow_increment: int = 5):
        if width < 5 or height < 5:
            raise ValueError(f"Grid must be at least 5x5, got {width}x{height}")
        self.width = width
        self.height = height
        self.grow_increment = grow_increment
        self.grid = np.zeros((width, height), dtype=np.int8)
        self.body: deque[tuple[int, int]] = deque()
        self.goal = (0, 0)
        self.to_grow = 0
        self.goals = 0
        self.moves = 0
        self.total_visited = 0
        self.visited_since_goal: set[tuple[int, int]] = set()
        self.running = False
        self._rng = np.random.default_rng()

    @property
    def head(self) -> tuple[int, int]:
        return self.body[0]

    @property
    def length(self) -> int:
        return len(self.body)

    def reset(self, rng: np.random.Generator) -> None:
        self._rng = rng
        self.grid.fill(EMPTY)
        self.grid[0, :] = WALL
        self.grid[-1, :] = WALL
        self.grid[:, 0] = WALL
        self.grid[:, -1] = WALL
        self.body.clear()
        self.to_grow = 0
        self.goals = 0
        self.moves = 0
        self.total_visited = 0
        self.visited_since_goal = set()

        while True:
            tail = self._random_interior_cell()
            dx, dy = Direction(int(rng.integers(len(Direction)))).offset
            head = (tail[0] + dx, tail[1] + dy)
            if self.grid[head] == EMPTY:
                break
        for cell in (tail, head):
            self.grid[cell] = BODY
            self.body.appendleft(cell)
        self._place_goal()
        self.running = True

    def _random_interior_cell(self) -> tuple[int, int]:
        return (
            int(self._rng.integers(1, self.width - 1)),
            int(self._rng.integers(1, self.height - 1)),
        )

    def _place_goal(self) -> None:
        for _ in range(10_000):
            cell = self._random_interior_cell()
            if self.grid[cell] == EMPTY:
                break
        else:
            free = np.argwhere(self.grid == EMPTY)
            if len(free) == 0:
                self.running = False
                return
            cell = tuple(int(v) for v in free[self._rng.integers(len(free))])
        self.goal = cell
        self.grid[cell] = GOAL

    def step(self, direction: Direction) -> bool:
        """Advance one move. Returns whether the game is still running."""
        if not self.running:
            return False
        self.moves += 1

        # The tail vacates before the new head cell is checked.
        if self.to_grow == 0:
            self.grid[self.body.pop()] = EMPTY
        else:
            self.to_grow -= 1

        dx, dy = direction.offset
        head = (self.head[0] + dx, self.head[1] + dy)
        hit = self.grid[head]
        self.body.appendleft(head)
        self.grid[head] = BODY

        if hit == GOAL:
            self.goals += 1
            self.to_grow += self.grow_increment
            self.visited_since_goal.clear()
            self._place_goal()
        elif hit != EMPTY:
            self.running = False

        if head not in self.visited_since_goal:
            self.visited_since_goal.add(head)
            self.total_visited += 1
        return self.running

    def _distance_to(self, kind: int, direction: Direction) -> int:
        dx, dy = direction.offset
        x, y = self.head[0] + dx, self.head[1] + dy
        distance = 0
        while 0 <= x < self.width and 0 <= y < self.height and self.grid[x, y] != kind:
            distance += 1
            x, y = x + dx, y + dy
        return distance

    def sensors(self) -> list[float]:
        scale = float(max(self.width, self.height))
        walls = [self._distance_to(WALL, d) / scale for d in Direction]
        body = [self._distance_to(BODY, d) / scale for d in Direction]
        hx, hy = self.head
        return [
            *walls,
            *body,
            (hx - self.goal[0]) / self.width,
            (hy - self.goal[1]) / self.height,
            self.length / scale,
            1.0,
        ]


@dataclass(frozen=True)
class EpisodeResult:
    goals: int
    visited: int
    moves: int
    crashed: bool


class SnakeEvaluator:
    def __init__(self, cfg: GameConfig | None = None):
        self.cfg = cfg or GameConfig()
        self.game = SnakeGame(self.cfg.width, self.cfg.height, self.cfg.grow_increment)

    def step_budget(self) -> int:
        return (
            self.cfg.step_budget_base
            + self.game.total_visited
            + self.cfg.step_budget_per_goal * self.game.goals
        )

    def play(self, genome: Genome, rng: np.random.Generator) -> EpisodeResult:
        game = self.game
        game.reset(rng)
        genome.build_evaluation_order()
        while game.running and game.moves <= self.step_budget():
            genome.set_inputs(game.sensors())
            genome.evaluate()
            game.step(choose_direction(genome.get_outputs()))
        return EpisodeResult(
            goals=game.goals,
            visited=game.total_visited,
            moves=game.moves,
            crashed=not game.running,
        )
