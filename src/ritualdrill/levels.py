"""Level tables and per-round parameter generation.

Two kinds of numbers live here:

- the precomputed `DrillLevel` table every drill carries (built once when the
  catalog loads), and
- the runtime parameters of an actual round, which additionally depend on the
  chosen difficulty tier and the session's current level.
"""

from __future__ import annotations

import math
import random
from collections.abc import Sequence
from dataclasses import dataclass

from .models import DifficultyLevel, DrillLevel, GameType, PlanSprintTask
from .rules import PlanSprintRule, rules_for_level

LEVEL_COUNT = 10
MAX_FOCUS_GRID_SIZE = 6
MAX_RUNTIME_SEQUENCE_LENGTH = 7
MAX_PLAN_SPRINT_TASKS = 8
MIN_PLAN_SPRINT_TIME = 30

DEFAULT_TASK_THEME = "general"
_TRACK_TASK_THEMES = {"body": "body", "order": "order"}


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return int(math.floor(value + 0.5))


def focus_grid_levels(advanced: bool = False) -> tuple[DrillLevel, ...]:
    """Build the ten-level table for a focus-grid drill."""
    base_grid = 5 if advanced else 4
    base_sequence = 4 if advanced else 3
    return tuple(
        DrillLevel(
            number=i,
            target=100 + 20 * i,
            time_limit=max(8, 15 - i),
            allowed_mistakes=max(0, 2 - i // 4),
            difficulty_multiplier=1.0 + 0.15 * (i - 1),
            sequence_length=min(8, base_sequence + (i - 1) // 2),
            grid_size=min(MAX_FOCUS_GRID_SIZE, base_grid + (i - 1) // 4),
        )
        for i in range(1, LEVEL_COUNT + 1)
    )


def plan_sprint_levels(advanced: bool = False) -> tuple[DrillLevel, ...]:
    """Build the ten-level table for a plan-sprint drill."""
    base_task_count = 8 if advanced else 6
    return tuple(
        DrillLevel(
            number=i,
            target=min(14, base_task_count + (i - 1) // 2),
            time_limit=max(20, 45 - 2 * i),
            allowed_mistakes=0,
            difficulty_multiplier=1.0 + 0.1 * (i - 1),
            sequence_length=1 + i // 4,
            grid_size=0,
        )
        for i in range(1, LEVEL_COUNT + 1)
    )


def levels_for(game_type: GameType, advanced: bool = False) -> tuple[DrillLevel, ...]:
    if game_type is GameType.FOCUS_GRID:
        return focus_grid_levels(advanced)
    return plan_sprint_levels(advanced)


@dataclass(frozen=True)
class FocusGridRound:
    """Parameters of one focus-grid round; `sequence` holds distinct cell indices."""

    level: int
    difficulty: DifficultyLevel
    grid_size: int
    sequence: tuple[int, ...]
    time_budget: int
    allowed_mistakes: int
    preview_seconds: float

    @property
    def sequence_length(self) -> int:
        return len(self.sequence)

    @property
    def cell_count(self) -> int:
        return self.grid_size * self.grid_size


@dataclass(frozen=True)
class PlanSprintRound:
    """Parameters of one plan-sprint round; `tasks` is the dealt (shuffled) order."""

    level: int
    difficulty: DifficultyLevel
    theme: str
    tasks: tuple[PlanSprintTask, ...]
    rules: tuple[PlanSprintRule, ...]
    time_budget: int

    @property
    def task_ids(self) -> tuple[str, ...]:
        return tuple(task.id for task in self.tasks)


def focus_grid_size(difficulty: DifficultyLevel, level: int) -> int:
    return min(MAX_FOCUS_GRID_SIZE, difficulty.tuning.base_grid_size + (level - 1) // 4)


def focus_grid_sequence_length(difficulty: DifficultyLevel, level: int) -> int:
    return min(MAX_RUNTIME_SEQUENCE_LENGTH, difficulty.tuning.min_sequence_length + (level - 1) // 3)


def focus_grid_time_budget(difficulty: DifficultyLevel, sequence_length: int) -> int:
    tuning = difficulty.tuning
    return tuning.base_time_limit + round_half_up(sequence_length * tuning.extra_time_per_tile)


def generate_sequence(length: int, grid_size: int, rng: random.Random) -> tuple[int, ...]:
    """Draw `length` distinct cells uniformly from a `grid_size` x `grid_size` grid."""
    cells = grid_size * grid_size
    if length > cells:
        raise ValueError(f"Cannot draw {length} distinct cells from a {grid_size}x{grid_size} grid.")
    return tuple(rng.sample(range(cells), length))


def build_focus_grid_round(difficulty: DifficultyLevel, level: int, rng: random.Random) -> FocusGridRound:
    grid_size = focus_grid_size(difficulty, level)
    length = focus_grid_sequence_length(difficulty, level)
    return FocusGridRound(
        level=level,
        difficulty=difficulty,
        grid_size=grid_size,
        sequence=generate_sequence(length, grid_size, rng),
        time_budget=focus_grid_time_budget(difficulty, length),
        allowed_mistakes=difficulty.tuning.allowed_mistakes,
        preview_seconds=difficulty.tuning.preview_seconds,
    )


def task_theme_for_track(track_id: str) -> str:
    """Return the task-pool theme a track's plan-sprint drills draw from."""
    return _TRACK_TASK_THEMES.get(track_id, DEFAULT_TASK_THEME)


def plan_sprint_task_count(pool_size: int, level: int) -> int:
    return min(pool_size, min(MAX_PLAN_SPRINT_TASKS, 4 + level // 2))


def plan_sprint_time_budget(difficulty: DifficultyLevel, task_count: int, rule_count: int, level: int) -> int:
    base = difficulty.tuning.plan_base_time
    return max(MIN_PLAN_SPRINT_TIME, base + 5 * task_count + 8 * rule_count - 2 * level)


def build_plan_sprint_round(
    difficulty: DifficultyLevel,
    level: int,
    pool: Sequence[PlanSprintTask],
    rng: random.Random,
    theme: str = DEFAULT_TASK_THEME,
) -> PlanSprintRound:
    count = plan_sprint_task_count(len(pool), level)
    tasks = tuple(rng.sample(list(pool), count))
    rules = tuple(rules_for_level(level))
    return PlanSprintRound(
        level=level,
        difficulty=difficulty,
        theme=theme,
        tasks=tasks,
        rules=rules,
        time_budget=plan_sprint_time_budget(difficulty, len(tasks), len(rules), level),
    )
