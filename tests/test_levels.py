import random

import pytest

from ritualdrill.levels import (
    build_focus_grid_round,
    build_plan_sprint_round,
    focus_grid_levels,
    focus_grid_sequence_length,
    focus_grid_size,
    focus_grid_time_budget,
    generate_sequence,
    plan_sprint_levels,
    plan_sprint_task_count,
    plan_sprint_time_budget,
    round_half_up,
    task_theme_for_track,
)
from ritualdrill.models import DifficultyLevel, EnergyLevel, PlanSprintTask, TaskCategory, TaskDuration


def _pool(size: int) -> list[PlanSprintTask]:
    return [
        PlanSprintTask(
            id=f"t{i}",
            title=f"Task {i}",
            category=TaskCategory.MENTAL,
            energy=EnergyLevel.LOW,
            duration=TaskDuration.QUICK,
        )
        for i in range(size)
    ]


def test_round_half_up() -> None:
    assert round_half_up(12.5) == 13
    assert round_half_up(2.5) == 3
    assert round_half_up(2.4999) == 2
    assert round_half_up(0.0) == 0


def test_focus_grid_level_table() -> None:
    levels = focus_grid_levels()
    first, fourth, last = levels[0], levels[3], levels[9]
    assert (first.number, first.target, first.time_limit, first.allowed_mistakes) == (1, 120, 14, 2)
    assert (first.sequence_length, first.grid_size) == (3, 4)
    assert fourth.allowed_mistakes == 1
    assert levels[7].allowed_mistakes == 0
    assert (last.target, last.time_limit, last.sequence_length, last.grid_size) == (300, 8, 7, 6)
    assert last.difficulty_multiplier == pytest.approx(2.35)

    advanced = focus_grid_levels(advanced=True)
    assert (advanced[0].sequence_length, advanced[0].grid_size) == (4, 5)
    assert (advanced[9].sequence_length, advanced[9].grid_size) == (8, 6)


def test_plan_sprint_level_table() -> None:
    levels = plan_sprint_levels()
    assert (levels[0].target, levels[0].time_limit, levels[0].sequence_length) == (6, 43, 1)
    assert (levels[9].target, levels[9].time_limit, levels[9].sequence_length) == (10, 25, 3)
    assert all(level.allowed_mistakes == 0 and level.grid_size == 0 for level in levels)
    assert levels[9].difficulty_multiplier == pytest.approx(1.9)
    assert plan_sprint_levels(advanced=True)[9].target == 12


def test_focus_grid_runtime_parameters() -> None:
    assert focus_grid_size(DifficultyLevel.EASY, 1) == 4
    assert focus_grid_size(DifficultyLevel.EASY, 5) == 5
    assert focus_grid_size(DifficultyLevel.HARD, 9) == 6

    assert focus_grid_sequence_length(DifficultyLevel.EASY, 1) == 3
    assert focus_grid_sequence_length(DifficultyLevel.EASY, 4) == 4
    assert focus_grid_sequence_length(DifficultyLevel.HARD, 10) == 7

    assert focus_grid_time_budget(DifficultyLevel.EASY, 3) == 29
    assert focus_grid_time_budget(DifficultyLevel.MEDIUM, 4) == 25
    assert focus_grid_time_budget(DifficultyLevel.MEDIUM, 5) == 28
    assert focus_grid_time_budget(DifficultyLevel.HARD, 7) == 26


def test_generate_sequence_draws_distinct_cells() -> None:
    rng = random.Random(3)
    for _ in range(50):
        sequence = generate_sequence(7, 4, rng)
        assert len(set(sequence)) == 7
        assert all(0 <= cell < 16 for cell in sequence)
    with pytest.raises(ValueError):
        generate_sequence(10, 3, rng)


def test_focus_grid_round_is_reproducible_with_seed() -> None:
    first = build_focus_grid_round(DifficultyLevel.MEDIUM, 4, random.Random(11))
    second = build_focus_grid_round(DifficultyLevel.MEDIUM, 4, random.Random(11))
    assert first == second
    assert first.grid_size == 5
    assert first.sequence_length == 5
    assert first.allowed_mistakes == 1
    assert first.preview_seconds == pytest.approx(0.45)
    assert first.time_budget == 28


def test_plan_sprint_task_count_and_time() -> None:
    assert plan_sprint_task_count(14, 1) == 4
    assert plan_sprint_task_count(14, 4) == 6
    assert plan_sprint_task_count(14, 8) == 8
    assert plan_sprint_task_count(14, 10) == 8
    assert plan_sprint_task_count(5, 10) == 5

    assert plan_sprint_time_budget(DifficultyLevel.EASY, 4, 1, 1) == 116
    assert plan_sprint_time_budget(DifficultyLevel.HARD, 8, 4, 10) == 102
    assert plan_sprint_time_budget(DifficultyLevel.HARD, 0, 0, 20) == 30


def test_plan_sprint_round_samples_without_replacement() -> None:
    pool = _pool(10)
    round_ = build_plan_sprint_round(DifficultyLevel.EASY, 7, pool, random.Random(5), theme="body")
    assert round_.theme == "body"
    assert len(round_.tasks) == 7
    assert len(set(round_.task_ids)) == 7
    assert set(round_.tasks) <= set(pool)
    assert [rule.id for rule in round_.rules] == ["quick_first", "prerequisites", "energy_curve", "group_similar"]
    assert round_.time_budget == 90 + 35 + 32 - 14


def test_task_theme_for_track() -> None:
    assert task_theme_for_track("body") == "body"
    assert task_theme_for_track("order") == "order"
    assert task_theme_for_track("focus") == "general"
    assert task_theme_for_track("mind") == "general"
