import logging

import pytest

from ritualdrill.levels import FocusGridRound, PlanSprintRound
from ritualdrill.models import DifficultyLevel, EnergyLevel, GameType, PlanSprintTask, TaskCategory, TaskDuration
from ritualdrill.rules import rules_for_level
from ritualdrill.scoring import (
    focus_grid_score,
    plan_sprint_score,
    replay_taps,
    sanitize_order,
    score_focus_grid_round,
    score_plan_sprint_round,
    seconds_remaining,
)


def _grid_round(difficulty: DifficultyLevel = DifficultyLevel.EASY) -> FocusGridRound:
    return FocusGridRound(
        level=1,
        difficulty=difficulty,
        grid_size=4,
        sequence=(3, 7, 12),
        time_budget=29,
        allowed_mistakes=difficulty.tuning.allowed_mistakes,
        preview_seconds=difficulty.tuning.preview_seconds,
    )


def _task(task_id: str, duration: TaskDuration, category: TaskCategory = TaskCategory.MENTAL) -> PlanSprintTask:
    return PlanSprintTask(id=task_id, title=task_id, category=category, energy=EnergyLevel.MEDIUM, duration=duration)


def _sprint_round(tasks: tuple[PlanSprintTask, ...], level: int = 1) -> PlanSprintRound:
    return PlanSprintRound(
        level=level,
        difficulty=DifficultyLevel.EASY,
        theme="general",
        tasks=tasks,
        rules=tuple(rules_for_level(level)),
        time_budget=116,
    )


def test_focus_grid_score_formula() -> None:
    assert focus_grid_score(2, False, 0, 0, 5, 1.0) == 80
    assert focus_grid_score(3, True, 10, 1, 2, 1.5) == 203
    assert focus_grid_score(0, False, 0, 5, 1, 2.0) == 0


def test_plan_sprint_score_formula() -> None:
    assert plan_sprint_score(1.0, 100, 1, 1.0) == 315
    assert plan_sprint_score(0.875, 10, 3, 1.5) == 230


def test_seconds_remaining() -> None:
    assert seconds_remaining(29, 0) == 29
    assert seconds_remaining(29, 10.9) == 19
    assert seconds_remaining(29, 29) == 0
    assert seconds_remaining(29, 45) == 0
    assert seconds_remaining(29, -3) == 29


def test_perfect_focus_grid_round() -> None:
    result = score_focus_grid_round(_grid_round(), [3, 7, 12], elapsed_seconds=10.4)
    assert result.game_type is GameType.FOCUS_GRID
    assert result.time_left == 19
    assert result.score == 162
    assert result.passed is True
    assert result.perfect is True
    assert result.correct_taps == 3


def test_mistake_within_allowance_still_passes() -> None:
    result = score_focus_grid_round(_grid_round(), [3, 5, 7, 12], elapsed_seconds=10)
    assert result.mistakes == 1
    assert result.score == 152
    assert result.passed is True
    assert result.perfect is False


def test_exceeding_mistakes_fails_with_partial_score() -> None:
    result = score_focus_grid_round(_grid_round(), [3, 0, 1, 2, 7], elapsed_seconds=5)
    assert result.correct_taps == 1
    assert result.mistakes == 3
    assert result.passed is False
    assert result.timed_out is False
    assert result.score == 15 + 24 * 3 - 30 + 10


def test_hard_difficulty_fails_on_first_mistake() -> None:
    replay = replay_taps(_grid_round(DifficultyLevel.HARD), [3, 4, 7, 12])
    assert replay.exceeded_mistakes is True
    assert replay.completed is False
    assert replay.correct_taps == 1


def test_timeout_fails_round() -> None:
    result = score_focus_grid_round(_grid_round(), [3, 7, 12], elapsed_seconds=30.0)
    assert result.timed_out is True
    assert result.passed is False
    assert result.perfect is False
    assert result.time_left == 0
    assert result.score == 45 + 10


def test_finishing_on_the_last_second_passes() -> None:
    result = score_focus_grid_round(_grid_round(), [3, 7, 12], elapsed_seconds=29)
    assert result.timed_out is False
    assert result.passed is True
    assert result.score == 105


def test_incomplete_submission_fails() -> None:
    result = score_focus_grid_round(_grid_round(), [3, 7], elapsed_seconds=10)
    assert result.passed is False
    assert result.score == 30 + 19 * 3 + 10


def test_out_of_range_and_trailing_taps_are_ignored(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="ritualdrill.scoring"):
        replay = replay_taps(_grid_round(), [3, 99, -1, 7, 12, 1, 1])
    assert replay.ignored_taps == 2
    assert replay.mistakes == 0
    assert replay.completed is True
    assert "out-of-range" in caplog.text


def test_scenario_quick_wins_commit_is_perfect() -> None:
    tasks = (
        _task("q1", TaskDuration.QUICK),
        _task("q2", TaskDuration.QUICK),
        _task("l1", TaskDuration.LONG),
        _task("m1", TaskDuration.MEDIUM),
    )
    round_ = _sprint_round((tasks[2], tasks[0], tasks[3], tasks[1]))
    result = score_plan_sprint_round(round_, ["q1", "q2", "l1", "m1"], elapsed_seconds=16)
    assert result.game_type is GameType.PLAN_SPRINT
    assert result.average_score == 1.0
    assert result.passed is True
    assert result.perfect is True
    assert result.time_left == 100
    assert result.score == 315
    assert [item.rule.id for item in result.rule_scores] == ["quick_first"]


def test_low_conformance_fails() -> None:
    tasks = (
        _task("l1", TaskDuration.LONG),
        _task("l2", TaskDuration.LONG),
        _task("q1", TaskDuration.QUICK),
        _task("q2", TaskDuration.QUICK),
    )
    result = score_plan_sprint_round(_sprint_round(tasks), ["l1", "l2", "q1", "q2"], elapsed_seconds=6)
    assert result.average_score == 0.0
    assert result.passed is False
    assert result.perfect is False
    assert result.score == 0 + 110 * 2 + 15


def test_late_commit_is_scored_without_time_bonus() -> None:
    tasks = (_task("q1", TaskDuration.QUICK), _task("q2", TaskDuration.QUICK), _task("l1", TaskDuration.LONG))
    result = score_plan_sprint_round(_sprint_round(tasks), ["q1", "q2", "l1"], elapsed_seconds=500)
    assert result.timed_out is True
    assert result.time_left == 0
    assert result.passed is True
    assert result.score == 100 + 15


def test_orderings_are_sanitized_to_dealt_tasks() -> None:
    tasks = (_task("a", TaskDuration.QUICK), _task("b", TaskDuration.LONG), _task("c", TaskDuration.MEDIUM))
    ordered = sanitize_order(tasks, ["c", "ghost", "c", "a"])
    assert [task.id for task in ordered] == ["c", "a", "b"]
    assert [task.id for task in sanitize_order(tasks, [])] == ["a", "b", "c"]


def test_rule_breakdown_at_high_level() -> None:
    tasks = (
        _task("a", TaskDuration.QUICK, TaskCategory.MENTAL),
        _task("b", TaskDuration.QUICK, TaskCategory.MENTAL),
        _task("c", TaskDuration.LONG, TaskCategory.PHYSICAL),
        _task("d", TaskDuration.LONG, TaskCategory.PHYSICAL),
    )
    result = score_plan_sprint_round(_sprint_round(tasks, level=7), ["a", "b", "c", "d"], elapsed_seconds=0)
    assert len(result.rule_scores) == 4
    assert all(item.score == 1.0 for item in result.rule_scores)
    assert result.average_score == 1.0
