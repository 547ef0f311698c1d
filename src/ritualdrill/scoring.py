"""Round scoring for both mini-games.

Every function here is pure: given round parameters and what the player
did, it returns points and a pass/fail verdict. Malformed input (taps outside
the grid, orderings naming tasks that were never dealt) is sanitized rather
than rejected so a bad event can never reach the progress ledger.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .levels import FocusGridRound, PlanSprintRound, round_half_up
from .models import GameType, PlanSprintTask
from .rules import PlanSprintRule, evaluate_rule

logger = logging.getLogger(__name__)

PASS_THRESHOLD = 0.5
PERFECT_THRESHOLD = 0.95


def seconds_remaining(time_budget: int, elapsed_seconds: float) -> int:
    """Whole seconds left on a countdown that started at `time_budget`."""
    return max(0, time_budget - int(math.floor(max(0.0, elapsed_seconds))))


def focus_grid_score(
    correct_taps: int,
    completed: bool,
    time_left: int,
    mistakes: int,
    level: int,
    multiplier: float,
) -> int:
    base = correct_taps * 15
    completion_bonus = 50 if completed else 0
    time_bonus = time_left * 3
    mistake_penalty = mistakes * 10
    level_bonus = level * 10
    raw = max(0, base + completion_bonus + time_bonus - mistake_penalty + level_bonus)
    return round_half_up(raw * multiplier)


def plan_sprint_score(average_score: float, time_left: int, level: int, multiplier: float) -> int:
    accuracy_points = round_half_up(average_score * 100)
    time_bonus = time_left * 2
    level_bonus = level * 15
    return round_half_up((accuracy_points + time_bonus + level_bonus) * multiplier)


@dataclass(frozen=True)
class TapReplay:
    """What a tap sequence achieved against the expected sequence."""

    correct_taps: int
    mistakes: int
    completed: bool
    exceeded_mistakes: bool
    ignored_taps: int


def replay_taps(round_: FocusGridRound, taps: Iterable[int]) -> TapReplay:
    """Walk taps in order the way the grid reacts to them live.

    A correct tap advances the sequence, a wrong tap counts a mistake without
    advancing. Input stops mattering once the sequence is complete or the
    mistake allowance is exceeded; taps outside the grid are ignored.
    """
    correct = 0
    mistakes = 0
    ignored = 0
    length = round_.sequence_length
    for tap in taps:
        if correct >= length or mistakes > round_.allowed_mistakes:
            break
        if not isinstance(tap, int) or isinstance(tap, bool) or not 0 <= tap < round_.cell_count:
            ignored += 1
            continue
        if tap == round_.sequence[correct]:
            correct += 1
        else:
            mistakes += 1
    if ignored:
        logger.warning("Ignored %d out-of-range taps in level %d round.", ignored, round_.level)
    return TapReplay(
        correct_taps=correct,
        mistakes=mistakes,
        completed=correct == length,
        exceeded_mistakes=mistakes > round_.allowed_mistakes,
        ignored_taps=ignored,
    )


@dataclass(frozen=True)
class RuleScore:
    rule: PlanSprintRule
    score: float


@dataclass(frozen=True)
class OrderEvaluation:
    """Per-rule conformance and their mean (1.0 when no rule is active)."""

    rule_scores: tuple[RuleScore, ...]
    average: float


def evaluate_order(rules: Sequence[PlanSprintRule], tasks: Sequence[PlanSprintTask]) -> OrderEvaluation:
    scores = tuple(RuleScore(rule=rule, score=evaluate_rule(rule, tasks)) for rule in rules)
    average = sum(item.score for item in scores) / len(scores) if scores else 1.0
    return OrderEvaluation(rule_scores=scores, average=average)


def sanitize_order(dealt: Sequence[PlanSprintTask], ordering: Iterable[str]) -> tuple[PlanSprintTask, ...]:
    """Coerce a submitted ordering into a permutation of the dealt tasks.

    Unknown and repeated ids are dropped; dealt tasks the ordering omits are
    appended in dealt order.
    """
    by_id = {task.id: task for task in dealt}
    ordered: list[PlanSprintTask] = []
    seen: set[str] = set()
    for task_id in ordering:
        task = by_id.get(task_id)
        if task is None or task_id in seen:
            continue
        seen.add(task_id)
        ordered.append(task)
    ordered.extend(task for task in dealt if task.id not in seen)
    return tuple(ordered)


@dataclass(frozen=True)
class RoundResult:
    """Scored outcome of one round."""

    game_type: GameType
    level: int
    score: int
    passed: bool
    perfect: bool
    time_left: int
    correct_taps: int = 0
    mistakes: int = 0
    timed_out: bool = False
    rule_scores: tuple[RuleScore, ...] = ()
    average_score: float | None = None


def score_focus_grid_round(round_: FocusGridRound, taps: Iterable[int], elapsed_seconds: float) -> RoundResult:
    replay = replay_taps(round_, taps)
    timed_out = elapsed_seconds > round_.time_budget and not replay.exceeded_mistakes
    completed = replay.completed and not timed_out
    time_left = seconds_remaining(round_.time_budget, elapsed_seconds)
    score = focus_grid_score(
        correct_taps=replay.correct_taps,
        completed=completed,
        time_left=time_left,
        mistakes=replay.mistakes,
        level=round_.level,
        multiplier=round_.difficulty.tuning.score_multiplier,
    )
    logger.debug(
        "Focus grid level %d: %d/%d taps, %d mistakes, %ds left -> %d points",
        round_.level,
        replay.correct_taps,
        round_.sequence_length,
        replay.mistakes,
        time_left,
        score,
    )
    return RoundResult(
        game_type=GameType.FOCUS_GRID,
        level=round_.level,
        score=score,
        passed=completed,
        perfect=completed and replay.mistakes == 0,
        time_left=time_left,
        correct_taps=replay.correct_taps,
        mistakes=replay.mistakes,
        timed_out=timed_out,
    )


def score_plan_sprint_round(round_: PlanSprintRound, ordering: Iterable[str], elapsed_seconds: float) -> RoundResult:
    submitted = list(ordering)
    tasks = sanitize_order(round_.tasks, submitted)
    if [task.id for task in tasks] != submitted:
        logger.warning("Sanitized plan sprint ordering for level %d round.", round_.level)
    evaluation = evaluate_order(round_.rules, tasks)
    time_left = seconds_remaining(round_.time_budget, elapsed_seconds)
    score = plan_sprint_score(
        evaluation.average,
        time_left,
        round_.level,
        round_.difficulty.tuning.score_multiplier,
    )
    logger.debug(
        "Plan sprint level %d: average %.3f, %ds left -> %d points",
        round_.level,
        evaluation.average,
        time_left,
        score,
    )
    return RoundResult(
        game_type=GameType.PLAN_SPRINT,
        level=round_.level,
        score=score,
        passed=evaluation.average >= PASS_THRESHOLD,
        perfect=evaluation.average >= PERFECT_THRESHOLD,
        time_left=time_left,
        timed_out=elapsed_seconds > round_.time_budget,
        rule_scores=evaluation.rule_scores,
        average_score=evaluation.average,
    )
