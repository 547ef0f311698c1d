"""Plan-sprint ordering rules.

Rules are plain data tagged with a `RuleKind`; each kind maps to a pure
evaluator that scores an ordered task list with a conformance fraction in
[0.0, 1.0]. Which rules are active depends only on the level number.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum

from .models import EnergyLevel, PlanSprintTask, TaskDuration


class RuleKind(str, Enum):
    QUICK_WINS_FIRST = "quick_first"
    FOLLOW_PREREQUISITES = "prerequisites"
    ENERGY_CURVE = "energy_curve"
    GROUP_SIMILAR = "group_similar"


@dataclass(frozen=True)
class PlanSprintRule:
    """Ordering rule shown to the player; `unlock_level` is the first level it applies to."""

    kind: RuleKind
    title: str
    description: str
    unlock_level: int

    @property
    def id(self) -> str:
        return self.kind.value


RULES: tuple[PlanSprintRule, ...] = (
    PlanSprintRule(
        kind=RuleKind.QUICK_WINS_FIRST,
        title="Quick Wins First",
        description="Start with quick tasks to build momentum",
        unlock_level=1,
    ),
    PlanSprintRule(
        kind=RuleKind.FOLLOW_PREREQUISITES,
        title="Follow Prerequisites",
        description="Complete required tasks before dependent ones",
        unlock_level=3,
    ),
    PlanSprintRule(
        kind=RuleKind.ENERGY_CURVE,
        title="Energy Management",
        description="High energy tasks in the middle, low at ends",
        unlock_level=5,
    ),
    PlanSprintRule(
        kind=RuleKind.GROUP_SIMILAR,
        title="Group Similar",
        description="Keep same-category tasks together",
        unlock_level=7,
    ),
)


def rules_for_level(level: int) -> list[PlanSprintRule]:
    """Return the active rules for a level, in display order."""
    return [rule for rule in RULES if level >= rule.unlock_level]


def evaluate_rule(rule: PlanSprintRule | RuleKind, tasks: Sequence[PlanSprintTask]) -> float:
    """Score one ordering against one rule, clamped to [0.0, 1.0]."""
    kind = rule.kind if isinstance(rule, PlanSprintRule) else rule
    score = _EVALUATORS[kind](tasks)
    return min(1.0, max(0.0, score))


def _quick_wins_first(tasks: Sequence[PlanSprintTask]) -> float:
    if len(tasks) < 2:
        return 1.0
    first_third = tasks[: len(tasks) // 3 + 1]
    quick = sum(1 for task in first_third if task.duration == TaskDuration.QUICK)
    return quick / len(first_third)


def _follow_prerequisites(tasks: Sequence[PlanSprintTask]) -> float:
    completed: set[str] = set()
    violations = 0
    for task in tasks:
        violations += sum(1 for prerequisite in task.prerequisites if prerequisite not in completed)
        completed.add(task.id)
    references = sum(len(task.prerequisites) for task in tasks)
    if references == 0:
        return 1.0
    return 1.0 - violations / references


def _energy_curve(tasks: Sequence[PlanSprintTask]) -> float:
    count = len(tasks)
    if count < 4:
        return 1.0
    middle = tasks[count // 3 : count * 2 // 3]
    total_high = sum(1 for task in tasks if task.energy == EnergyLevel.HIGH)
    if total_high == 0:
        return 1.0
    return sum(1 for task in middle if task.energy == EnergyLevel.HIGH) / total_high


def _group_similar(tasks: Sequence[PlanSprintTask]) -> float:
    count = len(tasks)
    if count < 3:
        return 1.0
    switches = sum(1 for previous, current in zip(tasks, tasks[1:]) if previous.category != current.category)
    min_switches = len({task.category for task in tasks}) - 1
    max_switches = count - 1
    if max_switches == min_switches:
        return 1.0
    return 1.0 - (switches - min_switches) / (max_switches - min_switches)


_EVALUATORS: dict[RuleKind, Callable[[Sequence[PlanSprintTask]], float]] = {
    RuleKind.QUICK_WINS_FIRST: _quick_wins_first,
    RuleKind.FOLLOW_PREREQUISITES: _follow_prerequisites,
    RuleKind.ENERGY_CURVE: _energy_curve,
    RuleKind.GROUP_SIMILAR: _group_similar,
}
