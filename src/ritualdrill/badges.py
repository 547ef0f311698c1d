"""Badge unlock criteria."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime

from .models import Badge, BadgeCriteria, CriteriaType, GameType
from .progress import UserProgress


@dataclass(frozen=True)
class CompletionContext:
    """The completion that triggered a badge check."""

    drill_id: str
    game_type: GameType
    score: int
    level_reached: int
    was_perfect: bool
    today: date


@dataclass(frozen=True)
class BadgeStatus:
    badge: Badge
    unlocked_at: datetime | None

    @property
    def unlocked(self) -> bool:
        return self.unlocked_at is not None


_Check = Callable[[BadgeCriteria, UserProgress, CompletionContext], bool]


def _complete_drills(criteria: BadgeCriteria, progress: UserProgress, context: CompletionContext) -> bool:
    return progress.total_drills_completed >= criteria.value


def _streak_days(criteria: BadgeCriteria, progress: UserProgress, context: CompletionContext) -> bool:
    return progress.streak_days >= criteria.value


def _total_minutes(criteria: BadgeCriteria, progress: UserProgress, context: CompletionContext) -> bool:
    return progress.total_minutes >= criteria.value


def _score_in_drill(criteria: BadgeCriteria, progress: UserProgress, context: CompletionContext) -> bool:
    if criteria.drill_id is None:
        return False
    if context.drill_id == criteria.drill_id and context.score >= criteria.value:
        return True
    return progress.best_score(criteria.drill_id) >= criteria.value


def _complete_level_in_game(criteria: BadgeCriteria, progress: UserProgress, context: CompletionContext) -> bool:
    return context.game_type == criteria.game_type and context.level_reached >= criteria.value


def _weekly_days(criteria: BadgeCriteria, progress: UserProgress, context: CompletionContext) -> bool:
    return progress.days_active_this_week(context.today) >= criteria.value


def _perfect_level(criteria: BadgeCriteria, progress: UserProgress, context: CompletionContext) -> bool:
    return context.was_perfect


def _ritual_level(criteria: BadgeCriteria, progress: UserProgress, context: CompletionContext) -> bool:
    return progress.ritual_level >= criteria.value


_CHECKS: dict[CriteriaType, _Check] = {
    CriteriaType.COMPLETE_DRILLS: _complete_drills,
    CriteriaType.STREAK_DAYS: _streak_days,
    CriteriaType.TOTAL_MINUTES: _total_minutes,
    CriteriaType.SCORE_IN_DRILL: _score_in_drill,
    CriteriaType.COMPLETE_LEVEL_IN_GAME: _complete_level_in_game,
    CriteriaType.WEEKLY_DAYS: _weekly_days,
    CriteriaType.PERFECT_LEVEL: _perfect_level,
    CriteriaType.RITUAL_LEVEL: _ritual_level,
}


def criteria_met(criteria: BadgeCriteria, progress: UserProgress, context: CompletionContext) -> bool:
    """Check one criterion against the post-completion state."""
    return _CHECKS[criteria.type](criteria, progress, context)


def evaluate_new_badges(
    badges: Iterable[Badge], progress: UserProgress, context: CompletionContext
) -> list[Badge]:
    """Return badges, in catalog order, that are still locked but now qualify."""
    unlocked = progress.unlocked_badges
    return [badge for badge in badges if badge.id not in unlocked and criteria_met(badge.criteria, progress, context)]


def badge_statuses(badges: Iterable[Badge], progress: UserProgress) -> list[BadgeStatus]:
    return [BadgeStatus(badge=badge, unlocked_at=progress.unlocked_badges.get(badge.id)) for badge in badges]
