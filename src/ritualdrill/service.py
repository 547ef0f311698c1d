"""Application service: the call surface a presentation layer talks to."""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Iterable
from datetime import date, datetime
from pathlib import Path

from .badges import BadgeStatus
from .catalog import Catalog
from .config import Settings
from .content_loader import load_catalog
from .errors import InvalidSelectionError
from .ledger import CompletionResult, ProgressLedger, local_now
from .models import Badge, DifficultyLevel, Drill, GameType, PlanSprintTask, Track
from .planner import DailyPlan, DailyPlanBuilder
from .progress import ProgressStore, UserProgress
from .rules import PlanSprintRule
from .scoring import RoundResult
from .session import DrillSession

logger = logging.getLogger(__name__)


class TrainingService:
    """Facade over the catalog, sessions, progress ledger, and daily plan."""

    def __init__(
        self,
        store: ProgressStore | Path | str,
        rng: random.Random | None = None,
        now: Callable[[], datetime] = local_now,
        catalog: Catalog | None = None,
    ) -> None:
        self.catalog = catalog if catalog is not None else load_catalog()
        self.store = store if isinstance(store, ProgressStore) else ProgressStore(store)
        self.rng = rng or random.Random()
        self._now = now
        self.ledger = ProgressLedger(self.catalog, self.store, now=now)
        self._planner = DailyPlanBuilder(self.catalog, self.rng)
        self._plan: DailyPlan | None = None

    @classmethod
    def from_settings(cls, settings: Settings, now: Callable[[], datetime] = local_now) -> TrainingService:
        rng = random.Random(settings.seed) if settings.seed is not None else random.Random()
        return cls(settings.progress_path, rng=rng, now=now)

    def today(self) -> date:
        return self._now().date()

    # Catalog

    def list_tracks(self) -> list[Track]:
        return list(self.catalog.tracks)

    def list_drills(
        self,
        track_id: str | None = None,
        duration: int | None = None,
        difficulty: DifficultyLevel | None = None,
    ) -> list[Drill]:
        return self.catalog.filter_drills(track_id=track_id, duration=duration, difficulty=difficulty)

    def get_drill(self, drill_id: str) -> Drill | None:
        return self.catalog.drill(drill_id)

    def list_badges(self) -> list[Badge]:
        return list(self.catalog.badges)

    def rules_for_level(self, level: int) -> list[PlanSprintRule]:
        return self.catalog.rules_for_level(level)

    def task_pool(self, theme: str) -> tuple[PlanSprintTask, ...]:
        return self.catalog.task_pool(theme)

    def quick_start_drill(self, minutes: int) -> Drill | None:
        return self.catalog.first_drill_with_duration(minutes)

    # Sessions

    def start_session(
        self,
        drill_id: str,
        difficulty: DifficultyLevel | str,
        duration_minutes: int,
    ) -> DrillSession:
        """Start a session at level 1; the first round is ready on `session.current_round`."""
        drill = self.catalog.require_drill(drill_id)
        tier = _parse_difficulty(difficulty)
        if tier not in drill.difficulty_levels:
            raise InvalidSelectionError(f"Drill '{drill.id}' does not offer {tier.label} difficulty.")
        if duration_minutes not in drill.duration_options:
            raise InvalidSelectionError(f"Drill '{drill.id}' does not offer a {duration_minutes}-minute session.")

        if drill.game_type is GameType.PLAN_SPRINT:
            theme = self.catalog.task_theme_for_drill(drill)
            session = DrillSession(
                drill,
                tier,
                duration_minutes,
                self.rng,
                task_pool=self.catalog.task_pool(theme),
                theme=theme,
            )
        else:
            session = DrillSession(drill, tier, duration_minutes, self.rng)
        logger.debug("Started %s at %s for %d minutes", drill.id, tier.label, duration_minutes)
        return session

    def submit_focus_grid(self, session: DrillSession, taps: Iterable[int], elapsed_seconds: float) -> RoundResult:
        return session.submit_focus_grid(taps, elapsed_seconds)

    def submit_plan_sprint(
        self, session: DrillSession, ordering: Iterable[str], elapsed_seconds: float
    ) -> RoundResult:
        return session.submit_plan_sprint(ordering, elapsed_seconds)

    def finalize_session(self, session: DrillSession, duration_minutes: int | None = None) -> CompletionResult:
        """Record a finished session and tick its entry in today's plan.

        Without an explicit `duration_minutes` the played time is used. Either
        way at least one minute is recorded.
        """
        summary = session.finalize()
        minutes = summary.played_minutes if duration_minutes is None else duration_minutes
        return self.record_completion(
            drill_id=summary.drill_id,
            score=summary.total_score,
            duration_minutes=max(1, minutes),
            difficulty_label=summary.difficulty.label,
            level_reached=summary.level_reached,
            was_perfect=summary.was_perfect,
        )

    def record_completion(
        self,
        drill_id: str,
        score: int,
        duration_minutes: int,
        difficulty_label: str,
        level_reached: int,
        was_perfect: bool,
    ) -> CompletionResult:
        result = self.ledger.record_completion(
            drill_id=drill_id,
            score=score,
            duration_minutes=duration_minutes,
            difficulty_label=difficulty_label,
            level_reached=level_reached,
            was_perfect=was_perfect,
        )
        self.mark_plan_entry_completed(drill_id)
        return result

    # Daily plan

    def today_plan(self) -> DailyPlan:
        """Return today's plan, building it on the first request of each day."""
        today = self.today()
        if self._plan is None or self._plan.day != today:
            self._plan = self._planner.build(self.ledger.snapshot(), today)
        return self._plan

    def mark_plan_entry_completed(self, drill_id: str) -> DailyPlan:
        self._plan = self.today_plan().mark_completed(drill_id)
        return self._plan

    # Progress

    def progress_snapshot(self) -> UserProgress:
        return self.ledger.snapshot()

    def reset_progress(self) -> UserProgress:
        self._plan = None
        return self.ledger.reset_progress()

    def select_track(self, track_id: str) -> Track:
        track = self.ledger.select_track(track_id)
        self._plan = None
        return track

    def current_track(self) -> Track:
        return self.ledger.current_track()

    def complete_onboarding(self) -> None:
        self.ledger.complete_onboarding()

    def needs_tutorial(self, drill: Drill) -> bool:
        return not self.ledger.has_seen_tutorial(drill.tutorial_id)

    def mark_tutorial_seen(self, drill: Drill) -> None:
        self.ledger.mark_tutorial_seen(drill.tutorial_id)

    def best_score(self, drill_id: str) -> int:
        return self.ledger.best_score(drill_id)

    def badge_statuses(self) -> list[BadgeStatus]:
        return self.ledger.badge_statuses()

    def unlocked_badges(self) -> list[BadgeStatus]:
        return self.ledger.unlocked_badges()

    def locked_badges(self) -> list[Badge]:
        return self.ledger.locked_badges()

    def weekly_total(self) -> int:
        return self.ledger.weekly_total()

    def days_active_this_week(self) -> int:
        return self.ledger.days_active_this_week()

    def week_heatmap(self) -> list[tuple[date, int]]:
        return self.ledger.week_heatmap()


def _parse_difficulty(value: DifficultyLevel | str) -> DifficultyLevel:
    if isinstance(value, DifficultyLevel):
        return value
    try:
        return DifficultyLevel.from_label(value)
    except ValueError as exc:
        raise InvalidSelectionError(str(exc)) from exc
