"""Progress ledger: the only writer of `UserProgress`."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import date, datetime

from .badges import BadgeStatus, CompletionContext, badge_statuses, evaluate_new_badges
from .catalog import Catalog
from .levels import round_half_up
from .models import Badge, DifficultyLevel, Track
from .progress import HistoryEntry, ProgressStore, UserProgress, add_heatmap_minutes, advance_streak

logger = logging.getLogger(__name__)

MIN_XP_PER_COMPLETION = 5
_XP_FACTORS = {DifficultyLevel.HARD: 1.5, DifficultyLevel.MEDIUM: 1.2}


def local_now() -> datetime:
    return datetime.now().astimezone()


def xp_for_completion(score: int, duration_minutes: int, difficulty_label: str) -> int:
    """Ritual XP earned by one finalized session."""
    try:
        factor = _XP_FACTORS.get(DifficultyLevel.from_label(difficulty_label), 1.0)
    except ValueError:
        factor = 1.0
    return max(MIN_XP_PER_COMPLETION, round_half_up((score / 10 + duration_minutes * 2) * factor))


@dataclass(frozen=True)
class CompletionResult:
    """What one `record_completion` call changed."""

    progress: UserProgress
    entry: HistoryEntry
    xp_earned: int
    previous_level: int
    new_badges: tuple[Badge, ...]

    @property
    def leveled_up(self) -> bool:
        return self.progress.ritual_level > self.previous_level


class ProgressLedger:
    """Serializes every progress mutation and persists after each one.

    Each mutation builds a new snapshot, saves it, then swaps it in, so a
    failed save leaves the in-memory state untouched.
    """

    def __init__(
        self,
        catalog: Catalog,
        store: ProgressStore,
        now: Callable[[], datetime] = local_now,
    ) -> None:
        self._catalog = catalog
        self._store = store
        self._now = now
        self._lock = threading.RLock()
        loaded = store.load()
        if loaded is None:
            logger.info("No saved progress found; starting fresh.")
            loaded = UserProgress()
        self._progress = loaded

    def snapshot(self) -> UserProgress:
        with self._lock:
            return self._progress

    def today(self) -> date:
        return self._now().date()

    def record_completion(
        self,
        drill_id: str,
        score: int,
        duration_minutes: int,
        difficulty_label: str,
        level_reached: int,
        was_perfect: bool,
    ) -> CompletionResult:
        """Apply one finalized session as a single transaction."""
        drill = self._catalog.require_drill(drill_id)
        if score < 0 or duration_minutes < 0 or level_reached < 0:
            raise ValueError("Score, duration, and level must be non-negative.")

        with self._lock:
            now = self._now()
            today = now.date()
            current = self._progress

            entry = HistoryEntry(
                drill_id=drill_id,
                completed_at=now,
                score=score,
                duration_minutes=duration_minutes,
                difficulty=difficulty_label,
                level_reached=level_reached,
            )
            best_scores = dict(current.drill_best_scores)
            best_scores[drill_id] = max(best_scores.get(drill_id, score), score)
            streak_days, last_completed = advance_streak(current.streak_days, current.last_completed_date, today)
            xp_earned = xp_for_completion(score, duration_minutes, difficulty_label)

            updated = replace(
                current,
                history=current.history + (entry,),
                total_drills_completed=current.total_drills_completed + 1,
                total_minutes=current.total_minutes + duration_minutes,
                drill_best_scores=best_scores,
                streak_days=streak_days,
                best_streak=max(current.best_streak, streak_days),
                last_completed_date=last_completed,
                heatmap=add_heatmap_minutes(current.heatmap, today, duration_minutes),
                ritual_xp=current.ritual_xp + xp_earned,
            )

            context = CompletionContext(
                drill_id=drill_id,
                game_type=drill.game_type,
                score=score,
                level_reached=level_reached,
                was_perfect=was_perfect,
                today=today,
            )
            new_badges = evaluate_new_badges(self._catalog.badges, updated, context)
            if new_badges:
                unlocked = dict(updated.unlocked_badges)
                for badge in new_badges:
                    unlocked[badge.id] = now
                updated = replace(updated, unlocked_badges=unlocked)

            self._commit(updated)

        logger.info(
            "Recorded %s: score %d, +%d XP, streak %d",
            drill_id,
            score,
            xp_earned,
            updated.streak_days,
        )
        for badge in new_badges:
            logger.info("Unlocked badge %s", badge.id)
        return CompletionResult(
            progress=updated,
            entry=entry,
            xp_earned=xp_earned,
            previous_level=current.ritual_level,
            new_badges=tuple(new_badges),
        )

    def reset_progress(self) -> UserProgress:
        with self._lock:
            fresh = UserProgress()
            self._commit(fresh)
        logger.info("Progress reset to defaults.")
        return fresh

    def select_track(self, track_id: str) -> Track:
        track = self._catalog.require_track(track_id)
        with self._lock:
            if self._progress.selected_track_id != track_id:
                self._commit(replace(self._progress, selected_track_id=track_id))
        return track

    def complete_onboarding(self) -> None:
        with self._lock:
            if not self._progress.has_completed_onboarding:
                self._commit(replace(self._progress, has_completed_onboarding=True))

    def mark_tutorial_seen(self, tutorial_id: str) -> None:
        with self._lock:
            seen = self._progress.tutorials_seen
            if tutorial_id not in seen:
                self._commit(replace(self._progress, tutorials_seen=seen | {tutorial_id}))

    def has_seen_tutorial(self, tutorial_id: str) -> bool:
        return tutorial_id in self.snapshot().tutorials_seen

    def best_score(self, drill_id: str) -> int:
        return self.snapshot().best_score(drill_id)

    def badge_statuses(self) -> list[BadgeStatus]:
        return badge_statuses(self._catalog.badges, self.snapshot())

    def unlocked_badges(self) -> list[BadgeStatus]:
        return [status for status in self.badge_statuses() if status.unlocked]

    def locked_badges(self) -> list[Badge]:
        return [status.badge for status in self.badge_statuses() if not status.unlocked]

    def weekly_total(self) -> int:
        return self.snapshot().weekly_total(self.today())

    def days_active_this_week(self) -> int:
        return self.snapshot().days_active_this_week(self.today())

    def week_heatmap(self) -> list[tuple[date, int]]:
        return self.snapshot().week_heatmap(self.today())

    def is_streak_active_today(self) -> bool:
        return self.snapshot().is_streak_active_today(self.today())

    def current_track(self) -> Track:
        """Return the selected track, or the first catalog track if the saved id is stale."""
        track = self._catalog.track(self.snapshot().selected_track_id)
        return track if track is not None else self._catalog.tracks[0]

    def _commit(self, updated: UserProgress) -> None:
        self._store.save(updated, saved_at=self._now())
        self._progress = updated
