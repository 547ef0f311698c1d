"""Daily plan of up to three drills."""

from __future__ import annotations

import random
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum

from .catalog import Catalog
from .models import Drill
from .progress import UserProgress

STREAK_SAVER_MINUTES = 2


class PlanReason(str, Enum):
    RECOMMENDED = "recommended"
    VARIETY = "variety"
    STREAK_SAVER = "streak_saver"

    @property
    def label(self) -> str:
        return _REASON_LABELS[self]


_REASON_LABELS = {
    PlanReason.RECOMMENDED: "Recommended for your track",
    PlanReason.VARIETY: "Build variety",
    PlanReason.STREAK_SAVER: "Quick streak saver",
}


@dataclass(frozen=True)
class PlannedDrill:
    drill: Drill
    reason: PlanReason
    completed: bool = False


@dataclass(frozen=True)
class DailyPlan:
    """Today's plan. Entry order and membership never change after building."""

    day: date
    entries: tuple[PlannedDrill, ...]

    @property
    def drill_ids(self) -> tuple[str, ...]:
        return tuple(entry.drill.id for entry in self.entries)

    @property
    def completed_count(self) -> int:
        return sum(1 for entry in self.entries if entry.completed)

    @property
    def total_count(self) -> int:
        return len(self.entries)

    @property
    def completion_percentage(self) -> float:
        if not self.entries:
            return 0.0
        return self.completed_count / self.total_count

    @property
    def has_completed_any(self) -> bool:
        return self.completed_count > 0

    def mark_completed(self, drill_id: str) -> DailyPlan:
        """Return a plan with `drill_id`'s entry flagged; unknown ids leave it unchanged."""
        if drill_id not in self.drill_ids:
            return self
        entries = tuple(
            replace(entry, completed=True) if entry.drill.id == drill_id else entry for entry in self.entries
        )
        return replace(self, entries=entries)


class DailyPlanBuilder:
    """Builds the plan; the variety track is the only random choice."""

    def __init__(self, catalog: Catalog, rng: random.Random | None = None) -> None:
        self._catalog = catalog
        self._rng = rng or random.Random()

    def build(self, progress: UserProgress, today: date) -> DailyPlan:
        catalog = self._catalog
        selected_id = progress.selected_track_id
        picks: list[tuple[Drill, PlanReason]] = []

        def included(drill: Drill) -> bool:
            return any(existing.id == drill.id for existing, _ in picks)

        track = catalog.track(selected_id)
        if track is not None and track.recommended_drill_ids:
            drill = catalog.drill(track.recommended_drill_ids[0])
            if drill is not None:
                picks.append((drill, PlanReason.RECOMMENDED))

        other_tracks = [candidate for candidate in catalog.tracks if candidate.id != selected_id]
        if other_tracks:
            variety_track = self._rng.choice(other_tracks)
            if variety_track.recommended_drill_ids:
                drill = catalog.drill(variety_track.recommended_drill_ids[0])
                if drill is not None and not included(drill):
                    picks.append((drill, PlanReason.VARIETY))

        for drill in catalog.filter_drills(duration=STREAK_SAVER_MINUTES):
            if not included(drill):
                picks.append((drill, PlanReason.STREAK_SAVER))
                break

        return DailyPlan(
            day=today,
            entries=tuple(
                PlannedDrill(drill=drill, reason=reason, completed=progress.completed_on(drill.id, today))
                for drill, reason in picks
            ),
        )
