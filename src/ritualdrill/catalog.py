"""Read-only queries over the loaded content catalog."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from .errors import UnknownDrillError
from .levels import DEFAULT_TASK_THEME, task_theme_for_track
from .models import Badge, DifficultyLevel, Drill, PlanSprintTask, Track
from .rules import PlanSprintRule, rules_for_level


@dataclass(frozen=True)
class Catalog:
    """Static content: tracks, drills (with level tables), badges, and task pools.

    Sequence order is catalog order and is significant (daily plans and the
    drill library rely on it).
    """

    tracks: tuple[Track, ...]
    drills: tuple[Drill, ...]
    badges: tuple[Badge, ...]
    task_pools: Mapping[str, tuple[PlanSprintTask, ...]]

    def track(self, track_id: str) -> Track | None:
        return next((track for track in self.tracks if track.id == track_id), None)

    def drill(self, drill_id: str) -> Drill | None:
        return next((drill for drill in self.drills if drill.id == drill_id), None)

    def badge(self, badge_id: str) -> Badge | None:
        return next((badge for badge in self.badges if badge.id == badge_id), None)

    def require_track(self, track_id: str) -> Track:
        track = self.track(track_id)
        if track is None:
            raise UnknownDrillError(f"Unknown track: {track_id}")
        return track

    def require_drill(self, drill_id: str) -> Drill:
        drill = self.drill(drill_id)
        if drill is None:
            raise UnknownDrillError(f"Unknown drill: {drill_id}")
        return drill

    def drills_for_track(self, track_id: str) -> list[Drill]:
        return [drill for drill in self.drills if drill.track_id == track_id]

    def task_pool(self, theme: str) -> tuple[PlanSprintTask, ...]:
        """Return a theme's task pool, falling back to the general pool."""
        pool = self.task_pools.get(theme)
        if pool is None:
            return self.task_pools[DEFAULT_TASK_THEME]
        return pool

    def task_theme_for_drill(self, drill: Drill) -> str:
        theme = task_theme_for_track(drill.track_id)
        return theme if theme in self.task_pools else DEFAULT_TASK_THEME

    def rules_for_level(self, level: int) -> list[PlanSprintRule]:
        return rules_for_level(level)

    def filter_drills(
        self,
        track_id: str | None = None,
        duration: int | None = None,
        difficulty: DifficultyLevel | None = None,
    ) -> list[Drill]:
        """Return drills matching every given filter, in catalog order (possibly empty)."""
        matches: list[Drill] = []
        for drill in self.drills:
            if track_id is not None and drill.track_id != track_id:
                continue
            if duration is not None and duration not in drill.duration_options:
                continue
            if difficulty is not None and difficulty not in drill.difficulty_levels:
                continue
            matches.append(drill)
        return matches

    def first_drill_with_duration(self, minutes: int) -> Drill | None:
        matches = self.filter_drills(duration=minutes)
        return matches[0] if matches else None
