"""Core catalog models for tracks, drills, badges, and plan-sprint tasks."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum


class GameType(str, Enum):
    """Mini-game a drill is played with."""

    FOCUS_GRID = "focusGrid"
    PLAN_SPRINT = "planSprint"


@dataclass(frozen=True)
class DifficultyTuning:
    """Fixed tuning constants carried by one difficulty tier."""

    base_grid_size: int
    min_sequence_length: int
    max_sequence_length: int
    preview_seconds: float
    base_time_limit: int
    allowed_mistakes: int
    score_multiplier: float
    extra_time_per_tile: float
    plan_base_time: int


class DifficultyLevel(str, Enum):
    """Difficulty tier; the value is the label stored in history entries."""

    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"

    @property
    def tuning(self) -> DifficultyTuning:
        return _TUNING[self]

    @property
    def label(self) -> str:
        return self.value

    @classmethod
    def from_label(cls, label: str) -> DifficultyLevel:
        """Parse a tier from its label, case-insensitively."""
        wanted = label.strip().lower()
        for tier in cls:
            if tier.value.lower() == wanted:
                return tier
        raise ValueError(f"Unknown difficulty: {label!r}")


# Harder tiers never allow more mistakes and never score lower.
_TUNING: dict[DifficultyLevel, DifficultyTuning] = {
    DifficultyLevel.EASY: DifficultyTuning(
        base_grid_size=4,
        min_sequence_length=3,
        max_sequence_length=4,
        preview_seconds=0.6,
        base_time_limit=20,
        allowed_mistakes=2,
        score_multiplier=1.0,
        extra_time_per_tile=3.0,
        plan_base_time=90,
    ),
    DifficultyLevel.MEDIUM: DifficultyTuning(
        base_grid_size=5,
        min_sequence_length=4,
        max_sequence_length=5,
        preview_seconds=0.45,
        base_time_limit=15,
        allowed_mistakes=1,
        score_multiplier=1.5,
        extra_time_per_tile=2.5,
        plan_base_time=70,
    ),
    DifficultyLevel.HARD: DifficultyTuning(
        base_grid_size=6,
        min_sequence_length=5,
        max_sequence_length=6,
        preview_seconds=0.3,
        base_time_limit=12,
        allowed_mistakes=0,
        score_multiplier=2.0,
        extra_time_per_tile=2.0,
        plan_base_time=50,
    ),
}


class BadgeRarity(str, Enum):
    """Badge rarity, ordered from common to legendary."""

    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"

    @property
    def rank(self) -> int:
        return list(BadgeRarity).index(self)

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    # str comparisons would order alphabetically; compare by rank instead.
    def __lt__(self, other: object) -> bool:
        if not isinstance(other, BadgeRarity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, BadgeRarity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, BadgeRarity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, BadgeRarity):
            return NotImplemented
        return self.rank >= other.rank


class CriteriaType(str, Enum):
    """Kinds of badge unlock criteria."""

    COMPLETE_DRILLS = "completeDrills"
    STREAK_DAYS = "streakDays"
    TOTAL_MINUTES = "totalMinutes"
    SCORE_IN_DRILL = "scoreInDrill"
    COMPLETE_LEVEL_IN_GAME = "completeLevelInGame"
    WEEKLY_DAYS = "weeklyDays"
    PERFECT_LEVEL = "perfectLevel"
    RITUAL_LEVEL = "ritualLevel"


class TaskCategory(str, Enum):
    PHYSICAL = "physical"
    MENTAL = "mental"
    CREATIVE = "creative"
    ORGANIZATIONAL = "organizational"


class EnergyLevel(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3


class TaskDuration(IntEnum):
    QUICK = 1
    MEDIUM = 2
    LONG = 3


@dataclass(frozen=True)
class Track:
    """Thematic grouping of drills."""

    id: str
    title: str
    subtitle: str
    description: str
    accent: str
    secondary_accent: str
    recommended_drill_ids: tuple[str, ...]


@dataclass(frozen=True)
class DrillLevel:
    """Precomputed parameters for one level of a drill.

    For plan-sprint drills `target` is the task-count target and `grid_size` is 0.
    """

    number: int
    target: int
    time_limit: int
    allowed_mistakes: int
    difficulty_multiplier: float
    sequence_length: int
    grid_size: int


@dataclass(frozen=True)
class Drill:
    """Playable mini-game configuration."""

    id: str
    title: str
    track_id: str
    game_type: GameType
    duration_options: tuple[int, ...]
    difficulty_levels: tuple[DifficultyLevel, ...]
    short_description: str
    long_description: str
    how_it_helps: tuple[str, ...]
    advanced: bool
    levels: tuple[DrillLevel, ...]

    @property
    def max_level(self) -> int:
        return len(self.levels)

    @property
    def tutorial_id(self) -> str:
        return f"{self.game_type.value}_tutorial"


@dataclass(frozen=True)
class BadgeCriteria:
    """Unlock condition; `drill_id` / `game_type` scope the drill- and game-specific kinds."""

    type: CriteriaType
    value: int
    drill_id: str | None = None
    game_type: GameType | None = None


@dataclass(frozen=True)
class Badge:
    """Achievement definition. Unlock state lives in the user's progress."""

    id: str
    title: str
    description: str
    rarity: BadgeRarity
    criteria: BadgeCriteria


@dataclass(frozen=True)
class PlanSprintTask:
    """One micro-task dealt in a plan-sprint round."""

    id: str
    title: str
    category: TaskCategory
    energy: EnergyLevel
    duration: TaskDuration
    prerequisites: tuple[str, ...] = ()
