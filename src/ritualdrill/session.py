"""One play-through of a drill, from level 1 until failure or the last level."""

from __future__ import annotations

import math
import random
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import cast

from .errors import SessionStateError
from .levels import (
    DEFAULT_TASK_THEME,
    FocusGridRound,
    PlanSprintRound,
    build_focus_grid_round,
    build_plan_sprint_round,
)
from .models import DifficultyLevel, Drill, GameType, PlanSprintTask
from .scoring import RoundResult, score_focus_grid_round, score_plan_sprint_round


class SessionStatus(str, Enum):
    PLAYING = "playing"
    COMPLETED_ALL = "completed_all"
    GAME_OVER = "game_over"


@dataclass(frozen=True)
class SessionSummary:
    """Totals handed to the ledger when a session is finalized."""

    drill_id: str
    difficulty: DifficultyLevel
    status: SessionStatus
    total_score: int
    level_reached: int
    perfect_levels: int
    rounds_played: int
    played_minutes: int

    @property
    def was_perfect(self) -> bool:
        return self.perfect_levels > 0


class DrillSession:
    """Session state machine.

    A passed round advances the level (or ends the session after the drill's
    last level); a failed round ends it. Every round's score, including the
    failing one, counts toward `total_score`.
    """

    def __init__(
        self,
        drill: Drill,
        difficulty: DifficultyLevel,
        duration_minutes: int,
        rng: random.Random,
        task_pool: Sequence[PlanSprintTask] = (),
        theme: str = DEFAULT_TASK_THEME,
    ) -> None:
        if drill.game_type is GameType.PLAN_SPRINT and not task_pool:
            raise ValueError(f"Drill '{drill.id}' needs a task pool.")
        self.drill = drill
        self.difficulty = difficulty
        self.duration_minutes = duration_minutes
        self.theme = theme
        self.current_level = 1
        self.total_score = 0
        self.perfect_levels = 0
        self.elapsed_seconds = 0.0
        self.status = SessionStatus.PLAYING
        self.results: list[RoundResult] = []
        self.finalized = False
        self._rng = rng
        self._task_pool = tuple(task_pool)
        self.current_round: FocusGridRound | PlanSprintRound = self._build_round()

    @property
    def is_finished(self) -> bool:
        return self.status is not SessionStatus.PLAYING

    def submit_focus_grid(self, taps: Iterable[int], elapsed_seconds: float) -> RoundResult:
        round_ = cast(FocusGridRound, self._require_round(GameType.FOCUS_GRID))
        return self._apply(score_focus_grid_round(round_, taps, elapsed_seconds), elapsed_seconds)

    def submit_plan_sprint(self, ordering: Iterable[str], elapsed_seconds: float) -> RoundResult:
        round_ = cast(PlanSprintRound, self._require_round(GameType.PLAN_SPRINT))
        return self._apply(score_plan_sprint_round(round_, ordering, elapsed_seconds), elapsed_seconds)

    def summary(self) -> SessionSummary:
        return SessionSummary(
            drill_id=self.drill.id,
            difficulty=self.difficulty,
            status=self.status,
            total_score=self.total_score,
            level_reached=self.current_level,
            perfect_levels=self.perfect_levels,
            rounds_played=len(self.results),
            played_minutes=max(1, int(math.floor(self.elapsed_seconds / 60))),
        )

    def finalize(self) -> SessionSummary:
        """Close a finished session for recording; a session can be finalized once."""
        if not self.is_finished:
            raise SessionStateError(f"Session for '{self.drill.id}' is still in progress.")
        if self.finalized:
            raise SessionStateError(f"Session for '{self.drill.id}' was already finalized.")
        self.finalized = True
        return self.summary()

    def _require_round(self, game_type: GameType) -> FocusGridRound | PlanSprintRound:
        if self.is_finished:
            raise SessionStateError(f"Session for '{self.drill.id}' is already over ({self.status.value}).")
        if self.drill.game_type is not game_type:
            raise SessionStateError(f"Drill '{self.drill.id}' is played with {self.drill.game_type.value}.")
        return self.current_round

    def _apply(self, result: RoundResult, elapsed_seconds: float) -> RoundResult:
        self.results.append(result)
        self.total_score += result.score
        self.elapsed_seconds += max(0.0, elapsed_seconds)
        if result.perfect:
            self.perfect_levels += 1

        if not result.passed:
            self.status = SessionStatus.GAME_OVER
        elif self.current_level >= self.drill.max_level:
            self.status = SessionStatus.COMPLETED_ALL
        else:
            self.current_level += 1
            self.current_round = self._build_round()
        return result

    def _build_round(self) -> FocusGridRound | PlanSprintRound:
        if self.drill.game_type is GameType.FOCUS_GRID:
            return build_focus_grid_round(self.difficulty, self.current_level, self._rng)
        return build_plan_sprint_round(
            self.difficulty,
            self.current_level,
            self._task_pool,
            self._rng,
            theme=self.theme,
        )
