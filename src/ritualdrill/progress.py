"""User progress aggregate and its JSON file persistence."""

from __future__ import annotations

import contextlib
import json
import logging
import os
import math
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from pathlib import Path
from types import MappingProxyType
from typing import cast

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
MEMORY_PATH = ":memory:"

XP_PER_LEVEL = 100
DEFAULT_TRACK_ID = "focus"
WEEK_DAYS = 7


@dataclass(frozen=True)
class HistoryEntry:
    """One finalized session in the append-only history log."""

    drill_id: str
    completed_at: datetime
    score: int
    duration_minutes: int
    difficulty: str
    level_reached: int


@dataclass(frozen=True)
class UserProgress:
    """Persistent aggregate root.

    Instances are never mutated; the ledger replaces the whole snapshot on
    every change, and the mapping fields are read-only views over private
    copies. `unlocked_badges` maps badge id to its unlock timestamp.
    """

    selected_track_id: str = DEFAULT_TRACK_ID
    streak_days: int = 0
    best_streak: int = 0
    last_completed_date: date | None = None
    total_minutes: int = 0
    total_drills_completed: int = 0
    heatmap: Mapping[date, int] = field(default_factory=dict)
    history: tuple[HistoryEntry, ...] = ()
    drill_best_scores: Mapping[str, int] = field(default_factory=dict)
    unlocked_badges: Mapping[str, datetime] = field(default_factory=dict)
    ritual_xp: int = 0
    has_completed_onboarding: bool = False
    tutorials_seen: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        for name in ("heatmap", "drill_best_scores", "unlocked_badges"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    @property
    def ritual_level(self) -> int:
        return ritual_level_for_xp(self.ritual_xp)

    @property
    def xp_to_next_level(self) -> int:
        return XP_PER_LEVEL - self.ritual_xp % XP_PER_LEVEL

    @property
    def level_progress(self) -> float:
        """Fraction of the way through the current ritual level."""
        return (self.ritual_xp % XP_PER_LEVEL) / XP_PER_LEVEL

    @property
    def unlocked_badge_ids(self) -> frozenset[str]:
        return frozenset(self.unlocked_badges)

    def best_score(self, drill_id: str) -> int:
        return self.drill_best_scores.get(drill_id, 0)

    def heatmap_value(self, day: date) -> int:
        return self.heatmap.get(day, 0)

    def week_heatmap(self, today: date) -> list[tuple[date, int]]:
        """Minutes for the trailing seven days, oldest first, today last."""
        days = [today - timedelta(days=offset) for offset in range(WEEK_DAYS - 1, -1, -1)]
        return [(day, self.heatmap_value(day)) for day in days]

    def weekly_total(self, today: date) -> int:
        return sum(minutes for _, minutes in self.week_heatmap(today))

    def days_active_this_week(self, today: date) -> int:
        return sum(1 for _, minutes in self.week_heatmap(today) if minutes > 0)

    def is_streak_active_today(self, today: date) -> bool:
        return self.last_completed_date == today

    def completed_on(self, drill_id: str, day: date) -> bool:
        """True when the history holds a completion of `drill_id` on local calendar day `day`."""
        return any(
            entry.drill_id == drill_id and entry.completed_at.date() == day for entry in self.history
        )

    def to_dict(self) -> dict[str, object]:
        """Serialize to JSON-compatible data; dates are ISO 8601 strings."""
        return {
            "selected_track_id": self.selected_track_id,
            "streak_days": self.streak_days,
            "best_streak": self.best_streak,
            "last_completed_date": self.last_completed_date.isoformat() if self.last_completed_date else None,
            "total_minutes": self.total_minutes,
            "total_drills_completed": self.total_drills_completed,
            "heatmap": {day.isoformat(): minutes for day, minutes in sorted(self.heatmap.items())},
            "history": [
                {
                    "drill_id": entry.drill_id,
                    "completed_at": entry.completed_at.isoformat(),
                    "score": entry.score,
                    "duration_minutes": entry.duration_minutes,
                    "difficulty": entry.difficulty,
                    "level_reached": entry.level_reached,
                }
                for entry in self.history
            ],
            "drill_best_scores": dict(sorted(self.drill_best_scores.items())),
            "unlocked_badges": {
                badge_id: unlocked_at.isoformat() for badge_id, unlocked_at in sorted(self.unlocked_badges.items())
            },
            # Derived from ritual_xp; written for readers of the file and ignored on load.
            "ritual_level": self.ritual_level,
            "ritual_xp": self.ritual_xp,
            "has_completed_onboarding": self.has_completed_onboarding,
            "tutorials_seen": sorted(self.tutorials_seen),
        }

    @classmethod
    def from_dict(cls, raw: object) -> UserProgress:
        """Rebuild a snapshot from `to_dict` output.

        A non-object root raises `ValueError`. Individual malformed fields and
        rows fall back to defaults or are skipped.
        """
        if not isinstance(raw, dict):
            raise ValueError("Progress payload must be a JSON object.")
        data = cast(dict[str, object], raw)

        track_raw = data.get("selected_track_id")
        selected_track_id = track_raw.strip() if isinstance(track_raw, str) and track_raw.strip() else DEFAULT_TRACK_ID
        streak_days = max(0, _coerce_int(data.get("streak_days"), default=0) or 0)
        best_streak = max(streak_days, _coerce_int(data.get("best_streak"), default=0) or 0)
        onboarding_raw = data.get("has_completed_onboarding", False)

        return cls(
            selected_track_id=selected_track_id,
            streak_days=streak_days,
            best_streak=best_streak,
            last_completed_date=_parse_date(data.get("last_completed_date")),
            total_minutes=max(0, _coerce_int(data.get("total_minutes"), default=0) or 0),
            total_drills_completed=max(0, _coerce_int(data.get("total_drills_completed"), default=0) or 0),
            heatmap=_normalize_heatmap(data.get("heatmap")),
            history=tuple(_normalize_history_rows(data.get("history"))),
            drill_best_scores=_normalize_best_scores(data.get("drill_best_scores")),
            unlocked_badges=_normalize_unlocked_badges(data.get("unlocked_badges")),
            ritual_xp=max(0, _coerce_int(data.get("ritual_xp"), default=0) or 0),
            has_completed_onboarding=onboarding_raw if isinstance(onboarding_raw, bool) else False,
            tutorials_seen=_normalize_tutorials(data.get("tutorials_seen")),
        )


def ritual_level_for_xp(ritual_xp: int) -> int:
    return ritual_xp // XP_PER_LEVEL + 1


def advance_streak(streak_days: int, last_completed: date | None, today: date) -> tuple[int, date | None]:
    """Return the streak count and last-completed date after practicing on `today`.

    A one-day gap extends the streak, a longer gap restarts it at 1 and a
    same-day repeat leaves it alone. A `today` earlier than the last completed
    day counts as a same-day repeat.
    """
    if last_completed is None:
        return 1, today
    gap = (today - last_completed).days
    if gap <= 0:
        return max(1, streak_days), last_completed
    if gap == 1:
        return streak_days + 1, today
    return 1, today


def add_heatmap_minutes(heatmap: Mapping[date, int], day: date, minutes: int) -> dict[date, int]:
    updated = dict(heatmap)
    updated[day] = updated.get(day, 0) + minutes
    return updated


class ProgressStore:
    """Reads and writes one `UserProgress` snapshot as a JSON file.

    Pass `":memory:"` to keep the snapshot in memory only (tests, demos).
    """

    def __init__(self, path: Path | str) -> None:
        self._memory_payload: str | None = None
        if isinstance(path, str) and path == MEMORY_PATH:
            self._path: Path | None = None
        else:
            self._path = Path(path)
            self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path | None:
        return self._path

    def load(self) -> UserProgress | None:
        """Return the saved snapshot, or None when there is no usable saved state."""
        text = self._read_text()
        if text is None:
            return None
        try:
            return _decode_payload(json.loads(text))
        except (ValueError, TypeError, OverflowError, RecursionError) as exc:
            logger.warning("Ignoring unreadable progress at %s: %s", self._describe(), exc)
            return None

    def save(self, progress: UserProgress, saved_at: datetime | None = None) -> None:
        """Persist a full snapshot, replacing the previous one in a single step."""
        payload = {
            "format_version": FORMAT_VERSION,
            "saved_at": (saved_at or datetime.now(UTC)).isoformat(),
            "progress": progress.to_dict(),
        }
        text = json.dumps(payload, indent=2)
        if self._path is None:
            self._memory_payload = text
            return
        _atomic_write_text(self._path, text)
        logger.debug("Saved progress to %s", self._path)

    def _read_text(self) -> str | None:
        if self._path is None:
            return self._memory_payload
        try:
            return self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read progress file %s: %s", self._path, exc)
            return None

    def _describe(self) -> str:
        return str(self._path) if self._path is not None else MEMORY_PATH


def _decode_payload(raw: object) -> UserProgress:
    if not isinstance(raw, dict):
        raise ValueError("Progress file root must be a JSON object.")
    payload = cast(dict[str, object], raw)
    format_version = _coerce_int(payload.get("format_version"))
    if format_version is None:
        raise ValueError("Progress file has invalid format_version.")
    if format_version > FORMAT_VERSION:
        raise ValueError(f"Progress file format version {format_version} is newer than supported {FORMAT_VERSION}.")
    return UserProgress.from_dict(payload.get("progress"))


def _atomic_write_text(path: Path, text: str) -> None:
    """Write to a sibling temp file, flush it to disk, then rename over `path`."""
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise


def _parse_date(value: object) -> date | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _parse_datetime(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _normalize_heatmap(raw: object) -> dict[date, int]:
    if not isinstance(raw, dict):
        return {}
    heatmap: dict[date, int] = {}
    for key, value in cast(dict[object, object], raw).items():
        day = _parse_date(key)
        minutes = _coerce_int(value)
        if day is None or minutes is None:
            continue
        heatmap[day] = max(0, minutes)
    return heatmap


def _normalize_history_rows(raw: object) -> list[HistoryEntry]:
    """Normalize history rows, skipping any that cannot be read."""
    if not isinstance(raw, list):
        return []
    entries: list[HistoryEntry] = []
    skipped = 0
    for item in cast(list[object], raw):
        if not isinstance(item, dict):
            skipped += 1
            continue
        row = cast(dict[str, object], item)
        drill_id = row.get("drill_id")
        completed_at = _parse_datetime(row.get("completed_at"))
        score = _coerce_int(row.get("score"))
        if not isinstance(drill_id, str) or not drill_id or completed_at is None or score is None:
            skipped += 1
            continue
        difficulty = row.get("difficulty", "")
        entries.append(
            HistoryEntry(
                drill_id=drill_id,
                completed_at=completed_at,
                score=score,
                duration_minutes=max(0, _coerce_int(row.get("duration_minutes"), default=0) or 0),
                difficulty=difficulty if isinstance(difficulty, str) else str(difficulty),
                level_reached=max(0, _coerce_int(row.get("level_reached"), default=0) or 0),
            )
        )
    if skipped:
        logger.warning("Skipped %d malformed history rows.", skipped)
    return entries


def _normalize_best_scores(raw: object) -> dict[str, int]:
    if not isinstance(raw, dict):
        return {}
    scores: dict[str, int] = {}
    for key, value in cast(dict[object, object], raw).items():
        score = _coerce_int(value)
        if isinstance(key, str) and key and score is not None:
            scores[key] = score
    return scores


def _normalize_unlocked_badges(raw: object) -> dict[str, datetime]:
    if not isinstance(raw, dict):
        return {}
    unlocked: dict[str, datetime] = {}
    for key, value in cast(dict[object, object], raw).items():
        unlocked_at = _parse_datetime(value)
        if isinstance(key, str) and key and unlocked_at is not None:
            unlocked[key] = unlocked_at
    return unlocked


def _normalize_tutorials(raw: object) -> frozenset[str]:
    if not isinstance(raw, list):
        return frozenset()
    return frozenset(item for item in cast(list[object], raw) if isinstance(item, str) and item)


def _coerce_int(value: object, default: int | None = None) -> int | None:
    """Coerce a JSON value to int for load normalization."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return default
    return default
