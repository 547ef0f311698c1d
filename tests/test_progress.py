import json
import logging
from datetime import UTC, date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from ritualdrill.progress import (
    FORMAT_VERSION,
    HistoryEntry,
    ProgressStore,
    UserProgress,
    add_heatmap_minutes,
    advance_streak,
    ritual_level_for_xp,
)

TODAY = date(2026, 3, 10)


def _sample_progress() -> UserProgress:
    tz = timezone(timedelta(hours=-5))
    return UserProgress(
        selected_track_id="mind",
        streak_days=3,
        best_streak=5,
        last_completed_date=TODAY,
        total_minutes=17,
        total_drills_completed=4,
        heatmap={TODAY: 6, TODAY - timedelta(days=1): 5, date(2025, 12, 31): 6},
        history=(
            HistoryEntry("focus_grid_basic", datetime(2026, 3, 9, 20, 15, tzinfo=tz), 140, 5, "Easy", 4),
            HistoryEntry("plan_sprint_mind", datetime(2026, 3, 10, 7, 1, 2, 345, tzinfo=tz), 310, 6, "Hard", 10),
        ),
        drill_best_scores={"focus_grid_basic": 140, "plan_sprint_mind": 310},
        unlocked_badges={"first_spark": datetime(2026, 3, 1, 8, 0, tzinfo=UTC)},
        ritual_xp=245,
        has_completed_onboarding=True,
        tutorials_seen=frozenset({"focusGrid_tutorial"}),
    )


def test_fresh_defaults() -> None:
    progress = UserProgress()
    assert progress.selected_track_id == "focus"
    assert progress.ritual_level == 1
    assert progress.xp_to_next_level == 100
    assert progress.level_progress == 0.0
    assert progress.unlocked_badge_ids == frozenset()
    assert progress.history == ()


def test_ritual_level_follows_xp() -> None:
    for xp in (0, 1, 99, 100, 101, 199, 200, 999, 1000):
        assert ritual_level_for_xp(xp) == xp // 100 + 1
    progress = UserProgress(ritual_xp=245)
    assert progress.ritual_level == 3
    assert progress.xp_to_next_level == 55
    assert progress.level_progress == pytest.approx(0.45)


def test_streak_transitions() -> None:
    assert advance_streak(0, None, TODAY) == (1, TODAY)
    assert advance_streak(4, TODAY - timedelta(days=1), TODAY) == (5, TODAY)
    assert advance_streak(4, TODAY, TODAY) == (4, TODAY)
    assert advance_streak(4, TODAY - timedelta(days=3), TODAY) == (1, TODAY)
    assert advance_streak(4, TODAY + timedelta(days=1), TODAY) == (4, TODAY + timedelta(days=1))


def test_heatmap_helpers() -> None:
    heatmap = add_heatmap_minutes({}, TODAY, 6)
    heatmap = add_heatmap_minutes(heatmap, TODAY, 2)
    progress = UserProgress(heatmap=add_heatmap_minutes(heatmap, TODAY - timedelta(days=7), 30))
    assert progress.heatmap_value(TODAY) == 8
    week = progress.week_heatmap(TODAY)
    assert [day for day, _ in week] == [TODAY - timedelta(days=offset) for offset in range(6, -1, -1)]
    assert week[-1] == (TODAY, 8)
    assert progress.weekly_total(TODAY) == 8
    assert progress.days_active_this_week(TODAY) == 1


def test_completed_on_uses_recorded_calendar_day() -> None:
    progress = _sample_progress()
    assert progress.completed_on("plan_sprint_mind", TODAY) is True
    assert progress.completed_on("focus_grid_basic", TODAY) is False
    assert progress.completed_on("focus_grid_basic", TODAY - timedelta(days=1)) is True


def test_dict_round_trip_preserves_everything() -> None:
    progress = _sample_progress()
    data = progress.to_dict()
    assert data["ritual_level"] == 3
    assert data["heatmap"]["2026-03-10"] == 6
    restored = UserProgress.from_dict(json.loads(json.dumps(data)))
    assert restored == progress


def test_from_dict_normalizes_bad_fields(caplog: pytest.LogCaptureFixture) -> None:
    raw = {
        "selected_track_id": "",
        "streak_days": "4",
        "best_streak": 2,
        "last_completed_date": "yesterday",
        "total_minutes": -8,
        "heatmap": {"2026-03-10": 5, "not-a-date": 3},
        "history": [
            {"drill_id": "focus_grid_basic", "completed_at": "2026-03-10T09:00:00+00:00", "score": 90},
            {"drill_id": "", "completed_at": "2026-03-10T09:00:00+00:00", "score": 1},
            "garbage",
        ],
        "unlocked_badges": {"first_spark": "never"},
        "ritual_level": 50,
        "ritual_xp": 120,
        "tutorials_seen": ["planSprint_tutorial", 3],
    }
    with caplog.at_level(logging.WARNING, logger="ritualdrill.progress"):
        progress = UserProgress.from_dict(raw)
    assert progress.selected_track_id == "focus"
    assert progress.streak_days == 4
    assert progress.best_streak == 4
    assert progress.last_completed_date is None
    assert progress.total_minutes == 0
    assert progress.heatmap == {TODAY: 5}
    assert len(progress.history) == 1
    assert progress.history[0].duration_minutes == 0
    assert progress.unlocked_badges == {}
    assert progress.ritual_level == 2
    assert progress.tutorials_seen == frozenset({"planSprint_tutorial"})
    assert "Skipped 2 malformed history rows" in caplog.text


def test_from_dict_rejects_non_object() -> None:
    with pytest.raises(ValueError):
        UserProgress.from_dict(["not", "a", "dict"])


def test_memory_store_round_trip() -> None:
    store = ProgressStore(":memory:")
    assert store.path is None
    assert store.load() is None
    store.save(_sample_progress())
    assert store.load() == _sample_progress()


def test_file_store_writes_versioned_payload(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "progress.json"
    store = ProgressStore(path)
    assert store.load() is None

    saved_at = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)
    store.save(_sample_progress(), saved_at=saved_at)
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["format_version"] == FORMAT_VERSION
    assert payload["saved_at"] == saved_at.isoformat()
    assert payload["progress"]["selected_track_id"] == "mind"
    assert ProgressStore(path).load() == _sample_progress()


def test_save_replaces_file_without_leaving_temp_files(tmp_path: Path) -> None:
    path = tmp_path / "progress.json"
    store = ProgressStore(path)
    store.save(UserProgress())
    store.save(_sample_progress())
    assert [item.name for item in tmp_path.iterdir()] == ["progress.json"]
    assert store.load() == _sample_progress()


def test_failed_write_keeps_previous_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "progress.json"
    store = ProgressStore(path)
    store.save(_sample_progress())

    def broken_replace(src: str, dst: str) -> None:
        raise OSError("disk full")

    monkeypatch.setattr("ritualdrill.progress.os.replace", broken_replace)
    with pytest.raises(OSError, match="disk full"):
        store.save(UserProgress())
    monkeypatch.undo()

    assert [item.name for item in tmp_path.iterdir()] == ["progress.json"]
    assert store.load() == _sample_progress()


@pytest.mark.parametrize(
    "content",
    [
        "{ not json",
        "[]",
        '{"format_version": "x", "progress": {}}',
        '{"format_version": 99, "progress": {}}',
        '{"format_version": 1, "progress": "nope"}',
        '{"format_version": Infinity, "progress": {}}',
        pytest.param("[" * 100000 + "]" * 100000, id="deeply-nested"),
    ],
)
def test_unreadable_files_load_as_no_state(tmp_path: Path, content: str, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "progress.json"
    path.write_text(content, encoding="utf-8")
    with caplog.at_level(logging.WARNING, logger="ritualdrill.progress"):
        assert ProgressStore(path).load() is None
    assert "Ignoring unreadable progress" in caplog.text


def test_non_finite_numbers_fall_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "progress.json"
    path.write_text(
        '{"format_version": 1, "progress": {"streak_days": Infinity, "ritual_xp": 1e400, "total_minutes": NaN,'
        ' "heatmap": {"2026-03-10": -Infinity, "2026-03-09": 4},'
        ' "drill_best_scores": {"focus_grid_basic": NaN, "plan_sprint_mind": 70}}}',
        encoding="utf-8",
    )
    progress = ProgressStore(path).load()
    assert progress is not None
    assert progress.streak_days == 0
    assert progress.ritual_xp == 0
    assert progress.total_minutes == 0
    assert dict(progress.heatmap) == {date(2026, 3, 9): 4}
    assert dict(progress.drill_best_scores) == {"plan_sprint_mind": 70}


def test_mapping_fields_are_read_only_copies() -> None:
    heatmap = {date(2026, 3, 10): 5}
    progress = UserProgress(heatmap=heatmap, drill_best_scores={"focus_grid_basic": 40})
    heatmap[date(2026, 3, 11)] = 9
    assert dict(progress.heatmap) == {date(2026, 3, 10): 5}
    with pytest.raises(TypeError):
        progress.drill_best_scores["focus_grid_basic"] = 999  # type: ignore[index]
    with pytest.raises(AttributeError):
        progress.unlocked_badges.clear()  # type: ignore[attr-defined]
    assert progress == UserProgress(heatmap={date(2026, 3, 10): 5}, drill_best_scores={"focus_grid_basic": 40})
