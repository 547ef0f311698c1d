"""Load the declarative content catalog from bundled JSON resources."""

from __future__ import annotations

import json
import logging
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any

from .catalog import Catalog
from .errors import ConfigurationError
from .levels import DEFAULT_TASK_THEME, levels_for
from .models import (
    Badge,
    BadgeCriteria,
    BadgeRarity,
    CriteriaType,
    DifficultyLevel,
    Drill,
    EnergyLevel,
    GameType,
    PlanSprintTask,
    TaskCategory,
    TaskDuration,
    Track,
)

logger = logging.getLogger(__name__)

CONTENT_PACKAGE = "ritualdrill.content"
CONTENT_FILES = ("tracks.json", "drills.json", "badges.json", "tasks.json")


def load_catalog() -> Catalog:
    """Load and validate the bundled catalog."""
    root = resources.files(CONTENT_PACKAGE)
    raw = {name: _parse_json(name, root.joinpath(name).read_text(encoding="utf-8-sig")) for name in CONTENT_FILES}
    catalog = _build_catalog(raw)
    logger.info(
        "Loaded catalog: %d tracks, %d drills, %d badges, %d task pools",
        len(catalog.tracks),
        len(catalog.drills),
        len(catalog.badges),
        len(catalog.task_pools),
    )
    return catalog


def load_catalog_from_dir(path: Path) -> Catalog:
    """Load a catalog from a directory holding the four content files, for tests/tools."""
    raw: dict[str, Any] = {}
    for name in CONTENT_FILES:
        file_path = path / name
        if not file_path.exists():
            raise ConfigurationError(f"Missing catalog file: {file_path}")
        raw[name] = _parse_json(name, file_path.read_text(encoding="utf-8-sig"))
    return _build_catalog(raw)


def _parse_json(name: str, text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Catalog file {name} is not valid JSON: {exc}") from exc


def _build_catalog(raw: dict[str, Any]) -> Catalog:
    try:
        tracks = tuple(_track_from_dict(item) for item in raw["tracks.json"]["tracks"])
        drills = tuple(_drill_from_dict(item) for item in raw["drills.json"]["drills"])
        badges = tuple(_badge_from_dict(item) for item in raw["badges.json"]["badges"])
        pools = {
            str(theme): tuple(_task_from_dict(item) for item in items)
            for theme, items in raw["tasks.json"]["pools"].items()
        }
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        if isinstance(exc, ConfigurationError):
            raise
        raise ConfigurationError(f"Malformed catalog content: {exc!r}") from exc

    catalog = Catalog(tracks=tracks, drills=drills, badges=badges, task_pools=MappingProxyType(pools))
    _validate_unique_ids(catalog)
    _validate_references(catalog)
    _validate_task_pools(catalog)
    return catalog


def _track_from_dict(raw: dict[str, Any]) -> Track:
    return Track(
        id=str(raw["id"]),
        title=str(raw["title"]),
        subtitle=str(raw.get("subtitle", "")),
        description=str(raw.get("description", "")),
        accent=str(raw.get("accent", "")),
        secondary_accent=str(raw.get("secondary_accent", "")),
        recommended_drill_ids=tuple(str(item) for item in raw.get("recommended_drill_ids", [])),
    )


def _drill_from_dict(raw: dict[str, Any]) -> Drill:
    drill_id = str(raw["id"])
    game_type = GameType(raw["game_type"])
    durations = tuple(int(value) for value in raw.get("duration_options", []))
    if not durations or any(value <= 0 for value in durations):
        raise ConfigurationError(f"Drill '{drill_id}' needs positive duration options.")
    difficulties = tuple(DifficultyLevel.from_label(str(value)) for value in raw.get("difficulty_levels", []))
    if not difficulties:
        raise ConfigurationError(f"Drill '{drill_id}' has no difficulty levels.")
    advanced = bool(raw.get("advanced", False))
    return Drill(
        id=drill_id,
        title=str(raw["title"]),
        track_id=str(raw["track_id"]),
        game_type=game_type,
        duration_options=durations,
        difficulty_levels=difficulties,
        short_description=str(raw.get("short_description", "")),
        long_description=str(raw.get("long_description", "")),
        how_it_helps=tuple(str(item) for item in raw.get("how_it_helps", [])),
        advanced=advanced,
        levels=levels_for(game_type, advanced),
    )


def _badge_from_dict(raw: dict[str, Any]) -> Badge:
    criteria_raw = raw["criteria"]
    game_type_raw = criteria_raw.get("game_type")
    drill_id_raw = criteria_raw.get("drill_id")
    criteria = BadgeCriteria(
        type=CriteriaType(criteria_raw["type"]),
        value=int(criteria_raw["value"]),
        drill_id=str(drill_id_raw) if drill_id_raw is not None else None,
        game_type=GameType(game_type_raw) if game_type_raw is not None else None,
    )
    return Badge(
        id=str(raw["id"]),
        title=str(raw["title"]),
        description=str(raw.get("description", "")),
        rarity=BadgeRarity(raw.get("rarity", BadgeRarity.COMMON.value)),
        criteria=criteria,
    )


def _task_from_dict(raw: dict[str, Any]) -> PlanSprintTask:
    return PlanSprintTask(
        id=str(raw["id"]),
        title=str(raw["title"]),
        category=TaskCategory(raw["category"]),
        energy=EnergyLevel[str(raw["energy"]).upper()],
        duration=TaskDuration[str(raw["duration"]).upper()],
        prerequisites=tuple(str(item) for item in raw.get("prerequisites", [])),
    )


def _validate_unique_ids(catalog: Catalog) -> None:
    groups: list[tuple[str, list[str]]] = [
        ("track", [track.id for track in catalog.tracks]),
        ("drill", [drill.id for drill in catalog.drills]),
        ("badge", [badge.id for badge in catalog.badges]),
    ]
    groups.extend((f"task in pool '{theme}'", [task.id for task in pool]) for theme, pool in catalog.task_pools.items())
    for label, ids in groups:
        seen: set[str] = set()
        for item_id in ids:
            if item_id in seen:
                raise ConfigurationError(f"Duplicate {label} id: {item_id}")
            seen.add(item_id)


def _validate_references(catalog: Catalog) -> None:
    """Every cross reference must resolve inside the catalog."""
    track_ids = {track.id for track in catalog.tracks}
    drill_ids = {drill.id for drill in catalog.drills}

    for drill in catalog.drills:
        if drill.track_id not in track_ids:
            raise ConfigurationError(f"Drill '{drill.id}' references unknown track '{drill.track_id}'.")

    for track in catalog.tracks:
        for drill_id in track.recommended_drill_ids:
            if drill_id not in drill_ids:
                raise ConfigurationError(f"Track '{track.id}' recommends unknown drill '{drill_id}'.")

    for badge in catalog.badges:
        criteria = badge.criteria
        if criteria.value < 0:
            raise ConfigurationError(f"Badge '{badge.id}' has a negative threshold.")
        if criteria.type is CriteriaType.SCORE_IN_DRILL and criteria.drill_id not in drill_ids:
            raise ConfigurationError(f"Badge '{badge.id}' is scoped to unknown drill '{criteria.drill_id}'.")
        if criteria.type is CriteriaType.COMPLETE_LEVEL_IN_GAME and criteria.game_type is None:
            raise ConfigurationError(f"Badge '{badge.id}' needs a game_type scope.")


def _validate_task_pools(catalog: Catalog) -> None:
    """Prerequisites must name tasks in the same pool. Cycles are not checked."""
    if DEFAULT_TASK_THEME not in catalog.task_pools:
        raise ConfigurationError(f"Catalog must define a '{DEFAULT_TASK_THEME}' task pool.")
    for theme, pool in catalog.task_pools.items():
        if not pool:
            raise ConfigurationError(f"Task pool '{theme}' is empty.")
        ids = {task.id for task in pool}
        for task in pool:
            for prerequisite in task.prerequisites:
                if prerequisite not in ids:
                    raise ConfigurationError(
                        f"Task '{task.id}' in pool '{theme}' has unknown prerequisite '{prerequisite}'."
                    )
