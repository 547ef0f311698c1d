"""Habit-training core: drill catalog, round scoring, progress ledger, and daily plans."""

from __future__ import annotations

import tomllib
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

__all__ = ["__version__"]

DISTRIBUTION_NAME = "ritualdrill"


def _source_tree_version() -> str | None:
    """Return `[project].version` from the nearest pyproject.toml declaring this distribution."""
    for base in Path(__file__).resolve().parents:
        pyproject = base / "pyproject.toml"
        if not pyproject.is_file():
            continue
        try:
            project = tomllib.loads(pyproject.read_text(encoding="utf-8")).get("project", {})
        except tomllib.TOMLDecodeError:
            continue
        if project.get("name") == DISTRIBUTION_NAME and isinstance(project.get("version"), str):
            return project["version"]
    return None


def _resolve_version() -> str:
    local = _source_tree_version()
    if local is not None:
        return local
    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        return "0+unknown"


__version__ = _resolve_version()
