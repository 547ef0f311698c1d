"""Runtime settings resolved from the environment."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path

from .errors import ConfigurationError

ENV_HOME = "RITUALDRILL_HOME"
ENV_SEED = "RITUALDRILL_SEED"
ENV_LOG_LEVEL = "RITUALDRILL_LOG_LEVEL"

DEFAULT_DATA_DIR = Path(".ritualdrill")
DEFAULT_PROGRESS_FILE = "progress.json"
DEFAULT_LOG_LEVEL = "WARNING"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    """Immutable application settings.

    `seed` is only meant for reproducible sessions (demos and tests); production
    runs leave it unset so the random source is seeded by the OS.
    """

    data_dir: Path = DEFAULT_DATA_DIR
    progress_file: str = DEFAULT_PROGRESS_FILE
    seed: int | None = None
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def progress_path(self) -> Path:
        return self.data_dir / self.progress_file

    @property
    def log_level_number(self) -> int:
        return int(getattr(logging, self.log_level))

    def with_overrides(
        self,
        data_dir: Path | str | None = None,
        seed: int | None = None,
        log_level: str | None = None,
    ) -> Settings:
        """Return a copy with any non-None override applied."""
        updated = self
        if data_dir is not None:
            updated = replace(updated, data_dir=Path(data_dir))
        if seed is not None:
            updated = replace(updated, seed=seed)
        if log_level is not None:
            updated = replace(updated, log_level=_parse_log_level(log_level))
        return updated


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build settings from environment variables, falling back to defaults."""
    env = os.environ if environ is None else environ
    settings = Settings()

    home = env.get(ENV_HOME, "").strip()
    if home:
        settings = replace(settings, data_dir=Path(home).expanduser())

    seed_text = env.get(ENV_SEED, "").strip()
    if seed_text:
        settings = replace(settings, seed=_parse_seed(seed_text))

    level_text = env.get(ENV_LOG_LEVEL, "").strip()
    if level_text:
        settings = replace(settings, log_level=_parse_log_level(level_text))

    return settings


def _parse_seed(text: str) -> int:
    try:
        return int(text)
    except ValueError as exc:
        raise ConfigurationError(f"{ENV_SEED} must be an integer, got {text!r}.") from exc


def _parse_log_level(text: str) -> str:
    level = text.strip().upper()
    if level not in _LOG_LEVELS:
        raise ConfigurationError(f"Unknown log level {text!r}; expected one of {', '.join(_LOG_LEVELS)}.")
    return level
