"""Exception hierarchy for the training core."""

from __future__ import annotations


class RitualDrillError(Exception):
    """Base class for every error raised by the package."""


class ConfigurationError(RitualDrillError, ValueError):
    """Malformed catalog content or invalid settings; raised at load time."""


class UnknownDrillError(RitualDrillError, KeyError):
    """A drill or track id that the catalog does not define."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable.
        return str(self.args[0]) if self.args else ""


class InvalidSelectionError(RitualDrillError, ValueError):
    """A session was requested with a difficulty or duration the drill does not offer."""


class SessionStateError(RitualDrillError, RuntimeError):
    """An outcome was submitted to a finished session or for the wrong game type."""
