"""Exception types raised inside the log console core."""

from __future__ import annotations


class LogConsoleError(Exception):
    """Base class for log console errors."""


class ConfigurationError(LogConsoleError, ValueError):
    """Settings are missing or invalid. Callers fall back to defaults."""


class PersistenceError(LogConsoleError, OSError):
    """A log file could not be created, written, flushed or closed."""


class MalformedStackTrace(LogConsoleError):
    """Stack trace lines do not line up with the captured frames."""
