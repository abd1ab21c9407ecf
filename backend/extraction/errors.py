"""
ProcTrace Exceptions.

Requires Python 3.11+.
"""

from pathlib import Path


class ProcTraceError(Exception):
    """Base class for errors raised by the extractor."""


class ConfigError(ProcTraceError, ValueError):
    """A rejected argument map line. Recoverable: the remaining lines still load."""

    def __init__(self, line_number: int, line: str, reason: str) -> None:
        super().__init__(f"line {line_number}: {reason}: {line.strip()!r}")
        self.line_number = line_number
        self.line = line
        self.reason = reason


class SourceReadError(ProcTraceError):
    """A source file could not be read."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason
