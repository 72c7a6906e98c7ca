"""Error taxonomy for scope resolution and archive building.

Every error carries the offending ``path`` and the pipeline ``stage`` it was
raised from, so the CLI can print a single diagnostic line.
"""

from __future__ import annotations

from pathlib import Path

STAGE_SCOPE = "scope resolution"
STAGE_ARCHIVE = "archiving"


class CloisterError(Exception):
    """Base class for all pipeline failures."""

    stage = STAGE_SCOPE

    def __init__(self, path: Path | str | None, message: str) -> None:
        super().__init__(message)
        self.path = Path(path) if path is not None else None
        self.message = message

    def __str__(self) -> str:
        if self.path is None:
            return self.message
        return f"{self.path}: {self.message}"


class InvalidRoot(CloisterError):
    """Source directory is missing or not a directory."""


class IgnoreRuleError(CloisterError):
    """Malformed rule in an ignore file. Logged, never raised to the caller."""

    def __init__(self, path: Path | str, line_number: int, pattern: str, reason: str) -> None:
        super().__init__(path, f"line {line_number}: skipping rule {pattern!r} ({reason})")
        self.line_number = line_number
        self.pattern = pattern


class TraversalIOError(CloisterError):
    """Directory or entry could not be read while walking the tree."""


class PrefixMismatch(CloisterError):
    stage = STAGE_ARCHIVE


class EmptyEntryName(CloisterError):
    stage = STAGE_ARCHIVE


class EntryReadError(CloisterError):
    """Selected file could not be read in full."""

    stage = STAGE_ARCHIVE


class DestinationWriteError(CloisterError):
    """Archive destination could not be created or written."""

    stage = STAGE_ARCHIVE


__all__ = [
    "STAGE_SCOPE",
    "STAGE_ARCHIVE",
    "CloisterError",
    "InvalidRoot",
    "IgnoreRuleError",
    "TraversalIOError",
    "PrefixMismatch",
    "EmptyEntryName",
    "EntryReadError",
    "DestinationWriteError",
]
