"""Archive entry naming.

All prefix stripping and separator normalization lives here so every platform
produces identical entry names for the same tree.
"""

from __future__ import annotations

from pathlib import Path, PurePath

from .errors import EmptyEntryName, PrefixMismatch


def is_within(path: Path, root: Path) -> bool:
    """Return whether ``path`` is at or under ``root`` (no resolution)."""
    try:
        path.relative_to(root)
        return True
    except ValueError:
        return False


def to_posix_relative(path: PurePath, base: PurePath) -> str:
    """Return ``path`` relative to ``base`` with ``/`` separators.

    Raises ``ValueError`` when ``base`` is not an ancestor of ``path``.
    """
    return path.relative_to(base).as_posix()


def archive_entry_name(path: Path, prefix: Path) -> str:
    """Return the archive entry name for ``path`` below ``prefix``."""
    try:
        name = to_posix_relative(path, prefix)
    except ValueError as exc:
        raise PrefixMismatch(path, f"not below archive prefix {prefix}") from exc

    if name in ("", "."):
        raise EmptyEntryName(path, "entry resolves to the archive prefix itself")
    parts = name.split("/")
    if ".." in parts:
        raise PrefixMismatch(path, "entry name escapes the archive prefix")
    return name


__all__ = [
    "is_within",
    "to_posix_relative",
    "archive_entry_name",
]
