"""The ``zip`` pipeline: resolve the scope of a directory, then archive it."""

from __future__ import annotations

import logging
from pathlib import Path

from .archive import build
from .config import Settings
from .errors import DestinationWriteError, InvalidRoot
from .scope import ScopeEntry, file_entries, resolve

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".zip"


def archive_name_for(source_dir: Path) -> str:
    """Return ``<basename>.zip`` for ``source_dir`` after resolution."""
    name = Path(source_dir).resolve().name
    if not name:
        raise InvalidRoot(source_dir, "directory has no base name to name the archive after")
    return f"{name}{ARCHIVE_SUFFIX}"


def _without_destination(entries: list[ScopeEntry], destination: Path) -> list[ScopeEntry]:
    """Drop a previous archive sitting inside the tree at the destination path."""
    target = destination.resolve()
    if not any(not entry.is_dir and entry.path.name == target.name for entry in entries):
        return entries
    return [entry for entry in entries if entry.is_dir or entry.path.resolve() != target]


def zip_directory(
    source_dir: Path,
    settings: Settings | None = None,
    output_dir: Path | None = None,
) -> Path:
    """Archive the in-scope files of ``source_dir`` into ``<basename>.zip``.

    The archive is written to ``output_dir`` (default: the current working
    directory). Nothing is created when ``source_dir`` is invalid or when scope
    resolution fails. Returns the archive path.
    """
    if settings is None:
        settings = Settings()

    source = Path(source_dir)
    if not source.exists():
        raise InvalidRoot(source, "path does not exist")
    if not source.is_dir():
        raise InvalidRoot(source, "not a directory")

    root = source.resolve()
    archive_name = archive_name_for(root)
    destination = (Path.cwd() if output_dir is None else Path(output_dir)) / archive_name

    entries = resolve(
        root,
        skip_unreadable=settings.skip_unreadable,
        include_hidden=settings.include_hidden,
        follow_symlinks=settings.follow_symlinks,
        status_filters=settings.status_filters,
    )
    entries = _without_destination(entries, destination)
    file_count = len(file_entries(entries))
    logger.info("compressing %d file(s) from %s into %s", file_count, root, destination)

    try:
        handle = destination.open("wb")
    except OSError as exc:
        raise DestinationWriteError(destination, f"cannot create archive: {exc.strerror or exc}") from exc
    with handle:
        written = build(entries, root, handle, settings.compression_method)

    logger.info("wrote %d file(s) to %s", written, destination)
    return destination


__all__ = [
    "ARCHIVE_SUFFIX",
    "archive_name_for",
    "zip_directory",
]
