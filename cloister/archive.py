"""Zip assembly for resolved scope entries.

Writes one entry per file in the order given, names each entry relative to the
prefix, and seals the archive only after every entry was written. On failure
the archive is abandoned unsealed so no truncated-but-valid zip is produced.
"""

from __future__ import annotations

import logging
import time
import zipfile
from collections.abc import Iterable
from pathlib import Path
from typing import BinaryIO

from .errors import DestinationWriteError, EntryReadError
from .paths import archive_entry_name
from .scope import ScopeEntry

logger = logging.getLogger(__name__)

ENTRY_MODE = 0o755
_S_IFREG = 0o100000
_CREATE_SYSTEM_UNIX = 3
_READ_CHUNK_BYTES = 1 << 20
_ZIP_MIN_DATE_TIME = (1980, 1, 1, 0, 0, 0)
_ZIP_MAX_DATE_TIME = (2107, 12, 31, 23, 59, 58)


def _zip_date_time(mtime: float) -> tuple[int, int, int, int, int, int]:
    """Clamp ``mtime`` into the range a zip local header can store."""
    stamp = tuple(time.localtime(mtime)[:6])
    if stamp < _ZIP_MIN_DATE_TIME:
        return _ZIP_MIN_DATE_TIME
    if stamp > _ZIP_MAX_DATE_TIME:
        return _ZIP_MAX_DATE_TIME
    return stamp  # type: ignore[return-value]


def _entry_info(path: Path, name: str, method: int) -> zipfile.ZipInfo:
    try:
        mtime = path.stat().st_mtime
    except OSError as exc:
        raise EntryReadError(path, f"cannot stat file: {exc.strerror or exc}") from exc

    info = zipfile.ZipInfo(name, date_time=_zip_date_time(mtime))
    info.compress_type = method
    info.create_system = _CREATE_SYSTEM_UNIX
    info.external_attr = (_S_IFREG | ENTRY_MODE) << 16
    return info


def _read_into(path: Path, buffer: bytearray) -> None:
    """Append the full content of ``path`` to the (empty) reusable ``buffer``."""
    try:
        with path.open("rb") as handle:
            while chunk := handle.read(_READ_CHUNK_BYTES):
                buffer += chunk
    except OSError as exc:
        raise EntryReadError(path, f"cannot read file: {exc.strerror or exc}") from exc


def _abandon(archive: zipfile.ZipFile) -> None:
    # ZipFile.close() (also reached via __del__) writes the central directory;
    # detaching the stream keeps an aborted archive unsealed.
    archive.fp = None


def build(
    entries: Iterable[ScopeEntry],
    prefix: Path,
    destination: BinaryIO,
    method: int = zipfile.ZIP_DEFLATED,
) -> int:
    """Write every file entry of ``entries`` into a zip on ``destination``.

    ``destination`` must be a seekable binary stream owned by the caller; it
    is left open. Returns the number of files written. Raises
    ``PrefixMismatch``/``EmptyEntryName`` for entries outside ``prefix``,
    ``EntryReadError`` when a source file cannot be read in full, and
    ``DestinationWriteError`` when the stream rejects a write.
    """
    try:
        archive = zipfile.ZipFile(destination, mode="w", compression=method)
    except OSError as exc:
        raise DestinationWriteError(_stream_path(destination), f"cannot open archive stream: {exc}") from exc

    buffer = bytearray()
    written = 0
    try:
        for entry in entries:
            if entry.is_dir:
                continue
            name = archive_entry_name(entry.path, prefix)
            info = _entry_info(entry.path, name, method)
            _read_into(entry.path, buffer)
            logger.debug("adding %s as %s (%d bytes)", entry.path, name, len(buffer))
            try:
                archive.writestr(info, buffer)
            except OSError as exc:
                raise DestinationWriteError(
                    _stream_path(destination), f"cannot write entry {name}: {exc.strerror or exc}"
                ) from exc
            del buffer[:]
            written += 1
    except BaseException:
        _abandon(archive)
        raise

    try:
        archive.close()
    except OSError as exc:
        raise DestinationWriteError(_stream_path(destination), f"cannot finalize archive: {exc.strerror or exc}") from exc
    return written


def _stream_path(destination: BinaryIO) -> str | None:
    name = getattr(destination, "name", None)
    return name if isinstance(name, str) else None


__all__ = [
    "ENTRY_MODE",
    "build",
]
