"""Persistent JSON config helpers.

Stores default status filters, traversal policy and compression method.
All access is defensive: malformed or missing config falls back safely.
"""

from __future__ import annotations

import json
import zipfile
from dataclasses import dataclass, replace
from pathlib import Path

from platformdirs import user_config_dir

from .git_status import ALL_STATUSES

APP_NAME = "cloister"
CONFIG_FILENAME = "config.json"
DEFAULT_CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME
CONFIG_PATH = DEFAULT_CONFIG_PATH

COMPRESSION_METHODS = {
    "stored": zipfile.ZIP_STORED,
    "deflated": zipfile.ZIP_DEFLATED,
    "bzip2": zipfile.ZIP_BZIP2,
    "lzma": zipfile.ZIP_LZMA,
}
DEFAULT_COMPRESSION = "deflated"
BOOL_KEYS = ("skip_unreadable", "include_hidden", "follow_symlinks")


@dataclass(frozen=True)
class Settings:
    """Effective run settings after config file and CLI overrides."""

    status_filters: frozenset[str] = ALL_STATUSES
    skip_unreadable: bool = True
    include_hidden: bool = False
    follow_symlinks: bool = False
    compression: str = DEFAULT_COMPRESSION

    @property
    def compression_method(self) -> int:
        return COMPRESSION_METHODS[self.compression]

    def with_overrides(self, **overrides: object) -> Settings:
        """Return a copy with every non-``None`` override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        if "status_filters" in changes:
            changes["status_filters"] = frozenset(changes["status_filters"])
        return replace(self, **changes)

    def to_config(self) -> dict[str, object]:
        return {
            "status_filters": sorted(self.status_filters),
            "skip_unreadable": self.skip_unreadable,
            "include_hidden": self.include_hidden,
            "follow_symlinks": self.follow_symlinks,
            "compression": self.compression,
        }


def load_config() -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    try:
        data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict[str, object]) -> None:
    """Persist config data as pretty-printed JSON.

    Unlike loading, failures here propagate: the caller asked for the write.
    """
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_PATH.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def parse_status_filters(value: object) -> frozenset[str] | None:
    """Return a valid non-empty status set, or ``None`` for anything else."""
    if isinstance(value, str):
        value = [part.strip() for part in value.split(",")]
    if not isinstance(value, (list, tuple, set, frozenset)):
        return None
    items = list(value)
    if not items or not all(isinstance(item, str) and item in ALL_STATUSES for item in items):
        return None
    return frozenset(items)


def parse_bool(value: object) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return None


def parse_compression(value: object) -> str | None:
    if isinstance(value, str) and value.strip().lower() in COMPRESSION_METHODS:
        return value.strip().lower()
    return None


def load_settings() -> Settings:
    """Build ``Settings`` from the config file, ignoring invalid values."""
    data = load_config()
    overrides: dict[str, object] = {
        "status_filters": parse_status_filters(data.get("status_filters")),
        "compression": parse_compression(data.get("compression")),
    }
    for key in BOOL_KEYS:
        overrides[key] = parse_bool(data.get(key))
    return Settings().with_overrides(**overrides)


def save_setting(key: str, raw_value: str) -> Settings:
    """Validate and persist one config value, returning the new settings.

    Raises ``ValueError`` for unknown keys or values that do not parse.
    """
    if key == "status_filters":
        parsed: object = parse_status_filters(raw_value)
    elif key == "compression":
        parsed = parse_compression(raw_value)
    elif key in BOOL_KEYS:
        parsed = parse_bool(raw_value)
    else:
        raise ValueError(f"unknown config key: {key!r}")
    if parsed is None:
        raise ValueError(f"invalid value for {key}: {raw_value!r}")

    settings = load_settings().with_overrides(**{key: parsed})
    data = load_config()
    data[key] = settings.to_config()[key]
    save_config(data)
    return settings


__all__ = [
    "APP_NAME",
    "CONFIG_PATH",
    "COMPRESSION_METHODS",
    "Settings",
    "load_config",
    "save_config",
    "load_settings",
    "save_setting",
    "parse_status_filters",
    "parse_bool",
    "parse_compression",
]
