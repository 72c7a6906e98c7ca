"""Scope resolution: which files under a root belong in the archive.

Walks the tree depth-first in a stable name order, pruning anything the
layered ignore rules exclude before descending into it, then optionally
narrows the surviving files by git status.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Collection
from dataclasses import dataclass
from pathlib import Path

from .errors import InvalidRoot, TraversalIOError
from .git_status import ALL_STATUSES, GitStatusSnapshot, collect_git_status
from .gitignore import GIT_DIRNAME, IgnoreRules, find_repository, rules_for_root

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScopeEntry:
    """One in-scope path; only file entries become archive payload."""

    path: Path
    is_dir: bool
    status: str | None = None


def _sort_key(entry: os.DirEntry[str]) -> tuple[str, str]:
    return (entry.name.casefold(), entry.name)


def _list_directory(directory: Path) -> list[os.DirEntry[str]]:
    with os.scandir(directory) as entries:
        children = list(entries)
    children.sort(key=_sort_key)
    return children


def _entry_is_dir(child: os.DirEntry[str], follow_symlinks: bool) -> bool:
    try:
        return child.is_dir(follow_symlinks=follow_symlinks)
    except OSError:
        return False


def _entry_is_file(child: os.DirEntry[str]) -> bool:
    # Symlinks to files are archived with the target's content.
    try:
        return child.is_file(follow_symlinks=True)
    except OSError:
        return False


def resolve(
    root: Path,
    *,
    skip_unreadable: bool = True,
    include_hidden: bool = False,
    follow_symlinks: bool = False,
    status_filters: Collection[str] = ALL_STATUSES,
) -> list[ScopeEntry]:
    """Return the in-scope entries beneath ``root`` in traversal order.

    Emitted paths are ``root`` joined with the relative path of each entry, so
    they share ``root`` as a prefix exactly as given. ``root`` itself is never
    emitted. Unreadable directories are skipped with a warning unless
    ``skip_unreadable`` is false, in which case ``TraversalIOError`` is raised.
    """
    root = Path(root)
    if not root.exists():
        raise InvalidRoot(root, "path does not exist")
    if not root.is_dir():
        raise InvalidRoot(root, "not a directory")

    resolved_root = root.resolve()
    repo = find_repository(resolved_root)
    if repo is None:
        logger.info("no repository found above %s; applying .ignore files only", root)
    else:
        logger.debug("found repository at %s", repo.root)

    entries: list[ScopeEntry] = []

    def walk(
        directory: Path,
        rule_directory: Path,
        parent_rules: IgnoreRules,
        ancestors: frozenset[Path],
    ) -> None:
        # ``rule_directory`` mirrors ``directory`` under the resolved root;
        # ignore layers are anchored there. ``ancestors`` holds the real paths
        # of the directories on the current branch when following symlinks.
        rules = parent_rules.descend(rule_directory)
        try:
            children = _list_directory(directory)
        except OSError as exc:
            error = TraversalIOError(directory, f"cannot read directory: {exc.strerror or exc}")
            if not skip_unreadable:
                raise error from exc
            logger.warning("skipping unreadable directory %s", error)
            return

        for child in children:
            name = child.name
            if name == GIT_DIRNAME:
                continue
            if not include_hidden and name.startswith("."):
                continue

            path = directory / name
            rule_path = rule_directory / name
            is_dir = _entry_is_dir(child, follow_symlinks)
            if rules.is_ignored(rule_path, is_dir):
                logger.debug("ignored %s", path)
                continue

            if is_dir:
                branch = ancestors
                if follow_symlinks:
                    real = path.resolve()
                    if real in ancestors:
                        logger.warning("skipping %s: symlink loop back to %s", path, real)
                        continue
                    branch = ancestors | {real}
                entries.append(ScopeEntry(path=path, is_dir=True))
                walk(path, rule_path, rules, branch)
            elif _entry_is_file(child):
                entries.append(ScopeEntry(path=path, is_dir=False))

    walk(root, resolved_root, rules_for_root(resolved_root, repo), frozenset({resolved_root}))

    statuses = frozenset(status_filters)
    if statuses >= ALL_STATUSES:
        return entries
    return _filter_by_status(entries, root, resolved_root, collect_git_status(resolved_root, repo), statuses)


def _filter_by_status(
    entries: list[ScopeEntry],
    root: Path,
    resolved_root: Path,
    snapshot: GitStatusSnapshot,
    statuses: frozenset[str],
) -> list[ScopeEntry]:
    kept: list[ScopeEntry] = []
    for entry in entries:
        if entry.is_dir:
            kept.append(entry)
            continue
        status = snapshot.status_for(resolved_root / entry.path.relative_to(root))
        if status in statuses:
            kept.append(ScopeEntry(path=entry.path, is_dir=False, status=status))
    return kept


def file_entries(entries: list[ScopeEntry]) -> list[ScopeEntry]:
    return [entry for entry in entries if not entry.is_dir]


__all__ = [
    "ScopeEntry",
    "resolve",
    "file_entries",
]
