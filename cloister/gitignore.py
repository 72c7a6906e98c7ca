"""Layered gitignore-style rule evaluation.

Each directory visited during a scope walk contributes its own ``.gitignore``
and ``.ignore`` files as rule layers anchored at that directory. Matching
walks from the deepest layer upward and stops at the first layer with a
matching rule, so nested files override their ancestors and ``!pattern``
re-includes whatever a broader rule excluded.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

from pathspec import GitIgnoreSpec

from .errors import IgnoreRuleError
from .paths import is_within, to_posix_relative

logger = logging.getLogger(__name__)

GITIGNORE_FILENAME = ".gitignore"
IGNORE_FILENAME = ".ignore"
GIT_DIRNAME = ".git"
GIT_TIMEOUT_SECONDS = 5.0

# Within one directory, later files win: ``.ignore`` overrides ``.gitignore``.
_DIRECTORY_RULE_FILES = (GITIGNORE_FILENAME, IGNORE_FILENAME)


@dataclass(frozen=True)
class Repository:
    """Working-tree top level plus its resolved git directory."""

    root: Path
    git_dir: Path


def _read_gitdir_file(marker: Path) -> Path | None:
    """Resolve a ``.git`` file (worktrees, submodules) to the git dir it names."""
    try:
        content = marker.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None
    for raw_line in content.splitlines():
        stripped = raw_line.strip()
        if stripped.startswith("gitdir:"):
            git_dir = Path(stripped[len("gitdir:") :].strip())
            if not git_dir.is_absolute():
                git_dir = (marker.parent / git_dir).resolve()
            return git_dir
    return None


def find_repository(path: Path) -> Repository | None:
    """Return the repository enclosing ``path``, or ``None`` outside one.

    Detection looks for a ``.git`` directory or ``gitdir:`` file in ``path``
    and its ancestors; it does not need the ``git`` executable.
    """
    start = path.resolve()
    for candidate in (start, *start.parents):
        marker = candidate / GIT_DIRNAME
        if marker.is_dir():
            return Repository(root=candidate, git_dir=marker)
        if marker.is_file():
            git_dir = _read_gitdir_file(marker)
            if git_dir is not None:
                return Repository(root=candidate, git_dir=git_dir)
    return None


def run_git(repo_root: Path, args: list[str]) -> subprocess.CompletedProcess[str] | None:
    """Run ``git -C repo_root *args``; ``None`` when git cannot be started."""
    try:
        return subprocess.run(
            ["git", "-C", str(repo_root), *args],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="surrogateescape",
            check=False,
            timeout=GIT_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.SubprocessError):
        return None


def global_excludes_file(repo: Repository) -> Path:
    """Return git's global excludes file (``core.excludesFile`` or XDG default)."""
    proc = run_git(repo.root, ["config", "--path", "core.excludesFile"])
    if proc is not None and proc.returncode == 0 and proc.stdout.strip():
        return Path(proc.stdout.strip()).expanduser()

    xdg_home = os.environ.get("XDG_CONFIG_HOME")
    config_home = Path(xdg_home) if xdg_home else Path.home() / ".config"
    return config_home / "git" / "ignore"


@dataclass(frozen=True)
class IgnoreRule:
    """One compiled ignore line; ``directory_only`` for patterns ending in ``/``."""

    spec: GitIgnoreSpec
    directory_only: bool

    def check(self, rel: str, is_dir: bool) -> bool | None:
        decision = self.spec.check_file(rel).include
        if decision is None and is_dir and self.directory_only:
            decision = self.spec.check_file(rel + "/").include
        return decision


@dataclass(frozen=True)
class IgnoreLayer:
    """Compiled rules from one ignore file, anchored at ``base``."""

    base: Path
    source: Path
    rules: tuple[IgnoreRule, ...]

    def check(self, path: Path, is_dir: bool) -> bool | None:
        """Return ``True`` if ignored, ``False`` if re-included, ``None`` if unmatched.

        The last matching rule decides. Only directory-only rules see the
        directory with a trailing slash, so ``foo/**`` never matches ``foo``.
        """
        try:
            rel = to_posix_relative(path, self.base)
        except ValueError:
            return None
        for rule in reversed(self.rules):
            decision = rule.check(rel, is_dir)
            if decision is not None:
                return decision
        return None


def _compile_rules(source: Path, raw: bytes) -> list[IgnoreRule]:
    rules: list[IgnoreRule] = []
    for line_number, raw_line in enumerate(raw.splitlines(), start=1):
        try:
            line = raw_line.decode("utf-8")
        except UnicodeDecodeError as exc:
            logger.warning("%s", IgnoreRuleError(source, line_number, raw_line.decode("utf-8", "replace"), str(exc)))
            continue
        if line_number == 1:
            line = line.removeprefix("\ufeff")
        if not line.strip() or line.startswith("#"):
            continue
        try:
            spec = GitIgnoreSpec.from_lines([line])
        except ValueError as exc:
            logger.warning("%s", IgnoreRuleError(source, line_number, line, str(exc)))
            continue
        rules.append(IgnoreRule(spec=spec, directory_only=line.rstrip().endswith("/")))
    return rules


def load_ignore_layer(source: Path, base: Path) -> IgnoreLayer | None:
    """Compile ``source`` into a layer anchored at ``base``.

    Returns ``None`` when the file is absent or has no usable rules. Malformed
    lines and unreadable files are logged as warnings and skipped.
    """
    try:
        raw = source.read_bytes()
    except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
        return None
    except OSError as exc:
        logger.warning("%s", IgnoreRuleError(source, 0, "", f"cannot read ignore file: {exc.strerror or exc}"))
        return None

    rules = _compile_rules(source, raw)
    if not rules:
        return None
    return IgnoreLayer(base=base, source=source, rules=tuple(rules))


@dataclass(frozen=True)
class IgnoreRules:
    """Immutable stack of rule layers, least specific first."""

    layers: tuple[IgnoreLayer, ...] = ()
    use_gitignore: bool = True

    def descend(self, directory: Path) -> IgnoreRules:
        """Return the rules in effect inside ``directory``."""
        added: list[IgnoreLayer] = []
        for filename in _DIRECTORY_RULE_FILES:
            if filename == GITIGNORE_FILENAME and not self.use_gitignore:
                continue
            layer = load_ignore_layer(directory / filename, directory)
            if layer is not None:
                added.append(layer)
        if not added:
            return self
        return IgnoreRules(layers=(*self.layers, *added), use_gitignore=self.use_gitignore)

    def is_ignored(self, path: Path, is_dir: bool) -> bool:
        """Return whether ``path`` is excluded; unmatched paths are in scope."""
        for layer in reversed(self.layers):
            decision = layer.check(path, is_dir)
            if decision is not None:
                return decision
        return False


def rules_for_root(resolved_root: Path, repo: Repository | None) -> IgnoreRules:
    """Build the rules in effect just above ``resolved_root``.

    Includes the global excludes file, ``info/exclude`` and the ignore files of
    every ancestor between the repository top level and ``resolved_root``. Rule
    files inside the root itself are added when the walk descends into it.
    Layers are anchored at resolved paths, so callers must match resolved paths.
    """
    if repo is None:
        return IgnoreRules(use_gitignore=False)

    layers: list[IgnoreLayer] = []
    for source in (global_excludes_file(repo), repo.git_dir / "info" / "exclude"):
        layer = load_ignore_layer(source, repo.root)
        if layer is not None:
            layers.append(layer)

    rules = IgnoreRules(layers=tuple(layers), use_gitignore=True)
    for ancestor in reversed(resolved_root.parents):
        if is_within(ancestor, repo.root):
            rules = rules.descend(ancestor)
    return rules


__all__ = [
    "GITIGNORE_FILENAME",
    "IGNORE_FILENAME",
    "GIT_DIRNAME",
    "Repository",
    "find_repository",
    "run_git",
    "global_excludes_file",
    "IgnoreLayer",
    "IgnoreRules",
    "load_ignore_layer",
    "rules_for_root",
]
