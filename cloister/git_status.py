"""Git status classification for scope filtering.

Sorts every file under a tree into ``tracked`` (clean), ``modified`` (staged
or unstaged changes) or ``untracked`` so callers can restrict an archive to a
subset of them.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

from .errors import TraversalIOError
from .gitignore import Repository, run_git
from .paths import is_within, to_posix_relative

STATUS_TRACKED = "tracked"
STATUS_MODIFIED = "modified"
STATUS_UNTRACKED = "untracked"
ALL_STATUSES = frozenset({STATUS_TRACKED, STATUS_MODIFIED, STATUS_UNTRACKED})


def _iter_porcelain_records(output: str) -> list[tuple[str, str]]:
    records: list[tuple[str, str]] = []
    tokens = output.split("\0")
    index = 0
    while index < len(tokens):
        token = tokens[index]
        index += 1
        if not token:
            continue
        if len(token) < 4 or token[2] != " ":
            continue

        status = token[:2]
        path_text = token[3:]
        records.append((status, path_text))

        # For renamed/copied entries, porcelain -z appends an extra token
        # containing the source path; the first path token is the destination.
        if "R" in status or "C" in status:
            index += 1

    return records


@dataclass(frozen=True)
class GitStatusSnapshot:
    """Repo-relative status sets captured once per run.

    Paths missing from every set are reported untracked; that covers trees
    outside any repository as well.
    """

    repo_root: Path | None
    tracked: frozenset[str] = frozenset()
    modified: frozenset[str] = frozenset()
    untracked: frozenset[str] = frozenset()

    def status_for(self, resolved_path: Path) -> str:
        if self.repo_root is None or not is_within(resolved_path, self.repo_root):
            return STATUS_UNTRACKED
        key = to_posix_relative(resolved_path, self.repo_root)
        if key in self.untracked:
            return STATUS_UNTRACKED
        if key in self.modified:
            return STATUS_MODIFIED
        if key in self.tracked:
            return STATUS_TRACKED
        return STATUS_UNTRACKED


def _git_failure(root: Path, what: str, proc: subprocess.CompletedProcess[str] | None) -> TraversalIOError:
    if proc is None:
        return TraversalIOError(root, f"cannot run git {what} (is git installed?)")
    detail = proc.stderr.strip().splitlines()
    reason = detail[-1] if detail else f"exit status {proc.returncode}"
    return TraversalIOError(root, f"git {what} failed: {reason}")


def collect_git_status(resolved_root: Path, repo: Repository | None) -> GitStatusSnapshot:
    """Classify files under ``resolved_root`` using ``git ls-files``/``git status``.

    Raises ``TraversalIOError`` when git is needed but cannot be run.
    """
    if repo is None:
        return GitStatusSnapshot(repo_root=None)

    pathspec_args = ["--", to_posix_relative(resolved_root, repo.root)]

    ls_proc = run_git(repo.root, ["--literal-pathspecs", "ls-files", "-z", "--cached", *pathspec_args])
    if ls_proc is None or ls_proc.returncode != 0:
        raise _git_failure(resolved_root, "ls-files", ls_proc)
    tracked = frozenset(name for name in ls_proc.stdout.split("\0") if name)

    status_proc = run_git(
        repo.root,
        ["--literal-pathspecs", "status", "--porcelain=v1", "-z", "--untracked-files=all", *pathspec_args],
    )
    if status_proc is None or status_proc.returncode != 0:
        raise _git_failure(resolved_root, "status", status_proc)

    modified: set[str] = set()
    untracked: set[str] = set()
    for status, rel_path in _iter_porcelain_records(status_proc.stdout):
        if not rel_path or status == "!!":
            continue
        if status == "??":
            untracked.add(rel_path)
        else:
            modified.add(rel_path)

    return GitStatusSnapshot(
        repo_root=repo.root,
        tracked=tracked,
        modified=frozenset(modified),
        untracked=frozenset(untracked),
    )


__all__ = [
    "STATUS_TRACKED",
    "STATUS_MODIFIED",
    "STATUS_UNTRACKED",
    "ALL_STATUSES",
    "GitStatusSnapshot",
    "collect_git_status",
]
