"""Command-line front door for cloister.

Parses CLI options, merges them over the persisted config, and dispatches to
the ``zip`` pipeline. Pipeline failures exit non-zero with one diagnostic line
naming the failing stage and path.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from . import config
from .errors import CloisterError
from .git_status import ALL_STATUSES
from .run import zip_directory

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def _configure_logging(verbose: int, quiet: bool) -> None:
    if quiet:
        level = logging.WARNING
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr, force=True)


def _logging_options(default_verbose: object, default_quiet: object) -> argparse.ArgumentParser:
    options = argparse.ArgumentParser(add_help=False)
    options.add_argument("-v", "--verbose", action="count", default=default_verbose, help="Log every archived file.")
    options.add_argument("-q", "--quiet", action="store_true", default=default_quiet, help="Only log warnings and errors.")
    return options


def build_parser() -> argparse.ArgumentParser:
    # Subcommands accept -v/-q too; SUPPRESS keeps flags given before the
    # subcommand.
    subcommand_options = _logging_options(argparse.SUPPRESS, argparse.SUPPRESS)
    parser = argparse.ArgumentParser(
        prog="cloister",
        parents=[_logging_options(0, False)],
        description="Package a subdirectory of a git working tree into <name>.zip, honoring ignore rules.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    zip_parser = subparsers.add_parser(
        "zip",
        parents=[subcommand_options],
        help="Archive DIR into <basename of DIR>.zip in the current directory.",
    )
    zip_parser.add_argument("zip_dir", metavar="DIR", help="Directory to package.")
    zip_parser.add_argument(
        "--status",
        action="append",
        choices=sorted(ALL_STATUSES),
        default=None,
        help="Only include files with this git status (repeatable; default: all).",
    )
    zip_parser.add_argument("--include-hidden", action="store_true", help="Include dotfiles and dot-directories.")
    zip_parser.add_argument("--follow-symlinks", action="store_true", help="Descend into symlinked directories.")
    zip_parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail on unreadable directories instead of skipping them.",
    )
    zip_parser.add_argument(
        "--method",
        choices=sorted(config.COMPRESSION_METHODS),
        default=None,
        help="Compression method for every entry (default: deflated).",
    )

    config_parser = subparsers.add_parser(
        "config",
        parents=[subcommand_options],
        help="Show or change persisted defaults.",
    )
    config_parser.add_argument("key", nargs="?", help="Setting to change.")
    config_parser.add_argument("value", nargs="?", help="New value for KEY.")
    return parser


def _run_zip(args: argparse.Namespace) -> None:
    zip_dir = Path(args.zip_dir)
    if not zip_dir.exists():
        raise SystemExit(f"Path not found: {zip_dir}")

    settings = config.load_settings().with_overrides(
        status_filters=args.status,
        include_hidden=True if args.include_hidden else None,
        follow_symlinks=True if args.follow_symlinks else None,
        skip_unreadable=False if args.strict else None,
        compression=args.method,
    )
    try:
        zip_directory(zip_dir, settings)
    except CloisterError as exc:
        raise SystemExit(f"cloister: {exc.stage} failed: {exc}") from exc


def _run_config(args: argparse.Namespace) -> None:
    if args.key is None:
        payload = {"path": str(config.CONFIG_PATH), "settings": config.load_settings().to_config()}
        sys.stdout.write(json.dumps(payload, indent=2) + "\n")
        return
    if args.value is None:
        raise SystemExit("config: missing VALUE for KEY")
    try:
        settings = config.save_setting(args.key, args.value)
    except ValueError as exc:
        raise SystemExit(f"config: {exc}") from exc
    except OSError as exc:
        raise SystemExit(f"config: cannot write {config.CONFIG_PATH}: {exc}") from exc
    sys.stdout.write(f"{args.key} = {json.dumps(settings.to_config()[args.key])}\n")


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and run the selected command."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose, args.quiet)

    if args.command == "config":
        _run_config(args)
        return
    _run_zip(args)


if __name__ == "__main__":
    main()
