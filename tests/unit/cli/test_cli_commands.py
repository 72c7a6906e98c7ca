"""CLI argument handling and diagnostic tests.

Verifies how ``cloister.cli.main`` merges flags over persisted settings and
how pipeline failures turn into a single exit message.
"""

from __future__ import annotations

import io
import json
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from cloister import cli
from cloister.config import Settings
from cloister.errors import EntryReadError, InvalidRoot


class CliZipCommandTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.root = Path(self._tmp.name).resolve()
        for target, kwargs in (
            ("cloister.cli._configure_logging", {}),
            ("cloister.config.load_settings", {"return_value": Settings()}),
        ):
            patcher = mock.patch(target, **kwargs)
            patcher.start()
            self.addCleanup(patcher.stop)

    def test_missing_directory_exits_with_path_not_found(self) -> None:
        missing = self.root / "missing"
        with mock.patch("cloister.cli.zip_directory") as zip_directory:
            with self.assertRaises(SystemExit) as exc_info:
                cli.main(["zip", str(missing)])

        zip_directory.assert_not_called()
        self.assertEqual(str(exc_info.exception.code), f"Path not found: {missing}")

    def test_zip_uses_defaults_without_flags(self) -> None:
        with mock.patch("cloister.cli.zip_directory") as zip_directory:
            cli.main(["zip", str(self.root)])

        zip_directory.assert_called_once()
        path, settings = zip_directory.call_args.args
        self.assertEqual(path, self.root)
        self.assertEqual(settings, Settings())

    def test_flags_override_persisted_settings(self) -> None:
        with mock.patch("cloister.cli.zip_directory") as zip_directory:
            cli.main(
                [
                    "zip",
                    str(self.root),
                    "--status",
                    "tracked",
                    "--status",
                    "modified",
                    "--include-hidden",
                    "--follow-symlinks",
                    "--strict",
                    "--method",
                    "stored",
                ]
            )

        _path, settings = zip_directory.call_args.args
        self.assertEqual(settings.status_filters, frozenset({"tracked", "modified"}))
        self.assertTrue(settings.include_hidden)
        self.assertTrue(settings.follow_symlinks)
        self.assertFalse(settings.skip_unreadable)
        self.assertEqual(settings.compression, "stored")

    def test_logging_flags_accepted_after_subcommand(self) -> None:
        with mock.patch("cloister.cli.zip_directory") as zip_directory:
            cli.main(["zip", str(self.root), "-v"])
            cli.main(["zip", str(self.root), "--quiet"])

        self.assertEqual(zip_directory.call_count, 2)
        configure = cli._configure_logging
        self.assertEqual(configure.call_args_list, [mock.call(1, False), mock.call(0, True)])

    def test_logging_flags_before_subcommand_are_kept(self) -> None:
        with mock.patch("cloister.cli.zip_directory"):
            cli.main(["-v", "-v", "zip", str(self.root)])

        cli._configure_logging.assert_called_once_with(2, False)

    def test_unknown_status_is_rejected_by_parser(self) -> None:
        stderr = io.StringIO()
        with mock.patch("cloister.cli.zip_directory") as zip_directory, mock.patch("sys.stderr", stderr):
            with self.assertRaises(SystemExit) as exc_info:
                cli.main(["zip", str(self.root), "--status", "staged"])

        zip_directory.assert_not_called()
        self.assertEqual(exc_info.exception.code, 2)

    def test_pipeline_failure_names_stage_and_path(self) -> None:
        failing = self.root / "a.txt"
        error = EntryReadError(failing, "Permission denied")
        with mock.patch("cloister.cli.zip_directory", side_effect=error):
            with self.assertRaises(SystemExit) as exc_info:
                cli.main(["zip", str(self.root)])

        self.assertEqual(
            exc_info.exception.code,
            f"cloister: archiving failed: {failing}: Permission denied",
        )

    def test_scope_failure_reports_scope_stage(self) -> None:
        error = InvalidRoot(self.root, "not a directory")
        with mock.patch("cloister.cli.zip_directory", side_effect=error):
            with self.assertRaises(SystemExit) as exc_info:
                cli.main(["zip", str(self.root)])

        self.assertTrue(str(exc_info.exception.code).startswith("cloister: scope resolution failed: "))


class CliConfigCommandTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.config_path = Path(self._tmp.name) / "config.json"
        for target, kwargs in (
            ("cloister.cli._configure_logging", {}),
            ("cloister.config.CONFIG_PATH", {"new": self.config_path}),
        ):
            patcher = mock.patch(target, **kwargs)
            patcher.start()
            self.addCleanup(patcher.stop)

    def test_config_without_key_prints_effective_settings(self) -> None:
        stdout = io.StringIO()
        with mock.patch.object(sys, "stdout", stdout):
            cli.main(["config"])

        payload = json.loads(stdout.getvalue())
        self.assertEqual(payload["path"], str(self.config_path))
        self.assertEqual(payload["settings"], Settings().to_config())

    def test_config_sets_and_persists_value(self) -> None:
        stdout = io.StringIO()
        with mock.patch.object(sys, "stdout", stdout):
            cli.main(["config", "compression", "bzip2"])

        self.assertEqual(stdout.getvalue(), 'compression = "bzip2"\n')
        saved = json.loads(self.config_path.read_text(encoding="utf-8"))
        self.assertEqual(saved, {"compression": "bzip2"})

    def test_config_rejects_invalid_value(self) -> None:
        with self.assertRaises(SystemExit) as exc_info:
            cli.main(["config", "include_hidden", "sometimes"])

        self.assertIn("invalid value for include_hidden", str(exc_info.exception.code))
        self.assertFalse(self.config_path.exists())

    def test_config_requires_value_with_key(self) -> None:
        with self.assertRaises(SystemExit) as exc_info:
            cli.main(["config", "compression"])

        self.assertEqual(exc_info.exception.code, "config: missing VALUE for KEY")


if __name__ == "__main__":
    unittest.main()
