"""Tests for parabench.sweep.config — SweepConfig, profiles and validation."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from parabench.sweep.config import (
    SweepConfig,
    config_from_profile,
    load_profile,
    parse_env_pairs,
    validate_config,
)


class TestSweepConfig(unittest.TestCase):
    def test_defaults(self) -> None:
        with patch("parabench.sweep.config.available_parallelism", return_value=6):
            config = SweepConfig()
        self.assertEqual(config.max_concurrency, 6)
        self.assertEqual(config.sample_size, 25)
        self.assertEqual(config.workload_config, "default")
        self.assertEqual(config.partial_samples, "discard")
        self.assertFalse(config.keep_partial)
        self.assertTrue(config.run_id.startswith("sweep_"))

    def test_output_dir(self) -> None:
        config = SweepConfig(run_id="abc", results_dir=Path("/tmp/results"), max_concurrency=2)
        self.assertEqual(config.output_dir, Path("/tmp/results/abc"))

    def test_snapshot(self) -> None:
        config = SweepConfig(max_concurrency=3, test_command="pytest -n {concurrency}")
        snap = config.snapshot()
        self.assertEqual(snap["max_concurrency"], 3)
        self.assertEqual(snap["test_command"], "pytest -n {concurrency}")


class TestValidateConfig(unittest.TestCase):
    def _valid(self, **kwargs: object) -> SweepConfig:
        values: dict[str, object] = {
            "max_concurrency": 2,
            "sample_size": 5,
            "test_command": "true",
        }
        values.update(kwargs)
        return SweepConfig(**values)  # type: ignore[arg-type]

    def _fields(self, config: SweepConfig, severity: str = "error", **kwargs: bool) -> list[str]:
        return [e.field for e in validate_config(config, **kwargs) if e.severity == severity]

    def test_valid_config(self) -> None:
        self.assertEqual(validate_config(self._valid()), [])

    def test_bad_values(self) -> None:
        cases = {
            "sample_size": {"sample_size": 0},
            "test_subject_size": {"test_subject_size": 0},
            "workload_config": {"workload_config": "  "},
            "startup_timeout": {"startup_timeout": 0},
            "partial_samples": {"partial_samples": "sometimes"},
            "test_command": {"test_command": ""},
        }
        for field_name, kwargs in cases.items():
            with self.subTest(field=field_name):
                self.assertIn(field_name, self._fields(self._valid(**kwargs)))

    def test_negative_max_concurrency(self) -> None:
        config = self._valid()
        config.max_concurrency = -1
        self.assertIn("max_concurrency", self._fields(config))

    def test_command_optional_with_own_subject(self) -> None:
        config = self._valid(test_command="")
        self.assertEqual(self._fields(config, require_command=False), [])

    def test_missing_cwd(self) -> None:
        config = self._valid(subject_cwd=Path("/nonexistent/parabench/dir"))
        self.assertIn("subject_cwd", self._fields(config))

    def test_warnings(self) -> None:
        with patch("parabench.sweep.config.available_parallelism", return_value=2):
            config = self._valid(max_concurrency=64, sample_size=2)
            warnings = self._fields(config, severity="warning")
        self.assertIn("max_concurrency", warnings)
        self.assertIn("sample_size", warnings)


class TestProfiles(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_load_profile(self) -> None:
        path = self.tmp / "sweep.yaml"
        path.write_text(
            "name: node runner\n"
            "command: node --test --test-concurrency={concurrency}\n"
            "files: 20\n"
            "workload: medium\n"
            "sample_size: 8\n"
            "max_concurrency: 6\n"
            "keep_partial: true\n"
            "env:\n"
            "  APP_MODE: medium\n"
        )
        config = config_from_profile(load_profile(path))
        self.assertEqual(config.name, "node runner")
        self.assertEqual(config.test_subject_size, 20)
        self.assertEqual(config.workload_config, "medium")
        self.assertEqual(config.sample_size, 8)
        self.assertEqual(config.max_concurrency, 6)
        self.assertTrue(config.keep_partial)
        self.assertEqual(config.env, {"APP_MODE": "medium"})

    def test_load_profile_missing(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_profile(self.tmp / "missing.yaml")

    def test_load_profile_not_mapping(self) -> None:
        path = self.tmp / "list.yaml"
        path.write_text("- a\n- b\n")
        with self.assertRaises(ValueError):
            load_profile(path)

    def test_cli_overrides_win(self) -> None:
        profile = {"command": "a", "sample_size": 8, "keep_partial": True, "files": 3}
        config = config_from_profile(
            profile,
            cli_overrides={
                "test_command": "b",
                "sample_size": 2,
                "keep_partial": False,
                "test_subject_size": None,
                "max_concurrency": 3,
                "run_id": "fixed",
                "results_dir": "out",
            },
        )
        self.assertEqual(config.test_command, "b")
        self.assertEqual(config.sample_size, 2)
        self.assertFalse(config.keep_partial)
        self.assertEqual(config.test_subject_size, 3)
        self.assertEqual(config.output_dir, Path("out/fixed"))

    def test_env_must_be_mapping(self) -> None:
        with self.assertRaises(ValueError):
            config_from_profile({"env": ["A=1"], "max_concurrency": 1})


class TestParseEnvPairs(unittest.TestCase):
    def test_pairs(self) -> None:
        self.assertEqual(parse_env_pairs(["A=1", "B=x=y"]), {"A": "1", "B": "x=y"})

    def test_invalid(self) -> None:
        for bad in ("NOVALUE", "=1"):
            with self.subTest(pair=bad), self.assertRaises(ValueError):
                parse_env_pairs([bad])


if __name__ == "__main__":
    unittest.main()
