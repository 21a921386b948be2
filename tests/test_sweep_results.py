"""Tests for parabench.sweep.results — data model and sample store."""

from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from sweep_test_helpers import make_analysis, make_meta, make_sample

from parabench.sweep.results import (
    ANALYSIS_FILE,
    META_FILE,
    SAMPLES_FILE,
    Measurement,
    RunMeta,
    Sample,
    StatisticalAnalysis,
    append_sample,
    load_analysis,
    load_meta,
    load_run,
    load_samples,
    save_analysis,
    save_meta,
)


class TestMeasurement(unittest.TestCase):
    def test_degraded(self) -> None:
        ok = Measurement(1, 100.0, 10, 0, 10)
        bad = Measurement(2, 80.0, 8, 2, 10)
        self.assertFalse(ok.degraded)
        self.assertTrue(bad.degraded)

    def test_from_dict_defaults_counts(self) -> None:
        m = Measurement.from_dict({"concurrency": 3, "duration_ms": 12.5, "extra": "x"})
        self.assertEqual(m.concurrency, 3)
        self.assertEqual(m.duration_ms, 12.5)
        self.assertEqual((m.passed, m.failed, m.total_tests), (0, 0, 0))


class TestSample(unittest.TestCase):
    def test_max_concurrency(self) -> None:
        self.assertEqual(make_sample([100, 60, 50]).max_concurrency, 3)
        self.assertEqual(Sample(10, "default").max_concurrency, 0)

    def test_jsonl_line_is_single_line(self) -> None:
        line = make_sample([100, 60], complete=False).to_jsonl_line()
        self.assertNotIn("\n", line)
        restored = Sample.from_jsonl_line(line)
        self.assertFalse(restored.complete)
        self.assertEqual([m.concurrency for m in restored.measurements], [1, 2])

    def test_from_dict_old_record_without_complete(self) -> None:
        data = {
            "test_subject_size": 5,
            "workload_config": "light",
            "measurements": [
                {"concurrency": 1, "duration_ms": 10, "passed": 5, "failed": 0, "total_tests": 5}
            ],
        }
        sample = Sample.from_dict(data)
        self.assertTrue(sample.complete)
        self.assertEqual(sample.workload_config, "light")


class TestAnalysisModel(unittest.TestCase):
    def test_level_lookup(self) -> None:
        analysis = make_analysis([[100, 60, 50]])
        self.assertEqual(analysis.level(2).concurrency, 2)
        self.assertIsNone(analysis.level(9))
        self.assertEqual(analysis.max_concurrency, 3)

    def test_dict_round_trip(self) -> None:
        analysis = make_analysis([[100, 60], [200, 80]])
        restored = StatisticalAnalysis.from_dict(json.loads(json.dumps(analysis.to_dict())))
        self.assertEqual(restored.sample_size, 2)
        self.assertEqual(restored.level(1).duration_stats.mean, 150.0)
        self.assertEqual(restored.generated_at, "2026-01-01T00:00:00")


class TestStore(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.run_dir = Path(self._tmp.name) / "sweep_test"

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_append_sample_accumulates_lines(self) -> None:
        append_sample(self.run_dir, make_sample([100, 50], index=1))
        append_sample(self.run_dir, make_sample([110, 55], index=2))
        lines = (self.run_dir / SAMPLES_FILE).read_text().splitlines()
        self.assertEqual(len(lines), 2)
        samples = load_samples(self.run_dir)
        self.assertEqual([s.index for s in samples], [1, 2])

    def test_load_samples_skips_blank_lines(self) -> None:
        self.run_dir.mkdir(parents=True)
        line = make_sample([100]).to_jsonl_line()
        (self.run_dir / SAMPLES_FILE).write_text(f"{line}\n\n{line}\n")
        self.assertEqual(len(load_samples(self.run_dir)), 2)

    def test_load_samples_from_json_directory(self) -> None:
        self.run_dir.mkdir(parents=True)
        for i in (1, 2):
            (self.run_dir / f"sample_{i}.json").write_text(
                json.dumps(make_sample([100, 50], index=i).to_dict())
            )
        (self.run_dir / META_FILE).write_text(json.dumps(make_meta().to_dict()))
        samples = load_samples(self.run_dir)
        self.assertEqual([s.index for s in samples], [1, 2])

    def test_load_samples_single_json_file(self) -> None:
        self.run_dir.mkdir(parents=True)
        path = self.run_dir / "one.json"
        path.write_text(json.dumps(make_sample([100, 50], index=7).to_dict()))
        self.assertEqual(load_samples(path)[0].index, 7)

    def test_load_samples_missing_field_names_line(self) -> None:
        self.run_dir.mkdir(parents=True)
        good = make_sample([100]).to_jsonl_line()
        bad = '{"workload_config":"x","measurements":[{"duration_ms":5}]}'
        (self.run_dir / SAMPLES_FILE).write_text(f"{good}\n{bad}\n")
        with self.assertRaises(ValueError) as ctx:
            load_samples(self.run_dir)
        self.assertIn(f"{SAMPLES_FILE}:2", str(ctx.exception))
        self.assertIsInstance(ctx.exception.__cause__, KeyError)

    def test_load_samples_invalid_json(self) -> None:
        self.run_dir.mkdir(parents=True)
        (self.run_dir / SAMPLES_FILE).write_text("{not json\n")
        with self.assertRaises(ValueError) as ctx:
            load_samples(self.run_dir)
        self.assertIn(f"{SAMPLES_FILE}:1", str(ctx.exception))

    def test_load_analysis_missing_field(self) -> None:
        self.run_dir.mkdir(parents=True)
        (self.run_dir / ANALYSIS_FILE).write_text('{"aggregated_levels": [{"concurrency": 1}]}')
        with self.assertRaises(ValueError):
            load_analysis(self.run_dir)

    def test_load_samples_missing(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_samples(self.run_dir)
        self.run_dir.mkdir(parents=True)
        with self.assertRaises(FileNotFoundError):
            load_samples(self.run_dir)

    def test_meta_round_trip(self) -> None:
        save_meta(self.run_dir, make_meta(name="My sweep"))
        meta = load_meta(self.run_dir)
        self.assertIsInstance(meta, RunMeta)
        self.assertEqual(meta.name, "My sweep")
        self.assertEqual(meta.system.cpu_model, "Test CPU")

    def test_load_meta_missing(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_meta(self.run_dir)

    def test_analysis_round_trip(self) -> None:
        path = save_analysis(self.run_dir, make_analysis([[100, 60]]))
        self.assertEqual(path.name, ANALYSIS_FILE)
        self.assertEqual(load_analysis(self.run_dir).level(2).duration_stats.mean, 60.0)

    def test_load_run_without_meta(self) -> None:
        append_sample(self.run_dir, make_sample([100]))
        meta, samples = load_run(self.run_dir)
        self.assertIsNone(meta)
        self.assertEqual(len(samples), 1)


if __name__ == "__main__":
    unittest.main()
