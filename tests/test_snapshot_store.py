"""Tests for reading and replacing cached feed snapshots."""

import json
import tempfile
import unittest
from pathlib import Path

from snapshot_store import load_snapshot_file, save_snapshot_file


class TestSnapshotFiles(unittest.TestCase):
    def test_missing_file_returns_none(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            self.assertIsNone(load_snapshot_file(Path(tmpdir) / "Schedules Json.json"))

    def test_save_and_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "Schedules Json.json"
            payload = {"data": {"nodes": [{"startTime": "2024-07-01T00:00:00Z"}]}}
            written = save_snapshot_file(path, payload)
            self.assertEqual(written, path)
            self.assertEqual(load_snapshot_file(path), payload)

    def test_save_replaces_existing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "cache.json"
            save_snapshot_file(path, {"v": 1})
            save_snapshot_file(path, {"v": 2})
            self.assertEqual(json.loads(path.read_text(encoding="utf-8")), {"v": 2})

    def test_save_leaves_no_temp_files(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "cache.json"
            save_snapshot_file(path, {"v": 1})
            self.assertEqual([p.name for p in Path(tmpdir).iterdir()], ["cache.json"])

    def test_save_creates_parent_dirs(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "state" / "nested" / "cache.json"
            save_snapshot_file(path, {"v": 1})
            self.assertTrue(path.exists())

    def test_corrupt_file_raises(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "cache.json"
            path.write_text("{not json", encoding="utf-8")
            with self.assertRaises(json.JSONDecodeError):
                load_snapshot_file(path)


if __name__ == "__main__":
    unittest.main()
