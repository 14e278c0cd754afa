"""
Tests for FileStateStore: durable state records and the single-run lock.
"""
import os
import subprocess
import sys
from unittest import mock

import pytest

from fuzzydedup.core.errors import StateLocked
from fuzzydedup.core.store import FileStateStore, LOCK_NAME, record_key


class TestRecords:

    def test_get_missing_returns_none(self, tmp_path):
        assert FileStateStore(str(tmp_path / "state")).get("nothing") is None

    def test_set_creates_state_dir_and_replaces_value(self, tmp_path):
        store = FileStateStore(str(tmp_path / "state"))
        store.set("record", "one")
        store.set("record", "two")
        assert store.get("record") == "two"
        assert not (tmp_path / "state" / "record.tmp").exists(), "Temporary file must be renamed away"

    def test_clear_is_idempotent(self, tmp_path):
        store = FileStateStore(str(tmp_path))
        store.set("record", "x")
        store.clear("record")
        store.clear("record")
        assert store.get("record") is None

    def test_append_lines_accumulates(self, tmp_path):
        store = FileStateStore(str(tmp_path))
        store.append_lines("journal", ["a"])
        store.append_lines("journal", ["b", "c"])
        store.append_lines("journal", [])
        assert store.read_lines("journal") == ["a", "b", "c"]

    def test_is_complete_requires_content(self, tmp_path):
        store = FileStateStore(str(tmp_path))
        assert not store.is_complete("report")
        store.write_lines("report", [])
        assert not store.is_complete("report")
        store.write_lines("report", ["line"])
        assert store.is_complete("report")

    def test_promote_renames(self, tmp_path):
        store = FileStateStore(str(tmp_path))
        store.write_lines("index.partial", ["header"])
        store.promote("index.partial", "index.ssdeep")
        assert store.read_lines("index.ssdeep") == ["header"]
        assert not store.path("index.partial").exists()

    def test_reset_removes_records(self, tmp_path):
        store = FileStateStore(str(tmp_path / "state"))
        store.set("a", "1")
        store.set("b", "2")
        assert store.reset() == 2
        assert list((tmp_path / "state").iterdir()) == []

    def test_reset_of_missing_dir(self, tmp_path):
        assert FileStateStore(str(tmp_path / "never")).reset() == 0


class TestRecordKey:

    def test_stable_and_distinct(self):
        assert record_key("/ref", "/rec") == record_key("/ref", "/rec")
        assert record_key("/ref", "/rec") != record_key("/rec", "/ref")
        assert record_key("/ref", 90) != record_key("/ref", 91)

    def test_parts_are_not_concatenated_ambiguously(self):
        assert record_key("ab", "c") != record_key("a", "bc")


class TestLock:

    def test_lock_is_released(self, tmp_path):
        store = FileStateStore(str(tmp_path))
        with store.lock():
            assert store.path(LOCK_NAME).read_text() == str(os.getpid())
        assert not store.path(LOCK_NAME).exists()

    def test_lock_released_on_error(self, tmp_path):
        store = FileStateStore(str(tmp_path))
        with pytest.raises(RuntimeError):
            with store.lock():
                raise RuntimeError("boom")
        assert not store.path(LOCK_NAME).exists()

    def test_live_owner_blocks_second_run(self, tmp_path):
        store = FileStateStore(str(tmp_path))
        with store.lock():
            with pytest.raises(StateLocked):
                with FileStateStore(str(tmp_path)).lock():
                    pass

    def test_stale_lock_is_taken_over(self, tmp_path):
        """A pid that no longer exists cannot hold the state directory."""
        finished = subprocess.Popen([sys.executable, "-c", "pass"])
        finished.wait()

        store = FileStateStore(str(tmp_path))
        store.set(LOCK_NAME, str(finished.pid))
        with store.lock():
            assert store.path(LOCK_NAME).read_text() == str(os.getpid())

    def test_unreadable_lock_is_taken_over(self, tmp_path):
        store = FileStateStore(str(tmp_path))
        store.set(LOCK_NAME, "garbage")
        with store.lock():
            pass

    def test_reset_keeps_lock(self, tmp_path):
        store = FileStateStore(str(tmp_path))
        with store.lock():
            store.set("record", "x")
            assert store.reset() == 1
            assert store.path(LOCK_NAME).exists()

    def test_permission_denied_counts_as_alive(self, tmp_path):
        store = FileStateStore(str(tmp_path))
        store.set(LOCK_NAME, "1")
        with mock.patch("fuzzydedup.core.store.os.kill", side_effect=PermissionError):
            with pytest.raises(StateLocked):
                with store.lock():
                    pass
