"""Tests for the JSON file state store."""

import json
import threading

import pytest

from pystove.core.persistence import JsonFileStore
from pystove.exceptions import PersistenceError, PersistenceTimeoutError


class TestReadWrite:
    """Key-path reads and writes."""

    def test_missing_path_reads_none(self, store):
        assert store.read("maintenance") is None
        assert store.read("schedules/profiles/default/days/mon") is None

    def test_write_creates_nested_path(self, store):
        store.write("schedules/profiles/default/days/mon", [{"start": "18:00"}])
        assert store.read("schedules/profiles/default/days/mon") == [{"start": "18:00"}]
        assert "days" in store.read("schedules/profiles/default")

    def test_write_none_deletes(self, store):
        store.write("tick_health", {"last_call": "x"})
        store.write("tick_health", None)
        assert store.read("tick_health") is None

    def test_update_merges(self, store):
        store.write("maintenance", {"currentHours": 1.0, "targetHours": 50})
        store.update("maintenance", {"currentHours": 2.0})
        assert store.read("maintenance") == {"currentHours": 2.0, "targetHours": 50}

    def test_read_returns_copy(self, store):
        store.write("maintenance", {"currentHours": 1.0})
        value = store.read("maintenance")
        value["currentHours"] = 99
        assert store.read("maintenance")["currentHours"] == 1.0

    def test_state_survives_new_instance(self, store):
        store.write("scheduler_mode", {"enabled": True})
        reopened = JsonFileStore(store.file_path)
        assert reopened.read("scheduler_mode") == {"enabled": True}

    def test_corrupt_file_raises(self, store):
        with open(store.file_path, "w") as f:
            f.write("{not json")
        with pytest.raises(PersistenceError):
            store.read("maintenance")

    def test_non_object_document_raises(self, store):
        with open(store.file_path, "w") as f:
            json.dump([1, 2], f)
        with pytest.raises(PersistenceError):
            store.read("maintenance")

    def test_empty_path_rejected(self, store):
        with pytest.raises(PersistenceError):
            store.read("")


class TestAtomicUpdate:
    """Compare-and-swap updates."""

    def test_commit(self, store):
        store.write("counter", {"n": 1})
        committed, value = store.atomic_update("counter", lambda cur: {"n": cur["n"] + 1})
        assert committed is True
        assert value == {"n": 2}
        assert store.read("counter") == {"n": 2}

    def test_abort_when_fn_returns_none(self, store):
        store.write("counter", {"n": 1})
        revision = store.revision
        committed, value = store.atomic_update("counter", lambda cur: None)
        assert committed is False
        assert value == {"n": 1}
        assert store.revision == revision

    def test_absent_record_passed_as_none(self, store):
        seen = []

        def fn(current):
            seen.append(current)
            return {"n": 0}

        store.atomic_update("counter", fn)
        assert seen == [None]

    def test_retries_when_record_changes_underneath(self, store):
        store.write("counter", {"n": 0})
        calls = []

        def fn(current):
            calls.append(current["n"])
            if len(calls) == 1:
                # Another writer commits between our read and our commit
                store.write("counter", {"n": 10})
            return {"n": current["n"] + 1}

        committed, value = store.atomic_update("counter", fn)
        assert committed is True
        assert calls == [0, 10]
        assert store.read("counter") == {"n": 11}

    def test_gives_up_after_max_retries(self, tmp_path):
        store = JsonFileStore(str(tmp_path / "s.json"), max_retries=3)
        store.write("counter", {"n": 0})

        def always_conflicting(current):
            store.write("other", {"bump": True})
            return {"n": 1}

        with pytest.raises(PersistenceError):
            store.atomic_update("counter", always_conflicting)

    def test_concurrent_increments_not_lost(self, tmp_path):
        store = JsonFileStore(str(tmp_path / "s.json"), timeout_s=5.0, max_retries=1000)
        store.write("counter", {"n": 0})

        def worker():
            for _ in range(10):
                store.atomic_update("counter", lambda cur: {"n": cur["n"] + 1})

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert store.read("counter") == {"n": 40}


class TestTimeout:
    """Lock acquisition is bounded."""

    def test_lock_timeout_raises(self, tmp_path):
        store = JsonFileStore(str(tmp_path / "s.json"), timeout_s=0.05)
        store._lock.acquire()
        try:
            with pytest.raises(PersistenceTimeoutError) as exc_info:
                store.read("maintenance")
        finally:
            store._lock.release()
        assert exc_info.value.recoverable is True
        assert exc_info.value.path == "maintenance"
