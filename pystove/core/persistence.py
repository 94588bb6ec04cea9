# -*- coding: utf-8 -*-
"""
persistence.py - Key-path state store

Responsibilities:
- Define the persistence boundary used by all PyStove components
- Persist state to a local JSON file with atomic writes (temp file + rename)
- Provide a compare-and-swap style atomic_update for records that can be
  mutated by overlapping ticks (maintenance hours)
- Bound every store call with a lock timeout
"""

import copy
import json
import os
import tempfile
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional, Tuple

import pystove.constants as C
from pystove.exceptions import PersistenceError, PersistenceTimeoutError


def _split_path(path: str) -> List[str]:
    parts = [p for p in path.split('/') if p]
    if not parts:
        raise PersistenceError("empty key path", path)
    return parts


def _get_path(data: Dict[str, Any], path: str) -> Any:
    node: Any = data
    for key in _split_path(path):
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    return node


def _set_path(data: Dict[str, Any], path: str, value: Any) -> None:
    parts = _split_path(path)
    node = data
    for key in parts[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    if value is None:
        node.pop(parts[-1], None)
    else:
        node[parts[-1]] = value


class StateStore:
    """Abstract key-path store.

    Paths are '/'-separated keys into a single JSON-like document,
    e.g. "maintenance" or "schedules/profiles/default/days/mon".
    """

    def read(self, path: str) -> Any:
        """Return a copy of the value at path, or None if absent."""
        raise NotImplementedError

    def write(self, path: str, value: Any) -> None:
        """Replace the value at path (None deletes it)."""
        raise NotImplementedError

    def update(self, path: str, partial: Dict[str, Any]) -> None:
        """Merge partial into the dict at path, creating it if needed."""
        raise NotImplementedError

    def atomic_update(self, path: str, fn: Callable[[Any], Any]) -> Tuple[bool, Any]:
        """Transactional read-modify-write.

        fn receives a copy of the current value (None if absent) and returns
        the new value, or None to abort. fn may be called more than once if
        the record changes between read and commit, so it must not have side
        effects beyond its return value.

        Returns:
            Tuple of (committed, value). value is the committed value, or the
            value fn last saw when aborted.
        """
        raise NotImplementedError


class JsonFileStore(StateStore):
    """StateStore backed by one local JSON file.

    Writes go through a temp file + rename so an interrupted write never
    corrupts the state file. A revision counter, bumped on every commit,
    lets atomic_update detect that another writer got in between its read
    and its commit.
    """

    def __init__(self, file_path: str, timeout_s: float = C.PERSISTENCE_TIMEOUT_S_DEFAULT,
                 max_retries: int = C.ATOMIC_UPDATE_MAX_RETRIES):
        """Initialize the store.

        Args:
            file_path: Absolute path to the state file
            timeout_s: Max seconds to wait for the store lock
            max_retries: Max compare-and-swap attempts in atomic_update
        """
        self.file_path = file_path
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self._lock = threading.Lock()
        self._revision = 0
        directory = os.path.dirname(file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    @property
    def revision(self) -> int:
        return self._revision

    @contextmanager
    def _locked(self, path: Optional[str]):
        if not self._lock.acquire(timeout=self.timeout_s):
            raise PersistenceTimeoutError(path, self.timeout_s)
        try:
            yield
        finally:
            self._lock.release()

    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.file_path):
            return {}
        try:
            with open(self.file_path, 'r') as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise PersistenceError(f"failed to load {self.file_path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"{self.file_path} does not contain a JSON object")
        return data

    def _save(self, data: Dict[str, Any]) -> None:
        try:
            fd, temp_path = tempfile.mkstemp(
                dir=os.path.dirname(self.file_path) or None,
                prefix='.pystove_tmp_',
                suffix='.json'
            )
            try:
                with os.fdopen(fd, 'w') as f:
                    json.dump(data, f, separators=(',', ':'))
                os.replace(temp_path, self.file_path)
            except Exception:
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
                raise
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"failed to save {self.file_path}: {e}") from e
        self._revision += 1

    def read(self, path: str) -> Any:
        with self._locked(path):
            return copy.deepcopy(_get_path(self._load(), path))

    def write(self, path: str, value: Any) -> None:
        with self._locked(path):
            data = self._load()
            _set_path(data, path, copy.deepcopy(value))
            self._save(data)

    def update(self, path: str, partial: Dict[str, Any]) -> None:
        with self._locked(path):
            data = self._load()
            current = _get_path(data, path)
            merged = dict(current) if isinstance(current, dict) else {}
            merged.update(copy.deepcopy(partial))
            _set_path(data, path, merged)
            self._save(data)

    def atomic_update(self, path: str, fn: Callable[[Any], Any]) -> Tuple[bool, Any]:
        for _ in range(self.max_retries):
            with self._locked(path):
                current = copy.deepcopy(_get_path(self._load(), path))
                seen_revision = self._revision

            new_value = fn(copy.deepcopy(current))
            if new_value is None:
                return False, current

            with self._locked(path):
                if self._revision != seen_revision:
                    # Stale read - retry against fresh data
                    continue
                data = self._load()
                _set_path(data, path, copy.deepcopy(new_value))
                self._save(data)
                return True, new_value

        raise PersistenceError(
            f"atomic update gave up after {self.max_retries} conflicting attempts", path
        )
