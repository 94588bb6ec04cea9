"""Tests for the JSON-lines audit trail."""

import json

import pytest

from pystove.services.audit_log import JsonlAuditLog


@pytest.fixture
def audit(ad, tmp_path, clock):
    log = JsonlAuditLog(ad, str(tmp_path / "audit"), clock)
    yield log
    log.close()


def read_lines(path):
    with open(path) as f:
        return [json.loads(line) for line in f]


class TestJsonlAuditLog:
    """JsonlAuditLog"""

    def test_directory_created_with_gitignore(self, audit, tmp_path):
        assert (tmp_path / "audit" / ".gitignore").read_text() == "*.jsonl\n"

    def test_record_written(self, audit, tmp_path, clock):
        audit.record("cleaning confirmed", 0, {'previousHours': 50.2, 'actor': "alice"})
        entries = read_lines(tmp_path / "audit" / "2025-01-06.jsonl")
        assert entries == [{
            'timestamp': clock.now.isoformat(),
            'action': "cleaning confirmed",
            'value': 0,
            'previousHours': 50.2,
            'actor': "alice",
        }]

    def test_none_metadata_dropped(self, audit, tmp_path):
        audit.record("stove shut down", None, {'source': "manual", 'actor': None})
        entry = read_lines(tmp_path / "audit" / "2025-01-06.jsonl")[0]
        assert entry['value'] is None
        assert 'actor' not in entry

    def test_daily_rotation(self, audit, tmp_path, clock):
        audit.record("a", 1)
        clock.advance(minutes=24 * 60)
        audit.record("b", 2)
        assert [e['action'] for e in read_lines(tmp_path / "audit" / "2025-01-06.jsonl")] == ["a"]
        assert [e['action'] for e in read_lines(tmp_path / "audit" / "2025-01-07.jsonl")] == ["b"]

    def test_file_recreated_if_removed(self, audit, tmp_path):
        audit.record("a", 1)
        (tmp_path / "audit" / "2025-01-06.jsonl").unlink()
        audit.record("b", 2)
        assert [e['action'] for e in read_lines(tmp_path / "audit" / "2025-01-06.jsonl")] == ["b"]
