"""Tests for scheduler mode management (automatic / manual / semi-manual)."""

from datetime import timedelta
from unittest import mock

import pytest

import pystove.constants as C
from pystove.core.models import SchedulerMode
from pystove.exceptions import PersistenceError
from pystove.managers.mode_manager import ModeManager


@pytest.fixture
def modes(ad, store, clock, audit_log):
    return ModeManager(ad, store, clock, audit_log)


class TestDefaults:
    """Missing or unreadable mode records."""

    def test_default_is_manual(self, modes):
        mode = modes.get_mode()
        assert mode.enabled is False
        assert mode.semi_manual is False
        assert mode.state == C.MODE_MANUAL

    def test_read_failure_yields_safe_default(self, ad, clock, audit_log):
        broken = mock.MagicMock()
        broken.read.side_effect = PersistenceError("disk gone")
        modes = ModeManager(ad, broken, clock, audit_log)
        assert modes.get_mode() == SchedulerMode()
        assert ad.logged("ERROR")

    def test_corrupt_record_yields_safe_default(self, modes, store):
        store.write(C.PATH_SCHEDULER_MODE, "enabled")
        assert modes.get_mode().state == C.MODE_MANUAL

    def test_write_failure_reported_as_false(self, ad, clock, audit_log):
        broken = mock.MagicMock()
        broken.read.return_value = None
        broken.write.side_effect = PersistenceError("read-only")
        modes = ModeManager(ad, broken, clock, audit_log)
        assert modes.set_enabled(True) is False
        audit_log.record.assert_not_called()


class TestSetEnabled:
    """Toggling automatic control."""

    def test_enable_and_disable(self, modes, store, clock):
        assert modes.set_enabled(True, actor="alice") is True
        assert modes.get_mode().state == C.MODE_AUTOMATIC
        assert store.read(C.PATH_SCHEDULER_MODE)["lastUpdated"] == clock.now.isoformat()

        assert modes.set_enabled(False) is True
        assert modes.get_mode().state == C.MODE_MANUAL

    def test_audited(self, modes, audit_log):
        modes.set_enabled(True, actor="alice")
        audit_log.record.assert_called_once_with(
            "scheduler mode changed", True, {'state': C.MODE_AUTOMATIC, 'actor': "alice"})

    def test_does_not_clear_semi_manual(self, modes, clock):
        modes.set_enabled(True)
        modes.enter_semi_manual(clock.now + timedelta(hours=2))
        modes.set_enabled(False)

        mode = modes.get_mode()
        assert mode.semi_manual is True
        assert mode.state == C.MODE_MANUAL

        modes.set_enabled(True)
        assert modes.get_mode().state == C.MODE_SEMI_MANUAL


class TestSemiManual:
    """Temporary manual override on top of automatic control."""

    def test_enter_records_times(self, modes, store, clock):
        modes.set_enabled(True)
        return_at = clock.now + timedelta(hours=10)
        assert modes.enter_semi_manual(return_at) is True

        record = store.read(C.PATH_SCHEDULER_MODE)
        assert record["enabled"] is True
        assert record["semiManual"] is True
        assert record["semiManualActivatedAt"] == clock.now.isoformat()
        assert record["returnToAutoAt"] == return_at.isoformat()

    def test_reconcile_before_and_after_return_time(self, modes, clock):
        """Kept before returnToAutoAt, cleared at or after it."""
        modes.set_enabled(True)
        return_at = clock.now + timedelta(hours=1)
        modes.enter_semi_manual(return_at)

        mode = modes.reconcile(return_at - timedelta(minutes=1))
        assert mode.semi_manual is True
        assert modes.get_mode().semi_manual is True

        mode = modes.reconcile(return_at)
        assert mode.semi_manual is False
        assert mode.state == C.MODE_AUTOMATIC
        stored = modes.get_mode()
        assert stored.semi_manual is False
        assert stored.return_to_auto_at is None
        assert stored.enabled is True

    def test_reconcile_uses_clock_by_default(self, modes, clock):
        modes.set_enabled(True)
        modes.enter_semi_manual(clock.now + timedelta(minutes=30))
        clock.advance(minutes=31)
        assert modes.reconcile().semi_manual is False

    def test_no_return_time_stays_semi_manual(self, ad, modes, clock):
        modes.set_enabled(True)
        modes.enter_semi_manual(None)
        assert ad.logged("WARNING")
        assert modes.reconcile(clock.now + timedelta(days=30)).semi_manual is True

    def test_invalid_return_time_reverts(self, modes, store, clock):
        store.write(C.PATH_SCHEDULER_MODE, {
            "enabled": True, "semiManual": True, "returnToAutoAt": "not-a-date",
        })
        assert modes.reconcile(clock.now).semi_manual is False

    def test_reconcile_keeps_semi_manual_when_save_fails(self, modes, store, clock):
        modes.set_enabled(True)
        return_at = clock.now + timedelta(minutes=30)
        modes.enter_semi_manual(return_at)

        with mock.patch.object(store, 'write', side_effect=PersistenceError("read-only")):
            mode = modes.reconcile(return_at + timedelta(minutes=1))

        assert mode.state == C.MODE_SEMI_MANUAL
        assert mode.return_to_auto_at == return_at.isoformat()
        assert modes.get_mode().semi_manual is True

    def test_reconcile_noop_when_not_semi_manual(self, modes, store, clock):
        modes.set_enabled(True)
        revision = store.revision
        modes.reconcile(clock.now)
        assert store.revision == revision

    def test_exit_preserves_enabled(self, modes, clock, audit_log):
        modes.set_enabled(True)
        modes.enter_semi_manual(clock.now + timedelta(hours=3))
        audit_log.reset_mock()

        assert modes.exit_semi_manual(actor="bob") is True
        mode = modes.get_mode()
        assert mode.state == C.MODE_AUTOMATIC
        audit_log.record.assert_called_once_with("semi-manual cleared", False, {'actor': "bob"})

    def test_exit_when_not_semi_manual_is_noop(self, modes, audit_log):
        assert modes.exit_semi_manual() is True
        audit_log.record.assert_not_called()
