# -*- coding: utf-8 -*-
"""
mode_manager.py - Scheduler control mode management

Responsibilities:
- Read the current control mode (automatic / manual / semi-manual)
- Toggle automatic control
- Enter and leave the semi-manual override
- Revert semi-manual to automatic once its return time has passed
  (checked once per tick, there is no timer)
"""

import copy
from datetime import datetime
from typing import Optional

import pystove.constants as C
from pystove.core.clock import parse_iso, to_iso
from pystove.core.models import SchedulerMode
from pystove.exceptions import PersistenceError


class ModeManager:
    """Owns the persisted SchedulerMode record.

    Unreadable state never keeps the stove under automatic control: read
    failures fall back to manual mode without the semi-manual overlay.
    """

    def __init__(self, ad, store, clock, audit_log):
        """Initialize the mode manager.

        Args:
            ad: AppDaemon API reference
            store: StateStore instance
            clock: Clock instance
            audit_log: AuditLog instance
        """
        self.ad = ad
        self.store = store
        self.clock = clock
        self.audit_log = audit_log

    def get_mode(self) -> SchedulerMode:
        """Get the current mode, or the safe default if it cannot be read."""
        try:
            data = self.store.read(C.PATH_SCHEDULER_MODE)
        except PersistenceError as e:
            self.ad.log(f"Failed to read scheduler mode, using manual: {e}", level="ERROR")
            return SchedulerMode()
        if not isinstance(data, dict):
            if data is not None:
                self.ad.log(f"Corrupt scheduler mode record {data!r}, using manual", level="ERROR")
            return SchedulerMode()
        return SchedulerMode.from_dict(data)

    def _save(self, mode: SchedulerMode) -> bool:
        try:
            self.store.write(C.PATH_SCHEDULER_MODE, mode.to_dict())
            return True
        except PersistenceError as e:
            self.ad.log(f"Failed to save scheduler mode: {e}", level="ERROR")
            return False

    def set_enabled(self, enabled: bool, actor: Optional[str] = None) -> bool:
        """Switch between automatic (True) and manual (False) control.

        The semi-manual flag is left as it is.

        Returns:
            True if the mode was saved
        """
        mode = self.get_mode()
        mode.enabled = bool(enabled)
        mode.last_updated = to_iso(self.clock.current_time())
        if not self._save(mode):
            return False

        self.ad.log(f"Scheduler mode set to {'automatic' if mode.enabled else 'manual'}")
        self.audit_log.record("scheduler mode changed", mode.enabled, {
            'state': mode.state,
            'actor': actor,
        })
        return True

    def enter_semi_manual(self, return_at: Optional[datetime]) -> bool:
        """Start a temporary manual override on top of automatic control.

        Args:
            return_at: When automatic control resumes (usually the next
                scheduled transition). None keeps the override until it is
                cleared explicitly.

        Returns:
            True if the mode was saved
        """
        now = self.clock.current_time()
        mode = self.get_mode()
        mode.semi_manual = True
        mode.semi_manual_activated_at = to_iso(now)
        mode.return_to_auto_at = to_iso(return_at) if return_at else None
        mode.last_updated = to_iso(now)
        if not self._save(mode):
            return False

        if return_at:
            self.ad.log(f"Semi-manual mode active until {mode.return_to_auto_at}")
        else:
            self.ad.log("Semi-manual mode active with no scheduled return", level="WARNING")
        return True

    def exit_semi_manual(self, actor: Optional[str] = None) -> bool:
        """Clear the semi-manual override immediately, keeping enabled."""
        mode = self.get_mode()
        if not mode.semi_manual:
            return True
        self._clear_semi_manual(mode)
        if not self._save(mode):
            return False

        self.ad.log("Semi-manual mode cleared - back to automatic")
        self.audit_log.record("semi-manual cleared", False, {'actor': actor})
        return True

    def reconcile(self, now: Optional[datetime] = None) -> SchedulerMode:
        """Revert an expired semi-manual override.

        Called once per tick. Reversion therefore happens within one tick
        of return_to_auto_at, not at the exact instant.

        Returns:
            The mode after reconciliation (unchanged if it could not be saved)
        """
        now = now or self.clock.current_time()
        mode = self.get_mode()
        if not mode.semi_manual:
            return mode

        try:
            return_at = parse_iso(mode.return_to_auto_at)
        except ValueError:
            self.ad.log(f"Invalid returnToAutoAt {mode.return_to_auto_at!r}, reverting to automatic",
                        level="WARNING")
            return_at = now

        if return_at is None or now < return_at:
            return mode

        previous = copy.copy(mode)
        self._clear_semi_manual(mode)
        mode.last_updated = to_iso(now)
        if not self._save(mode):
            # Stored mode is still semi-manual; retried next tick
            return previous
        self.ad.log("Semi-manual period ended - returning to automatic")
        return mode

    def _clear_semi_manual(self, mode: SchedulerMode) -> None:
        mode.semi_manual = False
        mode.semi_manual_activated_at = None
        mode.return_to_auto_at = None
        mode.last_updated = to_iso(self.clock.current_time())
