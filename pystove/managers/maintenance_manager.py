# -*- coding: utf-8 -*-
"""
maintenance_manager.py - Operating hours and cleaning lockout

Responsibilities:
- Accumulate stove burning hours from periodic status polls
- Credit missed ticks in full (elapsed time since last update, unbounded)
- Flag the stove for cleaning when the target hours are reached
- Block ignition until cleaning is confirmed
- Report maintenance status and notification thresholds
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import pystove.constants as C
from pystove.core.clock import parse_iso, to_iso
from pystove.core.models import MaintenanceRecord, TrackResult
from pystove.exceptions import CorruptRecordError, PersistenceError


class MaintenanceManager:
    """Owns the persisted MaintenanceRecord.

    track_usage_hours() is the only path that needs concurrency control:
    overlapping ticks go through StateStore.atomic_update, so the same
    elapsed window is never credited twice.
    """

    def __init__(self, ad, config, store, clock, audit_log):
        """Initialize the maintenance manager.

        Args:
            ad: AppDaemon API reference
            config: ConfigLoader instance
            store: StateStore instance
            clock: Clock instance
            audit_log: AuditLog instance
        """
        self.ad = ad
        self.config = config
        self.store = store
        self.clock = clock
        self.audit_log = audit_log

    # ------------------------------------------------------------------
    # Configuration helpers
    # ------------------------------------------------------------------

    @property
    def default_target_hours(self) -> float:
        return self.config.maintenance_config.get(
            'default_target_hours', C.MAINTENANCE_TARGET_HOURS_DEFAULT)

    @property
    def running_statuses(self) -> List[str]:
        return self.config.maintenance_config.get(
            'running_statuses', list(C.RUNNING_STATUS_MARKERS_DEFAULT))

    @property
    def debounce_minutes(self) -> float:
        return self.config.maintenance_config.get(
            'debounce_minutes', C.MAINTENANCE_DEBOUNCE_MINUTES_DEFAULT)

    @property
    def near_limit_percent(self) -> float:
        return self.config.maintenance_config.get(
            'near_limit_percent', C.MAINTENANCE_NEAR_LIMIT_PERCENT_DEFAULT)

    @property
    def notification_levels(self) -> List[int]:
        return self.config.maintenance_config.get(
            'notification_levels', list(C.MAINTENANCE_NOTIFICATION_LEVELS_DEFAULT))

    def is_running_status(self, status: Optional[str]) -> bool:
        """True if the status text marks the stove as burning (substring match)."""
        if not status:
            return False
        status = status.upper()
        return any(marker in status for marker in self.running_statuses)

    # ------------------------------------------------------------------
    # Record access
    # ------------------------------------------------------------------

    def _default_record(self) -> MaintenanceRecord:
        return MaintenanceRecord(target_hours=self.default_target_hours)

    def get_maintenance_data(self) -> MaintenanceRecord:
        """Read the maintenance record, creating it with defaults on first access.

        Raises:
            PersistenceError: If the store cannot be read or written
                (CorruptRecordError if the stored record cannot be decoded)
        """
        data = self.store.read(C.PATH_MAINTENANCE)
        if data is not None:
            return MaintenanceRecord.from_dict(data, self.default_target_hours)

        # lastUpdatedAt stays None until the first WORK tick
        record = self._default_record()
        self.store.write(C.PATH_MAINTENANCE, record.to_dict())
        self.ad.log(f"Initialized maintenance record (target {record.target_hours}h)")
        return record

    def _apply_hours(self, record: MaintenanceRecord, hours_to_add: float) -> None:
        """Add hours with 4-decimal precision; crossing the target is inclusive."""
        record.current_hours = round(record.current_hours + hours_to_add,
                                     C.MAINTENANCE_HOURS_PRECISION)
        if record.current_hours >= record.target_hours and not record.needs_cleaning:
            record.needs_cleaning = True

    def _percentage(self, record: MaintenanceRecord) -> float:
        if record.target_hours <= 0:
            return 100.0
        return record.current_hours * 100.0 / record.target_hours

    def _crossed_notification_level(self, record: MaintenanceRecord) -> Optional[int]:
        """Highest configured level reached and not yet notified."""
        percentage = self._percentage(record)
        reached = [lvl for lvl in self.notification_levels
                   if percentage >= lvl > record.last_notification_level]
        return max(reached) if reached else None

    # ------------------------------------------------------------------
    # Hour tracking
    # ------------------------------------------------------------------

    def track_usage_hours(self, status: Optional[str]) -> TrackResult:
        """Credit burning time since the last tick.

        Args:
            status: Current appliance status text

        Returns:
            TrackResult; tracked is False when the stove is not running, on
            the first ever call (which only starts the clock), or when called
            again within the debounce window.

        Raises:
            PersistenceError: If the store fails
            CorruptRecordError: If the stored record cannot be decoded; it is
                left untouched
        """
        if not self.is_running_status(status):
            return TrackResult(tracked=False, reason=f"status '{status}' is not a running state")

        now = self.clock.current_time()
        debounce = self.debounce_minutes
        # Filled by the last (committed or aborted) attempt of the transaction
        outcome: Dict[str, Any] = {}

        def transaction(current: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
            outcome.clear()
            record = (self._default_record() if current is None
                      else MaintenanceRecord.from_dict(current, self.default_target_hours))

            last_update = parse_iso(record.last_updated_at)
            if last_update is None:
                record.last_updated_at = to_iso(now)
                outcome['reason'] = "first tracking, clock started"
                return record.to_dict()

            elapsed_minutes = (now - last_update).total_seconds() / 60.0
            if elapsed_minutes < debounce:
                outcome['reason'] = f"too soon since last update ({elapsed_minutes:.2f} min)"
                return None

            self._apply_hours(record, elapsed_minutes / 60.0)
            record.last_updated_at = to_iso(now)

            level = self._crossed_notification_level(record)
            if level is not None:
                record.last_notification_level = level

            outcome.update({
                'elapsed_minutes': elapsed_minutes,
                'notification_level': level,
            })
            return record.to_dict()

        committed, value = self.store.atomic_update(C.PATH_MAINTENANCE, transaction)

        if not committed or 'elapsed_minutes' not in outcome:
            return TrackResult(tracked=False, reason=outcome.get('reason', "transaction aborted"))

        record = MaintenanceRecord.from_dict(value, self.default_target_hours)
        result = TrackResult(
            tracked=True,
            elapsed_minutes=round(outcome['elapsed_minutes'], 2),
            new_current_hours=record.current_hours,
            needs_cleaning=record.needs_cleaning,
            notification_level=outcome.get('notification_level'),
        )
        self.ad.log(
            f"Maintenance tracked: +{result.elapsed_minutes}min -> "
            f"{record.current_hours:.2f}h / {record.target_hours:.0f}h",
            level="DEBUG"
        )
        if record.needs_cleaning:
            self.ad.log("Maintenance threshold reached - cleaning required", level="WARNING")
        return result

    def increment_usage_hours(self, minutes: float = 1) -> Dict[str, Any]:
        """Add minutes of usage directly (administrative correction).

        Not transactional: may race with track_usage_hours.

        Returns:
            The fields written
        """
        record = self.get_maintenance_data()
        was_flagged = record.needs_cleaning
        self._apply_hours(record, minutes / 60.0)

        updates: Dict[str, Any] = {
            'currentHours': record.current_hours,
            'lastUpdatedAt': to_iso(self.clock.current_time()),
        }
        if record.needs_cleaning and not was_flagged:
            updates['needsCleaning'] = True

        self.store.update(C.PATH_MAINTENANCE, updates)
        self.ad.log(f"Usage hours incremented by {minutes} min -> {record.current_hours:.4f}h")
        return updates

    # ------------------------------------------------------------------
    # Administrative actions
    # ------------------------------------------------------------------

    def confirm_cleaning(self, actor: Optional[str] = None) -> bool:
        """Reset the hour counter after the stove has been cleaned.

        Raises:
            PersistenceError: If the store fails
        """
        now_iso = to_iso(self.clock.current_time())
        reset = {
            'currentHours': 0,
            'needsCleaning': False,
            'lastCleanedAt': now_iso,
            'lastUpdatedAt': now_iso,
            'lastNotificationLevel': 0,
        }

        try:
            record = self.get_maintenance_data()
        except CorruptRecordError as e:
            # Cleaning is the one action allowed to replace an unreadable record
            self.ad.log(f"Replacing unreadable maintenance record: {e}", level="WARNING")
            record = self._default_record()
            self.store.write(C.PATH_MAINTENANCE, dict(record.to_dict(), **reset))
        else:
            self.store.update(C.PATH_MAINTENANCE, reset)

        self.ad.log(f"Cleaning confirmed after {record.current_hours:.2f}h")
        self.audit_log.record("cleaning confirmed", 0, {
            'previousHours': record.current_hours,
            'targetHours': record.target_hours,
            'cleanedAt': now_iso,
            'source': C.SOURCE_MANUAL,
            'actor': actor,
        })
        return True

    def update_target_hours(self, hours: Any, actor: Optional[str] = None) -> MaintenanceRecord:
        """Change the cleaning interval.

        Lowering the target below the current hours flags cleaning; raising
        it never clears an existing flag.

        Raises:
            ValueError: If hours is not a positive number
            PersistenceError: If the store fails
        """
        try:
            new_target = float(hours)
        except (TypeError, ValueError):
            raise ValueError(f"target hours must be a number, got {hours!r}")
        if isinstance(hours, bool) or new_target <= 0:
            raise ValueError(f"target hours must be > 0, got {hours!r}")

        record = self.get_maintenance_data()
        previous = record.target_hours
        updates: Dict[str, Any] = {'targetHours': new_target}
        if record.current_hours >= new_target and not record.needs_cleaning:
            updates['needsCleaning'] = True
        self.store.update(C.PATH_MAINTENANCE, updates)

        record.target_hours = new_target
        record.needs_cleaning = record.needs_cleaning or updates.get('needsCleaning', False)
        self.ad.log(f"Maintenance target changed: {previous:.0f}h -> {new_target:.0f}h")
        self.audit_log.record("maintenance target changed", new_target, {
            'previousTargetHours': previous,
            'currentHours': record.current_hours,
            'actor': actor,
        })
        return record

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def can_ignite(self) -> bool:
        """False while cleaning is required.

        A store failure allows ignition: a transient fault must not block
        heating indefinitely.
        """
        try:
            return not self.get_maintenance_data().needs_cleaning
        except PersistenceError as e:
            self.ad.log(f"Maintenance check failed, allowing ignition: {e}", level="ERROR")
            return True

    def get_maintenance_status(self) -> Dict[str, Any]:
        """Maintenance summary for display.

        Raises:
            PersistenceError: If the store fails
        """
        record = self.get_maintenance_data()
        percentage = self._percentage(record)
        return {
            'currentHours': record.current_hours,
            'targetHours': record.target_hours,
            'lastCleanedAt': record.last_cleaned_at,
            'lastUpdatedAt': record.last_updated_at,
            'needsCleaning': record.needs_cleaning,
            'percentage': round(min(100.0, percentage), 2),
            'remainingHours': round(max(0.0, record.target_hours - record.current_hours),
                                    C.MAINTENANCE_HOURS_PRECISION),
            'isNearLimit': percentage >= self.near_limit_percent and not record.needs_cleaning,
        }

    def last_update_time(self) -> Optional[datetime]:
        return parse_iso(self.get_maintenance_data().last_updated_at)
