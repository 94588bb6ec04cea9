# -*- coding: utf-8 -*-
"""
stove_controller.py - Tick orchestration and manual stove control

Responsibilities:
- Run one automation tick: track hours, reconcile the mode, apply the schedule
- Apply the ignition safety checks (unknown status, maintenance, re-confirmation)
- Keep power/fan aligned with the active interval
- Execute manual ignite / shutdown / level commands
- Put automatic control into semi-manual after a manual command
"""

from datetime import datetime
from typing import Any, Dict, Optional

import pystove.constants as C
from pystove.controllers.appliance_client import is_on_status
from pystove.core.clock import to_iso
from pystove.exceptions import ApplianceError, IgnitionBlockedError, PersistenceError
from pystove.services.alert_manager import AlertManager


class StoveController:
    """Drives the stove from the schedule and from manual commands."""

    def __init__(self, ad, config, store, clock, scheduler, schedules, modes,
                 maintenance, gate, client, audit_log, alert_manager=None):
        """Initialize the stove controller.

        Args:
            ad: AppDaemon API reference
            config: ConfigLoader instance
            store: StateStore instance (tick health)
            clock: Clock instance
            scheduler: Scheduler instance
            schedules: ScheduleStore instance
            modes: ModeManager instance
            maintenance: MaintenanceManager instance
            gate: IgnitionGate instance
            client: ApplianceClient instance
            audit_log: AuditLog instance
            alert_manager: Optional AlertManager
        """
        self.ad = ad
        self.config = config
        self.store = store
        self.clock = clock
        self.scheduler = scheduler
        self.schedules = schedules
        self.modes = modes
        self.maintenance = maintenance
        self.gate = gate
        self.client = client
        self.audit_log = audit_log
        self.alert_manager = alert_manager

        self.last_result: Optional[Dict[str, Any]] = None

    # ========================================================================
    # Appliance reads
    # ========================================================================

    def _read_appliance(self) -> Dict[str, Any]:
        """Read status and levels; unreported levels fall back to defaults."""
        data = {
            'status': C.STATUS_UNKNOWN,
            'status_fetch_failed': False,
            'power': C.POWER_FALLBACK,
            'fan': C.FAN_FALLBACK,
        }
        try:
            data['status'] = self.client.get_status()
        except ApplianceError as e:
            self.ad.log(f"Stove status unavailable, skipping state-changing actions: {e}",
                        level="WARNING")
            data['status_fetch_failed'] = True

        power = self.client.get_power_level()
        if power is None:
            self.ad.log(f"Power level unavailable - using {C.POWER_FALLBACK}", level="DEBUG")
        else:
            data['power'] = power
        fan = self.client.get_fan_level()
        if fan is None:
            self.ad.log(f"Fan level unavailable - using {C.FAN_FALLBACK}", level="DEBUG")
        else:
            data['fan'] = fan

        data['is_on'] = is_on_status(data['status'])
        return data

    # ========================================================================
    # Tick
    # ========================================================================

    def run_tick(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Run one automation tick.

        Args:
            now: Tick instant (defaults to the clock)

        Returns:
            Dict with 'result' (one of the TICK_* values) and context

        Raises:
            PersistenceError: If the schedule cannot be loaded
        """
        now = now or self.clock.current_time()
        self._record_tick_health(now)

        appliance = self._read_appliance()
        result: Dict[str, Any] = {
            'timestamp': to_iso(now),
            'status': appliance['status'],
            'is_on': appliance['is_on'],
        }

        if not appliance['status_fetch_failed']:
            result['tracking'] = self._track_hours(appliance['status'])

        mode = self.modes.reconcile(now)
        result['mode'] = mode.state
        if mode.state == C.MODE_MANUAL:
            return self._finish(result, C.TICK_MANUAL_MODE)
        if mode.state == C.MODE_SEMI_MANUAL:
            result['return_to_auto_at'] = mode.return_to_auto_at
            return self._finish(result, C.TICK_SEMI_MANUAL)

        schedule = self.schedules.get_weekly_schedule()
        if schedule.is_empty():
            result['schedule_id'] = schedule.schedule_id
            return self._finish(result, C.TICK_NO_SCHEDULE)

        active = self.scheduler.get_active_interval(schedule, now)
        next_change = self.scheduler.compute_next_change(schedule, now)
        result['schedule_id'] = schedule.schedule_id
        result['active_interval'] = active.to_dict() if active else None
        result['next_change'] = next_change.to_dict() if next_change else None

        if active is not None:
            if not appliance['is_on']:
                skipped = self._scheduled_ignition(active, appliance)
                if skipped:
                    return self._finish(result, skipped)
            else:
                self._align_levels(active, appliance)
            return self._finish(result, C.TICK_ON)

        if appliance['is_on']:
            self._scheduled_shutdown()
        return self._finish(result, C.TICK_OFF)

    def _finish(self, result: Dict[str, Any], outcome: str) -> Dict[str, Any]:
        result['result'] = outcome
        self.last_result = result
        self.ad.log(f"Tick: {outcome} (status {result.get('status')})", level="DEBUG")
        return result

    def _record_tick_health(self, now: datetime) -> None:
        try:
            self.store.write(C.PATH_TICK_HEALTH, {'last_call': to_iso(now)})
        except PersistenceError as e:
            self.ad.log(f"Failed to record tick health: {e}", level="WARNING")

    def _track_hours(self, status: str) -> Dict[str, Any]:
        try:
            tracking = self.maintenance.track_usage_hours(status)
        except PersistenceError as e:
            # Missed time is credited on the next successful tick
            self.ad.log(f"Usage hour tracking failed: {e}", level="ERROR")
            self._report(AlertManager.ALERT_PERSISTENCE_FAILURE, AlertManager.SEVERITY_WARNING,
                         f"Stove state could not be saved: {e}")
            return {'tracked': False, 'reason': str(e)}

        self._clear(AlertManager.ALERT_PERSISTENCE_FAILURE)
        if tracking.notification_level is not None and self.alert_manager:
            self.alert_manager.notify_maintenance_level(
                tracking.notification_level, tracking.new_current_hours or 0.0,
                tracking.needs_cleaning or False)
        return tracking.to_dict()

    def _scheduled_ignition(self, active, appliance: Dict[str, Any]) -> Optional[str]:
        """Ignite for the active interval.

        Returns:
            A TICK_* reason if ignition was skipped or failed, else None
        """
        if appliance['status_fetch_failed']:
            self.ad.log("Scheduled ignition skipped - stove status unknown", level="WARNING")
            return C.TICK_STATUS_UNAVAILABLE

        try:
            self.gate.ensure_can_ignite()
        except IgnitionBlockedError as e:
            self._report(AlertManager.ALERT_IGNITION_BLOCKED, AlertManager.SEVERITY_CRITICAL,
                         f"Scheduled ignition blocked: {e.message}\n\n"
                         f"Clean the stove and confirm cleaning to resume automatic heating.")
            return C.TICK_MAINTENANCE_REQUIRED

        # The stove may have been lit since the first read
        try:
            confirm_status = self.client.get_status()
        except ApplianceError as e:
            self.ad.log(f"Ignition confirmation read failed: {e}", level="WARNING")
            return C.TICK_CONFIRMATION_FAILED
        if is_on_status(confirm_status):
            self.ad.log("Stove already on (confirmed) - skipping ignition")
            return C.TICK_ALREADY_ON

        try:
            self.client.ignite(active.power)
            if appliance['fan'] != active.fan:
                self.client.set_fan_level(active.fan)
        except ApplianceError as e:
            self.ad.log(f"Scheduled ignition failed: {e}", level="ERROR")
            return C.TICK_IGNITION_FAILED

        self.ad.log(f"Stove ignited by schedule (P{active.power}, F{active.fan})")
        self._audit("stove ignited", active.power, {
            'fan': active.fan,
            'interval': f"{active.start}-{active.end}",
            'source': C.SOURCE_SCHEDULER,
        })
        return None

    def _align_levels(self, active, appliance: Dict[str, Any]) -> None:
        if appliance['power'] != active.power:
            try:
                self.client.set_power_level(active.power)
            except ApplianceError as e:
                self.ad.log(f"Failed to set power: {e}", level="ERROR")
        if appliance['fan'] != active.fan:
            try:
                self.client.set_fan_level(active.fan)
            except ApplianceError as e:
                self.ad.log(f"Failed to set fan: {e}", level="ERROR")

    def _scheduled_shutdown(self) -> None:
        try:
            self.client.shutdown()
        except ApplianceError as e:
            self.ad.log(f"Scheduled shutdown failed: {e}", level="ERROR")
            return
        self.ad.log("Stove shut down by schedule")
        self._audit("stove shut down", None, {'source': C.SOURCE_SCHEDULER})

    # ========================================================================
    # Manual control
    # ========================================================================

    def manual_ignite(self, power: Optional[int] = None, fan: Optional[int] = None,
                      actor: Optional[str] = None) -> Dict[str, Any]:
        """Ignite the stove on request.

        Levels default to the active interval's, then to the fallback levels.

        Raises:
            IgnitionBlockedError: If cleaning is required
            ValueError: If a level is out of range
            ApplianceError: If the command fails
        """
        self.gate.ensure_can_ignite()

        if power is None or fan is None:
            active = self._current_interval()
            if power is None:
                power = active.power if active else C.POWER_FALLBACK
            if fan is None:
                fan = active.fan if active else C.FAN_FALLBACK
        power = self._check_level(power, 'power', C.POWER_MIN, C.POWER_MAX)
        fan = self._check_level(fan, 'fan', C.FAN_MIN, C.FAN_MAX)

        self.client.ignite(power)
        self.client.set_fan_level(fan)
        self.ad.log(f"Stove ignited manually (P{power}, F{fan})")
        self._audit("stove ignited", power, {'fan': fan, 'source': C.SOURCE_MANUAL, 'actor': actor})

        return_at = self._enter_semi_manual_if_automatic()
        return {'success': True, 'power': power, 'fan': fan, 'return_to_auto_at': return_at}

    def manual_shutdown(self, actor: Optional[str] = None) -> Dict[str, Any]:
        """Shut the stove down on request.

        Raises:
            ApplianceError: If the command fails
        """
        self.client.shutdown()
        self.ad.log("Stove shut down manually")
        self._audit("stove shut down", None, {'source': C.SOURCE_MANUAL, 'actor': actor})

        return_at = self._enter_semi_manual_if_automatic()
        return {'success': True, 'return_to_auto_at': return_at}

    def manual_set_levels(self, power: Optional[int] = None, fan: Optional[int] = None,
                          actor: Optional[str] = None) -> Dict[str, Any]:
        """Change power and/or fan on request.

        Raises:
            ValueError: If neither level is given or one is out of range
            ApplianceError: If the command fails
        """
        if power is None and fan is None:
            raise ValueError("must provide 'power' and/or 'fan'")
        if power is not None:
            power = self._check_level(power, 'power', C.POWER_MIN, C.POWER_MAX)
        if fan is not None:
            fan = self._check_level(fan, 'fan', C.FAN_MIN, C.FAN_MAX)

        if power is not None:
            self.client.set_power_level(power)
        if fan is not None:
            self.client.set_fan_level(fan)
        self._audit("stove levels changed", {'power': power, 'fan': fan},
                    {'source': C.SOURCE_MANUAL, 'actor': actor})

        return_at = self._enter_semi_manual_if_automatic()
        return {'success': True, 'power': power, 'fan': fan, 'return_to_auto_at': return_at}

    def _current_interval(self):
        schedule = self.schedules.get_weekly_schedule()
        return self.scheduler.get_active_interval(schedule, self.clock.current_time())

    def _enter_semi_manual_if_automatic(self) -> Optional[str]:
        """Hold off automatic control until the next scheduled transition.

        Returns:
            ISO return time, or None if the mode was not automatic
        """
        mode = self.modes.get_mode()
        if mode.state != C.MODE_AUTOMATIC:
            return None

        schedule = self.schedules.get_weekly_schedule()
        next_change = self.scheduler.compute_next_change(schedule, self.clock.current_time())
        return_at = next_change.timestamp if next_change else None
        self.modes.enter_semi_manual(return_at)
        return to_iso(return_at) if return_at else None

    @staticmethod
    def _check_level(value: Any, name: str, low: int, high: int) -> int:
        if isinstance(value, bool):
            raise ValueError(f"{name} must be an integer")
        try:
            level = int(value)
        except (TypeError, ValueError):
            raise ValueError(f"{name} must be an integer, got {value!r}")
        if level != value and not (isinstance(value, str) and value.strip().isdigit()):
            raise ValueError(f"{name} must be an integer, got {value!r}")
        if not low <= level <= high:
            raise ValueError(f"{name} {level} out of range ({low}-{high})")
        return level

    # ========================================================================
    # Helpers
    # ========================================================================

    def _audit(self, action: str, value: Any, metadata: Dict[str, Any]) -> None:
        try:
            self.audit_log.record(action, value, metadata)
        except OSError as e:
            self.ad.log(f"Failed to write audit record '{action}': {e}", level="WARNING")

    def _report(self, alert_id: str, severity: str, message: str) -> None:
        if self.alert_manager:
            self.alert_manager.report_error(alert_id, severity, message)

    def _clear(self, alert_id: str) -> None:
        if self.alert_manager:
            self.alert_manager.clear_error(alert_id)
