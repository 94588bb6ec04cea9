# -*- coding: utf-8 -*-
"""
service_handler.py - Service registration and callbacks

Responsibilities:
- Register AppDaemon services for pystove
- Handle service calls with validation
- Bridge service calls to internal logic
- Convert domain errors into {"success": False, ...} responses
"""

import traceback
from typing import Any, Callable, Dict, Optional

import pystove.constants as C
from pystove.core.clock import to_iso
from pystove.exceptions import StoveError
from pystove.services.alert_manager import AlertManager


class ServiceHandler:
    """Handles PyStove service registration and callbacks."""

    def __init__(self, ad, config, clock, scheduler, schedules, modes, maintenance, controller,
                 alert_manager=None):
        """Initialize the service handler.

        Args:
            ad: AppDaemon API reference
            config: ConfigLoader instance
            clock: Clock instance
            scheduler: Scheduler instance
            schedules: ScheduleStore instance
            modes: ModeManager instance
            maintenance: MaintenanceManager instance
            controller: StoveController instance
            alert_manager: Optional AlertManager
        """
        self.ad = ad
        self.config = config
        self.clock = clock
        self.scheduler = scheduler
        self.schedules = schedules
        self.modes = modes
        self.maintenance = maintenance
        self.controller = controller
        self.alert_manager = alert_manager
        self.trigger_tick_callback = None  # Set by main app

    def register_all(self, trigger_tick_cb: Optional[Callable] = None) -> None:
        """Register all PyStove services.

        Args:
            trigger_tick_cb: Callback to run a tick after a state change
        """
        self.trigger_tick_callback = trigger_tick_cb

        self.ad.register_service("pystove/set_scheduler_enabled", self.svc_set_scheduler_enabled)
        self.ad.register_service("pystove/exit_semi_manual", self.svc_exit_semi_manual)
        self.ad.register_service("pystove/get_mode", self.svc_get_mode)
        self.ad.register_service("pystove/get_day", self.svc_get_day)
        self.ad.register_service("pystove/get_week", self.svc_get_week)
        self.ad.register_service("pystove/save_day", self.svc_save_day)
        self.ad.register_service("pystove/list_schedules", self.svc_list_schedules)
        self.ad.register_service("pystove/create_schedule", self.svc_create_schedule)
        self.ad.register_service("pystove/set_active_schedule", self.svc_set_active_schedule)
        self.ad.register_service("pystove/get_next_change", self.svc_get_next_change)
        self.ad.register_service("pystove/get_maintenance_status", self.svc_get_maintenance_status)
        self.ad.register_service("pystove/confirm_cleaning", self.svc_confirm_cleaning)
        self.ad.register_service("pystove/set_target_hours", self.svc_set_target_hours)
        self.ad.register_service("pystove/ignite", self.svc_ignite)
        self.ad.register_service("pystove/shutdown", self.svc_shutdown)
        self.ad.register_service("pystove/set_levels", self.svc_set_levels)
        self.ad.register_service("pystove/reload_config", self.svc_reload_config)

        self.ad.log("Registered PyStove services")

    def _error(self, service: str, e: Exception) -> Dict[str, Any]:
        """Build the failure response for an exception raised by a service."""
        if isinstance(e, StoveError):
            self.ad.log(f"pystove.{service}: {e.message}", level="WARNING")
            return e.to_dict()
        if isinstance(e, ValueError):
            self.ad.log(f"pystove.{service}: {e}", level="ERROR")
            return {"success": False, "error": str(e)}
        self.ad.log(f"pystove.{service} failed: {e}", level="ERROR")
        self.ad.log(f"Traceback: {traceback.format_exc()}", level="ERROR")
        return {"success": False, "error": str(e)}

    def _trigger_tick(self, reason: str) -> None:
        if self.trigger_tick_callback:
            self.ad.run_in(lambda kwargs: self.trigger_tick_callback(reason), 1)

    @staticmethod
    def _actor(kwargs: Dict[str, Any]) -> str:
        return kwargs.get('actor') or "service"

    # ========================================================================
    # Mode
    # ========================================================================

    def svc_set_scheduler_enabled(self, namespace, domain, service, kwargs):
        """Service: pystove.set_scheduler_enabled - Toggle automatic control.

        Args:
            enabled (bool): True for automatic, False for manual (required)
        """
        enabled = kwargs.get('enabled')
        if enabled is None:
            self.ad.log("pystove.set_scheduler_enabled: 'enabled' argument is required", level="ERROR")
            return {"success": False, "error": "enabled argument is required"}
        if isinstance(enabled, str):
            if enabled.lower() not in ("true", "false", "on", "off"):
                return {"success": False, "error": f"invalid enabled value '{enabled}'"}
            enabled = enabled.lower() in ("true", "on")

        try:
            if not self.modes.set_enabled(bool(enabled), actor=self._actor(kwargs)):
                return {"success": False, "error": "failed to save scheduler mode"}
        except Exception as e:
            return self._error("set_scheduler_enabled", e)
        self._trigger_tick("scheduler_enabled_changed")
        return {"success": True, "mode": self.modes.get_mode().state}

    def svc_exit_semi_manual(self, namespace, domain, service, kwargs):
        """Service: pystove.exit_semi_manual - Return to automatic control now."""
        try:
            if not self.modes.exit_semi_manual(actor=self._actor(kwargs)):
                return {"success": False, "error": "failed to save scheduler mode"}
        except Exception as e:
            return self._error("exit_semi_manual", e)
        self._trigger_tick("semi_manual_cleared")
        return {"success": True, "mode": self.modes.get_mode().state}

    def svc_get_mode(self, namespace, domain, service, kwargs):
        """Service: pystove.get_mode - Current control mode."""
        mode = self.modes.get_mode()
        return {"success": True, "state": mode.state, **mode.to_dict()}

    # ========================================================================
    # Schedules
    # ========================================================================

    def svc_get_day(self, namespace, domain, service, kwargs):
        """Service: pystove.get_day - Intervals stored for one weekday.

        Args:
            day (str): Weekday, e.g. "mon" or "Monday" (required)
            schedule_id (str): Profile (defaults to the active one)
        """
        day = kwargs.get('day')
        if day is None:
            return {"success": False, "error": "day argument is required"}
        try:
            intervals = self.schedules.get_day(day, kwargs.get('schedule_id'))
            return {"success": True, "day": day, "intervals": intervals}
        except Exception as e:
            return self._error("get_day", e)

    def svc_get_week(self, namespace, domain, service, kwargs):
        """Service: pystove.get_week - All days of a profile.

        Args:
            schedule_id (str): Profile (defaults to the active one)
        """
        try:
            schedule = self.schedules.get_weekly_schedule(kwargs.get('schedule_id'))
            return {
                "success": True,
                "schedule_id": schedule.schedule_id,
                "name": schedule.name,
                "timezone": schedule.timezone,
                "days": {day: schedule.entries_for(day) for day in C.DAY_NAMES},
            }
        except Exception as e:
            return self._error("get_week", e)

    def svc_save_day(self, namespace, domain, service, kwargs):
        """Service: pystove.save_day - Replace one weekday's intervals.

        Args:
            day (str): Weekday (required)
            intervals (list): [{start, end, power, fan}, ...] (required, may be empty)
            schedule_id (str): Profile (defaults to the active one)
        """
        day = kwargs.get('day')
        intervals = kwargs.get('intervals')
        if day is None:
            return {"success": False, "error": "day argument is required"}
        if intervals is None:
            return {"success": False, "error": "intervals argument is required"}

        try:
            saved = self.schedules.save_day(day, intervals, actor=self._actor(kwargs),
                                            schedule_id=kwargs.get('schedule_id'))
        except Exception as e:
            return self._error("save_day", e)
        self._trigger_tick("schedule_saved")
        return {"success": True, "day": day, "intervals": saved}

    def svc_list_schedules(self, namespace, domain, service, kwargs):
        """Service: pystove.list_schedules - All profiles with the active flag."""
        try:
            return {"success": True, "schedules": self.schedules.list_schedules()}
        except Exception as e:
            return self._error("list_schedules", e)

    def svc_create_schedule(self, namespace, domain, service, kwargs):
        """Service: pystove.create_schedule - Create a profile.

        Args:
            schedule_id (str): New profile id (required)
            name (str): Display name
            timezone (str): IANA timezone (defaults to the system timezone)
            copy_from (str): Profile whose days are copied
        """
        schedule_id = kwargs.get('schedule_id')
        if schedule_id is None:
            return {"success": False, "error": "schedule_id argument is required"}
        try:
            profile = self.schedules.create_schedule(
                schedule_id,
                name=kwargs.get('name'),
                timezone=kwargs.get('timezone'),
                copy_from=kwargs.get('copy_from'),
                actor=self._actor(kwargs),
            )
            return {"success": True, "schedule_id": schedule_id, "profile": profile}
        except Exception as e:
            return self._error("create_schedule", e)

    def svc_set_active_schedule(self, namespace, domain, service, kwargs):
        """Service: pystove.set_active_schedule - Select the profile used by the tick.

        Args:
            schedule_id (str): Profile id (required)
        """
        schedule_id = kwargs.get('schedule_id')
        if schedule_id is None:
            return {"success": False, "error": "schedule_id argument is required"}
        try:
            self.schedules.set_active_schedule_id(schedule_id, actor=self._actor(kwargs))
        except Exception as e:
            return self._error("set_active_schedule", e)
        self._trigger_tick("active_schedule_changed")
        return {"success": True, "schedule_id": schedule_id}

    def svc_get_next_change(self, namespace, domain, service, kwargs):
        """Service: pystove.get_next_change - Next scheduled transition."""
        try:
            schedule = self.schedules.get_weekly_schedule()
            now = self.clock.current_time()
            next_change = self.scheduler.compute_next_change(schedule, now)
            active = self.scheduler.get_active_interval(schedule, now)
            return {
                "success": True,
                "schedule_id": schedule.schedule_id,
                "now": to_iso(now),
                "active_interval": active.to_dict() if active else None,
                "next_change": next_change.to_dict() if next_change else None,
            }
        except Exception as e:
            return self._error("get_next_change", e)

    # ========================================================================
    # Maintenance
    # ========================================================================

    def svc_get_maintenance_status(self, namespace, domain, service, kwargs):
        """Service: pystove.get_maintenance_status - Hours used and cleaning state."""
        try:
            return {"success": True, **self.maintenance.get_maintenance_status()}
        except Exception as e:
            return self._error("get_maintenance_status", e)

    def svc_confirm_cleaning(self, namespace, domain, service, kwargs):
        """Service: pystove.confirm_cleaning - Reset hours after cleaning."""
        try:
            self.maintenance.confirm_cleaning(actor=self._actor(kwargs))
        except Exception as e:
            return self._error("confirm_cleaning", e)

        if self.alert_manager:
            self.alert_manager.clear_error(AlertManager.ALERT_MAINTENANCE_DUE, force=True)
            self.alert_manager.clear_error(AlertManager.ALERT_IGNITION_BLOCKED)
        self._trigger_tick("cleaning_confirmed")
        return {"success": True, **self.maintenance.get_maintenance_status()}

    def svc_set_target_hours(self, namespace, domain, service, kwargs):
        """Service: pystove.set_target_hours - Change the cleaning interval.

        Args:
            hours (float): New target hours, > 0 (required)
        """
        hours = kwargs.get('hours')
        if hours is None:
            self.ad.log("pystove.set_target_hours: 'hours' argument is required", level="ERROR")
            return {"success": False, "error": "hours argument is required"}
        try:
            record = self.maintenance.update_target_hours(hours, actor=self._actor(kwargs))
            return {"success": True, "targetHours": record.target_hours,
                    "needsCleaning": record.needs_cleaning}
        except Exception as e:
            return self._error("set_target_hours", e)

    # ========================================================================
    # Manual control
    # ========================================================================

    def svc_ignite(self, namespace, domain, service, kwargs):
        """Service: pystove.ignite - Light the stove now.

        Args:
            power (int): Power level 1-5 (defaults to the active interval's)
            fan (int): Fan level 1-6 (defaults to the active interval's)
        """
        try:
            return self.controller.manual_ignite(kwargs.get('power'), kwargs.get('fan'),
                                                 actor=self._actor(kwargs))
        except Exception as e:
            return self._error("ignite", e)

    def svc_shutdown(self, namespace, domain, service, kwargs):
        """Service: pystove.shutdown - Turn the stove off now."""
        try:
            return self.controller.manual_shutdown(actor=self._actor(kwargs))
        except Exception as e:
            return self._error("shutdown", e)

    def svc_set_levels(self, namespace, domain, service, kwargs):
        """Service: pystove.set_levels - Change power and/or fan.

        Args:
            power (int): Power level 1-5
            fan (int): Fan level 1-6
        """
        try:
            return self.controller.manual_set_levels(kwargs.get('power'), kwargs.get('fan'),
                                                     actor=self._actor(kwargs))
        except Exception as e:
            return self._error("set_levels", e)

    def svc_reload_config(self, namespace, domain, service, kwargs):
        """Service: pystove.reload_config - Hot reload stove.yaml."""
        self.ad.log("Service call: pystove.reload_config")
        try:
            self.config.reload()
        except Exception as e:
            self.ad.log(f"Failed to reload config: {e}", level="ERROR")
            return {"success": False, "error": str(e)}
        self._trigger_tick("config_reloaded")
        return {"success": True, "message": "Configuration reloaded"}
