# -*- coding: utf-8 -*-
"""
PyStove - Pellet Stove Automation for AppDaemon

Manages:
- Weekly schedules with per-interval power and fan levels
- Automatic, manual and semi-manual (temporary override) control
- Burning-hour accounting with a cleaning lockout
- Manual ignite / shutdown / level commands through services and HTTP

Architecture:
- Thin orchestrator (this file) wires the components and owns the timers
- StoveController runs one tick per interval (default 60s)
- All state lives in a JSON state file, so ticks are stateless
"""

import traceback
from datetime import datetime
from typing import Optional

import appdaemon.plugins.hass.hassapi as hass

import pystove.constants as C
from pystove.controllers.appliance_client import HassApplianceClient
from pystove.controllers.ignition_gate import IgnitionGate
from pystove.controllers.stove_controller import StoveController
from pystove.core.clock import SystemClock
from pystove.core.config_loader import ConfigLoader
from pystove.core.persistence import JsonFileStore
from pystove.core.schedule_store import ScheduleStore
from pystove.core.scheduler import Scheduler
from pystove.managers.maintenance_manager import MaintenanceManager
from pystove.managers.mode_manager import ModeManager
from pystove.services.alert_manager import AlertManager
from pystove.services.api_handler import APIHandler
from pystove.services.audit_log import JsonlAuditLog
from pystove.services.service_handler import ServiceHandler
from pystove.services.status_publisher import StatusPublisher


class PyStove(hass.Hass):
    """Main PyStove app for AppDaemon."""

    def initialize(self):
        """Initialize the PyStove app.

        Called by AppDaemon when the app is loaded or reloaded. Loads
        configuration, builds the components, registers services and
        endpoints, and starts the tick.
        """
        self.log("=" * 60)
        self.log("PyStove initializing...")
        self.log("=" * 60)

        self.tick_count = 0
        self.last_tick: Optional[datetime] = None

        self.clock = SystemClock()
        self.config = ConfigLoader(self, self.args.get('config_dir') if self.args else None)
        self.alerts = AlertManager(self, self.clock)

        try:
            self.config.load_all()
        except Exception as e:
            self.error(f"Failed to load configuration: {e}")
            self.log("PyStove initialization failed - configuration error")
            self.alerts.report_error(
                AlertManager.ALERT_CONFIG_LOAD_FAILURE,
                AlertManager.SEVERITY_CRITICAL,
                f"Failed to load PyStove configuration: {e}\n\nPlease check stove.yaml.",
                auto_clear=False,
                debounce=1
            )
            return

        system = self.config.system_config
        self.store = JsonFileStore(system['persistence_file'], system['persistence_timeout_s'])
        self.audit_log = JsonlAuditLog(self, system['audit_log_dir'], self.clock)

        self.scheduler = Scheduler(self, self.config)
        self.schedules = ScheduleStore(self, self.config, self.store, self.clock, self.audit_log)
        self.modes = ModeManager(self, self.store, self.clock, self.audit_log)
        self.maintenance = MaintenanceManager(self, self.config, self.store, self.clock, self.audit_log)
        self.gate = IgnitionGate(self, self.maintenance)
        self.client = HassApplianceClient(self, self.config)
        self.controller = StoveController(
            self, self.config, self.store, self.clock, self.scheduler, self.schedules,
            self.modes, self.maintenance, self.gate, self.client, self.audit_log, self.alerts
        )
        self.status = StatusPublisher(self, self.maintenance, self.modes)
        self.services = ServiceHandler(
            self, self.config, self.clock, self.scheduler, self.schedules, self.modes,
            self.maintenance, self.controller, self.alerts
        )
        self.api = APIHandler(self, self.services)

        # Schedule periodic tick
        self.run_every(self.periodic_tick, f"now+{C.STARTUP_INITIAL_DELAY_S}",
                       system['tick_interval_s'])

        # Schedule config file monitoring
        self.run_every(self.check_config_files, "now+15", C.CONFIG_CHECK_INTERVAL_S)

        self.services.register_all(self.trigger_tick)
        self.api.register_all()

        mode = self.modes.get_mode()
        self.log("PyStove initialized successfully")
        self.log(f"  Status entity: {self.config.stove_config['status_entity']}")
        self.log(f"  Timezone: {system['timezone']}")
        self.log(f"  Active schedule: {self.schedules.get_active_schedule_id()}")
        self.log(f"  Mode: {mode.state}")
        self.log(f"  Tick interval: {system['tick_interval_s']}s")
        self.log("=" * 60)

    def terminate(self):
        """Called by AppDaemon when the app is stopped."""
        if hasattr(self, 'audit_log'):
            self.audit_log.close()

    # ========================================================================
    # Timers
    # ========================================================================

    def check_config_files(self, kwargs):
        """Periodic check for configuration file changes (hot reload)."""
        if not self.config.check_for_changes():
            return
        try:
            self.config.reload()
            self.alerts.clear_error(AlertManager.ALERT_CONFIG_LOAD_FAILURE, force=True)
        except Exception as e:
            self.error(f"Config reload failed, keeping previous configuration: {e}")
            self.alerts.report_error(
                AlertManager.ALERT_CONFIG_LOAD_FAILURE,
                AlertManager.SEVERITY_WARNING,
                f"stove.yaml could not be reloaded: {e}",
                debounce=1
            )

    def periodic_tick(self, kwargs):
        """Periodic tick callback."""
        self.tick_count += 1
        self.log(f"Periodic tick #{self.tick_count}", level="DEBUG")
        self.run_tick("periodic")

    def trigger_tick(self, reason: str):
        """Run a tick immediately (after a service call changed state).

        Args:
            reason: Description of why the tick was triggered
        """
        self.tick_count += 1
        self.log(f"Tick #{self.tick_count} triggered: {reason}", level="DEBUG")
        self.run_tick(reason)

    def run_tick(self, reason: str):
        """Run one controller tick and publish the result.

        Errors never propagate to AppDaemon: the next tick retries.
        """
        now = self.clock.current_time()
        self.last_tick = now
        try:
            result = self.controller.run_tick(now)
        except Exception as e:
            self.log(f"Tick failed ({reason}): {e}", level="ERROR")
            self.log(f"Traceback: {traceback.format_exc()}", level="ERROR")
            self.alerts.report_error(
                AlertManager.ALERT_TICK_FAILURE,
                AlertManager.SEVERITY_CRITICAL,
                f"PyStove automation tick is failing: {e}"
            )
            return

        self.alerts.clear_error(AlertManager.ALERT_TICK_FAILURE)
        try:
            self.status.publish_all(result)
        except Exception as e:
            self.log(f"Failed to publish status: {e}", level="WARNING")
