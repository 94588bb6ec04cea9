# -*- coding: utf-8 -*-
"""
config_loader.py - Configuration loading and validation for PyStove

Responsibilities:
- Load stove.yaml
- Validate configuration data and apply defaults
- Monitor the config file for changes
- Provide structured access to configuration
"""

import os
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

import pystove.constants as C


class ConfigLoader:
    """Handles loading and monitoring of the PyStove configuration file."""

    def __init__(self, ad, config_dir: Optional[str] = None):
        """Initialize the config loader.

        Args:
            ad: AppDaemon API reference
            config_dir: Directory holding stove.yaml (defaults to the
                package's config/ directory)
        """
        self.ad = ad
        self.app_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
        self.config_dir = config_dir or os.path.join(self.app_dir, "config")
        self.stove_config = {}  # HA entity ids / scripts for the appliance
        self.system_config = {}  # Timezone, tick interval, persistence
        self.maintenance_config = {}  # Cleaning accounting knobs
        self.config_file_mtimes = {}  # {filepath: mtime} for change detection

    @property
    def config_file(self) -> str:
        return os.path.join(self.config_dir, "stove.yaml")

    def load_all(self) -> None:
        """Load and validate stove.yaml.

        Raises:
            ValueError: If the configuration is invalid
            OSError: If the file cannot be read
        """
        config_file = self.config_file
        if os.path.exists(config_file):
            self.config_file_mtimes[config_file] = os.path.getmtime(config_file)

        with open(config_file, 'r') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"{config_file}: top level must be a mapping")

        # Validate everything before replacing the live settings
        stove = self._load_stove(data.get('stove') or {})
        system = self._load_system(data.get('system') or {})
        maintenance = self._load_maintenance(data.get('maintenance') or {})
        self.stove_config = stove
        self.system_config = system
        self.maintenance_config = maintenance

        self.ad.log(
            f"Loaded stove config: status_entity={self.stove_config['status_entity']}, "
            f"timezone={self.system_config['timezone']}, "
            f"tick={self.system_config['tick_interval_s']}s"
        )

    def _load_stove(self, sc: Dict[str, Any]) -> Dict[str, Any]:
        if 'status_entity' not in sc:
            raise ValueError(
                "Stove configuration error: 'status_entity' is required in stove.yaml. "
                "This is the sensor reporting the stove status (e.g., sensor.stove_status)"
            )
        sc = dict(sc)
        sc.setdefault('power_entity', None)
        sc.setdefault('fan_entity', None)
        sc.setdefault('ignite_script', None)
        sc.setdefault('shutdown_script', None)
        return sc

    def _load_system(self, sc: Dict[str, Any]) -> Dict[str, Any]:
        sc = dict(sc)

        # Interval times are wall-clock times in this zone; never guess it
        tz_name = sc.get('timezone')
        if not tz_name:
            raise ValueError(
                "System configuration error: 'timezone' is required in stove.yaml "
                "(e.g., Europe/Rome). Schedule times are interpreted in this timezone."
            )
        try:
            ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"System configuration error: unknown timezone '{tz_name}'")

        tick = sc.get('tick_interval_s', C.TICK_INTERVAL_S_DEFAULT)
        if not isinstance(tick, (int, float)) or tick < C.TICK_INTERVAL_S_MIN:
            raise ValueError(
                f"System configuration error: tick_interval_s must be >= "
                f"{C.TICK_INTERVAL_S_MIN}, got {tick}"
            )
        sc['tick_interval_s'] = int(tick)

        timeout = sc.get('persistence_timeout_s', C.PERSISTENCE_TIMEOUT_S_DEFAULT)
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ValueError(
                f"System configuration error: persistence_timeout_s must be > 0, got {timeout}"
            )
        sc['persistence_timeout_s'] = float(timeout)

        sc['persistence_file'] = self._resolve_path(
            sc.get('persistence_file', C.PERSISTENCE_FILE_DEFAULT))
        sc['audit_log_dir'] = self._resolve_path(
            sc.get('audit_log_dir', C.AUDIT_LOG_DIR_DEFAULT))
        sc['strict_schedules'] = bool(sc.get('strict_schedules', False))
        return sc

    def _load_maintenance(self, mc: Dict[str, Any]) -> Dict[str, Any]:
        mc = dict(mc)

        target = mc.get('default_target_hours', C.MAINTENANCE_TARGET_HOURS_DEFAULT)
        if not isinstance(target, (int, float)) or target <= 0:
            raise ValueError(
                f"Maintenance configuration error: default_target_hours must be > 0, got {target}"
            )
        mc['default_target_hours'] = float(target)

        statuses = mc.get('running_statuses', list(C.RUNNING_STATUS_MARKERS_DEFAULT))
        if not isinstance(statuses, list) or not statuses or \
                not all(isinstance(s, str) and s for s in statuses):
            raise ValueError(
                "Maintenance configuration error: running_statuses must be a non-empty list of strings"
            )
        mc['running_statuses'] = [s.upper() for s in statuses]

        debounce = mc.get('debounce_minutes', C.MAINTENANCE_DEBOUNCE_MINUTES_DEFAULT)
        if not isinstance(debounce, (int, float)) or debounce < 0:
            raise ValueError(
                f"Maintenance configuration error: debounce_minutes must be >= 0, got {debounce}"
            )
        mc['debounce_minutes'] = float(debounce)

        near = mc.get('near_limit_percent', C.MAINTENANCE_NEAR_LIMIT_PERCENT_DEFAULT)
        if not isinstance(near, (int, float)) or not 0 < near <= 100:
            raise ValueError(
                f"Maintenance configuration error: near_limit_percent must be in (0, 100], got {near}"
            )
        mc['near_limit_percent'] = float(near)

        mc['notification_levels'] = self._load_notification_levels(
            mc.get('notification_levels', list(C.MAINTENANCE_NOTIFICATION_LEVELS_DEFAULT)))
        return mc

    def _load_notification_levels(self, levels: Any) -> List[int]:
        if not isinstance(levels, list) or not all(
                isinstance(v, int) and not isinstance(v, bool) and 0 < v <= 100 for v in levels):
            raise ValueError(
                "Maintenance configuration error: notification_levels must be a list of "
                "integers in 1..100"
            )
        return sorted(set(levels))

    def _resolve_path(self, path: str) -> str:
        if os.path.isabs(path):
            return path
        return os.path.join(self.app_dir, path)

    def check_for_changes(self) -> bool:
        """Check if the configuration file has been modified.

        Returns:
            True if the config file has changed, False otherwise
        """
        changed = False
        for filepath, old_mtime in self.config_file_mtimes.items():
            if os.path.exists(filepath):
                new_mtime = os.path.getmtime(filepath)
                if new_mtime != old_mtime:
                    self.ad.log(f"Config file changed: {filepath}", level="INFO")
                    changed = True
        return changed

    def reload(self) -> None:
        """Reload the configuration file.

        On failure the previous settings stay in effect.
        """
        self.ad.log("Reloading configuration...")
        self.load_all()
        self.ad.log("Configuration reloaded successfully")
