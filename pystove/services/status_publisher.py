# -*- coding: utf-8 -*-
"""
status_publisher.py - Status entity publishing

Responsibilities:
- Publish maintenance state to sensor.pystove_maintenance
- Publish scheduler mode, last tick and next transition to sensor.pystove_scheduler
- Format status attributes for Home Assistant
"""

from typing import Any, Dict, Optional

import pystove.constants as C
from pystove.exceptions import PersistenceError


class StatusPublisher:
    """Publishes PyStove status to Home Assistant entities."""

    def __init__(self, ad, maintenance, modes):
        """Initialize the status publisher.

        Args:
            ad: AppDaemon API reference
            maintenance: MaintenanceManager instance
            modes: ModeManager instance
        """
        self.ad = ad
        self.maintenance = maintenance
        self.modes = modes

    def publish_maintenance(self) -> None:
        """Publish sensor.pystove_maintenance (state = percentage used)."""
        try:
            status = self.maintenance.get_maintenance_status()
        except PersistenceError as e:
            self.ad.log(f"Maintenance status unavailable: {e}", level="WARNING")
            self.ad.set_state(C.STATUS_ENTITY_MAINTENANCE, state="unavailable")
            return

        attrs = {
            'friendly_name': 'PyStove Maintenance',
            'unit_of_measurement': '%',
            'icon': 'mdi:broom' if status['needsCleaning'] else 'mdi:fireplace',
            'current_hours': round(status['currentHours'], 2),
            'target_hours': status['targetHours'],
            'remaining_hours': round(status['remainingHours'], 2),
            'needs_cleaning': status['needsCleaning'],
            'is_near_limit': status['isNearLimit'],
            'last_cleaned_at': status['lastCleanedAt'],
        }
        self.ad.set_state(C.STATUS_ENTITY_MAINTENANCE, state=status['percentage'],
                          attributes=attrs, replace=True)

    def publish_scheduler(self, tick_result: Optional[Dict[str, Any]] = None) -> None:
        """Publish sensor.pystove_scheduler (state = control mode)."""
        mode = self.modes.get_mode()
        attrs: Dict[str, Any] = {
            'friendly_name': 'PyStove Scheduler',
            'icon': 'mdi:calendar-clock',
            'enabled': mode.enabled,
            'semi_manual': mode.semi_manual,
            'return_to_auto_at': mode.return_to_auto_at,
        }
        if tick_result:
            attrs.update({
                'last_tick': tick_result.get('timestamp'),
                'last_result': tick_result.get('result'),
                'stove_status': tick_result.get('status'),
                'schedule_id': tick_result.get('schedule_id'),
                'active_interval': tick_result.get('active_interval'),
                'next_change': tick_result.get('next_change'),
            })
        self.ad.set_state(C.STATUS_ENTITY_SCHEDULER, state=mode.state,
                          attributes=attrs, replace=True)

    def publish_all(self, tick_result: Optional[Dict[str, Any]] = None) -> None:
        self.publish_maintenance()
        self.publish_scheduler(tick_result)
