# -*- coding: utf-8 -*-
"""
ignition_gate.py - Maintenance check in front of every ignite command

Responsibilities:
- Refuse ignition while the stove needs cleaning
- Attach the maintenance context to the refusal for display
"""

from pystove.exceptions import IgnitionBlockedError, PersistenceError


class IgnitionGate:
    """Single checkpoint used by both automatic and manual ignition paths."""

    def __init__(self, ad, maintenance):
        """Initialize the ignition gate.

        Args:
            ad: AppDaemon API reference
            maintenance: MaintenanceManager instance
        """
        self.ad = ad
        self.maintenance = maintenance

    def ensure_can_ignite(self) -> None:
        """Raise if ignition is currently blocked.

        Raises:
            IgnitionBlockedError: If cleaning is required
        """
        if self.maintenance.can_ignite():
            return

        try:
            record = self.maintenance.get_maintenance_data()
            current, target, cleaned = record.current_hours, record.target_hours, record.last_cleaned_at
        except PersistenceError as e:
            # can_ignite() just read it, so this is a store hiccup mid-check
            self.ad.log(f"Could not read maintenance details for ignition refusal: {e}",
                        level="WARNING")
            current, target, cleaned = 0.0, 0.0, None

        self.ad.log(f"Ignition blocked: cleaning required ({current:.1f}h / {target:.0f}h)",
                    level="WARNING")
        raise IgnitionBlockedError(current, target, cleaned)
