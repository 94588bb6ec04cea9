# -*- coding: utf-8 -*-
"""
alert_manager.py - Persistent notifications for stove problems

Responsibilities:
- Raise an alert only after a problem repeats (debounce)
- Mirror active alerts as Home Assistant persistent notifications
- Notify maintenance thresholds (once per level per cleaning cycle)
- Dismiss alerts when the problem goes away, unless they are sticky
- Send at most one notification per alert per rate-limit window
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional


@dataclass
class Alert:
    """One active alert."""
    alert_id: str
    severity: str
    message: str
    raised_at: datetime
    auto_clear: bool = True
    occurrences: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'severity': self.severity,
            'message': self.message,
            'auto_clear': self.auto_clear,
            'occurrences': self.occurrences,
            'raised_at': self.raised_at.isoformat(),
        }


class AlertManager:
    """Tracks stove alerts and their Home Assistant notifications."""

    SEVERITY_CRITICAL = "critical"
    SEVERITY_WARNING = "warning"

    ALERT_MAINTENANCE_DUE = "maintenance_due"
    ALERT_IGNITION_BLOCKED = "ignition_blocked"
    ALERT_PERSISTENCE_FAILURE = "persistence_failure"
    ALERT_TICK_FAILURE = "tick_failure"
    ALERT_CONFIG_LOAD_FAILURE = "config_load_failure"

    def __init__(self, ad, clock):
        """Initialize the alert manager.

        Args:
            ad: AppDaemon API reference
            clock: Clock instance
        """
        self.ad = ad
        self.clock = clock
        self.alerts: Dict[str, Alert] = {}

        # Consecutive reports per alert id, reset by clear_error()
        self.failure_counts: Dict[str, int] = {}
        self.last_sent: Dict[str, datetime] = {}

        self.debounce_threshold = 3
        self.rate_limit = timedelta(hours=1)

    @staticmethod
    def notification_id(alert_id: str) -> str:
        return f"pystove_{alert_id}"

    def report_error(self, alert_id: str, severity: str, message: str,
                     auto_clear: bool = True, debounce: Optional[int] = None) -> None:
        """Record one occurrence of a problem.

        The alert is raised once the problem has been reported `debounce`
        times in a row (default: debounce_threshold).

        Args:
            alert_id: One of the ALERT_* ids
            severity: SEVERITY_CRITICAL or SEVERITY_WARNING
            message: Text shown in the notification
            auto_clear: False makes the alert sticky (cleared only with force)
            debounce: Consecutive reports required
        """
        count = self.failure_counts.get(alert_id, 0) + 1
        self.failure_counts[alert_id] = count
        if count < (self.debounce_threshold if debounce is None else debounce):
            return

        alert = self.alerts.get(alert_id)
        if alert is not None:
            alert.occurrences = count
            return

        alert = Alert(alert_id, severity, message, self.clock.current_time(),
                      auto_clear=auto_clear, occurrences=count)
        self.alerts[alert_id] = alert
        self.ad.log(f"Alert raised: {alert_id} ({severity})", level="WARNING")
        self._notify(alert)

    def clear_error(self, alert_id: str, force: bool = False) -> None:
        """Mark a problem as resolved.

        Args:
            alert_id: One of the ALERT_* ids
            force: Also dismiss sticky (auto_clear=False) alerts
        """
        self.failure_counts[alert_id] = 0

        alert = self.alerts.get(alert_id)
        if alert is None or not (force or alert.auto_clear):
            return
        del self.alerts[alert_id]
        self._dismiss(alert_id)
        self.ad.log(f"Alert cleared: {alert_id}")

    def notify_maintenance_level(self, level: int, current_hours: float, needs_cleaning: bool) -> None:
        """Replace the maintenance alert with one for the level just reached.

        The caller reports each level once per cleaning cycle, so neither
        debounce nor rate limiting applies.
        """
        if needs_cleaning:
            severity = self.SEVERITY_CRITICAL
            message = (f"Stove cleaning required ({current_hours:.1f}h of use).\n\n"
                       f"Ignition is blocked until cleaning is confirmed.")
        else:
            severity = self.SEVERITY_WARNING
            message = (f"Stove maintenance at {level}% ({current_hours:.1f}h of use).\n\n"
                       f"Plan a cleaning soon.")

        self.alerts.pop(self.ALERT_MAINTENANCE_DUE, None)
        self.last_sent.pop(self.ALERT_MAINTENANCE_DUE, None)
        self.report_error(self.ALERT_MAINTENANCE_DUE, severity, message,
                          auto_clear=False, debounce=1)

    def _notify(self, alert: Alert) -> None:
        now = self.clock.current_time()
        sent = self.last_sent.get(alert.alert_id)
        if sent is not None and now - sent < self.rate_limit:
            self.ad.log(f"Notification for {alert.alert_id} suppressed "
                        f"(last sent {(now - sent).total_seconds():.0f}s ago)")
            return

        prefix = "Critical" if alert.severity == self.SEVERITY_CRITICAL else "Warning"
        try:
            self.ad.call_service(
                "persistent_notification/create",
                title=f"⚠️ PyStove {prefix}",
                message=f"{alert.message}\n\n*{now.strftime('%Y-%m-%d %H:%M:%S %Z')}*",
                notification_id=self.notification_id(alert.alert_id),
            )
        except Exception as e:
            self.ad.log(f"Could not create notification for {alert.alert_id}: {e}", level="ERROR")
            return
        self.last_sent[alert.alert_id] = now

    def _dismiss(self, alert_id: str) -> None:
        try:
            self.ad.call_service("persistent_notification/dismiss",
                                 notification_id=self.notification_id(alert_id))
        except Exception as e:
            self.ad.log(f"Could not dismiss notification for {alert_id}: {e}", level="WARNING")

    def get_active_alerts(self) -> Dict[str, Dict[str, Any]]:
        return {alert_id: alert.to_dict() for alert_id, alert in self.alerts.items()}

    def get_alert_count(self, severity: Optional[str] = None) -> int:
        return sum(1 for alert in self.alerts.values()
                   if severity is None or alert.severity == severity)
