# -*- coding: utf-8 -*-
"""
models.py - Data structures shared by the PyStove components

Responsibilities:
- Define schedule intervals and weekly schedules
- Define the persisted scheduler mode and maintenance records
- Convert between persisted dicts and typed records
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import pystove.constants as C
from pystove.core.clock import parse_iso
from pystove.exceptions import CorruptRecordError, ScheduleDataError


def parse_hhmm(value: Any) -> int:
    """Convert "HH:MM" to minutes since midnight.

    "24:00" is accepted and means end of day (1440).

    Raises:
        ValueError: If value is not a valid time of day
    """
    if not isinstance(value, str) or value.count(':') != 1:
        raise ValueError(f"invalid time {value!r}, expected HH:MM")
    hours_str, minutes_str = value.split(':')
    if not (hours_str.isdigit() and minutes_str.isdigit() and len(minutes_str) == 2):
        raise ValueError(f"invalid time {value!r}, expected HH:MM")
    hours, minutes = int(hours_str), int(minutes_str)
    if value == C.END_OF_DAY or (hours == 24 and minutes == 0):
        return C.MINUTES_PER_DAY
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"invalid time {value!r}, out of range")
    return hours * 60 + minutes


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _as_level(value: Any, name: str) -> int:
    # bool is an int subclass but never a valid level
    if isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    return value


@dataclass
class Interval:
    """A contiguous time-of-day window with fixed power/fan levels.

    Attributes:
        start: Start time "HH:MM" (inclusive)
        end: End time "HH:MM" (exclusive), "24:00" for end of day
        power: Stove power level (1-5)
        fan: Stove fan level (1-6)
    """
    start: str
    end: str
    power: int
    fan: int

    @property
    def start_minutes(self) -> int:
        return parse_hhmm(self.start)

    @property
    def end_minutes(self) -> int:
        return parse_hhmm(self.end)

    def contains(self, minute_of_day: int) -> bool:
        return self.start_minutes <= minute_of_day < self.end_minutes

    @classmethod
    def from_dict(cls, data: Any, day: Optional[str] = None) -> 'Interval':
        """Build an Interval from a stored entry.

        Raises:
            ScheduleDataError: If the entry is structurally invalid
        """
        if not isinstance(data, dict):
            raise ScheduleDataError(f"interval entry is not a mapping: {data!r}", day, data)
        try:
            interval = cls(
                start=data['start'],
                end=data['end'],
                power=_as_level(data['power'], 'power'),
                fan=_as_level(data['fan'], 'fan'),
            )
            start_m = interval.start_minutes
            end_m = interval.end_minutes
        except KeyError as e:
            raise ScheduleDataError(f"interval entry missing {e}", day, data) from e
        except ValueError as e:
            raise ScheduleDataError(str(e), day, data) from e
        if start_m >= C.MINUTES_PER_DAY:
            raise ScheduleDataError(f"interval cannot start at {interval.start}", day, data)
        if end_m <= start_m:
            raise ScheduleDataError(
                f"interval end {interval.end} is not after start {interval.start}", day, data
            )
        return interval

    def to_dict(self) -> Dict[str, Any]:
        return {'start': self.start, 'end': self.end, 'power': self.power, 'fan': self.fan}


@dataclass
class WeeklySchedule:
    """One schedule profile: raw interval entries per weekday plus its timezone.

    Entries are kept as stored so that a corrupted entry can be skipped at
    evaluation time without discarding the rest of the day.
    """
    timezone: Optional[str]
    days: Dict[str, List[Any]] = field(default_factory=dict)
    schedule_id: str = C.DEFAULT_SCHEDULE_ID
    name: Optional[str] = None

    def entries_for(self, day: str) -> List[Any]:
        entries = self.days.get(day) or []
        if not isinstance(entries, list):
            # A whole day replaced by a scalar/mapping is treated as one bad entry
            return [entries]
        return list(entries)

    def is_empty(self) -> bool:
        return not any(self.entries_for(day) for day in C.DAY_NAMES)


@dataclass
class NextChange:
    """Next automatic transition computed from a schedule."""
    timestamp: datetime
    action: str
    power: Optional[int] = None
    fan: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            'timestamp': self.timestamp.isoformat(),
            'action': self.action,
        }
        if self.action == C.ACTION_IGNITE:
            result['power'] = self.power
            result['fan'] = self.fan
        return result


@dataclass
class SchedulerMode:
    """Persisted control mode.

    Attributes:
        enabled: Automatic control on (False = manual)
        semi_manual: Temporary manual override layered on automatic
        semi_manual_activated_at: ISO timestamp the override started
        return_to_auto_at: ISO timestamp the override ends
        last_updated: ISO timestamp of the last change
    """
    enabled: bool = False
    semi_manual: bool = False
    semi_manual_activated_at: Optional[str] = None
    return_to_auto_at: Optional[str] = None
    last_updated: Optional[str] = None

    @property
    def state(self) -> str:
        if not self.enabled:
            return C.MODE_MANUAL
        if self.semi_manual:
            return C.MODE_SEMI_MANUAL
        return C.MODE_AUTOMATIC

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'SchedulerMode':
        data = data or {}
        return cls(
            enabled=bool(data.get('enabled', False)),
            semi_manual=bool(data.get('semiManual', False)),
            semi_manual_activated_at=data.get('semiManualActivatedAt'),
            return_to_auto_at=data.get('returnToAutoAt'),
            last_updated=data.get('lastUpdated'),
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            'enabled': self.enabled,
            'semiManual': self.semi_manual,
            'lastUpdated': self.last_updated,
        }
        if self.semi_manual:
            result['semiManualActivatedAt'] = self.semi_manual_activated_at
            result['returnToAutoAt'] = self.return_to_auto_at
        return result


@dataclass
class MaintenanceRecord:
    """Persisted maintenance (cleaning) accounting."""
    current_hours: float = 0.0
    target_hours: float = C.MAINTENANCE_TARGET_HOURS_DEFAULT
    last_updated_at: Optional[str] = None
    last_cleaned_at: Optional[str] = None
    needs_cleaning: bool = False
    last_notification_level: int = 0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]],
                  default_target: float = C.MAINTENANCE_TARGET_HOURS_DEFAULT) -> 'MaintenanceRecord':
        """Decode a persisted record.

        Raises:
            CorruptRecordError: If data is not a dict or a field has the wrong type
        """
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise CorruptRecordError(f"expected a dict, got {type(data).__name__}",
                                     C.PATH_MAINTENANCE)
        try:
            for key in ('lastUpdatedAt', 'lastCleanedAt'):
                parse_iso(data.get(key))
            return cls(
                current_hours=float(data.get('currentHours', 0) or 0),
                target_hours=float(data.get('targetHours', default_target) or default_target),
                last_updated_at=data.get('lastUpdatedAt'),
                last_cleaned_at=data.get('lastCleanedAt'),
                needs_cleaning=bool(data.get('needsCleaning', False)),
                last_notification_level=int(data.get('lastNotificationLevel', 0) or 0),
            )
        except (TypeError, ValueError) as e:
            raise CorruptRecordError(str(e), C.PATH_MAINTENANCE) from e

    def to_dict(self) -> Dict[str, Any]:
        return {
            'currentHours': self.current_hours,
            'targetHours': self.target_hours,
            'lastUpdatedAt': self.last_updated_at,
            'lastCleanedAt': self.last_cleaned_at,
            'needsCleaning': self.needs_cleaning,
            'lastNotificationLevel': self.last_notification_level,
        }


@dataclass
class TrackResult:
    """Outcome of one usage-hour tracking call."""
    tracked: bool
    reason: Optional[str] = None
    elapsed_minutes: Optional[float] = None
    new_current_hours: Optional[float] = None
    needs_cleaning: Optional[bool] = None
    notification_level: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}
