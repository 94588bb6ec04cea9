# -*- coding: utf-8 -*-
"""
schedule_store.py - Persisted weekly schedule profiles

Responsibilities:
- Keep several named schedule profiles in the state store
- Track which profile is active
- Validate and save a day's intervals
- Build WeeklySchedule objects for evaluation
"""

import re
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pystove.constants as C
from pystove.core.clock import to_iso
from pystove.core.models import Interval, WeeklySchedule
from pystove.exceptions import ScheduleDataError, ScheduleValidationError

SCHEDULE_ID_PATTERN = re.compile(r'^[a-z0-9][a-z0-9_-]{0,63}$')


class ScheduleStore:
    """Reads and writes schedule profiles through the state store.

    Layout under the store:
        schedules/active_schedule_id -> "default"
        schedules/profiles/<id> -> {name, timezone, created_at, updated_at,
                                    days: {mon: [...], ...}}
    """

    def __init__(self, ad, config, store, clock, audit_log):
        """Initialize the schedule store.

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
    # Profiles
    # ------------------------------------------------------------------

    def get_active_schedule_id(self) -> str:
        return self.store.read(C.PATH_ACTIVE_SCHEDULE_ID) or C.DEFAULT_SCHEDULE_ID

    def set_active_schedule_id(self, schedule_id: str, actor: Optional[str] = None) -> None:
        """Select the active profile.

        Raises:
            ScheduleValidationError: If the profile does not exist
        """
        if schedule_id != C.DEFAULT_SCHEDULE_ID and not self._profile_exists(schedule_id):
            raise ScheduleValidationError(f"schedule '{schedule_id}' does not exist")

        previous = self.get_active_schedule_id()
        self.store.write(C.PATH_ACTIVE_SCHEDULE_ID, schedule_id)
        self.ad.log(f"Active schedule changed: {previous} -> {schedule_id}")
        self.audit_log.record("active schedule changed", schedule_id, {
            'previous': previous,
            'actor': actor,
        })

    def list_schedules(self) -> List[Dict[str, Any]]:
        profiles = self.store.read(C.PATH_SCHEDULE_PROFILES) or {}
        active_id = self.get_active_schedule_id()
        ids = set(profiles.keys()) | {C.DEFAULT_SCHEDULE_ID}
        result = []
        for schedule_id in sorted(ids):
            profile = profiles.get(schedule_id) or {}
            result.append({
                'id': schedule_id,
                'name': profile.get('name', schedule_id.capitalize()),
                'timezone': profile.get('timezone') or self.config.system_config.get('timezone'),
                'updated_at': profile.get('updated_at'),
                'active': schedule_id == active_id,
            })
        return result

    def create_schedule(self, schedule_id: str, name: Optional[str] = None,
                        timezone: Optional[str] = None, copy_from: Optional[str] = None,
                        actor: Optional[str] = None) -> Dict[str, Any]:
        """Create a new schedule profile, optionally copying another profile's days.

        Raises:
            ScheduleValidationError: On invalid id/timezone, or if the id is taken
        """
        if not isinstance(schedule_id, str) or not SCHEDULE_ID_PATTERN.match(schedule_id):
            raise ScheduleValidationError(
                f"invalid schedule id {schedule_id!r} (lowercase letters, digits, '-' and '_')"
            )
        if self._profile_exists(schedule_id):
            raise ScheduleValidationError(f"schedule '{schedule_id}' already exists")
        if timezone is not None:
            try:
                ZoneInfo(timezone)
            except (ZoneInfoNotFoundError, ValueError):
                raise ScheduleValidationError(f"unknown timezone '{timezone}'")

        days: Dict[str, Any] = {}
        if copy_from is not None:
            if copy_from != C.DEFAULT_SCHEDULE_ID and not self._profile_exists(copy_from):
                raise ScheduleValidationError(f"schedule '{copy_from}' does not exist")
            source = self.store.read(C.PATH_SCHEDULE_PROFILE.format(schedule_id=copy_from)) or {}
            days = source.get('days') or {}
            if timezone is None:
                timezone = source.get('timezone')

        now_iso = to_iso(self.clock.current_time())
        profile = {
            'name': name or schedule_id.capitalize(),
            'timezone': timezone,
            'created_at': now_iso,
            'updated_at': now_iso,
            'days': days,
        }
        self.store.write(C.PATH_SCHEDULE_PROFILE.format(schedule_id=schedule_id), profile)
        self.ad.log(f"Schedule created: {schedule_id}" + (f" (copy of {copy_from})" if copy_from else ""))
        self.audit_log.record("schedule created", schedule_id, {
            'copy_from': copy_from,
            'actor': actor,
        })
        return profile

    def _profile_exists(self, schedule_id: str) -> bool:
        return self.store.read(C.PATH_SCHEDULE_PROFILE.format(schedule_id=schedule_id)) is not None

    # ------------------------------------------------------------------
    # Days
    # ------------------------------------------------------------------

    def get_weekly_schedule(self, schedule_id: Optional[str] = None) -> WeeklySchedule:
        """Build the WeeklySchedule for a profile (active profile by default)."""
        schedule_id = schedule_id or self.get_active_schedule_id()
        profile = self.store.read(C.PATH_SCHEDULE_PROFILE.format(schedule_id=schedule_id)) or {}
        return WeeklySchedule(
            timezone=profile.get('timezone') or self.config.system_config.get('timezone'),
            days=profile.get('days') or {},
            schedule_id=schedule_id,
            name=profile.get('name'),
        )

    def get_day(self, day: str, schedule_id: Optional[str] = None) -> List[Any]:
        day = self._normalize_day(day)
        schedule_id = schedule_id or self.get_active_schedule_id()
        return self.store.read(C.PATH_SCHEDULE_DAY.format(schedule_id=schedule_id, day=day)) or []

    def save_day(self, day: str, intervals: List[Dict[str, Any]], actor: Optional[str] = None,
                 schedule_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Validate and replace one day's intervals.

        Intervals are stored sorted by start time.

        Returns:
            The intervals as stored

        Raises:
            ScheduleValidationError: If any interval is invalid or they overlap
        """
        day = self._normalize_day(day)
        schedule_id = schedule_id or self.get_active_schedule_id()
        validated = [i.to_dict() for i in self.validate_intervals(day, intervals)]

        self.store.write(C.PATH_SCHEDULE_DAY.format(schedule_id=schedule_id, day=day), validated)
        self.store.update(C.PATH_SCHEDULE_PROFILE.format(schedule_id=schedule_id), {
            'updated_at': to_iso(self.clock.current_time()),
        })

        self.ad.log(f"Schedule saved: {schedule_id}/{day} ({len(validated)} intervals)")
        self.audit_log.record("schedule day saved", validated, {
            'schedule_id': schedule_id,
            'day': day,
            'actor': actor,
        })
        return validated

    def validate_intervals(self, day: str, intervals: Any) -> List[Interval]:
        """Validate a day's intervals for saving.

        Raises:
            ScheduleValidationError: On the first problem found
        """
        if not isinstance(intervals, list):
            raise ScheduleValidationError("intervals must be a list", day)

        parsed = []
        for index, entry in enumerate(intervals):
            try:
                interval = Interval.from_dict(entry, day)
            except ScheduleDataError as e:
                raise ScheduleValidationError(e.message, day, index) from e
            if not C.POWER_MIN <= interval.power <= C.POWER_MAX:
                raise ScheduleValidationError(
                    f"power {interval.power} out of range ({C.POWER_MIN}-{C.POWER_MAX})", day, index)
            if not C.FAN_MIN <= interval.fan <= C.FAN_MAX:
                raise ScheduleValidationError(
                    f"fan {interval.fan} out of range ({C.FAN_MIN}-{C.FAN_MAX})", day, index)
            parsed.append(interval)

        parsed.sort(key=lambda i: i.start_minutes)
        for previous, current in zip(parsed, parsed[1:]):
            if current.start_minutes < previous.end_minutes:
                raise ScheduleValidationError(
                    f"interval {current.start}-{current.end} overlaps "
                    f"{previous.start}-{previous.end}", day)
        return parsed

    def _normalize_day(self, day: Any) -> str:
        key = str(day).strip().lower()[:3]
        if key not in C.DAY_NAMES:
            raise ScheduleValidationError(f"unknown day {day!r}, expected one of {', '.join(C.DAY_NAMES)}")
        return key
