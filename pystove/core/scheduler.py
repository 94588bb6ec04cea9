# -*- coding: utf-8 -*-
"""
scheduler.py - Schedule evaluation

Responsibilities:
- Resolve which interval (if any) is active at a given instant
- Compute the next automatic transition (ignite with levels, or shutdown)
- Interpret interval times in the schedule's configured timezone
- Skip malformed interval entries (or raise in strict mode)
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pystove.constants as C
from pystove.core.models import Interval, NextChange, WeeklySchedule
from pystove.exceptions import ConfigError, ScheduleDataError


class Scheduler:
    """Evaluates weekly schedules against the current instant.

    Stateless apart from its references: every call takes the schedule and
    the instant explicitly, so results never depend on the process timezone.
    """

    def __init__(self, ad, config):
        """Initialize the scheduler.

        Args:
            ad: AppDaemon API reference
            config: ConfigLoader instance
        """
        self.ad = ad
        self.config = config

    def _zone(self, schedule: WeeklySchedule) -> ZoneInfo:
        tz_name = schedule.timezone or self.config.system_config.get('timezone')
        if not tz_name:
            raise ConfigError(f"schedule '{schedule.schedule_id}' has no timezone configured")
        try:
            return ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigError(f"schedule '{schedule.schedule_id}' has unknown timezone '{tz_name}'") from e

    def _local(self, schedule: WeeklySchedule, now: datetime) -> datetime:
        if now.tzinfo is None:
            raise ValueError("now must be timezone-aware")
        return now.astimezone(self._zone(schedule))

    def _at(self, day: date, minutes: int, tz: ZoneInfo) -> datetime:
        """Aware datetime for minutes-since-midnight on a local date."""
        if minutes >= C.MINUTES_PER_DAY:
            day = day + timedelta(days=1)
            minutes -= C.MINUTES_PER_DAY
        local = datetime.combine(day, time(minutes // 60, minutes % 60), tzinfo=tz)
        # Round-trip through UTC to normalize wall times skipped by DST
        return local.astimezone(timezone.utc).astimezone(tz)

    def get_day_intervals(self, schedule: WeeklySchedule, day: str) -> List[Interval]:
        """Parse a day's intervals in chronological order.

        Malformed entries are logged and skipped so one bad entry does not
        disable the whole day. With strict_schedules enabled they raise.

        Raises:
            ScheduleDataError: In strict mode, on the first malformed entry
        """
        intervals = []
        for entry in schedule.entries_for(day):
            try:
                intervals.append(Interval.from_dict(entry, day))
            except ScheduleDataError as e:
                if self.config.system_config.get('strict_schedules', False):
                    raise
                self.ad.log(
                    f"Skipping malformed interval in schedule '{schedule.schedule_id}' "
                    f"({day}): {e.message}",
                    level="WARNING"
                )
        intervals.sort(key=lambda i: i.start_minutes)
        return intervals

    def get_active_interval(self, schedule: WeeklySchedule, now: datetime) -> Optional[Interval]:
        """Return the interval containing now (start inclusive, end exclusive)."""
        local_now = self._local(schedule, now)
        current_minutes = local_now.hour * 60 + local_now.minute
        day_name = C.DAY_NAMES[local_now.weekday()]

        for interval in self.get_day_intervals(schedule, day_name):
            if interval.contains(current_minutes):
                return interval
        return None

    def is_inside_interval(self, schedule: WeeklySchedule, now: datetime) -> bool:
        return self.get_active_interval(schedule, now) is not None

    def compute_next_change(self, schedule: WeeklySchedule, now: datetime) -> Optional[NextChange]:
        """Compute the next automatic transition.

        Scans today and the following SCHEDULE_LOOKAHEAD_DAYS days. Today, an
        interval containing now yields a shutdown at its end; otherwise the
        first interval starting at or after now yields an ignite. On later
        days the first interval of the day yields an ignite.

        Args:
            schedule: Weekly schedule to evaluate
            now: Current instant (timezone-aware)

        Returns:
            NextChange, or None if the schedule has no usable intervals
        """
        tz = self._zone(schedule)
        local_now = self._local(schedule, now)
        current_minutes = local_now.hour * 60 + local_now.minute
        today = local_now.date()

        for day_offset in range(C.SCHEDULE_LOOKAHEAD_DAYS + 1):
            scan_date = today + timedelta(days=day_offset)
            day_name = C.DAY_NAMES[scan_date.weekday()]
            from_minutes = current_minutes if day_offset == 0 else 0

            for interval in self.get_day_intervals(schedule, day_name):
                if day_offset == 0 and interval.contains(current_minutes):
                    return NextChange(
                        timestamp=self._at(scan_date, interval.end_minutes, tz),
                        action=C.ACTION_SHUTDOWN,
                    )
                if interval.start_minutes >= from_minutes:
                    return NextChange(
                        timestamp=self._at(scan_date, interval.start_minutes, tz),
                        action=C.ACTION_IGNITE,
                        power=interval.power,
                        fan=interval.fan,
                    )

        return None
