"""Tests for schedule evaluation (active interval and next transition)."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

import pystove.constants as C
from pystove.core.models import WeeklySchedule
from pystove.core.scheduler import Scheduler
from pystove.exceptions import ConfigError, ScheduleDataError

ROME = ZoneInfo("Europe/Rome")


def rome(year, month, day, hour, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=ROME)


def evening_schedule(days=("mon",), **kwargs):
    interval = {"start": "18:00", "end": "22:00", "power": 4, "fan": 3}
    return WeeklySchedule(timezone="Europe/Rome", days={d: [dict(interval)] for d in days}, **kwargs)


@pytest.fixture
def scheduler(ad, config):
    return Scheduler(ad, config)


class TestComputeNextChange:
    """Next transition from a weekly schedule."""

    def test_ignite_later_today(self, scheduler):
        """08:00 before an 18:00-22:00 interval -> ignite at 18:00 with its levels."""
        change = scheduler.compute_next_change(evening_schedule(), rome(2025, 1, 6, 8))
        assert change.action == C.ACTION_IGNITE
        assert change.timestamp == rome(2025, 1, 6, 18)
        assert (change.power, change.fan) == (4, 3)

    def test_shutdown_inside_interval(self, scheduler):
        """19:00 inside 18:00-22:00 -> shutdown at 22:00."""
        change = scheduler.compute_next_change(evening_schedule(), rome(2025, 1, 6, 19))
        assert change.action == C.ACTION_SHUTDOWN
        assert change.timestamp == rome(2025, 1, 6, 22)
        assert change.power is None
        assert "power" not in change.to_dict()

    def test_start_is_inclusive(self, scheduler):
        change = scheduler.compute_next_change(evening_schedule(), rome(2025, 1, 6, 18))
        assert change.action == C.ACTION_SHUTDOWN

    def test_end_is_exclusive(self, scheduler):
        """At 22:00 the interval is over; next is next Monday's ignite."""
        change = scheduler.compute_next_change(evening_schedule(), rome(2025, 1, 6, 22))
        assert change.action == C.ACTION_IGNITE
        assert change.timestamp == rome(2025, 1, 13, 18)

    def test_wraps_to_following_day(self, scheduler):
        schedule = evening_schedule(days=("tue",))
        change = scheduler.compute_next_change(schedule, rome(2025, 1, 6, 23))
        assert change.timestamp == rome(2025, 1, 7, 18)

    def test_wraps_across_week_end(self, scheduler):
        """Sunday night finds Monday's interval."""
        change = scheduler.compute_next_change(evening_schedule(), rome(2025, 1, 12, 23))
        assert change.timestamp == rome(2025, 1, 13, 18)

    def test_same_weekday_next_week(self, scheduler):
        """Only today's interval, already past -> found again seven days later."""
        schedule = WeeklySchedule(timezone="Europe/Rome", days={
            "mon": [{"start": "06:00", "end": "07:00", "power": 2, "fan": 2}],
        })
        change = scheduler.compute_next_change(schedule, rome(2025, 1, 6, 8))
        assert change.action == C.ACTION_IGNITE
        assert change.timestamp == rome(2025, 1, 13, 6)

    def test_empty_schedule_returns_none(self, scheduler):
        schedule = WeeklySchedule(timezone="Europe/Rome")
        assert scheduler.compute_next_change(schedule, rome(2025, 1, 6, 8)) is None

    def test_picks_earliest_of_unsorted_entries(self, scheduler):
        schedule = WeeklySchedule(timezone="Europe/Rome", days={"mon": [
            {"start": "18:00", "end": "22:00", "power": 4, "fan": 3},
            {"start": "10:00", "end": "12:00", "power": 2, "fan": 1},
        ]})
        change = scheduler.compute_next_change(schedule, rome(2025, 1, 6, 8))
        assert change.timestamp == rome(2025, 1, 6, 10)
        assert change.power == 2

    def test_end_of_day_interval(self, scheduler):
        schedule = WeeklySchedule(timezone="Europe/Rome", days={
            "mon": [{"start": "20:00", "end": "24:00", "power": 3, "fan": 3}],
        })
        change = scheduler.compute_next_change(schedule, rome(2025, 1, 6, 21))
        assert change.action == C.ACTION_SHUTDOWN
        assert change.timestamp == rome(2025, 1, 7, 0)

    def test_result_is_timezone_aware(self, scheduler):
        change = scheduler.compute_next_change(evening_schedule(), rome(2025, 1, 6, 8))
        assert change.timestamp.tzinfo is not None

    def test_stable_between_boundaries(self, scheduler):
        """Any two instants with no boundary between them agree."""
        schedule = evening_schedule(days=("mon", "wed"))
        base = rome(2025, 1, 6, 8)
        expected = scheduler.compute_next_change(schedule, base)
        for minutes in range(0, 10 * 60, 37):
            assert scheduler.compute_next_change(schedule, base + timedelta(minutes=minutes)) == expected


class TestTimezone:
    """Interval times are wall-clock times in the schedule's timezone."""

    def test_utc_now_converted_to_schedule_zone(self, scheduler):
        # 17:30 UTC is 18:30 in Rome (winter)
        now = datetime(2025, 1, 6, 17, 30, tzinfo=timezone.utc)
        assert scheduler.is_inside_interval(evening_schedule(), now) is True

    def test_profile_timezone_overrides_system(self, scheduler):
        schedule = WeeklySchedule(timezone="America/New_York", days={
            "mon": [{"start": "18:00", "end": "22:00", "power": 4, "fan": 3}],
        })
        # 19:00 in Rome is 13:00 in New York
        assert scheduler.is_inside_interval(schedule, rome(2025, 1, 6, 19)) is False
        change = scheduler.compute_next_change(schedule, rome(2025, 1, 6, 19))
        assert change.timestamp == datetime(2025, 1, 6, 18, tzinfo=ZoneInfo("America/New_York"))

    def test_falls_back_to_system_timezone(self, scheduler):
        schedule = WeeklySchedule(timezone=None, days=evening_schedule().days)
        assert scheduler.is_inside_interval(schedule, rome(2025, 1, 6, 19)) is True

    def test_missing_timezone_is_config_error(self, ad, config):
        config.system_config.pop('timezone')
        scheduler = Scheduler(ad, config)
        with pytest.raises(ConfigError):
            scheduler.compute_next_change(WeeklySchedule(timezone=None), rome(2025, 1, 6, 8))

    def test_naive_now_rejected(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.get_active_interval(evening_schedule(), datetime(2025, 1, 6, 19))

    def test_dst_change_day(self, scheduler):
        """Spring-forward Sunday: 18:00 local is still 18:00 local."""
        schedule = evening_schedule(days=("sun",))
        change = scheduler.compute_next_change(schedule, rome(2025, 3, 30, 8))
        assert change.timestamp == rome(2025, 3, 30, 18)
        assert change.timestamp.utcoffset() == timedelta(hours=2)


class TestActiveInterval:
    """Active interval lookup."""

    def test_active_interval_returned(self, scheduler):
        active = scheduler.get_active_interval(evening_schedule(), rome(2025, 1, 6, 20))
        assert active.to_dict() == {"start": "18:00", "end": "22:00", "power": 4, "fan": 3}

    def test_no_active_interval(self, scheduler):
        assert scheduler.get_active_interval(evening_schedule(), rome(2025, 1, 6, 8)) is None


class TestMalformedEntries:
    """Corrupted stored entries."""

    def bad_schedule(self):
        return WeeklySchedule(timezone="Europe/Rome", days={"mon": [
            {"start": "25:00", "end": "26:00", "power": 1, "fan": 1},
            {"start": "18:00", "end": "22:00", "power": 4, "fan": 3},
            {"start": "12:00"},
            "garbage",
        ]})

    def test_skipped_with_warning(self, ad, scheduler):
        change = scheduler.compute_next_change(self.bad_schedule(), rome(2025, 1, 6, 8))
        assert change.timestamp == rome(2025, 1, 6, 18)
        assert len(ad.logged("WARNING")) == 3

    def test_strict_mode_raises(self, ad, config):
        config.system_config['strict_schedules'] = True
        scheduler = Scheduler(ad, config)
        with pytest.raises(ScheduleDataError):
            scheduler.compute_next_change(self.bad_schedule(), rome(2025, 1, 6, 8))

    def test_whole_day_not_a_list(self, ad, scheduler):
        schedule = WeeklySchedule(timezone="Europe/Rome", days={"mon": {"start": "18:00"}})
        assert scheduler.get_active_interval(schedule, rome(2025, 1, 6, 19)) is None
        assert ad.logged("WARNING")
