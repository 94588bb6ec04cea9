"""Tests for schedule profile storage and day validation."""

import pytest

import pystove.constants as C
from pystove.core.schedule_store import ScheduleStore
from pystove.exceptions import ScheduleValidationError

EVENING = {"start": "18:00", "end": "22:00", "power": 4, "fan": 3}
MORNING = {"start": "06:30", "end": "08:00", "power": 2, "fan": 2}


@pytest.fixture
def schedules(ad, config, store, clock, audit_log):
    return ScheduleStore(ad, config, store, clock, audit_log)


class TestSaveDay:
    """Saving one weekday's intervals."""

    def test_saved_sorted_and_readable(self, schedules):
        saved = schedules.save_day("mon", [EVENING, MORNING], actor="alice")
        assert saved == [MORNING, EVENING]
        assert schedules.get_day("mon") == [MORNING, EVENING]

    def test_day_name_normalized(self, schedules):
        schedules.save_day("Monday", [EVENING])
        assert schedules.get_day("mon") == [EVENING]

    def test_stamps_profile_updated_at(self, schedules, store, clock):
        schedules.save_day("mon", [EVENING])
        profile = store.read(C.PATH_SCHEDULE_PROFILE.format(schedule_id="default"))
        assert profile["updated_at"] == clock.now.isoformat()

    def test_audited(self, schedules, audit_log):
        schedules.save_day("tue", [EVENING], actor="alice")
        audit_log.record.assert_called_once()
        action, value, metadata = audit_log.record.call_args[0]
        assert action == "schedule day saved"
        assert value == [EVENING]
        assert metadata["day"] == "tue"
        assert metadata["actor"] == "alice"

    def test_empty_day_allowed(self, schedules):
        schedules.save_day("mon", [EVENING])
        assert schedules.save_day("mon", []) == []
        assert schedules.get_day("mon") == []

    def test_end_of_day_allowed(self, schedules):
        interval = {"start": "20:00", "end": "24:00", "power": 3, "fan": 3}
        assert schedules.save_day("fri", [interval]) == [interval]

    def test_integral_float_levels_normalized(self, schedules):
        saved = schedules.save_day("mon", [dict(EVENING, power=4.0)])
        assert saved[0]["power"] == 4
        assert isinstance(saved[0]["power"], int)


class TestValidation:
    """Invalid edits are rejected with a typed error."""

    @pytest.mark.parametrize("interval", [
        {"start": "22:00", "end": "18:00", "power": 4, "fan": 3},
        {"start": "18:00", "end": "18:00", "power": 4, "fan": 3},
        {"start": "18:00", "end": "22:00", "power": 0, "fan": 3},
        {"start": "18:00", "end": "22:00", "power": 6, "fan": 3},
        {"start": "18:00", "end": "22:00", "power": 4, "fan": 7},
        {"start": "18:00", "end": "22:00", "power": True, "fan": 3},
        {"start": "18:00", "end": "22:00", "power": 4},
        {"start": "6pm", "end": "22:00", "power": 4, "fan": 3},
        {"start": "24:00", "end": "24:00", "power": 4, "fan": 3},
    ])
    def test_invalid_interval(self, schedules, interval):
        with pytest.raises(ScheduleValidationError) as exc_info:
            schedules.save_day("mon", [interval])
        assert exc_info.value.to_dict()["code"] == "INVALID_SCHEDULE"
        assert exc_info.value.index == 0

    def test_overlap_rejected(self, schedules):
        with pytest.raises(ScheduleValidationError, match="overlaps"):
            schedules.save_day("mon", [EVENING, {"start": "21:00", "end": "23:00", "power": 2, "fan": 2}])

    def test_touching_intervals_allowed(self, schedules):
        later = {"start": "22:00", "end": "23:00", "power": 2, "fan": 2}
        assert schedules.save_day("mon", [EVENING, later]) == [EVENING, later]

    def test_not_a_list(self, schedules):
        with pytest.raises(ScheduleValidationError):
            schedules.save_day("mon", EVENING)

    def test_unknown_day(self, schedules):
        with pytest.raises(ScheduleValidationError, match="unknown day"):
            schedules.save_day("someday", [EVENING])

    def test_rejected_edit_leaves_day_unchanged(self, schedules, audit_log):
        schedules.save_day("mon", [EVENING])
        audit_log.reset_mock()
        with pytest.raises(ScheduleValidationError):
            schedules.save_day("mon", [dict(EVENING, fan=9)])
        assert schedules.get_day("mon") == [EVENING]
        audit_log.record.assert_not_called()


class TestProfiles:
    """Named schedule profiles and the active selection."""

    def test_default_active(self, schedules):
        assert schedules.get_active_schedule_id() == "default"

    def test_create_and_activate(self, schedules, audit_log):
        schedules.create_schedule("holiday", name="Holiday", timezone="Europe/Paris")
        schedules.set_active_schedule_id("holiday", actor="bob")
        assert schedules.get_active_schedule_id() == "holiday"

        week = schedules.get_weekly_schedule()
        assert week.schedule_id == "holiday"
        assert week.timezone == "Europe/Paris"
        assert week.is_empty()

        actions = [c[0][0] for c in audit_log.record.call_args_list]
        assert actions == ["schedule created", "active schedule changed"]

    def test_activate_unknown_profile_rejected(self, schedules):
        with pytest.raises(ScheduleValidationError):
            schedules.set_active_schedule_id("nope")

    def test_create_copies_days(self, schedules):
        schedules.save_day("mon", [EVENING])
        schedules.create_schedule("winter", copy_from="default")
        assert schedules.get_day("mon", schedule_id="winter") == [EVENING]

    def test_create_duplicate_rejected(self, schedules):
        schedules.create_schedule("winter")
        with pytest.raises(ScheduleValidationError, match="already exists"):
            schedules.create_schedule("winter")

    @pytest.mark.parametrize("schedule_id", ["", "Winter", "has space", "../etc", "a/b"])
    def test_invalid_id_rejected(self, schedules, schedule_id):
        with pytest.raises(ScheduleValidationError):
            schedules.create_schedule(schedule_id)

    def test_unknown_timezone_rejected(self, schedules):
        with pytest.raises(ScheduleValidationError, match="timezone"):
            schedules.create_schedule("mars", timezone="Mars/Olympus")

    def test_list_includes_default_and_active_flag(self, schedules):
        schedules.create_schedule("winter")
        schedules.set_active_schedule_id("winter")
        listed = {s["id"]: s for s in schedules.list_schedules()}
        assert set(listed) == {"default", "winter"}
        assert listed["winter"]["active"] is True
        assert listed["default"]["active"] is False
        assert listed["default"]["timezone"] == "Europe/Rome"

    def test_weekly_schedule_uses_system_timezone_by_default(self, schedules):
        schedules.save_day("mon", [EVENING])
        week = schedules.get_weekly_schedule()
        assert week.timezone == "Europe/Rome"
        assert week.entries_for("mon") == [EVENING]
