"""Shared fixtures for PyStove tests.

Provides a fake AppDaemon API, a fixed clock, a temp-dir JsonFileStore and
a configuration stub matching what ConfigLoader produces.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest import mock

import pytest

import pystove.constants as C
from pystove.core.clock import Clock
from pystove.core.persistence import JsonFileStore

# Monday 2025-01-06 08:00 in Europe/Rome (UTC+1 in winter)
MONDAY_0800_ROME = datetime(2025, 1, 6, 7, 0, tzinfo=timezone.utc)


class FakeAD:
    """Minimal stand-in for the AppDaemon Hass API."""

    def __init__(self):
        self.logs = []
        self.states = {}
        self.service_calls = []
        self.published = {}
        self.services = {}
        self.endpoints = {}
        self.scheduled = []

    def log(self, msg, level="INFO"):
        self.logs.append((level, msg))

    def error(self, msg):
        self.logs.append(("ERROR", msg))

    def logged(self, level):
        return [msg for lvl, msg in self.logs if lvl == level]

    def get_state(self, entity_id, attribute=None):
        return self.states.get(entity_id)

    def set_state(self, entity_id, state=None, attributes=None, replace=False):
        self.published[entity_id] = {'state': state, 'attributes': attributes or {}}

    def call_service(self, service, **kwargs):
        self.service_calls.append((service, kwargs))

    def register_service(self, name, callback):
        self.services[name] = callback

    def register_endpoint(self, callback, name):
        self.endpoints[name] = callback

    def run_in(self, callback, delay, **kwargs):
        self.scheduled.append((callback, delay, kwargs))


class FixedClock(Clock):
    """Clock pinned to an instant; advance() moves it forward."""

    def __init__(self, now: datetime):
        self.now = now

    def current_time(self) -> datetime:
        return self.now

    def advance(self, minutes: float = 0, seconds: float = 0) -> datetime:
        self.now = self.now + timedelta(minutes=minutes, seconds=seconds)
        return self.now


def make_config(**maintenance_overrides):
    maintenance = {
        'default_target_hours': C.MAINTENANCE_TARGET_HOURS_DEFAULT,
        'running_statuses': list(C.RUNNING_STATUS_MARKERS_DEFAULT),
        'debounce_minutes': C.MAINTENANCE_DEBOUNCE_MINUTES_DEFAULT,
        'near_limit_percent': C.MAINTENANCE_NEAR_LIMIT_PERCENT_DEFAULT,
        'notification_levels': list(C.MAINTENANCE_NOTIFICATION_LEVELS_DEFAULT),
    }
    maintenance.update(maintenance_overrides)
    return SimpleNamespace(
        stove_config={
            'status_entity': 'sensor.stove_status',
            'power_entity': 'number.stove_power',
            'fan_entity': 'number.stove_fan',
            'ignite_script': 'script.stove_ignite',
            'shutdown_script': 'script.stove_shutdown',
        },
        system_config={
            'timezone': 'Europe/Rome',
            'tick_interval_s': 60,
            'strict_schedules': False,
        },
        maintenance_config=maintenance,
    )


@pytest.fixture
def ad():
    return FakeAD()


@pytest.fixture
def clock():
    return FixedClock(MONDAY_0800_ROME)


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def store(tmp_path):
    return JsonFileStore(str(tmp_path / "state" / "pystove_state.json"), timeout_s=1.0)


@pytest.fixture
def audit_log():
    return mock.MagicMock()
