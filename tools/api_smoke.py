#!/usr/bin/env python3
"""
Smoke test for the PyStove HTTP API of a running AppDaemon instance.

Reads mode, maintenance and schedule state, saves a test interval on a
scratch profile, and prints every response. Never ignites the stove.
"""

import sys
import time

import requests

# AppDaemon API endpoint
APPDAEMON_URL = "http://localhost:5050"
SCRATCH_SCHEDULE = "smoke-test"


def call_pystove_api(endpoint, **kwargs):
    """Call a pystove API endpoint via AppDaemon."""
    url = f"{APPDAEMON_URL}/api/appdaemon/{endpoint}"
    response = requests.post(url, json=kwargs, timeout=10)
    try:
        body = response.json()
    except ValueError:
        body = {"raw": response.text}
    return response.status_code, body


def show(title, status_code, body):
    print(f"\n--- {title} [{status_code}]")
    for key, value in body.items():
        print(f"  {key}: {value}")


def main():
    print("=" * 60)
    print("PyStove API smoke test")
    print("=" * 60)

    failures = 0

    for title, endpoint in [
        ("Mode", "pystove_get_mode"),
        ("Maintenance", "pystove_get_maintenance_status"),
        ("Next change", "pystove_get_next_change"),
        ("Schedules", "pystove_list_schedules"),
    ]:
        code, body = call_pystove_api(endpoint)
        show(title, code, body)
        failures += code != 200

    code, body = call_pystove_api("pystove_create_schedule", schedule_id=SCRATCH_SCHEDULE,
                                  name="Smoke test")
    show("Create scratch profile", code, body)

    code, body = call_pystove_api(
        "pystove_save_day", schedule_id=SCRATCH_SCHEDULE, day="mon",
        intervals=[{"start": "18:00", "end": "22:00", "power": 4, "fan": 3}],
    )
    show("Save scratch day", code, body)
    failures += code != 200

    # Overlapping intervals must be rejected with a 400
    code, body = call_pystove_api(
        "pystove_save_day", schedule_id=SCRATCH_SCHEDULE, day="mon",
        intervals=[{"start": "18:00", "end": "22:00", "power": 4, "fan": 3},
                   {"start": "21:00", "end": "23:00", "power": 2, "fan": 2}],
    )
    show("Save overlapping day (expect 400)", code, body)
    failures += code != 400

    time.sleep(1)
    code, body = call_pystove_api("pystove_get_week", schedule_id=SCRATCH_SCHEDULE)
    show("Scratch week", code, body)

    code, body = call_pystove_api("pystove_get_status")
    show("Combined status", code, body)
    failures += code != 200

    print("\n" + "=" * 60)
    print("PASSED" if not failures else f"FAILED ({failures} unexpected responses)")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
