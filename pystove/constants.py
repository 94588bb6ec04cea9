"""
constants.py - Centralized configuration and defaults for PyStove

Responsibilities:
- Single source of truth for defaults, limits, and tuning knobs
- Define namespaced constants (no hardcoded magic numbers elsewhere)
- Read-only at runtime (no mutation)

Values marked _DEFAULT can be overridden in config/stove.yaml.
"""

from typing import Tuple

# ============================================================================
# Timezone & General
# ============================================================================

# Weekday keys used by schedules (index matches datetime.weekday())
DAY_NAMES: Tuple[str, ...] = ('mon', 'tue', 'wed', 'thu', 'fri', 'sat', 'sun')

# Minutes in a day; "24:00" is accepted as an interval end meaning end of day
MINUTES_PER_DAY = 24 * 60
END_OF_DAY = "24:00"

# Days scanned after today when searching for the next transition.
# Today + 7 days means today's earlier intervals are found again next week.
SCHEDULE_LOOKAHEAD_DAYS = 7

# ============================================================================
# Stove Levels
# ============================================================================

POWER_MIN = 1
POWER_MAX = 5
FAN_MIN = 1
FAN_MAX = 6

# Levels assumed when the appliance does not report them
POWER_FALLBACK = 2
FAN_FALLBACK = 3

# ============================================================================
# Appliance Status Classification
# ============================================================================

# Substrings of the appliance status that count as "burning" for hour tracking
RUNNING_STATUS_MARKERS_DEFAULT: Tuple[str, ...] = ("WORK", "MODULATION")

# Substrings that mean the appliance is on (includes the ignition phase)
ON_STATUS_MARKERS: Tuple[str, ...] = ("WORK", "START", "MODULATION")

STATUS_UNKNOWN = "unknown"

# ============================================================================
# Maintenance (Cleaning) Accounting
# ============================================================================

MAINTENANCE_TARGET_HOURS_DEFAULT = 50.0

# Rapid re-invocations closer than this are ignored (minutes)
MAINTENANCE_DEBOUNCE_MINUTES_DEFAULT = 0.5

# Stored hour precision (decimal places)
MAINTENANCE_HOURS_PRECISION = 4

# isNearLimit threshold (percent of target)
MAINTENANCE_NEAR_LIMIT_PERCENT_DEFAULT = 80.0

# Percent levels that raise a maintenance notification (each at most once per cycle)
MAINTENANCE_NOTIFICATION_LEVELS_DEFAULT: Tuple[int, ...] = (80, 90, 100)

# Max compare-and-swap attempts for the hour update before giving up
ATOMIC_UPDATE_MAX_RETRIES = 25

# ============================================================================
# Scheduler Modes
# ============================================================================

MODE_AUTOMATIC = "automatic"
MODE_MANUAL = "manual"
MODE_SEMI_MANUAL = "semi_manual"

ACTION_IGNITE = "ignite"
ACTION_SHUTDOWN = "shutdown"

DEFAULT_SCHEDULE_ID = "default"

# ============================================================================
# Persistence Paths (key paths inside the state document)
# ============================================================================

PATH_MAINTENANCE = "maintenance"
PATH_SCHEDULER_MODE = "scheduler_mode"
PATH_ACTIVE_SCHEDULE_ID = "schedules/active_schedule_id"
PATH_SCHEDULE_PROFILES = "schedules/profiles"
PATH_SCHEDULE_PROFILE = "schedules/profiles/{schedule_id}"
PATH_SCHEDULE_DAY = "schedules/profiles/{schedule_id}/days/{day}"
PATH_TICK_HEALTH = "tick_health"

# Store lock timeout (seconds) - no store call blocks longer than this
PERSISTENCE_TIMEOUT_S_DEFAULT = 5.0

PERSISTENCE_FILE_DEFAULT = "state/pystove_state.json"
AUDIT_LOG_DIR_DEFAULT = "state/audit"

# ============================================================================
# Tick Results
# ============================================================================

TICK_MANUAL_MODE = "manual_mode"
TICK_SEMI_MANUAL = "semi_manual"
TICK_NO_SCHEDULE = "no_schedule"
TICK_STATUS_UNAVAILABLE = "status_unavailable"
TICK_MAINTENANCE_REQUIRED = "maintenance_required"
TICK_ALREADY_ON = "already_on"
TICK_CONFIRMATION_FAILED = "confirmation_failed"
TICK_IGNITION_FAILED = "ignition_failed"
TICK_ON = "on"
TICK_OFF = "off"

# Sources written to the audit log
SOURCE_SCHEDULER = "scheduler"
SOURCE_MANUAL = "manual"

# ============================================================================
# Home Assistant Entities (published by PyStove)
# ============================================================================

STATUS_ENTITY_MAINTENANCE = "sensor.pystove_maintenance"
STATUS_ENTITY_SCHEDULER = "sensor.pystove_scheduler"

# ============================================================================
# Scheduling & Timing
# ============================================================================

# Tick interval (seconds) - how often the automation runs
TICK_INTERVAL_S_DEFAULT = 60
TICK_INTERVAL_S_MIN = 10

# Startup delay before first tick
STARTUP_INITIAL_DELAY_S = 5

# Config file monitoring interval
CONFIG_CHECK_INTERVAL_S = 30
