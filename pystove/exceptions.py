"""
Custom Exception Classes for PyStove

Hierarchical exception structure shared by the core components.
Domain errors carry a machine-readable code and structured details so
service handlers can return them to the user as-is.
"""

from typing import Any, Dict, Optional


class StoveError(Exception):
    """Base exception for all PyStove errors"""

    code = "STOVE_ERROR"

    def __init__(self, message: str, recoverable: bool = True):
        self.message = message
        self.recoverable = recoverable
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": self.message,
            "code": self.code,
        }


class ConfigError(StoveError):
    """Configuration-related errors"""

    code = "CONFIG_ERROR"

    def __init__(self, message: str, recoverable: bool = False):
        super().__init__(f"Config Error: {message}", recoverable)


class PersistenceError(StoveError):
    """State store read/write failures (transient)"""

    code = "PERSISTENCE_ERROR"

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(f"Persistence Error: {message}", recoverable=True)


class PersistenceTimeoutError(PersistenceError):
    """State store lock could not be acquired in time"""

    code = "PERSISTENCE_TIMEOUT"

    def __init__(self, path: Optional[str], timeout_s: float):
        self.timeout_s = timeout_s
        super().__init__(f"timed out after {timeout_s:.1f}s waiting for store", path)


class CorruptRecordError(PersistenceError):
    """A stored record exists but cannot be decoded"""

    code = "CORRUPT_RECORD"

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(f"corrupt record: {message}", path)


class ScheduleDataError(StoveError):
    """A stored schedule entry is malformed"""

    code = "SCHEDULE_DATA_ERROR"

    def __init__(self, message: str, day: Optional[str] = None, entry: Any = None):
        self.day = day
        self.entry = entry
        super().__init__(f"Schedule Data Error: {message}", recoverable=True)


class ScheduleValidationError(StoveError):
    """User-supplied schedule edit is invalid"""

    code = "INVALID_SCHEDULE"

    def __init__(self, message: str, day: Optional[str] = None, index: Optional[int] = None):
        self.day = day
        self.index = index
        super().__init__(message, recoverable=True)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["details"] = {"day": self.day, "index": self.index}
        return result


class IgnitionBlockedError(StoveError):
    """Ignition refused because maintenance cleaning is due"""

    code = "MAINTENANCE_REQUIRED"

    def __init__(self, current_hours: float, target_hours: float,
                 last_cleaned_at: Optional[str]):
        self.current_hours = current_hours
        self.target_hours = target_hours
        self.last_cleaned_at = last_cleaned_at
        super().__init__(
            f"Cleaning required before ignition: {current_hours:.1f}h of "
            f"{target_hours:.0f}h used",
            recoverable=True,
        )

    @property
    def details(self) -> Dict[str, Any]:
        return {
            "current_hours": self.current_hours,
            "target_hours": self.target_hours,
            "last_cleaned_at": self.last_cleaned_at,
        }

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["details"] = self.details
        return result


class ApplianceError(StoveError):
    """Appliance command or status read failed"""

    code = "APPLIANCE_ERROR"

    def __init__(self, message: str, command: Optional[str] = None):
        self.command = command
        super().__init__(f"Appliance Error: {message}", recoverable=True)
