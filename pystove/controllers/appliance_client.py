# -*- coding: utf-8 -*-
"""
appliance_client.py - Stove command and status interface

Responsibilities:
- Define the operations the automation needs from the stove
- Bridge them to Home Assistant entities and scripts
"""

from typing import Optional

import pystove.constants as C
from pystove.exceptions import ApplianceError

UNAVAILABLE_STATES = (None, "", "unknown", "unavailable")


class ApplianceClient:
    """Abstract stove interface."""

    def get_status(self) -> str:
        """Current status text (e.g. "WORK", "OFF").

        Raises:
            ApplianceError: If the status cannot be read
        """
        raise NotImplementedError

    def get_power_level(self) -> Optional[int]:
        """Current power level, or None if not reported."""
        raise NotImplementedError

    def get_fan_level(self) -> Optional[int]:
        """Current fan level, or None if not reported."""
        raise NotImplementedError

    def ignite(self, power: int) -> None:
        raise NotImplementedError

    def shutdown(self) -> None:
        raise NotImplementedError

    def set_power_level(self, level: int) -> None:
        raise NotImplementedError

    def set_fan_level(self, level: int) -> None:
        raise NotImplementedError


def is_on_status(status: Optional[str]) -> bool:
    """True if the status means the stove is lit or igniting."""
    if not status:
        return False
    status = status.upper()
    return any(marker in status for marker in C.ON_STATUS_MARKERS)


class HassApplianceClient(ApplianceClient):
    """Stove exposed through Home Assistant.

    Status is a sensor, levels are number entities, and ignite/shutdown are
    scripts (the ignite script receives a "power" variable).
    """

    def __init__(self, ad, config):
        """Initialize the client.

        Args:
            ad: AppDaemon API reference
            config: ConfigLoader instance
        """
        self.ad = ad
        self.config = config

    def _entity(self, key: str) -> Optional[str]:
        return self.config.stove_config.get(key)

    def get_status(self) -> str:
        entity = self._entity('status_entity')
        try:
            state = self.ad.get_state(entity)
        except Exception as e:
            raise ApplianceError(f"failed to read {entity}: {e}") from e
        if state in UNAVAILABLE_STATES:
            raise ApplianceError(f"{entity} is {state!r}")
        return str(state).upper()

    def _get_level(self, key: str) -> Optional[int]:
        entity = self._entity(key)
        if not entity:
            return None
        try:
            state = self.ad.get_state(entity)
            if state in UNAVAILABLE_STATES:
                return None
            return int(float(state))
        except (ValueError, TypeError):
            self.ad.log(f"Unparseable level on {entity}", level="WARNING")
            return None

    def get_power_level(self) -> Optional[int]:
        return self._get_level('power_entity')

    def get_fan_level(self) -> Optional[int]:
        return self._get_level('fan_entity')

    def _run_script(self, key: str, command: str, **variables) -> None:
        script = self._entity(key)
        if not script:
            raise ApplianceError(f"no {key} configured", command)
        try:
            if variables:
                self.ad.call_service("script/turn_on", entity_id=script, variables=variables)
            else:
                self.ad.call_service("script/turn_on", entity_id=script)
        except Exception as e:
            raise ApplianceError(f"{command} failed: {e}", command) from e

    def _set_number(self, key: str, command: str, value: int) -> None:
        entity = self._entity(key)
        if not entity:
            raise ApplianceError(f"no {key} configured", command)
        try:
            self.ad.call_service("number/set_value", entity_id=entity, value=value)
        except Exception as e:
            raise ApplianceError(f"{command} failed: {e}", command) from e

    def ignite(self, power: int) -> None:
        self._run_script('ignite_script', 'ignite', power=power)
        self.ad.log(f"Stove ignite sent (power {power})")

    def shutdown(self) -> None:
        self._run_script('shutdown_script', 'shutdown')
        self.ad.log("Stove shutdown sent")

    def set_power_level(self, level: int) -> None:
        self._set_number('power_entity', 'set_power', level)
        self.ad.log(f"Stove power set to {level}")

    def set_fan_level(self, level: int) -> None:
        self._set_number('fan_entity', 'set_fan', level)
        self.ad.log(f"Stove fan set to {level}")
