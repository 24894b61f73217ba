"""
Platform for herd problem indicators.
This module sets up a per-horse "needs attention" sensor driven by the
backend status, and a hub sensor that is on while telemetry is failing.
"""
from __future__ import annotations

import logging

from homeassistant import config_entries
from homeassistant.components.binary_sensor import BinarySensorDeviceClass, BinarySensorEntity
from homeassistant.core import HomeAssistant

from .const import STATUS_ATTENTION, STATUS_CRITICAL
from .coordinator import HorseHealthCoordinator
from .entity import HorseEntity, HubEntity, async_track_new_horses

_LOGGER = logging.getLogger(__name__)


class HorseAttentionSensor(HorseEntity, BinarySensorEntity):
    """On when the backend flags the horse as needing attention or critical."""

    _attr_name = "Needs attention"
    _attr_device_class = BinarySensorDeviceClass.PROBLEM

    def __init__(self, coordinator: HorseHealthCoordinator, horse_id: str) -> None:
        super().__init__(coordinator, horse_id, "attention")

    @property
    def is_on(self) -> bool | None:
        """Return if the binary sensor is on."""
        horse = self.horse
        if horse is None or horse.status is None:
            return None
        return horse.status in (STATUS_ATTENTION, STATUS_CRITICAL)

    @property
    def icon(self) -> str | None:
        """Return the icon of the sensor."""
        horse = self.horse
        if horse is not None and horse.status == STATUS_CRITICAL:
            return "mdi:alert-octagon"
        if self.is_on:
            return "mdi:alert"
        return "mdi:check-circle-outline"

    @property
    def extra_state_attributes(self) -> dict | None:
        horse = self.horse
        if horse is None:
            return None
        return {"status": horse.status}


class TelemetryProblemSensor(HubEntity, BinarySensorEntity):
    """On while the latest poll cycle reported an error."""

    _attr_name = "Telemetry problem"
    _attr_device_class = BinarySensorDeviceClass.PROBLEM

    def __init__(self, coordinator: HorseHealthCoordinator) -> None:
        super().__init__(coordinator, "telemetry_problem")

    @property
    def is_on(self) -> bool:
        return self.coordinator.data.error is not None

    @property
    def extra_state_attributes(self) -> dict:
        error = self.coordinator.data.error
        if error is None:
            return {}
        return {
            "error_kind": error.kind.value,
            "message": error.message,
            "http_status": error.status,
            "failed_collections": list(error.failed_collections),
        }


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: config_entries.ConfigEntry,
    async_add_entities,
):
    """Add binary sensors for passed config_entry in HA."""
    coordinator: HorseHealthCoordinator = config_entry.runtime_data
    async_add_entities([TelemetryProblemSensor(coordinator)])
    config_entry.async_on_unload(
        async_track_new_horses(
            coordinator,
            async_add_entities,
            lambda coord, horse_id: [HorseAttentionSensor(coord, horse_id)],
        )
    )
