"""
Platform for horse vital-sign sensors.
This module sets up heart rate, temperature, speed, oxygen saturation and
status sensors per horse, plus a hub sensor for the unassigned device
inventory. Values come from the coordinator's latest snapshot.
"""
from __future__ import annotations

import logging

from homeassistant import config_entries
from homeassistant.components.sensor import SensorDeviceClass, SensorEntity, SensorStateClass
from homeassistant.const import PERCENTAGE, UnitOfSpeed, UnitOfTemperature
from homeassistant.core import HomeAssistant

from .const import (
    HEART_RATE_RANGE,
    HORSE_STATUSES,
    OXYGEN_SATURATION_RANGE,
    STATUS_ATTENTION,
    STATUS_CRITICAL,
    TEMPERATURE_RANGE,
)
from .coordinator import HorseHealthCoordinator
from .entity import HorseEntity, HubEntity, async_track_new_horses

_LOGGER = logging.getLogger(__name__)


def _range_attributes(value: float | None, normal_range: tuple[float, float]) -> dict:
    low, high = normal_range
    return {
        "normal_range_low": low,
        "normal_range_high": high,
        "in_normal_range": None if value is None else low <= value <= high,
    }


class HorseHeartRateSensor(HorseEntity, SensorEntity):
    """Heart rate in beats per minute."""

    _attr_name = "Heart rate"
    _attr_icon = "mdi:heart-pulse"
    _attr_native_unit_of_measurement = "bpm"
    _attr_state_class = SensorStateClass.MEASUREMENT

    def __init__(self, coordinator: HorseHealthCoordinator, horse_id: str) -> None:
        super().__init__(coordinator, horse_id, "heart_rate")

    @property
    def native_value(self) -> float | None:
        horse = self.horse
        if horse is None or horse.heart_rate is None:
            return None
        # Negative rates are sensor glitches
        return max(horse.heart_rate, 0.0)

    @property
    def extra_state_attributes(self) -> dict:
        return _range_attributes(self.native_value, HEART_RATE_RANGE)


class HorseTemperatureSensor(HorseEntity, SensorEntity):
    """Body temperature in degrees Celsius."""

    _attr_name = "Temperature"
    _attr_device_class = SensorDeviceClass.TEMPERATURE
    _attr_native_unit_of_measurement = UnitOfTemperature.CELSIUS
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_suggested_display_precision = 1

    def __init__(self, coordinator: HorseHealthCoordinator, horse_id: str) -> None:
        super().__init__(coordinator, horse_id, "temperature")

    @property
    def native_value(self) -> float | None:
        horse = self.horse
        return horse.temperature if horse is not None else None

    @property
    def extra_state_attributes(self) -> dict:
        return _range_attributes(self.native_value, TEMPERATURE_RANGE)


class HorseSpeedSensor(HorseEntity, SensorEntity):
    """Ground speed in km/h."""

    _attr_name = "Speed"
    _attr_icon = "mdi:speedometer"
    _attr_device_class = SensorDeviceClass.SPEED
    _attr_native_unit_of_measurement = UnitOfSpeed.KILOMETERS_PER_HOUR
    _attr_state_class = SensorStateClass.MEASUREMENT

    def __init__(self, coordinator: HorseHealthCoordinator, horse_id: str) -> None:
        super().__init__(coordinator, horse_id, "speed")

    @property
    def native_value(self) -> float | None:
        horse = self.horse
        if horse is None or horse.speed is None:
            return None
        # Make sure value is between 0 and 100 (no horse gallops faster)
        return min(max(horse.speed, 0.0), 100.0)


class HorseOxygenSaturationSensor(HorseEntity, SensorEntity):
    """Blood oxygen saturation (SpO2) in percent."""

    _attr_name = "Oxygen saturation"
    _attr_icon = "mdi:water-percent"
    _attr_native_unit_of_measurement = PERCENTAGE
    _attr_state_class = SensorStateClass.MEASUREMENT

    def __init__(self, coordinator: HorseHealthCoordinator, horse_id: str) -> None:
        super().__init__(coordinator, horse_id, "oxygen_saturation")

    @property
    def native_value(self) -> float | None:
        horse = self.horse
        if horse is None or horse.oxygen_saturation is None:
            return None
        # Make sure value is between 0 and 100
        return min(max(horse.oxygen_saturation, 0.0), 100.0)

    @property
    def extra_state_attributes(self) -> dict:
        return _range_attributes(self.native_value, OXYGEN_SATURATION_RANGE)


class HorseStatusSensor(HorseEntity, SensorEntity):
    """Backend health status, with the horse's notes and location label as attributes."""

    _attr_name = "Status"
    _attr_device_class = SensorDeviceClass.ENUM
    _attr_options = list(HORSE_STATUSES)

    def __init__(self, coordinator: HorseHealthCoordinator, horse_id: str) -> None:
        super().__init__(coordinator, horse_id, "status")

    @property
    def native_value(self) -> str | None:
        horse = self.horse
        return horse.status if horse is not None else None

    @property
    def icon(self) -> str | None:
        """Set the icon based on the status."""
        status = self.native_value
        if status == STATUS_CRITICAL:
            return "mdi:alert-octagon"
        elif status == STATUS_ATTENTION:
            return "mdi:alert"
        return "mdi:horse"

    @property
    def extra_state_attributes(self) -> dict | None:
        horse = self.horse
        if horse is None:
            return None
        return {
            "horse_id": horse.horse_id,
            "location_label": horse.location,
            "last_updated": horse.last_updated,
            "behavioral_insights": horse.behavioral_insights,
        }


class UnassignedDevicesSensor(HubEntity, SensorEntity):
    """Number of provisioned trackers waiting for a horse."""

    _attr_name = "Unassigned devices"
    _attr_icon = "mdi:tag-multiple-outline"
    _attr_state_class = SensorStateClass.MEASUREMENT

    def __init__(self, coordinator: HorseHealthCoordinator) -> None:
        super().__init__(coordinator, "unassigned_devices")

    @property
    def native_value(self) -> int:
        return len(self.coordinator.data.unassigned_devices)

    @property
    def extra_state_attributes(self) -> dict:
        data = self.coordinator.data
        return {
            "device_ids": [d.device_id for d in data.unassigned_devices],
            "fetched_at": data.fetched_at.isoformat() if data.fetched_at else None,
            "error": data.error.message if data.error else None,
        }


def _horse_sensors(coordinator: HorseHealthCoordinator, horse_id: str) -> list[SensorEntity]:
    return [
        HorseHeartRateSensor(coordinator, horse_id),
        HorseTemperatureSensor(coordinator, horse_id),
        HorseSpeedSensor(coordinator, horse_id),
        HorseOxygenSaturationSensor(coordinator, horse_id),
        HorseStatusSensor(coordinator, horse_id),
    ]


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: config_entries.ConfigEntry,
    async_add_entities,
):
    """Add sensors for passed config_entry in HA."""
    coordinator: HorseHealthCoordinator = config_entry.runtime_data
    async_add_entities([UnassignedDevicesSensor(coordinator)])
    config_entry.async_on_unload(
        async_track_new_horses(coordinator, async_add_entities, _horse_sensors)
    )
