"""
Platform for horse location tracking.
One GPS tracker entity per horse; coordinates come from the latest snapshot
and are synthesised by the poller when the backend has none.
"""
from __future__ import annotations

import logging

from homeassistant import config_entries
from homeassistant.components.device_tracker import SourceType
from homeassistant.components.device_tracker.config_entry import TrackerEntity
from homeassistant.core import HomeAssistant

from .coordinator import HorseHealthCoordinator
from .entity import HorseEntity, async_track_new_horses

_LOGGER = logging.getLogger(__name__)


class HorseLocationTracker(HorseEntity, TrackerEntity):
    """Representation of a horse's position on the map."""

    _attr_name = "Location"
    _attr_icon = "mdi:horse-variant"

    def __init__(self, coordinator: HorseHealthCoordinator, horse_id: str) -> None:
        super().__init__(coordinator, horse_id, "gps")

    @property
    def latitude(self) -> float | None:
        """Return latitude value of the horse."""
        horse = self.horse
        return horse.coordinates.latitude if horse is not None else None

    @property
    def longitude(self) -> float | None:
        """Return longitude value of the horse."""
        horse = self.horse
        return horse.coordinates.longitude if horse is not None else None

    @property
    def source_type(self) -> SourceType:
        """Return the source type, eg gps or router, of the device."""
        return SourceType.GPS

    @property
    def extra_state_attributes(self) -> dict | None:
        horse = self.horse
        if horse is None:
            return None
        return {
            "location_label": horse.location,
            "coordinates_synthesized": horse.coordinates_synthesized,
            "last_updated": horse.last_updated,
        }


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: config_entries.ConfigEntry,
    async_add_entities,
):
    """Add horse trackers for passed config_entry in HA."""
    coordinator: HorseHealthCoordinator = config_entry.runtime_data
    config_entry.async_on_unload(
        async_track_new_horses(
            coordinator,
            async_add_entities,
            lambda coord, horse_id: [HorseLocationTracker(coord, horse_id)],
        )
    )
