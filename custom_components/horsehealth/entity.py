"""
Base classes shared by the Horse Health entity platforms.

Entities read everything from the coordinator's HerdSnapshot. A horse entity
stays available while its horse is in the snapshot, including while the
latest cycle reported an error (last-known-good data remains displayed).
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from homeassistant.core import callback
from homeassistant.helpers.entity import DeviceInfo, Entity
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .coordinator import HorseHealthCoordinator
from .models import Horse

_LOGGER = logging.getLogger(__name__)


class HorseEntity(CoordinatorEntity[HorseHealthCoordinator]):
    """Entity bound to one horse of the herd."""

    _attr_has_entity_name = True

    def __init__(self, coordinator: HorseHealthCoordinator, horse_id: str, key: str) -> None:
        super().__init__(coordinator)
        self._horse_id = horse_id
        self._attr_unique_id = f"horsehealth_{coordinator.entry_data['guid']}_{horse_id}_{key}"

    @property
    def horse(self) -> Horse | None:
        return self.coordinator.data.get_horse(self._horse_id)

    @property
    def available(self) -> bool:
        return self.horse is not None

    @property
    def device_info(self) -> DeviceInfo | None:
        """Return the device info."""
        return self.coordinator.get_device_info(self._horse_id)


class HubEntity(CoordinatorEntity[HorseHealthCoordinator]):
    """Entity describing the backend connection rather than a single horse."""

    _attr_has_entity_name = True

    def __init__(self, coordinator: HorseHealthCoordinator, key: str) -> None:
        super().__init__(coordinator)
        self._attr_unique_id = f"horsehealth_{coordinator.entry_data['guid']}_{key}"

    @property
    def available(self) -> bool:
        return True

    @property
    def device_info(self) -> DeviceInfo | None:
        """Return the device info."""
        return self.coordinator.get_hub_device_info()


def async_track_new_horses(
    coordinator: HorseHealthCoordinator,
    async_add_entities,
    entity_factory: Callable[[HorseHealthCoordinator, str], Iterable[Entity]],
) -> Callable[[], None]:
    """
    Add entities for every horse in the snapshot now and for horses that appear later.

    Returns the listener remover so the caller can register it with
    config_entry.async_on_unload().
    """
    known: set[str] = set()

    @callback
    def _add_new_horses() -> None:
        new_ids = [h.horse_id for h in coordinator.data.horses if h.horse_id not in known]
        if not new_ids:
            return
        known.update(new_ids)
        entities = [entity for horse_id in new_ids for entity in entity_factory(coordinator, horse_id)]
        _LOGGER.debug("Adding %s entities for horses %s", len(entities), new_ids)
        async_add_entities(entities)

    _add_new_horses()
    return coordinator.async_add_listener(_add_new_horses)
