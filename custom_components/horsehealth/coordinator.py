"""
DataUpdateCoordinator for the Horse Health integration.

Responsibilities:
- Own the HorseHealthApi, TelemetryPoller, LocationResolver and InsightsStore
  for the lifetime of a config entry.
- Feed the resolver's latest position to the poller as the reference for
  synthesised horse coordinates.
- Push every snapshot the poller publishes to entities, with stored
  behavioural notes merged in.
- Write paths: assign a horse to a device, save behavioural notes, refresh.
- Optionally report the operator position to the backend (fire-and-forget).
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging

from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError, ServiceValidationError
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator

from .api import HorseHealthApi
from .const import (
    CONF_BASE_URL,
    CONF_ENTRY_NAME,
    CONF_LOCATION_ENTITY,
    CONF_REPORT_LOCATION,
    CONF_REQUEST_TIMEOUT,
    CONF_UNASSIGNED_PATH,
    DEFAULT_BASE_URL,
    DEFAULT_REQUEST_TIMEOUT,
    DOMAIN,
    HORSE_STATUSES,
    UNASSIGNED_PATH_AUTO,
    VERSION,
)
from .errors import HorseHealthError
from .insights import InsightsStore
from .location import LocationOptions, LocationResolver
from .location_source import EntityPositionSource
from .models import Position, coerce_number
from .poller import TelemetryPoller
from .snapshot import HerdSnapshot

_LOGGER = logging.getLogger(__name__)


class HorseHealthCoordinator(DataUpdateCoordinator[HerdSnapshot]):
    """
    Coordinator for the Horse Health integration.

    Polling cadence is owned by the TelemetryPoller rather than by HA's
    update_interval, so snapshots arrive through async_set_updated_data().
    """

    def __init__(self, hass: HomeAssistant, entry_data: dict) -> None:
        """Initialize the coordinator from config-entry data."""
        super().__init__(
            hass,
            _LOGGER,
            name=DOMAIN,
            update_interval=None,
        )
        self._entry_data = entry_data

        unassigned_path = entry_data.get(CONF_UNASSIGNED_PATH, UNASSIGNED_PATH_AUTO)
        self.api = HorseHealthApi(
            base_url=entry_data.get(CONF_BASE_URL, DEFAULT_BASE_URL),
            unassigned_path=None if unassigned_path == UNASSIGNED_PATH_AUTO else unassigned_path,
            request_timeout=coerce_number(entry_data.get(CONF_REQUEST_TIMEOUT)) or DEFAULT_REQUEST_TIMEOUT,
        )

        location_entity = entry_data.get(CONF_LOCATION_ENTITY)
        source = EntityPositionSource(hass, location_entity) if location_entity else None
        self.resolver = LocationResolver(source, LocationOptions.from_mapping(entry_data))

        self.poller = TelemetryPoller(self.api, position_provider=self._reference_position)
        self._remove_listener = self.poller.add_listener(self._handle_snapshot)

        self.insights = InsightsStore(hass, entry_data["guid"])

        self._location_task: asyncio.Task | None = None
        self._report_tasks: set[asyncio.Task] = set()

        # Snapshot starts empty; entities must handle missing horses until the first cycle
        self.data = HerdSnapshot()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def async_start(self) -> None:
        """Load stored notes, start following the location and run the first cycle."""
        await self.insights.async_load()
        self._location_task = self.hass.async_create_background_task(
            self._async_follow_location(), f"{DOMAIN} location"
        )
        first_cycle = self.poller.start(self._entry_data)
        await asyncio.wait([first_cycle])

    async def async_shutdown(self) -> None:
        """Clean up all resources owned by this coordinator."""
        self._remove_listener()
        await self.poller.shutdown()
        self.resolver.cancel()
        tasks = [task for task in (self._location_task, *self._report_tasks) if task is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._location_task = None
        self._report_tasks.clear()
        await self.api.close()

    async def _async_update_data(self) -> HerdSnapshot:
        """Run an out-of-band cycle when HA asks for a refresh."""
        await asyncio.wait([self.poller.refresh_now()])
        return self._with_insights(self.poller.data)

    # ------------------------------------------------------------------
    # Snapshot handling
    # ------------------------------------------------------------------

    def _reference_position(self) -> Position | None:
        return self.resolver.position

    def _handle_snapshot(self, snapshot: HerdSnapshot) -> None:
        if snapshot.error is not None:
            _LOGGER.debug("Snapshot %s carries %s", snapshot.sequence, snapshot.error.kind)
        self.async_set_updated_data(self._with_insights(snapshot))

    def _with_insights(self, snapshot: HerdSnapshot) -> HerdSnapshot:
        """Return snapshot with locally stored notes replacing the backend's."""
        horses = []
        for horse in snapshot.horses:
            note = self.insights.get(horse.horse_id)
            if note is not None and note != horse.behavioral_insights:
                horse = dataclasses.replace(horse, behavioral_insights=note)
            horses.append(horse)
        return dataclasses.replace(snapshot, horses=horses)

    # ------------------------------------------------------------------
    # Location
    # ------------------------------------------------------------------

    async def _async_follow_location(self) -> None:
        async for position in self.resolver.observe():
            _LOGGER.debug("Operator position %s, %s", position.latitude, position.longitude)
            if self._entry_data.get(CONF_REPORT_LOCATION, False):
                task = self.hass.async_create_task(self._async_report_location(position))
                self._report_tasks.add(task)
                task.add_done_callback(self._report_tasks.discard)
        if not self.resolver.supported:
            _LOGGER.info("No location entity configured, synthesised coordinates use the fallback position")

    async def _async_report_location(self, position: Position) -> None:
        try:
            await self.api.report_location(position)
        except HorseHealthError as exc:
            _LOGGER.warning("Failed to report operator location: %s", exc)

    # ------------------------------------------------------------------
    # Write paths (called from services)
    # ------------------------------------------------------------------

    async def async_refresh_now(self) -> None:
        await asyncio.wait([self.poller.refresh_now()])

    async def async_assign_horse(
        self, device_id: str, name: str, location: str | None = None, status: str = "normal"
    ) -> None:
        """
        Register a new horse against an unassigned device.

        The local inventory is not touched; a successful assignment triggers
        an immediate refresh so the backend's state is shown.
        """
        device_id = (device_id or "").strip()
        name = (name or "").strip()
        if not device_id:
            raise ServiceValidationError("A device id is required")
        if not name:
            raise ServiceValidationError("A horse name is required")
        if status not in HORSE_STATUSES:
            raise ServiceValidationError(f"Unknown status '{status}'")

        if all(d.device_id != device_id for d in self.data.unassigned_devices):
            _LOGGER.warning("Device %s is not in the current unassigned inventory", device_id)

        try:
            await self.api.assign_horse(device_id, name, location, status)
        except HorseHealthError as exc:
            _LOGGER.error("Failed to assign horse %s to device %s: %s", name, device_id, exc)
            raise HomeAssistantError(f"Failed to assign horse: {exc}") from exc

        _LOGGER.info("Assigned horse %s to device %s", name, device_id)
        await self.async_refresh_now()

    async def async_save_insights(self, horse_id: str, text: str) -> None:
        """Persist behavioural notes for a horse and show them immediately."""
        await self.insights.async_save(horse_id, text)
        self.async_set_updated_data(self._with_insights(self.data))

    # ------------------------------------------------------------------
    # Entity helpers: device info dicts
    # ------------------------------------------------------------------

    def get_device_info(self, horse_id: str) -> dict | None:
        """Return the HA DeviceInfo dict for the given horse."""
        horse = self.data.get_horse(horse_id)
        if horse is None:
            return None
        return {
            "identifiers": {(DOMAIN, f"{self._entry_data['guid']}_{horse_id}")},
            "name": horse.name or f"Horse {horse_id}",
            "manufacturer": "Horse Health",
            "model": "Health tracker",
            "sw_version": VERSION,
            "via_device": (DOMAIN, self._entry_data["guid"]),
        }

    def get_hub_device_info(self) -> dict:
        """Return the DeviceInfo dict of the backend connection itself."""
        return {
            "identifiers": {(DOMAIN, self._entry_data["guid"])},
            "name": self._entry_data.get(CONF_ENTRY_NAME, "Horse Health"),
            "manufacturer": "Horse Health",
            "model": "Telemetry backend",
            "sw_version": VERSION,
            "configuration_url": self.api.base_url,
        }

    @property
    def entry_data(self):
        return self._entry_data
