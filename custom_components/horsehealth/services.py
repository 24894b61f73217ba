"""
Services exposed by the Horse Health integration.

- horsehealth.refresh: out-of-band poll of every (or one) loaded entry
- horsehealth.assign_horse: register a new horse against an unassigned device
- horsehealth.save_insights: store behavioural notes for a horse locally
"""
from __future__ import annotations

import logging

import homeassistant.helpers.config_validation as cv
import voluptuous as vol

from homeassistant.config_entries import ConfigEntryState
from homeassistant.core import HomeAssistant, ServiceCall
from homeassistant.exceptions import ServiceValidationError

from .const import (
    DOMAIN,
    HORSE_STATUSES,
    SERVICE_ASSIGN_HORSE,
    SERVICE_REFRESH,
    SERVICE_SAVE_INSIGHTS,
    STATUS_NORMAL,
)

_LOGGER = logging.getLogger(__name__)

ATTR_CONFIG_ENTRY_ID = "config_entry_id"
ATTR_DEVICE_ID = "device_id"
ATTR_NAME = "name"
ATTR_LOCATION = "location"
ATTR_STATUS = "status"
ATTR_HORSE_ID = "horse_id"
ATTR_INSIGHTS = "insights"

REFRESH_SCHEMA = vol.Schema({vol.Optional(ATTR_CONFIG_ENTRY_ID): cv.string})

ASSIGN_HORSE_SCHEMA = vol.Schema(
    {
        vol.Optional(ATTR_CONFIG_ENTRY_ID): cv.string,
        vol.Required(ATTR_DEVICE_ID): vol.All(cv.string, vol.Length(min=1)),
        vol.Required(ATTR_NAME): vol.All(cv.string, vol.Length(min=1)),
        vol.Optional(ATTR_LOCATION, default=""): cv.string,
        vol.Optional(ATTR_STATUS, default=STATUS_NORMAL): vol.In(HORSE_STATUSES),
    }
)

SAVE_INSIGHTS_SCHEMA = vol.Schema(
    {
        vol.Optional(ATTR_CONFIG_ENTRY_ID): cv.string,
        vol.Required(ATTR_HORSE_ID): cv.string,
        vol.Required(ATTR_INSIGHTS): cv.string,
    }
)


def _loaded_coordinators(hass: HomeAssistant, entry_id: str | None) -> list:
    """Return the coordinators of loaded entries, optionally restricted to one entry."""
    entries = [
        entry
        for entry in hass.config_entries.async_entries(DOMAIN)
        if entry.state is ConfigEntryState.LOADED
        and (entry_id is None or entry.entry_id == entry_id)
    ]
    if not entries:
        raise ServiceValidationError(
            f"No loaded Horse Health entry{f' with id {entry_id}' if entry_id else ''}"
        )
    return [entry.runtime_data for entry in entries]


def _single_coordinator(hass: HomeAssistant, entry_id: str | None):
    coordinators = _loaded_coordinators(hass, entry_id)
    if len(coordinators) > 1:
        raise ServiceValidationError(
            "Several Horse Health entries are loaded; pass config_entry_id"
        )
    return coordinators[0]


def async_register_services(hass: HomeAssistant) -> None:
    """Register the integration's services once per HA instance."""

    async def _refresh(call: ServiceCall) -> None:
        for coordinator in _loaded_coordinators(hass, call.data.get(ATTR_CONFIG_ENTRY_ID)):
            await coordinator.async_refresh_now()

    async def _assign_horse(call: ServiceCall) -> None:
        coordinator = _single_coordinator(hass, call.data.get(ATTR_CONFIG_ENTRY_ID))
        await coordinator.async_assign_horse(
            call.data[ATTR_DEVICE_ID],
            call.data[ATTR_NAME],
            call.data.get(ATTR_LOCATION),
            call.data.get(ATTR_STATUS, STATUS_NORMAL),
        )

    async def _save_insights(call: ServiceCall) -> None:
        horse_id = call.data[ATTR_HORSE_ID]
        coordinators = _loaded_coordinators(hass, call.data.get(ATTR_CONFIG_ENTRY_ID))
        matching = [c for c in coordinators if c.data.get_horse(horse_id) is not None]
        if not matching:
            raise ServiceValidationError(f"Unknown horse '{horse_id}'")
        for coordinator in matching:
            await coordinator.async_save_insights(horse_id, call.data[ATTR_INSIGHTS])

    hass.services.async_register(DOMAIN, SERVICE_REFRESH, _refresh, schema=REFRESH_SCHEMA)
    hass.services.async_register(
        DOMAIN, SERVICE_ASSIGN_HORSE, _assign_horse, schema=ASSIGN_HORSE_SCHEMA
    )
    hass.services.async_register(
        DOMAIN, SERVICE_SAVE_INSIGHTS, _save_insights, schema=SAVE_INSIGHTS_SCHEMA
    )
