"""Config flow for Horse Health Monitor integration."""
from __future__ import annotations
import logging
import uuid
from typing import Any, Dict, Optional
import homeassistant.helpers.config_validation as cv
import voluptuous as vol

from homeassistant import config_entries
from homeassistant.core import callback

from .const import (
    CONF_BASE_URL,
    CONF_ENTRY_NAME,
    CONF_FALLBACK_LATITUDE,
    CONF_FALLBACK_LONGITUDE,
    CONF_HIGH_ACCURACY,
    CONF_LOCATION_ENTITY,
    CONF_LOCATION_TIMEOUT,
    CONF_MAX_READING_AGE,
    CONF_POLL_INTERVAL,
    CONF_REPORT_LOCATION,
    CONF_REQUEST_TIMEOUT,
    CONF_UNASSIGNED_PATH,
    DEFAULT_BASE_URL,
    DEFAULT_FALLBACK_LATITUDE,
    DEFAULT_FALLBACK_LONGITUDE,
    DEFAULT_LOCATION_ENTITY,
    DEFAULT_LOCATION_TIMEOUT,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    DOMAIN,
    MIN_POLL_INTERVAL,
    UNASSIGNED_PATH_AUTO,
    UNASSIGNED_PATHS,
)
from .requests import check_api_availability

_LOGGER = logging.getLogger(__name__)

FIELD_DEFAULTS: Dict[str, Any] = {
    CONF_ENTRY_NAME: 'My Herd',
    CONF_BASE_URL: DEFAULT_BASE_URL,
    CONF_UNASSIGNED_PATH: UNASSIGNED_PATH_AUTO,
    CONF_POLL_INTERVAL: DEFAULT_POLL_INTERVAL,
    CONF_REQUEST_TIMEOUT: DEFAULT_REQUEST_TIMEOUT,
    CONF_LOCATION_ENTITY: DEFAULT_LOCATION_ENTITY,
    CONF_REPORT_LOCATION: False,
    CONF_HIGH_ACCURACY: False,
    CONF_LOCATION_TIMEOUT: DEFAULT_LOCATION_TIMEOUT,
    CONF_FALLBACK_LATITUDE: DEFAULT_FALLBACK_LATITUDE,
    CONF_FALLBACK_LONGITUDE: DEFAULT_FALLBACK_LONGITUDE,
}

poll_interval = vol.All(vol.Coerce(int), vol.Range(min=MIN_POLL_INTERVAL))
positive_seconds = vol.All(vol.Coerce(int), vol.Range(min=1))


def build_schema(defaults: Dict[str, Any]) -> vol.Schema:
    """Return the form schema with the given defaults pre-filled."""
    max_reading_age = defaults.get(CONF_MAX_READING_AGE)
    return vol.Schema(
        {
            vol.Required(CONF_ENTRY_NAME, default=defaults[CONF_ENTRY_NAME]): cv.string,
            vol.Required(CONF_BASE_URL, default=defaults[CONF_BASE_URL]): cv.url,
            vol.Required(CONF_UNASSIGNED_PATH, default=defaults[CONF_UNASSIGNED_PATH]): vol.In(
                (UNASSIGNED_PATH_AUTO, *UNASSIGNED_PATHS)
            ),
            vol.Required(CONF_POLL_INTERVAL, default=defaults[CONF_POLL_INTERVAL]): poll_interval,
            vol.Required(CONF_REQUEST_TIMEOUT, default=defaults[CONF_REQUEST_TIMEOUT]): positive_seconds,
            vol.Optional(CONF_LOCATION_ENTITY, default=defaults[CONF_LOCATION_ENTITY] or ''): cv.string,
            vol.Required(CONF_REPORT_LOCATION, default=defaults[CONF_REPORT_LOCATION]): cv.boolean,
            vol.Required(CONF_HIGH_ACCURACY, default=defaults[CONF_HIGH_ACCURACY]): cv.boolean,
            vol.Optional(
                CONF_MAX_READING_AGE,
                description={"suggested_value": max_reading_age},
            ): vol.All(vol.Coerce(int), vol.Range(min=0)),
            vol.Required(CONF_LOCATION_TIMEOUT, default=defaults[CONF_LOCATION_TIMEOUT]): positive_seconds,
            vol.Required(CONF_FALLBACK_LATITUDE, default=defaults[CONF_FALLBACK_LATITUDE]): cv.latitude,
            vol.Required(CONF_FALLBACK_LONGITUDE, default=defaults[CONF_FALLBACK_LONGITUDE]): cv.longitude,
        }
    )


CONFIG_SCHEMA = build_schema(FIELD_DEFAULTS)


def _clean_input(user_input: Dict[str, Any]) -> Dict[str, Any]:
    """Normalise submitted values: strip text, drop an empty location entity."""
    data = dict(user_input)
    data[CONF_ENTRY_NAME] = (data.get(CONF_ENTRY_NAME) or '').strip()
    data[CONF_BASE_URL] = (data.get(CONF_BASE_URL) or '').strip().rstrip('/')
    location_entity = (data.get(CONF_LOCATION_ENTITY) or '').strip()
    data[CONF_LOCATION_ENTITY] = location_entity or None
    return data


async def _validate_input(data: Dict[str, Any]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    # If entry_name is null or empty string, add error
    if not data[CONF_ENTRY_NAME]:
        errors['base'] = 'entry_name_required'
    # A cycle still waiting on a request when the next tick fires is cancelled
    elif data.get(CONF_REQUEST_TIMEOUT, DEFAULT_REQUEST_TIMEOUT) >= data.get(CONF_POLL_INTERVAL, DEFAULT_POLL_INTERVAL):
        errors['base'] = 'timeout_exceeds_interval'
    elif not await check_api_availability(data[CONF_BASE_URL]):
        errors['base'] = 'cannot_connect'
    return errors


class CustomFlow(config_entries.ConfigFlow, domain=DOMAIN):
    data: Optional[Dict[str, Any]]

    async def async_step_user(self, user_input: Optional[Dict[str, Any]] = None):
        errors: Dict[str, str] = {}
        if user_input is not None:
            self.data = _clean_input(user_input)
            errors = await _validate_input(self.data)
            if not errors:
                # One entry per backend
                self._async_abort_entries_match({CONF_BASE_URL: self.data[CONF_BASE_URL]})
                # Create new guid for the entry
                self.data['guid'] = str(uuid.uuid4())
                return self.async_create_entry(title=f"{self.data[CONF_ENTRY_NAME]}", data=self.data)

        return self.async_show_form(step_id="user", data_schema=CONFIG_SCHEMA, errors=errors)

    @staticmethod
    @callback
    def async_get_options_flow(config_entry):
        """Get the options flow for this handler."""
        return OptionsFlowHandler(config_entry)


class OptionsFlowHandler(config_entries.OptionsFlow):
    """Handles options flow for the component."""

    def __init__(self, config_entry: config_entries.ConfigEntry) -> None:
        self._entry = config_entry

    def _current_values(self) -> Dict[str, Any]:
        """Defaults for the form: options override data, data overrides built-in defaults."""
        values = dict(FIELD_DEFAULTS)
        for source in (self._entry.data, self._entry.options):
            for key in (*FIELD_DEFAULTS, CONF_MAX_READING_AGE):
                if key in source:
                    values[key] = source[key]
        return values

    async def async_step_init(
        self, user_input: Dict[str, Any] = None
    ) -> Dict[str, Any]:
        errors: Dict[str, str] = {}

        if user_input is not None:
            new_data = _clean_input(user_input)
            errors = await _validate_input(new_data)
            if not errors:
                new_data['guid'] = self._entry.data['guid']

                # Rename the entry in the UI; the update listener reloads it
                self.hass.config_entries.async_update_entry(
                    self._entry,
                    data=new_data,
                    title=new_data[CONF_ENTRY_NAME],
                )

                return self.async_create_entry(title=f"{new_data[CONF_ENTRY_NAME]}", data=new_data)

        return self.async_show_form(
            step_id="init", data_schema=build_schema(self._current_values()), errors=errors
        )
