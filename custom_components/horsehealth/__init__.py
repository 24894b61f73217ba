import logging

from homeassistant import config_entries, core
from homeassistant.const import Platform
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryNotReady
from homeassistant.helpers import config_validation as cv

from .const import CONF_BASE_URL, DEFAULT_BASE_URL, DOMAIN
from .coordinator import HorseHealthCoordinator
from .requests import check_api_availability
from .services import async_register_services

PLATFORMS: list[Platform] = [Platform.DEVICE_TRACKER, Platform.SENSOR, Platform.BINARY_SENSOR]
CONFIG_SCHEMA = cv.config_entry_only_config_schema(DOMAIN)
_LOGGER = logging.getLogger(__name__)


async def async_setup(hass: core.HomeAssistant, config: dict) -> bool:
    """Set up the integration."""
    hass.data.setdefault(DOMAIN, {})
    async_register_services(hass)
    return True


async def _validate_connection(base_url: str) -> str | None:
    """
    Probe the backend before building the coordinator.

    Returns None when it answered, or "cannot_connect".
    """
    if not await check_api_availability(base_url):
        return "cannot_connect"
    return None


async def async_setup_entry(
    hass: core.HomeAssistant, entry: config_entries.ConfigEntry
) -> bool:
    """Set up platform from a ConfigEntry."""
    base_url = entry.data.get(CONF_BASE_URL, DEFAULT_BASE_URL)
    error = await _validate_connection(base_url)
    if error == "cannot_connect":
        raise ConfigEntryNotReady(f"Horse Health backend at {base_url} is not reachable")

    coordinator = HorseHealthCoordinator(hass, dict(entry.data))
    try:
        await coordinator.async_start()
    except Exception:
        await coordinator.async_shutdown()
        raise
    entry.runtime_data = coordinator

    entry.async_on_unload(
        entry.add_update_listener(_async_update_listener)
    )

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    return True


async def _async_update_listener(hass: HomeAssistant, config_entry):
    """Handle config options update."""
    # Reload the integration when the options change.
    await hass.config_entries.async_reload(config_entry.entry_id)


async def async_unload_entry(
    hass: core.HomeAssistant, entry: config_entries.ConfigEntry
) -> bool:
    """Unload a config entry."""
    unloaded = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unloaded:
        await entry.runtime_data.async_shutdown()
    return unloaded
