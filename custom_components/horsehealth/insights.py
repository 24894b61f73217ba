"""
Client-side store for free-text behavioural notes, keyed by insights_{horseId}.

Notes are loaded once at setup and written on explicit save. They never
expire and are not synced back to the backend.
"""
from __future__ import annotations

import logging

from homeassistant.core import HomeAssistant
from homeassistant.helpers.storage import Store

from .const import INSIGHTS_KEY_PREFIX, STORAGE_KEY, STORAGE_VERSION

_LOGGER = logging.getLogger(__name__)


def insights_key(horse_id: str) -> str:
    return f"{INSIGHTS_KEY_PREFIX}{horse_id}"


def storage_key(guid: str) -> str:
    return f"{STORAGE_KEY}.{guid}"


class InsightsStore:
    """Key-value cache of behavioural notes persisted in .storage/horsehealth.insights.<guid>."""

    def __init__(self, hass: HomeAssistant, guid: str) -> None:
        self._store: Store[dict[str, str]] = Store(hass, STORAGE_VERSION, storage_key(guid))
        self._notes: dict[str, str] = {}

    async def async_load(self) -> None:
        data = await self._store.async_load()
        if not isinstance(data, dict):
            if data is not None:
                _LOGGER.warning("Ignoring malformed insights storage: %r", data)
            data = {}
        self._notes = {str(key): str(value) for key, value in data.items()}
        _LOGGER.debug("Loaded %s stored insights", len(self._notes))

    def get(self, horse_id: str) -> str | None:
        return self._notes.get(insights_key(horse_id))

    async def async_save(self, horse_id: str, text: str) -> None:
        self._notes[insights_key(horse_id)] = text
        await self._store.async_save(dict(self._notes))
