"""
Home Assistant position source for the LocationResolver.

Follows an entity that carries latitude/longitude attributes (zone.home,
a person or a device_tracker) and reports its readings.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from homeassistant.const import (
    ATTR_GPS_ACCURACY,
    ATTR_LATITUDE,
    ATTR_LONGITUDE,
    STATE_UNAVAILABLE,
    STATE_UNKNOWN,
)
from homeassistant.core import Event, EventStateChangedData, HomeAssistant, State, callback
from homeassistant.helpers.event import async_track_state_change_event

from .errors import GeolocationErrorKind
from .location import ErrorCallback, ReadingCallback
from .models import Position, coerce_number

_LOGGER = logging.getLogger(__name__)


def position_from_state(state: State) -> Position | None:
    """Read a Position from an entity state's attributes; None if it has none."""
    lat = coerce_number(state.attributes.get(ATTR_LATITUDE))
    lng = coerce_number(state.attributes.get(ATTR_LONGITUDE))
    if lat is None or lng is None:
        return None
    return Position(lat, lng, coerce_number(state.attributes.get(ATTR_GPS_ACCURACY)))


class EntityPositionSource:
    """PositionSource backed by a Home Assistant entity."""

    def __init__(self, hass: HomeAssistant, entity_id: str) -> None:
        self.hass = hass
        self.entity_id = entity_id

    def current(self) -> tuple[Position, datetime] | None:
        state = self.hass.states.get(self.entity_id)
        if state is None or state.state in (STATE_UNAVAILABLE, STATE_UNKNOWN):
            return None
        position = position_from_state(state)
        if position is None:
            return None
        return position, state.last_updated

    def subscribe(self, on_reading: ReadingCallback, on_error: ErrorCallback) -> Callable[[], None]:
        if self.hass.states.get(self.entity_id) is None:
            on_error(
                GeolocationErrorKind.POSITION_UNAVAILABLE,
                f"Entity {self.entity_id} does not exist (yet)",
            )

        @callback
        def _state_changed(event: Event[EventStateChangedData]) -> None:
            self._dispatch(event.data["new_state"], on_reading, on_error)

        return async_track_state_change_event(self.hass, [self.entity_id], _state_changed)

    def _dispatch(
        self, state: State | None, on_reading: ReadingCallback, on_error: ErrorCallback
    ) -> None:
        if state is None:
            on_error(GeolocationErrorKind.POSITION_UNAVAILABLE, f"Entity {self.entity_id} was removed")
            return
        if state.state in (STATE_UNAVAILABLE, STATE_UNKNOWN):
            on_error(
                GeolocationErrorKind.POSITION_UNAVAILABLE,
                f"Entity {self.entity_id} is {state.state}",
            )
            return
        position = position_from_state(state)
        if position is None:
            on_error(
                GeolocationErrorKind.UNKNOWN,
                f"Entity {self.entity_id} has no latitude/longitude attributes",
            )
            return
        on_reading(position, state.last_updated)
