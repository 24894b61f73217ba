"""
Domain models for the Horse Health integration.

This module contains pure data classes for horses, tracking devices and
positions, plus the parsing helpers that reconcile raw backend records into
them. No HTTP, API logic or Home Assistant internals live here.
"""
from __future__ import annotations

import dataclasses
import logging
import math
import random
from typing import Any

from .const import COORDINATE_JITTER, HORSE_STATUSES

_LOGGER = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class Coordinates:
    """Latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float


@dataclasses.dataclass(frozen=True)
class Position:
    """A location reading, optionally with its accuracy radius in metres."""

    latitude: float
    longitude: float
    accuracy: float | None = None

    @property
    def coordinates(self) -> Coordinates:
        return Coordinates(self.latitude, self.longitude)


@dataclasses.dataclass(frozen=True)
class Horse:
    """Representation of a single monitored horse after reconciliation."""

    horse_id: str
    coordinates: Coordinates
    name: str | None = None
    location: str | None = None
    status: str | None = None
    heart_rate: float | None = None
    temperature: float | None = None
    speed: float | None = None
    oxygen_saturation: float | None = None
    coordinates_synthesized: bool = False
    last_updated: str | None = None
    behavioral_insights: str | None = None


@dataclasses.dataclass(frozen=True)
class UnassignedDevice:
    """A provisioned tracker that has not been assigned to a horse yet."""

    device_id: str
    assigned_horse_id: str | None = None


def coerce_number(value: Any) -> float | None:
    """
    Parse a number from a number or numeric string.

    Anything that does not parse to a finite float (None, "", "n/a", NaN,
    infinity, booleans, containers) is treated as missing and returns None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_coordinates(raw: Any) -> Coordinates | None:
    """
    Read a coordinate pair from {lat, lng}, {latitude, longitude} or [lat, lng].

    Returns None when either component is missing or out of range.
    """
    if isinstance(raw, dict):
        lat = coerce_number(_first_present(raw, "lat", "latitude"))
        lng = coerce_number(_first_present(raw, "lng", "lon", "longitude"))
    elif isinstance(raw, (list, tuple)) and len(raw) == 2:
        lat, lng = coerce_number(raw[0]), coerce_number(raw[1])
    else:
        return None
    if lat is None or lng is None:
        return None
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
        return None
    return Coordinates(lat, lng)


def synthesize_coordinates(
    reference: Coordinates,
    jitter: float = COORDINATE_JITTER,
    rng: random.Random | None = None,
) -> Coordinates:
    """Return reference +/- a uniform random offset of at most `jitter` degrees."""
    rng = rng or random
    lat = reference.latitude + rng.uniform(-jitter, jitter)
    lng = reference.longitude + rng.uniform(-jitter, jitter)
    # Keep the result a valid coordinate even for references near the poles/antimeridian
    lat = max(-90.0, min(90.0, lat))
    lng = (lng + 180.0) % 360.0 - 180.0
    return Coordinates(lat, lng)


def _first_present(raw: dict, *keys: str) -> Any:
    """Value of the first key whose value is not None."""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_status(value: Any) -> str | None:
    """Normalise a status string; unknown values become None."""
    status = _optional_str(value)
    if status is None:
        return None
    status = status.lower()
    if status not in HORSE_STATUSES:
        _LOGGER.debug("Ignoring unknown horse status %r", value)
        return None
    return status


def parse_horse(
    raw: Any,
    reference: Coordinates,
    jitter: float = COORDINATE_JITTER,
    rng: random.Random | None = None,
) -> Horse | None:
    """
    Map a single raw backend horse record onto a Horse.

    Returns None for records without an identity. Missing or invalid
    coordinates are synthesised around `reference`.
    """
    if not isinstance(raw, dict):
        _LOGGER.warning("Skipping horse record that is not an object: %r", raw)
        return None
    horse_id = _optional_str(_first_present(raw, "horseId", "id"))
    if horse_id is None:
        _LOGGER.warning("Skipping horse record without horseId: %s", raw)
        return None

    coordinates = parse_coordinates(raw.get("coordinates"))
    synthesized = coordinates is None
    if synthesized:
        coordinates = synthesize_coordinates(reference, jitter, rng)

    return Horse(
        horse_id=horse_id,
        coordinates=coordinates,
        name=_optional_str(raw.get("name")),
        location=_optional_str(raw.get("location")),
        status=parse_status(raw.get("status")),
        heart_rate=coerce_number(raw.get("heartRate")),
        temperature=coerce_number(raw.get("temperature")),
        speed=coerce_number(raw.get("speed")),
        oxygen_saturation=coerce_number(raw.get("oxygenSaturation")),
        coordinates_synthesized=synthesized,
        last_updated=_optional_str(raw.get("lastUpdated")),
        behavioral_insights=_optional_str(raw.get("behavioralInsights")),
    )


def parse_horses(
    records: list,
    reference: Coordinates,
    jitter: float = COORDINATE_JITTER,
    rng: random.Random | None = None,
) -> list[Horse]:
    """Reconcile a list of raw horse records, dropping duplicates by horse_id."""
    horses: dict[str, Horse] = {}
    for raw in records:
        horse = parse_horse(raw, reference, jitter, rng)
        if horse is None:
            continue
        if horse.horse_id in horses:
            _LOGGER.debug("Duplicate horse %s in response, keeping the last one", horse.horse_id)
        horses[horse.horse_id] = horse
    return list(horses.values())


def parse_unassigned_devices(records: list) -> list[UnassignedDevice]:
    """Map raw device records onto UnassignedDevice, skipping ones without deviceId."""
    devices: dict[str, UnassignedDevice] = {}
    for raw in records:
        if isinstance(raw, str):
            raw = {"deviceId": raw}
        if not isinstance(raw, dict):
            _LOGGER.warning("Skipping device record that is not an object: %r", raw)
            continue
        device_id = _optional_str(_first_present(raw, "deviceId", "id"))
        if device_id is None:
            _LOGGER.warning("Skipping device record without deviceId: %s", raw)
            continue
        devices[device_id] = UnassignedDevice(
            device_id=device_id,
            assigned_horse_id=_optional_str(raw.get("assignedHorseId")),
        )
    return list(devices.values())
