"""
Tests for the entity platforms: which entities are created, how they
follow horses that appear later, and the values they render from a
HerdSnapshot.
"""

from __future__ import annotations

import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock

from homeassistant.components.device_tracker import SourceType

from custom_components.horsehealth.binary_sensor import HorseAttentionSensor, TelemetryProblemSensor
from custom_components.horsehealth.device_tracker import HorseLocationTracker
from custom_components.horsehealth.errors import ErrorKind
from custom_components.horsehealth.models import Coordinates
from custom_components.horsehealth.sensor import (
    HorseHeartRateSensor,
    HorseOxygenSaturationSensor,
    HorseSpeedSensor,
    HorseStatusSensor,
    HorseTemperatureSensor,
    UnassignedDevicesSensor,
)
from custom_components.horsehealth.snapshot import HerdSnapshot, PollError

from .test_common import make_coordinator, make_device, make_horse


def _make_hass_and_config_entry(coordinator):
    """Return a fake hass and config_entry wired to the given coordinator."""
    config_entry = MagicMock()
    config_entry.entry_id = "test_entry_id"
    config_entry.runtime_data = coordinator
    hass = MagicMock()
    return hass, config_entry


async def _run_setup(module, coord) -> list:
    hass, config_entry = _make_hass_and_config_entry(coord)
    added = []

    def fake_add(entities, **kwargs):
        added.extend(entities)

    await module.async_setup_entry(hass, config_entry, fake_add)
    return added


# ---------------------------------------------------------------------------
# Platform setup
# ---------------------------------------------------------------------------

class TestPlatformSetup(unittest.IsolatedAsyncioTestCase):

    async def test_sensor_platform_creates_hub_and_per_horse_sensors(self):
        from custom_components.horsehealth import sensor as sensor_module

        coord = make_coordinator()
        coord.data = HerdSnapshot(horses=[make_horse("h1"), make_horse("h2")])

        entities = await _run_setup(sensor_module, coord)

        self.assertEqual(len(entities), 1 + 2 * 5)
        self.assertIsInstance(entities[0], UnassignedDevicesSensor)
        unique_ids = {e.unique_id for e in entities}
        self.assertEqual(len(unique_ids), len(entities))
        self.assertIn("horsehealth_test-guid_h1_heart_rate", unique_ids)
        self.assertIn("horsehealth_test-guid_unassigned_devices", unique_ids)

    async def test_device_tracker_platform(self):
        from custom_components.horsehealth import device_tracker as tracker_module

        coord = make_coordinator()
        coord.data = HerdSnapshot(horses=[make_horse("h1")])

        entities = await _run_setup(tracker_module, coord)

        self.assertEqual(len(entities), 1)
        self.assertIsInstance(entities[0], HorseLocationTracker)
        self.assertEqual(entities[0].unique_id, "horsehealth_test-guid_h1_gps")

    async def test_binary_sensor_platform(self):
        from custom_components.horsehealth import binary_sensor as binary_sensor_module

        coord = make_coordinator()
        coord.data = HerdSnapshot(horses=[make_horse("h1")])

        entities = await _run_setup(binary_sensor_module, coord)

        self.assertEqual(
            [type(e) for e in entities], [TelemetryProblemSensor, HorseAttentionSensor]
        )

    async def test_horses_appearing_later_get_entities(self):
        from custom_components.horsehealth import device_tracker as tracker_module

        coord = make_coordinator()
        entities = await _run_setup(tracker_module, coord)
        self.assertEqual(entities, [])

        coord.data = HerdSnapshot(horses=[make_horse("h1")])
        coord.async_update_listeners()
        coord.data = HerdSnapshot(horses=[make_horse("h1"), make_horse("h2")])
        coord.async_update_listeners()
        coord.async_update_listeners()

        self.assertEqual([e.unique_id for e in entities], [
            "horsehealth_test-guid_h1_gps",
            "horsehealth_test-guid_h2_gps",
        ])

    async def test_listener_removed_on_unload(self):
        from custom_components.horsehealth import device_tracker as tracker_module

        coord = make_coordinator()
        hass, config_entry = _make_hass_and_config_entry(coord)
        added = []
        await tracker_module.async_setup_entry(hass, config_entry, added.extend)

        remove = config_entry.async_on_unload.call_args.args[0]
        remove()
        coord.data = HerdSnapshot(horses=[make_horse("h1")])
        coord.async_update_listeners()

        self.assertEqual(added, [])


# ---------------------------------------------------------------------------
# Entity values
# ---------------------------------------------------------------------------

class TestHorseEntities(unittest.IsolatedAsyncioTestCase):

    def _coord(self, **horse_kwargs):
        coord = make_coordinator()
        coord.data = HerdSnapshot(horses=[make_horse("h1", **horse_kwargs)])
        return coord

    async def test_tracker_reports_coordinates(self):
        coord = self._coord(coordinates=Coordinates(52.1, 13.2), coordinates_synthesized=True)
        tracker = HorseLocationTracker(coord, "h1")

        self.assertEqual(tracker.latitude, 52.1)
        self.assertEqual(tracker.longitude, 13.2)
        self.assertEqual(tracker.source_type, SourceType.GPS)
        self.assertTrue(tracker.extra_state_attributes["coordinates_synthesized"])
        self.assertEqual(tracker.extra_state_attributes["location_label"], "Pasture 3")

    async def test_missing_horse_is_unavailable(self):
        coord = self._coord()
        tracker = HorseLocationTracker(coord, "gone")

        self.assertFalse(tracker.available)
        self.assertIsNone(tracker.latitude)
        self.assertIsNone(tracker.extra_state_attributes)
        self.assertIsNone(HorseHeartRateSensor(coord, "gone").native_value)

    async def test_horse_stays_available_during_errors(self):
        coord = self._coord()
        coord.data = HerdSnapshot(
            horses=coord.data.horses,
            error=PollError(kind=ErrorKind.NETWORK_ERROR, message="down"),
        )

        self.assertTrue(HorseHeartRateSensor(coord, "h1").available)

    async def test_heart_rate(self):
        sensor = HorseHeartRateSensor(self._coord(heart_rate=52.0), "h1")

        self.assertEqual(sensor.native_value, 52.0)
        attrs = sensor.extra_state_attributes
        self.assertEqual((attrs["normal_range_low"], attrs["normal_range_high"]), (36, 48))
        self.assertFalse(attrs["in_normal_range"])

    async def test_negative_heart_rate_is_floored(self):
        sensor = HorseHeartRateSensor(self._coord(heart_rate=-3.0), "h1")
        self.assertEqual(sensor.native_value, 0.0)

    async def test_missing_vitals_render_as_unknown(self):
        coord = self._coord(heart_rate=None, temperature=None, speed=None, oxygen_saturation=None)

        self.assertIsNone(HorseHeartRateSensor(coord, "h1").native_value)
        self.assertIsNone(HorseTemperatureSensor(coord, "h1").native_value)
        self.assertIsNone(HorseSpeedSensor(coord, "h1").native_value)
        self.assertIsNone(HorseOxygenSaturationSensor(coord, "h1").native_value)
        self.assertIsNone(HorseTemperatureSensor(coord, "h1").extra_state_attributes["in_normal_range"])

    async def test_temperature_in_range(self):
        sensor = HorseTemperatureSensor(self._coord(temperature=37.8), "h1")

        self.assertEqual(sensor.native_value, 37.8)
        self.assertTrue(sensor.extra_state_attributes["in_normal_range"])

    async def test_speed_and_oxygen_are_clamped(self):
        coord = self._coord(speed=250.0, oxygen_saturation=104.0)

        self.assertEqual(HorseSpeedSensor(coord, "h1").native_value, 100.0)
        self.assertEqual(HorseOxygenSaturationSensor(coord, "h1").native_value, 100.0)

    async def test_status_sensor(self):
        sensor = HorseStatusSensor(self._coord(status="critical", behavioral_insights="Limping"), "h1")

        self.assertEqual(sensor.native_value, "critical")
        self.assertEqual(sensor.icon, "mdi:alert-octagon")
        self.assertEqual(sensor.extra_state_attributes["behavioral_insights"], "Limping")

    async def test_attention_sensor(self):
        for status, expected in (("normal", False), ("attention", True), ("critical", True), (None, None)):
            with self.subTest(status=status):
                sensor = HorseAttentionSensor(self._coord(status=status), "h1")
                self.assertEqual(sensor.is_on, expected)

    async def test_device_info_links_horse_to_hub(self):
        sensor = HorseStatusSensor(self._coord(name="Thunder"), "h1")

        info = sensor.device_info

        self.assertEqual(info["name"], "Thunder")
        self.assertEqual(info["via_device"], ("horsehealth", "test-guid"))


class TestHubEntities(unittest.IsolatedAsyncioTestCase):

    async def test_unassigned_devices_sensor(self):
        coord = make_coordinator()
        fetched_at = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        coord.data = HerdSnapshot(
            unassigned_devices=[make_device("d1"), make_device("d2")],
            fetched_at=fetched_at,
        )
        sensor = UnassignedDevicesSensor(coord)

        self.assertEqual(sensor.native_value, 2)
        attrs = sensor.extra_state_attributes
        self.assertEqual(attrs["device_ids"], ["d1", "d2"])
        self.assertEqual(attrs["fetched_at"], fetched_at.isoformat())
        self.assertIsNone(attrs["error"])
        self.assertTrue(sensor.available)

    async def test_telemetry_problem_sensor(self):
        coord = make_coordinator()
        sensor = TelemetryProblemSensor(coord)
        self.assertFalse(sensor.is_on)
        self.assertEqual(sensor.extra_state_attributes, {})

        coord.data = HerdSnapshot(error=PollError(
            kind=ErrorKind.PARTIAL_FAILURE,
            message="Failed to fetch unassigned devices: HTTP 500",
            status=500,
            failed_collections=("unassigned_devices",),
        ))

        self.assertTrue(sensor.is_on)
        self.assertEqual(sensor.extra_state_attributes, {
            "error_kind": "partial_failure",
            "message": "Failed to fetch unassigned devices: HTTP 500",
            "http_status": 500,
            "failed_collections": ["unassigned_devices"],
        })
