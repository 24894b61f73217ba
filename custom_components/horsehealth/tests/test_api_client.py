"""
Tests for HorseHealthApi and extract_collection: envelope shapes, the
unassigned-device path fallback, and the write payloads.
"""

from __future__ import annotations

import unittest
from unittest.mock import ANY, AsyncMock, patch

from custom_components.horsehealth.api import HorseHealthApi, extract_collection
from custom_components.horsehealth.errors import HttpError, InvalidResponseError, NetworkError
from custom_components.horsehealth.models import Position

BASE = "https://backend.example.com/api"
MAKE_REQUEST = "custom_components.horsehealth.api.client.make_request"


class TestExtractCollection(unittest.TestCase):

    def test_wrapped_collection(self):
        self.assertEqual(extract_collection({"horses": [{"horseId": "h1"}]}, "horses"), [{"horseId": "h1"}])

    def test_bare_list(self):
        self.assertEqual(extract_collection([1, 2], "horses"), [1, 2])

    def test_empty_body_is_empty_collection(self):
        self.assertEqual(extract_collection(None, "horses"), [])

    def test_null_collection_is_empty(self):
        self.assertEqual(extract_collection({"horses": None}, "horses"), [])

    def test_missing_key_is_invalid(self):
        with self.assertRaises(InvalidResponseError):
            extract_collection({"message": "ok"}, "horses")

    def test_wrong_types_are_invalid(self):
        for raw in ({"horses": "h1"}, {"horses": {"h1": {}}}, "horses", 42):
            with self.subTest(raw=raw):
                with self.assertRaises(InvalidResponseError):
                    extract_collection(raw, "horses")


class TestHorseHealthApi(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.api = HorseHealthApi(BASE + "/", request_timeout=5)

    async def asyncTearDown(self):
        await self.api.close()

    async def test_base_url_is_normalised(self):
        self.assertEqual(self.api.base_url, BASE)

    async def test_get_horses(self):
        with patch(MAKE_REQUEST, AsyncMock(return_value={"horses": [{"horseId": "h1"}]})) as request:
            horses = await self.api.get_horses()

        self.assertEqual(horses, [{"horseId": "h1"}])
        request.assert_awaited_once_with(ANY, "GET", f"{BASE}/horses", payload=None, timeout=5)

    async def test_get_horses_propagates_transport_errors(self):
        with patch(MAKE_REQUEST, AsyncMock(side_effect=NetworkError("refused"))):
            with self.assertRaises(NetworkError):
                await self.api.get_horses()

    async def test_unassigned_devices_prefers_new_path(self):
        response = {"unassignedDevices": [{"deviceId": "d1", "assignedHorseId": None}]}
        with patch(MAKE_REQUEST, AsyncMock(return_value=response)) as request:
            devices = await self.api.get_unassigned_devices()

        self.assertEqual(devices, response["unassignedDevices"])
        self.assertEqual(request.await_args.args[2], f"{BASE}/unassigned")
        self.assertEqual(self.api.unassigned_path, "unassigned")

    async def test_unassigned_devices_falls_back_on_404(self):
        async def fake_request(session, method, url, payload=None, timeout=None):
            if url.endswith("/unassigned"):
                raise HttpError(404, url)
            return [{"deviceId": "d9"}]

        with patch(MAKE_REQUEST, AsyncMock(side_effect=fake_request)) as request:
            devices = await self.api.get_unassigned_devices()
            again = await self.api.get_unassigned_devices()

        self.assertEqual(devices, [{"deviceId": "d9"}])
        self.assertEqual(again, devices)
        urls = [call.args[2] for call in request.await_args_list]
        self.assertEqual(
            urls,
            [f"{BASE}/unassigned", f"{BASE}/unassigned-devices", f"{BASE}/unassigned-devices"],
        )
        self.assertEqual(self.api.unassigned_path, "unassigned-devices")

    async def test_unassigned_devices_other_http_errors_propagate(self):
        with patch(MAKE_REQUEST, AsyncMock(side_effect=HttpError(500))) as request:
            with self.assertRaises(HttpError):
                await self.api.get_unassigned_devices()

        request.assert_awaited_once()
        self.assertIsNone(self.api.unassigned_path)

    async def test_configured_unassigned_path_is_used_as_is(self):
        api = HorseHealthApi(BASE, unassigned_path="unassigned-devices")
        with patch(MAKE_REQUEST, AsyncMock(side_effect=HttpError(404))) as request:
            with self.assertRaises(HttpError):
                await api.get_unassigned_devices()

        request.assert_awaited_once()
        self.assertEqual(request.await_args.args[2], f"{BASE}/unassigned-devices")
        await api.close()

    async def test_assign_horse_payload(self):
        with patch(MAKE_REQUEST, AsyncMock(return_value={"success": True})) as request:
            await self.api.assign_horse("d1", "Thunder", None, "normal")

        request.assert_awaited_once_with(
            ANY,
            "POST",
            f"{BASE}/assign-horse",
            payload={
                "deviceId": "d1",
                "horseDetails": {"name": "Thunder", "location": "", "status": "normal"},
            },
            timeout=5,
        )

    async def test_assign_horse_failure_raises(self):
        with patch(MAKE_REQUEST, AsyncMock(side_effect=HttpError(400))):
            with self.assertRaises(HttpError):
                await self.api.assign_horse("d1", "Thunder", "Barn", "attention")

    async def test_report_location_payload(self):
        with patch(MAKE_REQUEST, AsyncMock(return_value=None)) as request:
            await self.api.report_location(Position(52.5, 13.4, 10.0))

        request.assert_awaited_once_with(
            ANY, "POST", f"{BASE}/location", payload={"lat": 52.5, "lng": 13.4}, timeout=5
        )

    async def test_session_is_reused_and_closed(self):
        session = self.api._get_session()
        self.assertIs(self.api._get_session(), session)

        await self.api.close()

        self.assertTrue(session.closed)
        self.assertIsNone(self.api._session)
