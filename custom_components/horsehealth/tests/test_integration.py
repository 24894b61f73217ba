"""
Real backend integration tests for the Horse Health API client and poller.
Requires the HORSEHEALTH_BASE_URL environment variable (or a .env file) to run.
Skip with:  pytest -k "not Integration"
"""

from __future__ import annotations

import os
import unittest

from dotenv import load_dotenv

from custom_components.horsehealth.api import HorseHealthApi
from custom_components.horsehealth.poller import CycleState, TelemetryPoller
from custom_components.horsehealth.requests import check_api_availability


class TestBackendIntegration(unittest.IsolatedAsyncioTestCase):
    """
    Integration tests that hit a real backend.
    Skipped automatically when HORSEHEALTH_BASE_URL is not set.
    """

    def setUp(self):
        load_dotenv()
        self._base_url = os.getenv("HORSEHEALTH_BASE_URL")
        if not self._base_url:
            self.skipTest("HORSEHEALTH_BASE_URL not set, skipping integration tests")

    async def test_backend_is_reachable(self):
        self.assertTrue(await check_api_availability(self._base_url))

    async def test_fetch_horses(self):
        api = HorseHealthApi(self._base_url)
        try:
            horses = await api.get_horses()
        finally:
            await api.close()

        self.assertIsInstance(horses, list)

    async def test_fetch_unassigned_devices_finds_a_path(self):
        api = HorseHealthApi(self._base_url)
        try:
            devices = await api.get_unassigned_devices()
        finally:
            await api.close()

        self.assertIsInstance(devices, list)
        self.assertIsNotNone(api.unassigned_path)

    async def test_full_poll_cycle(self):
        api = HorseHealthApi(self._base_url)
        poller = TelemetryPoller(api)
        try:
            state = await poller.refresh_now()
        finally:
            await poller.shutdown()
            await api.close()

        self.assertIn(state, (CycleState.SUCCEEDED, CycleState.PARTIALLY_FAILED))
        for horse in poller.data.horses:
            self.assertIsNotNone(horse.horse_id)
            self.assertIsNotNone(horse.coordinates)
