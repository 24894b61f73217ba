"""
Tests for the low-level request helpers: status handling, JSON decoding
and the mapping of aiohttp failures onto the integration's errors.
"""

from __future__ import annotations

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp

from custom_components.horsehealth.errors import (
    ErrorKind,
    HttpError,
    InvalidResponseError,
    NetworkError,
    RequestTimeout,
)
from custom_components.horsehealth.requests import check_api_availability, make_request

URL = "https://backend.example.com/api/horses"


def make_response(status: int = 200, text: str = "", json_value=None, json_error: Exception | None = None):
    response = MagicMock()
    response.status = status
    response.headers = {"Content-Type": "application/json"}
    response.text = AsyncMock(return_value=text)
    response.json = AsyncMock(return_value=json_value, side_effect=json_error)
    return response


def make_session(response=None, error: Exception | None = None) -> MagicMock:
    session = MagicMock()
    if error is not None:
        session.request.side_effect = error
    else:
        session.request.return_value.__aenter__.return_value = response
    return session


class TestMakeRequest(unittest.IsolatedAsyncioTestCase):

    async def test_returns_decoded_json(self):
        response = make_response(200, '{"horses": []}', {"horses": []})
        session = make_session(response)

        result = await make_request(session, "get", URL, timeout=3)

        self.assertEqual(result, {"horses": []})
        method, url = session.request.call_args.args
        self.assertEqual((method, url), ("GET", URL))
        kwargs = session.request.call_args.kwargs
        self.assertIsNone(kwargs["json"])
        self.assertEqual(kwargs["timeout"].total, 3)

    async def test_post_sends_json_payload(self):
        session = make_session(make_response(201, '{"success": true}', {"success": True}))

        await make_request(session, "POST", URL, payload={"deviceId": "d1"})

        self.assertEqual(session.request.call_args.kwargs["json"], {"deviceId": "d1"})

    async def test_empty_body_returns_none(self):
        response = make_response(204, "")
        session = make_session(response)

        self.assertIsNone(await make_request(session, "POST", URL))
        response.json.assert_not_awaited()

    async def test_non_2xx_raises_http_error(self):
        session = make_session(make_response(503, "Service Unavailable"))

        with self.assertRaises(HttpError) as ctx:
            await make_request(session, "GET", URL)

        self.assertEqual(ctx.exception.status, 503)
        self.assertEqual(ctx.exception.url, URL)
        self.assertEqual(ctx.exception.kind, ErrorKind.HTTP_ERROR)

    async def test_undecodable_body_is_invalid_response(self):
        session = make_session(make_response(200, "<html>", json_error=ValueError("not json")))

        with self.assertRaises(InvalidResponseError):
            await make_request(session, "GET", URL)

    async def test_timeout_maps_to_request_timeout(self):
        session = make_session(error=asyncio.TimeoutError())

        with self.assertRaises(RequestTimeout) as ctx:
            await make_request(session, "GET", URL, timeout=1)

        self.assertEqual(ctx.exception.kind, ErrorKind.TIMEOUT)

    async def test_client_error_maps_to_network_error(self):
        session = make_session(error=aiohttp.ClientConnectionError("refused"))

        with self.assertRaises(NetworkError) as ctx:
            await make_request(session, "GET", URL)

        self.assertEqual(ctx.exception.kind, ErrorKind.NETWORK_ERROR)

    async def test_unsupported_method(self):
        with self.assertRaises(ValueError):
            await make_request(MagicMock(), "DELETE", URL)


class TestCheckApiAvailability(unittest.IsolatedAsyncioTestCase):

    def patch_session(self, response=None, error: Exception | None = None):
        patcher = patch("custom_components.horsehealth.requests.aiohttp.ClientSession")
        session_cls = patcher.start()
        self.addCleanup(patcher.stop)
        session = MagicMock()
        session_cls.return_value.__aenter__.return_value = session
        if error is not None:
            session.get.side_effect = error
        else:
            session.get.return_value.__aenter__.return_value = response
        return session

    async def test_reachable(self):
        session = self.patch_session(make_response(200))

        self.assertTrue(await check_api_availability("https://backend.example.com/api/"))
        self.assertEqual(session.get.call_args.args[0], URL)

    async def test_error_status(self):
        self.patch_session(make_response(502))
        self.assertFalse(await check_api_availability("https://backend.example.com/api"))

    async def test_timeout(self):
        self.patch_session(error=asyncio.TimeoutError())
        self.assertFalse(await check_api_availability("https://backend.example.com/api"))

    async def test_connection_error(self):
        self.patch_session(error=aiohttp.ClientConnectionError("refused"))
        self.assertFalse(await check_api_availability("https://backend.example.com/api"))
