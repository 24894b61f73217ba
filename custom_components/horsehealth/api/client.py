"""
HTTP client for the Horse Health backend.

Responsible for:
- Fetching the raw horse list and unassigned device inventory
- Assigning a new horse to an unassigned device
- Reporting the operator position for server-side proximity logic
- Accepting both envelope shapes ({"horses": [...]} or a bare list) and
  both unassigned-device paths the backend has exposed
"""
from __future__ import annotations

import logging

import aiohttp

from ..const import (
    ASSIGN_HORSE_PATH,
    DEFAULT_REQUEST_TIMEOUT,
    HORSES_PATH,
    LOCATION_PATH,
    UNASSIGNED_PATH,
    UNASSIGNED_PATH_LEGACY,
)
from ..errors import HttpError, InvalidResponseError
from ..models import Position
from ..requests import make_request

_LOGGER = logging.getLogger(__name__)


def extract_collection(raw_json, key: str) -> list:
    """
    Return the list carried by a collection response.

    The backend has been observed returning both {key: [...]} and a bare
    list; anything else raises InvalidResponseError. A null body is treated
    as an empty collection.
    """
    if raw_json is None:
        return []
    if isinstance(raw_json, list):
        return raw_json
    if isinstance(raw_json, dict):
        value = raw_json.get(key)
        if isinstance(value, list):
            return value
        if value is None and key not in raw_json:
            raise InvalidResponseError(f"Response has no '{key}' collection: {str(raw_json)[:200]}")
        if value is None:
            return []
    raise InvalidResponseError(f"Unexpected '{key}' response format: {str(raw_json)[:200]}")


class HorseHealthApi:
    """
    Thin async client over one aiohttp session.

    The session is created lazily on first use and released by close().
    """

    def __init__(
        self,
        base_url: str,
        unassigned_path: str | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        # None means "probe /unassigned then fall back to /unassigned-devices"
        self.unassigned_path = unassigned_path
        self.request_timeout = request_timeout
        self._session: aiohttp.ClientSession | None = None

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _request(self, method: str, path: str, payload: dict | None = None):
        return await make_request(
            self._get_session(),
            method,
            self._url(path),
            payload=payload,
            timeout=self.request_timeout,
        )

    async def get_horses(self) -> list:
        """
        Fetch the raw horse records.

        Corresponding CURL command:
        curl -X 'GET' '{base}/horses' -H 'accept: application/json'
        """
        raw_json = await self._request("GET", HORSES_PATH)
        return extract_collection(raw_json, "horses")

    async def get_unassigned_devices(self) -> list:
        """
        Fetch the raw unassigned device records.

        When no path is configured, /unassigned is tried first and a 404
        falls back to /unassigned-devices; the path that answered is kept
        for later calls.
        """
        if self.unassigned_path is not None:
            raw_json = await self._request("GET", self.unassigned_path)
            return extract_collection(raw_json, "unassignedDevices")

        try:
            raw_json = await self._request("GET", UNASSIGNED_PATH)
            path = UNASSIGNED_PATH
        except HttpError as e:
            if e.status != 404:
                raise
            _LOGGER.debug("/%s not found, trying /%s", UNASSIGNED_PATH, UNASSIGNED_PATH_LEGACY)
            raw_json = await self._request("GET", UNASSIGNED_PATH_LEGACY)
            path = UNASSIGNED_PATH_LEGACY

        devices = extract_collection(raw_json, "unassignedDevices")
        self.unassigned_path = path
        return devices

    async def assign_horse(
        self, device_id: str, name: str, location: str | None, status: str
    ) -> None:
        """
        Register a new horse against an unassigned device.

        Corresponding CURL command:
        curl -X 'POST' '{base}/assign-horse' \\
          -H 'Content-Type: application/json' \\
          -d '{"deviceId": "...", "horseDetails": {"name": "...", "location": "...", "status": "normal"}}'

        Raises an HorseHealthError subclass when the backend does not answer OK.
        """
        payload = {
            "deviceId": device_id,
            "horseDetails": {
                "name": name,
                "location": location or "",
                "status": status,
            },
        }
        await self._request("POST", ASSIGN_HORSE_PATH, payload=payload)

    async def report_location(self, position: Position) -> None:
        """Send the operator position to the backend as {lat, lng}."""
        payload = {"lat": position.latitude, "lng": position.longitude}
        await self._request("POST", LOCATION_PATH, payload=payload)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
