"""
LocationResolver: best-effort operator position from a callback-driven source.

This is a pure asyncio component with no HA dependencies; the platform
specific part lives in a PositionSource (see location_source.py).

The resolver only reports what the source knows. It never substitutes a
fallback coordinate: callers pick their own fallback when `position` is None.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import AsyncIterator, Callable, Mapping
from datetime import datetime, timezone
from typing import Any, Protocol

from .const import (
    CONF_HIGH_ACCURACY,
    CONF_LOCATION_TIMEOUT,
    CONF_MAX_READING_AGE,
    DEFAULT_LOCATION_TIMEOUT,
    DEFAULT_MAX_READING_AGE,
    HIGH_ACCURACY_LIMIT,
)
from .errors import GeolocationError, GeolocationErrorKind
from .models import Position, coerce_number

_LOGGER = logging.getLogger(__name__)

ReadingCallback = Callable[[Position, datetime], None]
ErrorCallback = Callable[[GeolocationErrorKind, str], None]

# Queue marker that ends an observation
_STOP = object()


class PositionSource(Protocol):
    """Platform location capability: a cached reading plus change callbacks."""

    def current(self) -> tuple[Position, datetime] | None:
        """Return the cached reading and the time it was taken, if any."""

    def subscribe(self, on_reading: ReadingCallback, on_error: ErrorCallback) -> Callable[[], None]:
        """Start delivering readings/errors; returns an unsubscribe callable.

        May raise PermissionError or GeolocationError when observation is refused.
        """


@dataclasses.dataclass(frozen=True)
class LocationOptions:
    """Observation knobs.

    high_accuracy: drop readings whose accuracy radius exceeds HIGH_ACCURACY_LIMIT.
    max_reading_age: accept a cached reading up to this many seconds old instead
        of waiting for a fresh one (None: any age, 0: always wait).
    timeout: seconds to wait for the first fix before reporting TIMEOUT.
    """

    high_accuracy: bool = False
    max_reading_age: float | None = DEFAULT_MAX_READING_AGE
    timeout: float = DEFAULT_LOCATION_TIMEOUT

    @classmethod
    def from_mapping(cls, raw: Any) -> LocationOptions:
        defaults = cls()
        if not isinstance(raw, Mapping):
            return defaults

        max_age = coerce_number(raw.get(CONF_MAX_READING_AGE))
        if max_age is not None and max_age < 0:
            _LOGGER.warning("Invalid %s %r, accepting readings of any age", CONF_MAX_READING_AGE, max_age)
            max_age = None

        timeout = coerce_number(raw.get(CONF_LOCATION_TIMEOUT))
        if timeout is None or timeout <= 0:
            timeout = defaults.timeout

        return cls(
            high_accuracy=bool(raw.get(CONF_HIGH_ACCURACY, defaults.high_accuracy)),
            max_reading_age=max_age,
            timeout=timeout,
        )


class LocationResolver:
    """
    Publishes the most recent successful position reading.

    State attributes are meant to be read directly by callers:
      supported: False when no position source is available
      loading: True until the first reading or error of an observation
      position: latest accepted Position, or None
      error: GeolocationErrorKind of the latest failure, or None
    """

    def __init__(self, source: PositionSource | None, options: LocationOptions | None = None) -> None:
        self._source = source
        self._options = options or LocationOptions()
        self._observers: set[asyncio.Queue] = set()

        self.supported = True
        self.loading = True
        self.position: Position | None = None
        self.error: GeolocationErrorKind | None = None
        self.error_message: str | None = None

    @property
    def options(self) -> LocationOptions:
        return self._options

    @property
    def observing(self) -> bool:
        return bool(self._observers)

    async def observe(self) -> AsyncIterator[Position]:
        """
        Yield positions as the source reports them until cancel() is called.

        The subscription is made on first iteration and released on every
        exit path. Iterating again after cancel() starts a new observation.
        """
        if self._source is None:
            self._set_unsupported()
            return

        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()
        timeout_handle: asyncio.TimerHandle | None = None
        unsubscribe: Callable[[], None] | None = None

        def on_reading(position: Position, taken_at: datetime) -> None:
            nonlocal timeout_handle
            if not self._accurate_enough(position):
                return
            if timeout_handle is not None:
                timeout_handle.cancel()
                timeout_handle = None
            self.position = position
            self.loading = False
            self.error = None
            self.error_message = None
            queue.put_nowait(position)

        def on_error(kind: GeolocationErrorKind, message: str) -> None:
            self._set_error(kind, message)

        def on_timeout() -> None:
            nonlocal timeout_handle
            timeout_handle = None
            self._set_error(
                GeolocationErrorKind.TIMEOUT,
                f"No position fix within {self._options.timeout}s",
            )

        self._observers.add(queue)
        if self.position is None:
            self.loading = True
        try:
            try:
                unsubscribe = self._source.subscribe(on_reading, on_error)
            except PermissionError as exc:
                self._set_error(GeolocationErrorKind.PERMISSION_DENIED, str(exc))
                return
            except GeolocationError as exc:
                self._set_error(exc.geo_kind, str(exc))
                return
            except Exception as exc:  # noqa: BLE001
                _LOGGER.error("Unexpected error subscribing to position source: %s", exc)
                self._set_error(GeolocationErrorKind.UNKNOWN, str(exc))
                return

            timeout_handle = loop.call_later(self._options.timeout, on_timeout)
            cached = self._source.current()
            if cached is not None and self._fresh_enough(cached[1]):
                on_reading(*cached)

            while True:
                item = await queue.get()
                if item is _STOP:
                    return
                yield item
        finally:
            if timeout_handle is not None:
                timeout_handle.cancel()
            if unsubscribe is not None:
                unsubscribe()
            self._observers.discard(queue)

    def cancel(self) -> None:
        """End every active observation. Safe to call any number of times."""
        for queue in list(self._observers):
            queue.put_nowait(_STOP)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _accurate_enough(self, position: Position) -> bool:
        if not self._options.high_accuracy or position.accuracy is None:
            return True
        if position.accuracy > HIGH_ACCURACY_LIMIT:
            _LOGGER.debug("Dropping reading with accuracy %s m", position.accuracy)
            return False
        return True

    def _fresh_enough(self, taken_at: datetime) -> bool:
        max_age = self._options.max_reading_age
        if max_age is None:
            return True
        if taken_at.tzinfo is None:
            taken_at = taken_at.replace(tzinfo=timezone.utc)
        age = (datetime.now(timezone.utc) - taken_at).total_seconds()
        return age <= max_age

    def _set_unsupported(self) -> None:
        _LOGGER.debug("No position source configured, location is unsupported")
        self.supported = False
        self.loading = False
        self.position = None
        self.error = GeolocationErrorKind.UNSUPPORTED
        self.error_message = "No position source available"

    def _set_error(self, kind: GeolocationErrorKind, message: str) -> None:
        _LOGGER.warning("Location unavailable (%s): %s", kind, message)
        self.position = None
        self.loading = False
        self.error = kind
        self.error_message = message
