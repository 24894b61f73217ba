"""
TelemetryPoller: keeps a HerdSnapshot in sync with the backend.

This is a pure asyncio component with no HA dependencies.

Responsibilities:
- Issue a poll cycle immediately on start() and then every `interval` seconds.
- Fetch both collections (horses, unassigned devices) concurrently, each
  bounded by `request_timeout`.
- Number every cycle at issuance; only the most recently issued cycle may
  publish. Older in-flight cycles are cancelled when a newer one starts.
- Reconcile raw records into Horse / UnassignedDevice models, synthesising
  coordinates around the current reference position where they are missing.
- Surface failures as PollError on the snapshot; never raise to the caller.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import random
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Protocol

from .const import (
    COLLECTION_HORSES,
    COLLECTION_UNASSIGNED,
    CONF_FALLBACK_LATITUDE,
    CONF_FALLBACK_LONGITUDE,
    CONF_POLL_INTERVAL,
    CONF_REQUEST_TIMEOUT,
    COORDINATE_JITTER,
    DEFAULT_FALLBACK_LATITUDE,
    DEFAULT_FALLBACK_LONGITUDE,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
)
from .errors import ErrorKind, HorseHealthError, HttpError, InvalidResponseError, RequestTimeout
from .models import Coordinates, Position, coerce_number, parse_coordinates, parse_horses, parse_unassigned_devices
from .snapshot import HerdSnapshot, PollError

_LOGGER = logging.getLogger(__name__)

_COLLECTION_LABELS = {
    COLLECTION_HORSES: "horses",
    COLLECTION_UNASSIGNED: "unassigned devices",
}


class TelemetrySource(Protocol):
    """The backend collaborator the poller reads from."""

    async def get_horses(self) -> list: ...

    async def get_unassigned_devices(self) -> list: ...


class CycleState(StrEnum):
    """Lifecycle of a single poll cycle."""

    IDLE = "idle"
    FETCHING = "fetching"
    SUCCEEDED = "succeeded"
    PARTIALLY_FAILED = "partially_failed"
    FAILED = "failed"
    SUPERSEDED = "superseded"


def _positive_number(raw: Mapping, key: str, default: float) -> float:
    if raw.get(key) is None:
        return default
    value = coerce_number(raw.get(key))
    if value is None or value <= 0:
        _LOGGER.warning("Invalid %s %r, using default %s", key, raw.get(key), default)
        return default
    return value


@dataclasses.dataclass(frozen=True)
class PollerConfig:
    """Poller tuning; build from entry data with from_mapping()."""

    interval: float = DEFAULT_POLL_INTERVAL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    jitter: float = COORDINATE_JITTER
    fallback: Coordinates = Coordinates(DEFAULT_FALLBACK_LATITUDE, DEFAULT_FALLBACK_LONGITUDE)

    @classmethod
    def from_mapping(cls, raw: Any) -> PollerConfig:
        """Translate loosely typed config; malformed values fall back to defaults."""
        defaults = cls()
        if raw is None:
            return defaults
        if not isinstance(raw, Mapping):
            _LOGGER.warning("Ignoring malformed poller config %r", raw)
            return defaults

        fallback = defaults.fallback
        if raw.get(CONF_FALLBACK_LATITUDE) is not None or raw.get(CONF_FALLBACK_LONGITUDE) is not None:
            parsed = parse_coordinates(
                {"lat": raw.get(CONF_FALLBACK_LATITUDE), "lng": raw.get(CONF_FALLBACK_LONGITUDE)}
            )
            if parsed is None:
                _LOGGER.warning("Invalid fallback position, using %s", defaults.fallback)
            else:
                fallback = parsed

        return cls(
            interval=_positive_number(raw, CONF_POLL_INTERVAL, defaults.interval),
            request_timeout=_positive_number(raw, CONF_REQUEST_TIMEOUT, defaults.request_timeout),
            jitter=_positive_number(raw, "jitter", defaults.jitter),
            fallback=fallback,
        )


class TelemetryPoller:
    """
    Polls the horse and unassigned-device collections on a fixed interval.

    Listeners registered with add_listener() receive every published
    HerdSnapshot. `data` always holds the latest one; on failures it keeps
    the last-known-good collections and only its `error` changes.
    """

    def __init__(
        self,
        source: TelemetrySource,
        position_provider: Callable[[], Position | None] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._source = source
        self._position_provider = position_provider
        self._rng = rng
        self._config = PollerConfig()
        self._listeners: list[Callable[[HerdSnapshot], None]] = []

        # Issuance counter; cycles numbered <= _floor were issued before stop()
        self._sequence = 0
        self._floor = 0
        self._timer_task: asyncio.Task | None = None
        # sequence → in-flight cycle task
        self._cycles: dict[int, asyncio.Task] = {}

        self.data = HerdSnapshot()
        self.last_cycle_state = CycleState.IDLE

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    @property
    def config(self) -> PollerConfig:
        return self._config

    @property
    def running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    @property
    def in_flight(self) -> int:
        return len(self._cycles)

    def add_listener(self, listener: Callable[[HerdSnapshot], None]) -> Callable[[], None]:
        """Register a snapshot listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def start(self, config: Any = None) -> asyncio.Task:
        """
        Begin polling: one cycle now, then one every `interval` seconds.

        Restarts the timer when already running. Returns the task of the
        immediate cycle so callers may await the first result.
        """
        self._config = config if isinstance(config, PollerConfig) else PollerConfig.from_mapping(config)
        self._cancel_timer()
        first = self._issue_cycle()
        self._timer_task = asyncio.ensure_future(self._run_timer(self._config.interval))
        _LOGGER.debug(
            "Poller started (interval %ss, request timeout %ss)",
            self._config.interval, self._config.request_timeout,
        )
        return first

    def stop(self) -> None:
        """Cancel the timer and every in-flight cycle. Safe to call repeatedly."""
        self._cancel_timer()
        self._floor = self._sequence
        for task in list(self._cycles.values()):
            task.cancel()

    async def shutdown(self) -> None:
        """stop() and wait until every cancelled task has actually finished."""
        pending = [task for task in (self._timer_task, *self._cycles.values()) if task is not None]
        self.stop()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._cycles.clear()

    def refresh_now(self) -> asyncio.Task:
        """Issue an out-of-band cycle without touching the interval schedule."""
        return self._issue_cycle()

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _cancel_timer(self) -> None:
        if self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = None

    async def _run_timer(self, interval: float) -> None:
        """Issue a cycle every `interval` seconds; cycles run as their own tasks."""
        while True:
            await asyncio.sleep(interval)
            self._issue_cycle()

    def _issue_cycle(self) -> asyncio.Task:
        self._sequence += 1
        sequence = self._sequence

        # Anything still in flight can no longer publish; abort it
        for older in list(self._cycles.values()):
            older.cancel()

        reference = self._reference_position()
        task = asyncio.ensure_future(self._run_cycle(sequence, reference))
        self._cycles[sequence] = task
        task.add_done_callback(lambda _task, seq=sequence: self._cycles.pop(seq, None))
        return task

    def _reference_position(self) -> Coordinates:
        position = self._position_provider() if self._position_provider is not None else None
        if position is None:
            return self._config.fallback
        return position.coordinates

    def _is_stale(self, sequence: int) -> bool:
        return sequence != self._sequence or sequence <= self._floor

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def _bounded(self, fetch: Callable[[], Any], timeout: float):
        try:
            return await asyncio.wait_for(fetch(), timeout)
        except (asyncio.TimeoutError, TimeoutError) as exc:
            raise RequestTimeout(f"No response within {timeout}s") from exc

    async def _run_cycle(self, sequence: int, reference: Coordinates) -> CycleState:
        """Fetch both collections concurrently and publish unless superseded."""
        _LOGGER.debug("Poll cycle %s: %s", sequence, CycleState.FETCHING)
        timeout = self._config.request_timeout
        try:
            horses_result, devices_result = await asyncio.gather(
                self._bounded(self._source.get_horses, timeout),
                self._bounded(self._source.get_unassigned_devices, timeout),
                return_exceptions=True,
            )
        except asyncio.CancelledError:
            _LOGGER.debug("Poll cycle %s: %s (cancelled)", sequence, CycleState.SUPERSEDED)
            raise

        if self._is_stale(sequence):
            _LOGGER.debug("Poll cycle %s: %s", sequence, CycleState.SUPERSEDED)
            return CycleState.SUPERSEDED

        snapshot, state = self._reconcile(sequence, reference, horses_result, devices_result)
        _LOGGER.debug("Poll cycle %s: %s", sequence, state)
        self.last_cycle_state = state
        self._publish(snapshot)
        return state

    def _reconcile(
        self,
        sequence: int,
        reference: Coordinates,
        horses_result: Any,
        devices_result: Any,
    ) -> tuple[HerdSnapshot, CycleState]:
        """Merge cycle results into a new snapshot, keeping stale data for failed collections."""
        failures: dict[str, BaseException] = {}
        horses = self.data.horses
        devices = self.data.unassigned_devices

        if not isinstance(horses_result, BaseException) and not isinstance(horses_result, list):
            horses_result = InvalidResponseError(f"Expected a list of horses, got {type(horses_result).__name__}")
        if not isinstance(devices_result, BaseException) and not isinstance(devices_result, list):
            devices_result = InvalidResponseError(f"Expected a list of devices, got {type(devices_result).__name__}")

        if isinstance(horses_result, BaseException):
            failures[COLLECTION_HORSES] = horses_result
        else:
            horses = parse_horses(horses_result, reference, self._config.jitter, self._rng)

        if isinstance(devices_result, BaseException):
            failures[COLLECTION_UNASSIGNED] = devices_result
        else:
            devices = parse_unassigned_devices(devices_result)

        for collection, exc in failures.items():
            _LOGGER.warning("Failed to fetch %s: %s", _COLLECTION_LABELS[collection], exc)
            if not isinstance(exc, HorseHealthError):
                _LOGGER.error(
                    "Unexpected %s while fetching %s", type(exc).__name__, _COLLECTION_LABELS[collection]
                )

        now = datetime.now(timezone.utc)
        if not failures:
            state, error, fetched_at = CycleState.SUCCEEDED, None, now
        elif len(failures) == 1:
            state, fetched_at = CycleState.PARTIALLY_FAILED, now
            error = self._partial_error(failures)
        else:
            state, fetched_at = CycleState.FAILED, self.data.fetched_at
            error = self._full_error(failures)

        snapshot = HerdSnapshot(
            horses=horses,
            unassigned_devices=devices,
            fetched_at=fetched_at,
            error=error,
            sequence=sequence,
        )
        return snapshot, state

    @staticmethod
    def _partial_error(failures: dict[str, BaseException]) -> PollError:
        (collection, exc), = failures.items()
        return PollError(
            kind=ErrorKind.PARTIAL_FAILURE,
            message=f"Failed to fetch {_COLLECTION_LABELS[collection]}: {exc}",
            status=exc.status if isinstance(exc, HttpError) else None,
            failed_collections=(collection,),
        )

    @staticmethod
    def _full_error(failures: dict[str, BaseException]) -> PollError:
        # Report the horse collection's failure kind; it is the primary data
        primary = failures[COLLECTION_HORSES]
        kind = primary.kind if isinstance(primary, HorseHealthError) else ErrorKind.NETWORK_ERROR
        message = "; ".join(
            f"Failed to fetch {_COLLECTION_LABELS[collection]}: {exc}"
            for collection, exc in failures.items()
        )
        return PollError(
            kind=kind,
            message=message,
            status=primary.status if isinstance(primary, HttpError) else None,
            failed_collections=tuple(failures),
        )

    def _publish(self, snapshot: HerdSnapshot) -> None:
        self.data = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Snapshot listener %s failed", listener)
