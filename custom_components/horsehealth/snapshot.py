"""
HerdSnapshot: immutable view model produced by the telemetry poller.

This is a pure data module with no HA or network dependencies.
"""
from __future__ import annotations

import dataclasses
from datetime import datetime

from .errors import ErrorKind
from .models import Horse, UnassignedDevice


@dataclasses.dataclass(frozen=True)
class PollError:
    """Error surfaced by a poll cycle, rendered by entities as state."""

    kind: ErrorKind
    message: str
    # HTTP status for ErrorKind.HTTP_ERROR
    status: int | None = None
    # Collection names that failed (both on a full failure, one on a partial one)
    failed_collections: tuple[str, ...] = ()


@dataclasses.dataclass(frozen=True)
class HerdSnapshot:
    """
    Typed, copy-on-write snapshot of the herd and the device inventory.

    Always replace via dataclasses.replace(); never mutate in place.
    """

    horses: list[Horse] = dataclasses.field(default_factory=list)

    unassigned_devices: list[UnassignedDevice] = dataclasses.field(default_factory=list)

    # UTC time of the last cycle that delivered data (None until the first one)
    fetched_at: datetime | None = None

    # Error of the most recent cycle; None when it fully succeeded
    error: PollError | None = None

    # Issuance sequence number of the cycle that produced this snapshot
    sequence: int = 0

    def get_horse(self, horse_id: str) -> Horse | None:
        for horse in self.horses:
            if horse.horse_id == horse_id:
                return horse
        return None
