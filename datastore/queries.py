"""Filters over an immutable snapshot of stored readings."""

from __future__ import annotations

import time
from typing import AbstractSet, FrozenSet, Optional, TypeVar

from models.records import Reading, ReadingKey

R = TypeVar("R", bound=Reading)


def readings_since(
    snapshot: AbstractSet[R], last_seconds: int, now: Optional[int] = None
) -> FrozenSet[R]:
    """Readings taken within the last ``last_seconds`` seconds, inclusive."""
    current = int(time.time()) if now is None else now
    threshold = current - last_seconds
    return frozenset(reading for reading in snapshot if reading.time >= threshold)


def readings_for_sensor(
    snapshot: AbstractSet[R], group_id: str, sensor_id: str
) -> FrozenSet[R]:
    return frozenset(
        reading
        for reading in snapshot
        if reading.group_id == group_id and reading.sensor_id == sensor_id
    )


def reading_at(
    snapshot: AbstractSet[R], group_id: str, sensor_id: str, time: int
) -> Optional[R]:
    key = ReadingKey(group_id, sensor_id, time)
    return next((reading for reading in snapshot if reading.key == key), None)


def latest_for_sensor(
    snapshot: AbstractSet[R], group_id: str, sensor_id: str
) -> Optional[R]:
    candidates = readings_for_sensor(snapshot, group_id, sensor_id)
    return max(candidates, key=lambda reading: reading.time, default=None)
