"""Grouping and index helpers for sensor readings."""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Sequence, TypeVar

from models.records import Reading

R = TypeVar("R", bound=Reading)

INDEX_MIN = 0
INDEX_MAX = 255

GroupedReadings = Dict[str, Dict[str, List[R]]]


def group_readings(readings: Iterable[R]) -> GroupedReadings:
    """Partition readings by group id, then by sensor id within each group."""
    grouped: Dict[str, Dict[str, List[R]]] = defaultdict(lambda: defaultdict(list))
    for reading in readings:
        grouped[reading.group_id][reading.sensor_id].append(reading)
    return {group_id: dict(sensors) for group_id, sensors in grouped.items()}


def clamp_index(raw: int) -> int:
    """Saturate an aggregated value into the single unsigned byte range."""
    return max(INDEX_MIN, min(INDEX_MAX, int(raw)))


def latest_values(series: Iterable[Sequence[Reading]]) -> List[float]:
    """Value of the most recent reading of every non-empty sensor sequence."""
    values: List[float] = []
    for readings in series:
        if not readings:
            continue
        latest = max(readings, key=lambda reading: reading.time)
        values.append(latest.value)  # type: ignore[attr-defined]
    return values
