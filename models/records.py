"""Domain models shared across services."""

from __future__ import annotations

import time as _time
from dataclasses import dataclass, field, fields, replace
from typing import Any, ClassVar, Dict, NamedTuple, Optional, Type


class ReadingKey(NamedTuple):
    """Identity of a reading, independent of its measured value."""

    group_id: str
    sensor_id: str
    time: int


@dataclass(frozen=True, slots=True)
class Reading:
    """A single observation sent by a sensor belonging to a group.

    Equality and hashing only consider ``group_id``, ``sensor_id`` and
    ``time``; the measured value of concrete kinds is excluded so that a
    device re-sending the same timestamp is treated as the same reading.
    """

    kind: ClassVar[str] = "reading"

    group_id: str
    sensor_id: str
    time: int

    @property
    def key(self) -> ReadingKey:
        return ReadingKey(self.group_id, self.sensor_id, self.time)

    def with_current_time(self, now: Optional[int] = None) -> "Reading":
        """Return a copy of this reading stamped with the current epoch time."""
        stamp = int(_time.time()) if now is None else int(now)
        return replace(self, time=stamp)

    def to_record(self) -> Dict[str, Any]:
        return {
            "group_id": self.group_id,
            "sensor_id": self.sensor_id,
            "time": self.time,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Reading":
        return cls(**{item.name: record[item.name] for item in fields(cls)})


@dataclass(frozen=True, slots=True)
class Temperature(Reading):
    """Air temperature in degrees Celsius."""

    kind: ClassVar[str] = "temperature"

    value: float = field(compare=False)

    def to_record(self) -> Dict[str, Any]:
        record = Reading.to_record(self)
        record["value"] = self.value
        return record


@dataclass(frozen=True, slots=True)
class Humidity(Reading):
    """Relative humidity as a percentage."""

    kind: ClassVar[str] = "humidity"

    value: float = field(compare=False)

    def to_record(self) -> Dict[str, Any]:
        record = Reading.to_record(self)
        record["value"] = self.value
        return record


READING_KINDS: Dict[str, Type[Reading]] = {
    Temperature.kind: Temperature,
    Humidity.kind: Humidity,
}


def reading_class_for(kind: str) -> Type[Reading]:
    try:
        return READING_KINDS[kind]
    except KeyError as exc:
        raise KeyError(f"Unknown sensor kind {kind!r}.") from exc
