"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from models.records import Reading, reading_class_for


class SensorKind(str, Enum):
    """Sensor kinds exposed as API resources."""

    temperature = "temperature"
    humidity = "humidity"


class ReadingIn(BaseModel):
    """Reading submitted by a device."""

    group_id: str = Field(..., min_length=1)
    sensor_id: str = Field(..., min_length=1)
    time: Optional[int] = Field(
        default=None, ge=0, description="Epoch seconds; defaults to the time of arrival."
    )
    value: float = Field(..., allow_inf_nan=False)

    def to_reading(self, kind: SensorKind, now: int) -> Reading:
        reading_cls = reading_class_for(kind.value)
        return reading_cls(
            group_id=self.group_id,
            sensor_id=self.sensor_id,
            time=self.time if self.time is not None else now,
            value=self.value,
        )


class ReadingOut(BaseModel):
    """Stored reading as returned by queries."""

    kind: SensorKind
    group_id: str
    sensor_id: str
    time: int
    value: float

    @classmethod
    def from_reading(cls, reading: Reading) -> "ReadingOut":
        return cls(kind=SensorKind(reading.kind), **reading.to_record())


class CommandRoundResponse(BaseModel):
    """Outcome of one command publication round."""

    kind: SensorKind
    groups: List[str] = Field(default_factory=list)
    failed_groups: Dict[str, str] = Field(
        default_factory=dict, description="Failure reason keyed by group id."
    )
