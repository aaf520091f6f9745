"""Wiring of reading storage, command publishers and the MQTT channel."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, FrozenSet, List, Mapping, Optional

from datastore.pool import ReadingPool, build_default_pool
from datastore.queries import latest_for_sensor, reading_at, readings_for_sensor, readings_since
from messaging.channel import MessageChannel, build_default_channel
from models.records import Humidity, Reading, Temperature
from services.commands import (
    CommandDispatchError,
    CommandPublisher,
    HumidityCommandPublisher,
    TemperatureCommandPublisher,
)
from services.scheduler import CommandScheduler
from settings import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SensorResource:
    """Storage and command publisher serving one sensor kind."""

    pool: ReadingPool
    publisher: CommandPublisher


@dataclass
class CommandRound:
    kind: str
    groups: List[str] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return not self.failures


class GatewayService:
    """Entry point used by the HTTP layer and the periodic scheduler."""

    def __init__(
        self,
        channel: MessageChannel,
        resources: Mapping[str, SensorResource],
        command_interval: float = 0.0,
        command_window: int = 300,
    ) -> None:
        self.channel = channel
        self.resources = dict(resources)
        self.command_window = command_window
        self.scheduler: Optional[CommandScheduler] = None
        if command_interval > 0:
            self.scheduler = CommandScheduler(self, interval=command_interval)

    @property
    def kinds(self) -> List[str]:
        return sorted(self.resources)

    async def start(self) -> None:
        await self.channel.connect()
        if self.scheduler is not None:
            self.scheduler.start()

    async def stop(self) -> None:
        if self.scheduler is not None:
            await self.scheduler.stop()
        await self.channel.disconnect()

    def add_reading(self, reading: Reading) -> Reading:
        self._resource(reading.kind).pool.add(reading)
        logger.debug(
            "Stored reading",
            extra={
                "kind": reading.kind,
                "group_id": reading.group_id,
                "sensor_id": reading.sensor_id,
            },
        )
        return reading

    def retransmit(self, kind: str, group_id: str, sensor_id: str) -> Reading:
        """Store a copy of a sensor's latest reading stamped with the current time."""
        pool = self._resource(kind).pool
        latest = latest_for_sensor(pool.snapshot(), group_id, sensor_id)
        if latest is None:
            raise KeyError(
                f"No {kind} readings for group {group_id!r}, sensor {sensor_id!r}."
            )
        return self.add_reading(latest.with_current_time())

    def all_readings(self, kind: str) -> FrozenSet[Reading]:
        return self._resource(kind).pool.snapshot()

    def recent_readings(self, kind: str, last_seconds: int) -> FrozenSet[Reading]:
        return readings_since(self.all_readings(kind), last_seconds)

    def sensor_readings(self, kind: str, group_id: str, sensor_id: str) -> FrozenSet[Reading]:
        return readings_for_sensor(self.all_readings(kind), group_id, sensor_id)

    def reading_at(self, kind: str, group_id: str, sensor_id: str, time: int) -> Reading:
        reading = reading_at(self.all_readings(kind), group_id, sensor_id, time)
        if reading is None:
            raise KeyError(
                f"No {kind} reading for group {group_id!r}, sensor {sensor_id!r} at {time}."
            )
        return reading

    async def publish_commands(self, kind: str, last_seconds: Optional[int] = None) -> CommandRound:
        """Publish commands derived from the readings of the last window."""
        resource = self._resource(kind)
        window = self.command_window if last_seconds is None else last_seconds
        readings = readings_since(resource.pool.snapshot(), window)
        outcome = CommandRound(
            kind=kind, groups=sorted({reading.group_id for reading in readings})
        )
        try:
            await resource.publisher.publish_commands(readings)
        except CommandDispatchError as exc:
            outcome.failures = {
                str(group_id): str(error) or type(error).__name__
                for group_id, error in exc.failures.items()
            }
        return outcome

    def _resource(self, kind: str) -> SensorResource:
        try:
            return self.resources[kind]
        except KeyError as exc:
            raise KeyError(f"Unknown sensor kind {kind!r}.") from exc


@lru_cache
def build_default_gateway() -> GatewayService:
    """Factory that wires the gateway from environment settings."""
    settings = get_settings()
    channel = build_default_channel()
    resources = {
        Temperature.kind: SensorResource(
            pool=build_default_pool(Temperature.kind),
            publisher=TemperatureCommandPublisher(
                channel,
                topic_prefix=settings.topic_prefix,
                target=settings.target_temperature,
            ),
        ),
        Humidity.kind: SensorResource(
            pool=build_default_pool(Humidity.kind),
            publisher=HumidityCommandPublisher(channel, topic_prefix=settings.topic_prefix),
        ),
    }
    return GatewayService(
        channel=channel,
        resources=resources,
        command_interval=settings.command_interval,
        command_window=settings.command_window,
    )
