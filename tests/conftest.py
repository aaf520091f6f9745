from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Iterator, List, Optional, Set

import pytest

from datastore.pool import ReadingPool
from messaging.channel import TransportPublishError
from models.records import Humidity, Temperature
from services.commands import HumidityCommandPublisher, TemperatureCommandPublisher
from services.gateway import GatewayService, SensorResource
from settings import get_settings


@dataclass(frozen=True)
class PublishedMessage:
    topic: str
    payload: object
    qos: int
    retain: bool


class RecordingChannel:
    """In-process stand-in for the MQTT broker connection.

    Topics ending with one of ``failing_groups`` are rejected. When
    ``barrier`` is set, each publish waits until that many publishes are
    in flight at the same time.
    """

    def __init__(self, failing_groups: Optional[Set[str]] = None, barrier: Optional[int] = None) -> None:
        self.failing_groups = set(failing_groups or ())
        self.barrier = barrier
        self.published: List[PublishedMessage] = []
        self.attempts: List[str] = []
        self.connected = False
        self.connect_calls = 0
        self._in_flight = 0
        self._all_arrived: Optional[asyncio.Event] = None

    async def connect(self) -> None:
        self.connect_calls += 1
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    async def publish(self, topic: str, payload, *, qos: int = 1, retain: bool = False) -> None:
        self.attempts.append(topic)
        if self.barrier is not None:
            await self._wait_for_siblings()
        if any(topic.endswith(f"/{group_id}") for group_id in self.failing_groups):
            raise TransportPublishError(topic, "broker rejected publish")
        self.published.append(PublishedMessage(topic, payload, qos, retain))

    async def _wait_for_siblings(self) -> None:
        if self._all_arrived is None:
            self._all_arrived = asyncio.Event()
        self._in_flight += 1
        if self._in_flight >= self.barrier:
            self._all_arrived.set()
        await asyncio.wait_for(self._all_arrived.wait(), timeout=1.0)

    def topics(self) -> List[str]:
        return sorted(message.topic for message in self.published)


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


def build_gateway(channel, tmp_path=None, command_interval: float = 0.0) -> GatewayService:
    def pool_for(reading_cls):
        if tmp_path is None:
            return ReadingPool(reading_cls)
        return ReadingPool(reading_cls, persistence_path=tmp_path / f"{reading_cls.kind}.json")

    resources = {
        Temperature.kind: SensorResource(
            pool=pool_for(Temperature),
            publisher=TemperatureCommandPublisher(channel, topic_prefix="test/actuators"),
        ),
        Humidity.kind: SensorResource(
            pool=pool_for(Humidity),
            publisher=HumidityCommandPublisher(channel, topic_prefix="test/actuators"),
        ),
    }
    return GatewayService(
        channel=channel,
        resources=resources,
        command_interval=command_interval,
        command_window=300,
    )


@pytest.fixture
def gateway(channel: RecordingChannel) -> GatewayService:
    return build_gateway(channel)


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def gateway_factory():
    return build_gateway
