"""Command publication: one command per group, joined into a single outcome."""

from __future__ import annotations

import asyncio
import logging
from typing import Collection, Sequence

import pytest

from models.records import Humidity, Temperature
from services.commands import (
    CommandDispatchError,
    CommandPublisher,
    HumidityCommandPublisher,
    TemperatureCommandPublisher,
)


class SumOfLatestPublisher(CommandPublisher[Temperature]):
    """Publishes the sum of the latest value of each sensor as text."""

    kind = "sum"

    def __init__(self, channel) -> None:
        super().__init__(channel, topic_prefix="test")
        self.dispatched: dict[str, int] = {}

    def compute_index(self, series: Collection[Sequence[Temperature]]) -> int:
        return int(sum(max(readings, key=lambda r: r.time).value for readings in series))

    async def dispatch(self, group_id: str, index: int) -> None:
        self.dispatched[group_id] = index
        await self.publish(self.topic_for(group_id), str(index))


def _temp(group_id: str, sensor_id: str, time: int, value: float) -> Temperature:
    return Temperature(group_id=group_id, sensor_id=sensor_id, time=time, value=value)


def test_publishes_one_command_per_group(channel) -> None:
    publisher = SumOfLatestPublisher(channel)
    readings = {
        _temp("g1", "s1", 1, 10),
        _temp("g1", "s2", 1, 20),
        _temp("g2", "s1", 1, 5),
    }

    asyncio.run(publisher.publish_commands(readings))

    assert publisher.dispatched == {"g1": 30, "g2": 5}
    assert channel.topics() == ["test/sum/g1", "test/sum/g2"]
    payloads = {message.topic: message.payload for message in channel.published}
    assert payloads == {"test/sum/g1": "30", "test/sum/g2": "5"}
    assert all(message.qos == 1 for message in channel.published)
    assert all(message.retain is False for message in channel.published)


def test_raw_index_is_saturated_before_dispatch(channel) -> None:
    publisher = SumOfLatestPublisher(channel)
    readings = {_temp("g1", "s1", 1, 9000), _temp("g2", "s1", 1, 200)}

    asyncio.run(publisher.publish_commands(readings))

    assert publisher.dispatched == {"g1": 255, "g2": 200}


def test_empty_input_succeeds_without_publishing(channel) -> None:
    publisher = SumOfLatestPublisher(channel)

    asyncio.run(publisher.publish_commands(set()))

    assert publisher.dispatched == {}
    assert channel.attempts == []


def test_failed_group_does_not_block_siblings(channel) -> None:
    channel.failing_groups = {"g1"}
    publisher = SumOfLatestPublisher(channel)
    readings = {_temp("g1", "s1", 1, 10), _temp("g2", "s1", 1, 5)}

    with pytest.raises(CommandDispatchError) as excinfo:
        asyncio.run(publisher.publish_commands(readings))

    assert channel.topics() == ["test/sum/g2"]
    assert sorted(channel.attempts) == ["test/sum/g1", "test/sum/g2"]
    assert excinfo.value.failed_groups == ["g1"]
    assert excinfo.value.kind == "sum"


def test_index_rule_failure_fails_only_its_group(channel) -> None:
    class PickyPublisher(SumOfLatestPublisher):
        def compute_index(self, series):
            values = [r.value for readings in series for r in readings]
            if any(value < 0 for value in values):
                raise ValueError("negative reading")
            return super().compute_index(series)

    publisher = PickyPublisher(channel)
    readings = {_temp("bad", "s1", 1, -3), _temp("good", "s1", 1, 7)}

    with pytest.raises(CommandDispatchError) as excinfo:
        asyncio.run(publisher.publish_commands(readings))

    assert isinstance(excinfo.value.failures["bad"], ValueError)
    assert channel.topics() == ["test/sum/good"]


def test_groups_are_dispatched_concurrently(channel) -> None:
    channel.barrier = 3
    publisher = SumOfLatestPublisher(channel)
    readings = {_temp(f"g{n}", "s1", 1, n) for n in range(3)}

    asyncio.run(publisher.publish_commands(readings))

    assert len(channel.published) == 3


def test_failures_are_logged_with_group_context(channel, caplog) -> None:
    channel.failing_groups = {"g1"}
    publisher = SumOfLatestPublisher(channel)

    with caplog.at_level(logging.WARNING, logger="services.commands"):
        with pytest.raises(CommandDispatchError):
            asyncio.run(publisher.publish_commands({_temp("g1", "s1", 1, 1)}))

    records = [record for record in caplog.records if record.name == "services.commands"]
    assert any(getattr(record, "group_id", None) == "g1" for record in records)
    assert any(getattr(record, "failed_groups", None) == ["g1"] for record in records)


def test_temperature_index_follows_heating_demand(channel) -> None:
    publisher = TemperatureCommandPublisher(channel, topic_prefix="home", target=21.0, gain=25.0)
    series = [
        [_temp("g", "s1", 1, 30.0), _temp("g", "s1", 5, 18.0)],
        [_temp("g", "s2", 3, 20.0)],
    ]

    assert publisher.compute_index(series) == 50
    assert publisher.compute_index([[_temp("g", "s1", 1, 25.0)]]) == -100
    assert publisher.compute_index([]) == 0


def test_temperature_command_payload_is_decimal_text(channel) -> None:
    publisher = TemperatureCommandPublisher(channel, topic_prefix="home/")
    readings = {_temp("kitchen", "t1", 1, 15.0), _temp("attic", "t1", 1, 30.0)}

    asyncio.run(publisher.publish_commands(readings))

    payloads = {message.topic: message.payload for message in channel.published}
    assert payloads == {
        "home/temperature/kitchen": "150",
        "home/temperature/attic": "0",
    }


def test_humidity_command_payload_is_single_byte(channel) -> None:
    publisher = HumidityCommandPublisher(channel, topic_prefix="home")
    readings = {
        Humidity(group_id="bath", sensor_id="h1", time=1, value=40.0),
        Humidity(group_id="bath", sensor_id="h2", time=1, value=80.0),
        Humidity(group_id="cellar", sensor_id="h1", time=1, value=100.0),
    }

    asyncio.run(publisher.publish_commands(readings))

    payloads = {message.topic: message.payload for message in channel.published}
    assert payloads == {
        "home/humidity/bath": bytes([204]),
        "home/humidity/cellar": bytes([255]),
    }
    assert publisher.compute_index([]) == 0
