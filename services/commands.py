"""Actuator command publication, one command per sensor group."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from statistics import fmean
from typing import ClassVar, Collection, Dict, Generic, Iterable, List, Sequence, TypeVar

from messaging.channel import QOS_AT_LEAST_ONCE, MessageChannel, Payload
from models.records import Humidity, Reading, Temperature
from services.aggregator import clamp_index, group_readings, latest_values
from services.join import JoinError, join

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Reading)

DEFAULT_TOPIC_PREFIX = "homeecoclimate/actuators"


class CommandDispatchError(JoinError):
    """Commands for one or more groups could not be delivered."""

    def __init__(self, kind: str, failures: Dict[str, BaseException]) -> None:
        super().__init__(failures)
        self.kind = kind

    @property
    def failed_groups(self) -> List[str]:
        return sorted(str(group_id) for group_id in self.failures)


class CommandPublisher(ABC, Generic[R]):
    """Turns readings of one sensor kind into one actuator command per group.

    Subclasses provide the index rule (:meth:`compute_index`) and the payload
    encoding (:meth:`dispatch`). The computed index is always clamped to a
    single unsigned byte before it reaches :meth:`dispatch`.
    """

    kind: ClassVar[str]

    def __init__(self, channel: MessageChannel, topic_prefix: str = DEFAULT_TOPIC_PREFIX) -> None:
        self.channel = channel
        self.topic_prefix = topic_prefix.rstrip("/")

    @abstractmethod
    def compute_index(self, series: Collection[Sequence[R]]) -> int:
        """Reduce the per-sensor sequences of a single group to a raw index."""

    @abstractmethod
    async def dispatch(self, group_id: str, index: int) -> None:
        """Encode ``index`` and publish it as the command for ``group_id``."""

    def topic_for(self, group_id: str) -> str:
        return f"{self.topic_prefix}/{self.kind}/{group_id}"

    async def publish(self, topic: str, payload: Payload) -> None:
        await self.channel.publish(topic, payload, qos=QOS_AT_LEAST_ONCE, retain=False)

    async def publish_commands(self, readings: Iterable[R]) -> None:
        """Publish one command for every group present in ``readings``.

        Groups are dispatched concurrently and all of them run to completion.
        Raises :class:`CommandDispatchError` listing every group that failed.
        """
        grouped = group_readings(readings)
        operations = {
            group_id: self._send_group(group_id, list(sensors.values()))
            for group_id, sensors in grouped.items()
        }
        try:
            await join(operations)
        except JoinError as exc:
            error = CommandDispatchError(self.kind, exc.failures)
            logger.warning(
                "Command round finished with failures",
                extra={
                    "kind": self.kind,
                    "group_count": len(operations),
                    "failed_groups": error.failed_groups,
                },
            )
            raise error from exc
        logger.info(
            "Command round finished",
            extra={"kind": self.kind, "group_count": len(operations)},
        )

    async def _send_group(self, group_id: str, series: List[List[R]]) -> None:
        try:
            index = clamp_index(self.compute_index(series))
            await self.dispatch(group_id, index)
        except Exception as exc:
            logger.warning(
                "Command for group failed",
                extra={"kind": self.kind, "group_id": group_id, "reason": str(exc)},
            )
            raise
        logger.debug(
            "Command for group published",
            extra={"kind": self.kind, "group_id": group_id, "index": index},
        )


class TemperatureCommandPublisher(CommandPublisher[Temperature]):
    """Heating demand from the mean of the latest temperature of each sensor.

    The demand grows by ``gain`` per degree below ``target``; groups at or
    above the set point get index 0. Payload is the index as decimal text.
    """

    kind = Temperature.kind

    def __init__(
        self,
        channel: MessageChannel,
        topic_prefix: str = DEFAULT_TOPIC_PREFIX,
        target: float = 21.0,
        gain: float = 25.0,
    ) -> None:
        super().__init__(channel, topic_prefix)
        self.target = target
        self.gain = gain

    def compute_index(self, series: Collection[Sequence[Temperature]]) -> int:
        values = latest_values(series)
        if not values:
            return 0
        return round((self.target - fmean(values)) * self.gain)

    async def dispatch(self, group_id: str, index: int) -> None:
        await self.publish(self.topic_for(group_id), str(index))


class HumidityCommandPublisher(CommandPublisher[Humidity]):
    """Ventilation level driven by the most humid sensor of the group.

    Relative humidity in percent is scaled onto 0-255 and sent as one raw byte.
    """

    kind = Humidity.kind

    def compute_index(self, series: Collection[Sequence[Humidity]]) -> int:
        values = latest_values(series)
        if not values:
            return 0
        return round(max(values) * 255 / 100)

    async def dispatch(self, group_id: str, index: int) -> None:
        await self.publish(self.topic_for(group_id), bytes([index]))
