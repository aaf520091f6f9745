"""MQTT channel wrapper for command publication."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from functools import lru_cache
from typing import Optional, Protocol, Union

import aiomqtt

from settings import get_settings

logger = logging.getLogger(__name__)

QOS_AT_LEAST_ONCE = 1

Payload = Union[str, bytes]


class ChannelConnectionError(RuntimeError):
    """The broker connection could not be established."""


class TransportPublishError(RuntimeError):
    """The broker did not accept or acknowledge a publish."""

    def __init__(self, topic: str, reason: str) -> None:
        super().__init__(f"Publish to {topic!r} failed: {reason}")
        self.topic = topic
        self.reason = reason


class MessageChannel(Protocol):
    async def connect(self) -> None: ...

    async def disconnect(self) -> None: ...

    async def publish(
        self,
        topic: str,
        payload: Payload,
        *,
        qos: int = QOS_AT_LEAST_ONCE,
        retain: bool = False,
    ) -> None: ...


class MqttChannel:
    """Single long-lived MQTT connection shared by all command publishers.

    ``publish`` with QoS 1 returns once the broker has sent its PUBACK. The
    underlying client sets the duplicate flag only on its own retransmissions,
    so first deliveries always go out with it cleared.
    """

    def __init__(
        self,
        hostname: str,
        port: int = 1883,
        identifier: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> None:
        self.hostname = hostname
        self.port = port
        self.identifier = identifier
        self._username = username
        self._password = password
        self._client: Optional[aiomqtt.Client] = None
        self._stack: Optional[AsyncExitStack] = None

    @property
    def broker(self) -> str:
        return f"{self.hostname}:{self.port}"

    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        if self._client is not None:
            return
        client = aiomqtt.Client(
            self.hostname,
            port=self.port,
            identifier=self.identifier,
            username=self._username,
            password=self._password,
        )
        stack = AsyncExitStack()
        try:
            self._client = await stack.enter_async_context(client)
        except aiomqtt.MqttError as exc:
            await stack.aclose()
            raise ChannelConnectionError(
                f"Could not connect to MQTT broker at {self.broker}: {exc}"
            ) from exc
        self._stack = stack
        logger.info("Connected to MQTT broker %s", self.broker)

    async def disconnect(self) -> None:
        stack, self._stack, self._client = self._stack, None, None
        if stack is None:
            return
        try:
            await stack.aclose()
        except aiomqtt.MqttError as exc:
            logger.warning(
                "Error while disconnecting from %s", self.broker, extra={"reason": str(exc)}
            )
            return
        logger.info("Disconnected from MQTT broker %s", self.broker)

    async def publish(
        self,
        topic: str,
        payload: Payload,
        *,
        qos: int = QOS_AT_LEAST_ONCE,
        retain: bool = False,
    ) -> None:
        client = self._client
        if client is None:
            raise TransportPublishError(topic, "not connected to broker")
        try:
            await client.publish(topic, payload=payload, qos=qos, retain=retain)
        except aiomqtt.MqttError as exc:
            raise TransportPublishError(topic, str(exc)) from exc


@lru_cache
def build_default_channel() -> MqttChannel:
    settings = get_settings()
    return MqttChannel(
        hostname=settings.mqtt_address,
        port=settings.mqtt_port,
        identifier=settings.mqtt_client_id,
        username=settings.mqtt_username,
        password=settings.mqtt_password,
    )
