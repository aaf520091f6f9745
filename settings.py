"""Runtime settings loaded from ``HOMEECOCLIMATE_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_MQTT_ADDRESS_ENV = "HOMEECOCLIMATE_MQTT_ADDRESS"
_MQTT_PORT_ENV = "HOMEECOCLIMATE_MQTT_PORT"
_MQTT_CLIENT_ID_ENV = "HOMEECOCLIMATE_MQTT_CLIENT_ID"
_MQTT_USER_ENV = "HOMEECOCLIMATE_MQTT_USER"
_MQTT_PASS_ENV = "HOMEECOCLIMATE_MQTT_PASS"
_TOPIC_PREFIX_ENV = "HOMEECOCLIMATE_TOPIC_PREFIX"
_DATA_PATH_ENV = "HOMEECOCLIMATE_DATA_PATH"
_COMMAND_INTERVAL_ENV = "HOMEECOCLIMATE_COMMAND_INTERVAL"
_COMMAND_WINDOW_ENV = "HOMEECOCLIMATE_COMMAND_WINDOW"
_TARGET_TEMPERATURE_ENV = "HOMEECOCLIMATE_TARGET_TEMPERATURE"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    mqtt_address: str
    mqtt_port: int
    mqtt_client_id: Optional[str]
    mqtt_username: Optional[str]
    mqtt_password: Optional[str]
    topic_prefix: str
    data_path: Optional[str]
    command_interval: float
    command_window: int
    target_temperature: float
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_interval(name: str, default: float) -> float:
    # Zero is meaningful here: it disables the periodic command rounds.
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


def _read_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value.strip())
    except ValueError:
        return default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        mqtt_address=_read_str_env(_MQTT_ADDRESS_ENV, "localhost"),
        mqtt_port=_read_positive_int(_MQTT_PORT_ENV, 1883),
        mqtt_client_id=_read_optional_env(_MQTT_CLIENT_ID_ENV, None),
        mqtt_username=_read_optional_env(_MQTT_USER_ENV, None),
        mqtt_password=_read_optional_env(_MQTT_PASS_ENV, None),
        topic_prefix=_read_str_env(_TOPIC_PREFIX_ENV, "homeecoclimate/actuators"),
        data_path=_read_optional_env(_DATA_PATH_ENV, None),
        command_interval=_read_interval(_COMMAND_INTERVAL_ENV, 60.0),
        command_window=_read_positive_int(_COMMAND_WINDOW_ENV, 300),
        target_temperature=_read_float(_TARGET_TEMPERATURE_ENV, 21.0),
        log_level=_read_log_level("INFO"),
    )
