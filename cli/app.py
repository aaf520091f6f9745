"""Typer commands for submitting readings and triggering command rounds."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_command_round, render_reading, render_readings


class Kind(str, Enum):
    temperature = "temperature"
    humidity = "humidity"


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the home eco-climate gateway.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Gateway API base URL (defaults to API_BASE_URL env or http://localhost:8080).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each API request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("send")
def send_command(
    ctx: typer.Context,
    kind: Kind = typer.Argument(..., help="Sensor kind."),
    group_id: str = typer.Argument(..., help="Group the sensor belongs to."),
    sensor_id: str = typer.Argument(..., help="Sensor identifier."),
    value: float = typer.Argument(..., help="Measured value."),
    time: Optional[int] = typer.Option(
        None,
        "--time",
        "-t",
        help="Epoch seconds of the reading (defaults to arrival time).",
    ),
) -> None:
    """Store a reading as if it was sent by a device."""
    state = _get_state(ctx)
    payload = state.client.send_reading(kind.value, group_id, sensor_id, value, time=time)
    typer.secho("Reading stored.", fg=typer.colors.GREEN)
    render_reading(payload)


@app.command("readings")
def readings_command(
    ctx: typer.Context,
    kind: Kind = typer.Argument(..., help="Sensor kind."),
    last: Optional[int] = typer.Option(
        None,
        "--last",
        "-l",
        help="Only readings from the last N seconds.",
    ),
    group_id: Optional[str] = typer.Option(None, "--group", "-g", help="Group identifier."),
    sensor_id: Optional[str] = typer.Option(None, "--sensor", "-s", help="Sensor identifier."),
) -> None:
    """List stored readings."""
    if (group_id is None) != (sensor_id is None):
        raise typer.BadParameter("--group and --sensor must be given together.")
    state = _get_state(ctx)
    readings = state.client.list_readings(
        kind.value, last_seconds=last, group_id=group_id, sensor_id=sensor_id
    )
    render_readings(readings)


@app.command("retransmit")
def retransmit_command(
    ctx: typer.Context,
    kind: Kind = typer.Argument(..., help="Sensor kind."),
    group_id: str = typer.Argument(..., help="Group the sensor belongs to."),
    sensor_id: str = typer.Argument(..., help="Sensor identifier."),
) -> None:
    """Re-store a sensor's latest reading with the current time."""
    state = _get_state(ctx)
    payload = state.client.retransmit(kind.value, group_id, sensor_id)
    render_reading(payload)


@app.command("commands")
def commands_command(
    ctx: typer.Context,
    kind: Kind = typer.Argument(..., help="Sensor kind."),
    last: Optional[int] = typer.Option(
        None,
        "--last",
        "-l",
        help="Window of readings in seconds (defaults to the gateway setting).",
    ),
) -> None:
    """Publish actuator commands for every group with recent readings."""
    state = _get_state(ctx)
    payload = state.client.publish_commands(kind.value, last_seconds=last)
    render_command_round(payload)
    if payload.get("failed_groups"):
        raise typer.Exit(code=1)
