"""Terminal rendering of API responses."""

from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def render_reading(payload: Dict[str, Any]) -> None:
    typer.echo(
        f"{payload.get('kind')} {payload.get('group_id')}/{payload.get('sensor_id')} "
        f"@ {payload.get('time')}: {payload.get('value')}"
    )


def render_readings(readings: Iterable[Dict[str, Any]]) -> None:
    items = list(readings)
    echo_heading(f"Readings ({len(items)})")
    if not items:
        typer.echo("No readings stored.")
        return
    for reading in items:
        render_reading(reading)


def render_command_round(payload: Dict[str, Any]) -> None:
    echo_heading(f"Command round: {payload.get('kind')}")
    groups = payload.get("groups") or []
    failed = payload.get("failed_groups") or {}
    if not groups:
        typer.echo("No groups had readings in the window.")
        return
    for group_id in groups:
        reason = failed.get(group_id)
        if reason is None:
            typer.secho(f"  - {group_id}: published", fg=typer.colors.GREEN)
        else:
            typer.secho(f"  - {group_id}: failed ({reason})", fg=typer.colors.RED)
