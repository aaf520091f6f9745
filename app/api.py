"""HTTP route definitions for the service."""

from __future__ import annotations

import time
from typing import Iterable, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.schemas import CommandRoundResponse, ReadingIn, ReadingOut, SensorKind
from datastore.pool import DuplicateReadingError
from models.records import Reading
from services.gateway import GatewayService, build_default_gateway

router = APIRouter()


def get_gateway() -> GatewayService:
    return build_default_gateway()


def _to_response(readings: Iterable[Reading]) -> List[ReadingOut]:
    ordered = sorted(readings, key=lambda reading: (reading.time, reading.group_id, reading.sensor_id))
    return [ReadingOut.from_reading(reading) for reading in ordered]


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}


@router.post(
    "/{kind}",
    status_code=status.HTTP_201_CREATED,
    response_model=ReadingOut,
    summary="Store a sensor reading.",
)
async def create_reading(
    kind: SensorKind,
    payload: ReadingIn,
    gateway: GatewayService = Depends(get_gateway),
) -> ReadingOut:
    reading = payload.to_reading(kind, now=int(time.time()))
    try:
        gateway.add_reading(reading)
    except DuplicateReadingError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    return ReadingOut.from_reading(reading)


@router.get(
    "/{kind}",
    response_model=List[ReadingOut],
    summary="List readings, optionally restricted to the last N seconds.",
)
async def list_readings(
    kind: SensorKind,
    last_seconds: Optional[int] = Query(default=None, ge=0),
    gateway: GatewayService = Depends(get_gateway),
) -> List[ReadingOut]:
    if last_seconds is None:
        readings = gateway.all_readings(kind.value)
    else:
        readings = gateway.recent_readings(kind.value, last_seconds)
    return _to_response(readings)


@router.post(
    "/{kind}/commands",
    response_model=CommandRoundResponse,
    summary="Publish one actuator command per group from recent readings.",
    responses={status.HTTP_502_BAD_GATEWAY: {"model": CommandRoundResponse}},
)
async def publish_commands(
    kind: SensorKind,
    response: Response,
    last_seconds: Optional[int] = Query(default=None, ge=0),
    gateway: GatewayService = Depends(get_gateway),
) -> CommandRoundResponse:
    outcome = await gateway.publish_commands(kind.value, last_seconds=last_seconds)
    if not outcome.succeeded:
        response.status_code = status.HTTP_502_BAD_GATEWAY
    return CommandRoundResponse(
        kind=kind, groups=outcome.groups, failed_groups=outcome.failures
    )


@router.get(
    "/{kind}/{group_id}/{sensor_id}",
    response_model=List[ReadingOut],
    summary="List the readings of one sensor.",
)
async def list_sensor_readings(
    kind: SensorKind,
    group_id: str,
    sensor_id: str,
    gateway: GatewayService = Depends(get_gateway),
) -> List[ReadingOut]:
    return _to_response(gateway.sensor_readings(kind.value, group_id, sensor_id))


@router.get(
    "/{kind}/{group_id}/{sensor_id}/{time}",
    response_model=ReadingOut,
    summary="Fetch the reading of one sensor at an exact timestamp.",
)
async def get_reading(
    kind: SensorKind,
    group_id: str,
    sensor_id: str,
    time: int,
    gateway: GatewayService = Depends(get_gateway),
) -> ReadingOut:
    try:
        reading = gateway.reading_at(kind.value, group_id, sensor_id, time)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=exc.args[0],
        ) from exc
    return ReadingOut.from_reading(reading)


@router.post(
    "/{kind}/{group_id}/{sensor_id}/retransmit",
    status_code=status.HTTP_201_CREATED,
    response_model=ReadingOut,
    summary="Re-store a sensor's latest reading with the current time.",
)
async def retransmit_reading(
    kind: SensorKind,
    group_id: str,
    sensor_id: str,
    gateway: GatewayService = Depends(get_gateway),
) -> ReadingOut:
    try:
        reading = gateway.retransmit(kind.value, group_id, sensor_id)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=exc.args[0],
        ) from exc
    except DuplicateReadingError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    return ReadingOut.from_reading(reading)
