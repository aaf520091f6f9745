"""FastAPI application factory and gateway lifespan."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from logging_config import configure_logging
from services.gateway import build_default_gateway


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # A broker that cannot be reached aborts startup.
    gateway = build_default_gateway()
    await gateway.start()
    try:
        yield
    finally:
        await gateway.stop()
        build_default_gateway.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Home Eco-Climate Gateway",
        description="Sensor reading storage and per-group actuator command publishing over MQTT.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app

app = create_app()
