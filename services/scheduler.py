"""Periodic command rounds for every sensor kind."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from services.gateway import GatewayService

logger = logging.getLogger(__name__)


class CommandScheduler:
    """Runs ``publish_commands`` for each kind every ``interval`` seconds.

    Each round covers the gateway's ``command_window``.
    """

    def __init__(self, gateway: "GatewayService", interval: float) -> None:
        if interval <= 0:
            raise ValueError("Scheduler interval must be positive.")
        self.gateway = gateway
        self.interval = interval
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="command-scheduler"
        )

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def run_once(self) -> None:
        for kind in self.gateway.kinds:
            try:
                outcome = await self.gateway.publish_commands(kind)
            except Exception:
                logger.exception("Scheduled command round crashed", extra={"kind": kind})
                continue
            if not outcome.succeeded:
                logger.warning(
                    "Scheduled command round had failures",
                    extra={"kind": kind, "failed_groups": sorted(outcome.failures)},
                )

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.run_once()
