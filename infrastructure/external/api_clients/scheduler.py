"""Background credential renewal.

Refreshes credentials on a fixed interval, ahead of expiry, through the same
``RefreshCoordinator`` the request executor uses. A failed tick is only
logged: the next user request will hit the 401 and drive the authoritative
session transition.
"""
from __future__ import annotations

import asyncio
from typing import Optional

from core.logging_config import get_logger
from infrastructure.external.api_clients.refresh import RefreshCoordinator


logger = get_logger(__name__)


class ProactiveRefreshScheduler:
    def __init__(self, coordinator: RefreshCoordinator, interval_seconds: float = 600.0) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._coordinator = coordinator
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._consecutive_failures = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def start(self) -> None:
        """Start the timer; no-op when already running. Needs a running loop."""
        if self.is_running:
            return
        self._consecutive_failures = 0
        self._task = asyncio.create_task(self._run(), name="auth-proactive-refresh")
        logger.info("proactive_refresh_started", interval_seconds=self._interval)

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("proactive_refresh_stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            if await self._coordinator.refresh():
                self._consecutive_failures = 0
                continue
            self._consecutive_failures += 1
            logger.warning(
                "proactive_refresh_failed",
                consecutive_failures=self._consecutive_failures,
            )
