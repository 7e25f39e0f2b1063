"""Single-flight credential refresh.

All callers that need fresh credentials (401 recovery in the request
executor, the proactive scheduler) go through one ``RefreshCoordinator``.
While a refresh is in flight every caller awaits the same task, so at most
one refresh request is on the wire and all callers see the same outcome.
"""
from __future__ import annotations

import asyncio
from typing import Optional

import httpx

from core.logging_config import get_logger


logger = get_logger(__name__)


class RefreshCoordinator:
    def __init__(self, client: httpx.AsyncClient, endpoint: str) -> None:
        self._client = client
        self._endpoint = endpoint
        self._inflight: Optional[asyncio.Task[bool]] = None
        self._attempts = 0

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None

    @property
    def attempts(self) -> int:
        """Number of refresh requests actually issued."""
        return self._attempts

    async def refresh(self) -> bool:
        """Renew credentials; ``True`` when the server accepted the refresh."""
        task = self._inflight
        if task is None:
            task = asyncio.create_task(self._refresh_once(), name="auth-refresh")
            self._inflight = task
        else:
            logger.debug("auth_refresh_joined")
        try:
            # shield: a cancelled waiter must not cancel the shared attempt
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                return False
            raise

    async def reset(self) -> None:
        """Cancel any in-flight attempt and return to idle."""
        task = self._inflight
        self._inflight = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _refresh_once(self) -> bool:
        self._attempts += 1
        logger.info("auth_refresh_started", attempt=self._attempts)
        try:
            response = await self._client.post(self._endpoint)
        except httpx.HTTPError as exc:
            logger.warning("auth_refresh_failed", error=str(exc), error_type=type(exc).__name__)
            return False
        else:
            if response.is_success:
                logger.info("auth_refresh_succeeded", status_code=response.status_code)
                return True
            logger.warning("auth_refresh_failed", status_code=response.status_code)
            return False
        finally:
            # back to idle before waiters resume
            if self._inflight is asyncio.current_task():
                self._inflight = None
