"""
Composition root for the admin session client.

Wires one shared ``httpx.AsyncClient`` (cookie jar = credentials) into the
refresh coordinator, request executor, proactive scheduler, auth gateway
and session lifecycle, and exposes the four entry points consumers use:
``call``, ``login``, ``logout`` and ``current_session``.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional, Union

import httpx

from application.dto import LoginDTO, LoginResultDTO
from application.services.session_service import SessionLifecycle
from core.config import Settings, settings as default_settings
from domain.session.entity import Session
from infrastructure.external.api_clients.auth import AuthAPIClient
from infrastructure.external.api_clients.base import RequestExecutor, build_http_client
from infrastructure.external.api_clients.refresh import RefreshCoordinator
from infrastructure.external.api_clients.scheduler import ProactiveRefreshScheduler


class AdminAPIClient:
    """会话客户端门面：持有各组件并负责统一关闭"""

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        executor: RequestExecutor,
        refresher: RefreshCoordinator,
        scheduler: Optional[ProactiveRefreshScheduler],
        auth: AuthAPIClient,
        lifecycle: SessionLifecycle,
    ) -> None:
        self.http_client = http_client
        self.executor = executor
        self.refresher = refresher
        self.scheduler = scheduler
        self.auth = auth
        self.lifecycle = lifecycle

    async def call(self, endpoint: str, **options: Any) -> Any:
        return await self.executor.call(endpoint, **options)

    async def login(self, credentials: Union[LoginDTO, Mapping[str, Any]]) -> LoginResultDTO:
        return await self.lifecycle.login(credentials)

    async def logout(self) -> None:
        await self.lifecycle.logout()

    def current_session(self) -> Session:
        return self.lifecycle.current_session()

    async def aclose(self) -> None:
        """应用退出：停止定时刷新、取消进行中的刷新并关闭连接"""
        await self.lifecycle.aclose()
        await self.refresher.reset()
        await self.http_client.aclose()

    async def __aenter__(self) -> "AdminAPIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


def create_admin_client(
    cfg: Optional[Settings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AdminAPIClient:
    """根据配置创建会话客户端；``transport`` 用于测试注入"""
    cfg = cfg or default_settings
    http_client = build_http_client(
        cfg.api.base_url,
        timeout=cfg.api.timeout,
        verify_ssl=cfg.api.verify_ssl,
        transport=transport,
    )
    refresher = RefreshCoordinator(http_client, cfg.auth.refresh)
    executor = RequestExecutor(
        client=http_client,
        refresher=refresher,
        debug=cfg.api.debug,
        user_agent=cfg.api.user_agent,
    )
    scheduler = None
    if cfg.session.proactive_refresh_enabled:
        scheduler = ProactiveRefreshScheduler(
            refresher,
            interval_seconds=cfg.session.proactive_refresh_interval_seconds,
        )
    auth = AuthAPIClient(executor, cfg.auth)
    lifecycle = SessionLifecycle(auth, scheduler=scheduler, session_settings=cfg.session)
    executor.register_auth_error_handler(
        lifecycle.handle_unauthorized,
        session_marker=lambda: lifecycle.epoch,
    )
    return AdminAPIClient(
        http_client=http_client,
        executor=executor,
        refresher=refresher,
        scheduler=scheduler,
        auth=auth,
        lifecycle=lifecycle,
    )
