"""
会话应用服务 - 会话状态机（Anonymous → Checking → Authenticated | Unauthenticated）

表现层只观察这里的 Session 值与 SessionChanged 事件；导航由表现层完成，
本服务只给出是否需要跳转的判断（redirect_for）。
"""
from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Callable, List, Mapping, Optional, Union

from pydantic import ValidationError

from application.dto import ChangePasswordDTO, LoginDTO, LoginResultDTO, UpdateProfileDTO
from application.ports.auth_gateway import AuthGateway
from core.config import SessionSettings
from core.logging_config import get_logger
from domain.common.exceptions import ApiError
from domain.session.entity import Identity, Session, SessionStatus
from domain.session.events import SessionChanged

if TYPE_CHECKING:
    from infrastructure.external.api_clients.scheduler import ProactiveRefreshScheduler


logger = get_logger(__name__)

SessionListener = Callable[[SessionChanged], None]

UNEXPECTED_LOGIN_ERROR = "An unexpected error occurred"


class SessionLifecycle:
    """
    会话状态机

    所有状态变更都经过 ``_transition``，每次变更递增 generation。
    身份探测在发起时记录 generation，返回时若已被登录/登出等变更取代，
    则丢弃探测结果，避免旧结果覆盖新状态。
    """

    def __init__(
        self,
        gateway: AuthGateway,
        *,
        scheduler: Optional[ProactiveRefreshScheduler] = None,
        session_settings: Optional[SessionSettings] = None,
    ) -> None:
        cfg = session_settings or SessionSettings()
        self._gateway = gateway
        self._scheduler = scheduler
        self._public_routes = tuple(cfg.public_routes)
        self._login_route = cfg.login_route
        self._home_route = cfg.home_route
        self._admin_roles = tuple(cfg.admin_roles)
        self._logout_timeout = cfg.logout_timeout_seconds

        self._session = Session.anonymous()
        self._generation = 0
        self._epoch = 0
        self._listeners: List[SessionListener] = []

    # 状态读取
    @property
    def session(self) -> Session:
        return self._session

    def current_session(self) -> Session:
        return self._session

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def epoch(self) -> int:
        """Advances only when the session is replaced, not when the same user is refreshed."""
        return self._epoch

    @property
    def has_admin_access(self) -> bool:
        user = self._session.user
        return user is not None and user.is_admin(self._admin_roles)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a transition listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # 路由判断
    def is_public_route(self, path: Optional[str]) -> bool:
        return bool(path) and any(path.startswith(route) for route in self._public_routes)

    def redirect_for(self, path: str) -> Optional[str]:
        """Where the UI should navigate for ``path`` given the current session, if anywhere."""
        if self._session.status is SessionStatus.UNAUTHENTICATED and not self.is_public_route(path):
            return self._login_route
        if self._session.is_authenticated and path == self._login_route:
            return self._home_route
        return None

    # 状态迁移
    async def initialize(self, path: str = "/") -> Session:
        """应用启动：非公开路由上发起身份探测"""
        if self.is_public_route(path):
            logger.debug("identity_probe_skipped", path=path, reason="public_route")
            return self._session
        if self._session.is_authenticated:
            logger.debug("identity_probe_skipped", path=path, reason="already_authenticated")
            return self._session
        return await self.check_identity()

    async def check_identity(self) -> Session:
        """身份探测；已认证时调用即为重新拉取用户信息"""
        if not self._session.is_authenticated:
            self._transition(Session.checking(), reason="identity_probe")
        generation = self._generation

        try:
            user = await self._gateway.fetch_identity()
        except ApiError as exc:
            if self._superseded(generation):
                return self._session
            logger.info("identity_probe_failed", code=exc.code, http_status=exc.http_status)
            await self._enter_unauthenticated("identity_probe_failed")
            return self._session

        if self._superseded(generation):
            return self._session
        self._transition(
            Session.authenticated(user),
            reason="identity_probe",
            same_session=self._session.is_authenticated,
        )
        self._start_scheduler()
        return self._session

    async def login(self, credentials: Union[LoginDTO, Mapping[str, Any]]) -> LoginResultDTO:
        """登录：成功后直接以响应中的身份进入已认证状态，不再重复探测"""
        if not isinstance(credentials, LoginDTO):
            try:
                credentials = LoginDTO.model_validate(credentials)
            except ValidationError as exc:
                first = exc.errors()[0] if exc.errors() else {}
                return LoginResultDTO(success=False, error=str(first.get("msg", "Invalid credentials")))

        try:
            user = await self._gateway.login(credentials)
        except ApiError as exc:
            logger.info("login_failed", code=exc.code, http_status=exc.http_status)
            if exc.is_synthesized:
                return LoginResultDTO(success=False, error=UNEXPECTED_LOGIN_ERROR)
            return LoginResultDTO(success=False, error=exc.message)

        self._transition(Session.authenticated(user), reason="login")
        self._start_scheduler()
        return LoginResultDTO(success=True, user=user)

    async def logout(self) -> None:
        """登出：无论服务端调用成功与否，客户端都进入未认证状态"""
        await self._stop_scheduler()
        try:
            await asyncio.wait_for(self._gateway.logout(), timeout=self._logout_timeout)
        except Exception as exc:
            logger.warning("logout_request_failed", error=str(exc), error_type=type(exc).__name__)
        finally:
            self._transition(Session.unauthenticated(), reason="logout")

    async def handle_unauthorized(self, error: ApiError, epoch: Optional[int] = None) -> None:
        """
        请求执行器的 401 回调：刷新失败后会话过期

        ``epoch`` 为请求发起时的会话纪元；发起后会话已被登录/登出替换的
        旧请求不影响当前会话。
        """
        if self._session.status is not SessionStatus.AUTHENTICATED:
            # Checking 状态由身份探测自行处理结果
            return
        if epoch is not None and epoch != self._epoch:
            logger.info(
                "session_expiry_superseded",
                started_epoch=epoch,
                current_epoch=self._epoch,
                request_id=error.request_id,
            )
            return
        logger.info("session_expired", code=error.code, request_id=error.request_id)
        await self._enter_unauthenticated("session_expired")

    async def update_profile(self, changes: Union[UpdateProfileDTO, Mapping[str, Any]]) -> Identity:
        if not isinstance(changes, UpdateProfileDTO):
            changes = UpdateProfileDTO.model_validate(changes)
        generation = self._generation
        user = await self._gateway.update_profile(changes)
        if self._session.is_authenticated and not self._superseded(generation, "profile_update"):
            self._transition(Session.authenticated(user), reason="profile_updated", same_session=True)
        return user

    async def change_password(self, request: Union[ChangePasswordDTO, Mapping[str, Any]]) -> None:
        if not isinstance(request, ChangePasswordDTO):
            request = ChangePasswordDTO.model_validate(request)
        await self._gateway.change_password(request)

    async def aclose(self) -> None:
        await self._stop_scheduler()

    # 内部
    def _superseded(self, generation: int, operation: str = "identity_probe") -> bool:
        if generation == self._generation:
            return False
        logger.info(
            f"{operation}_superseded",
            started_generation=generation,
            current_generation=self._generation,
            status=self._session.status.value,
        )
        return True

    def _transition(self, new: Session, reason: str, *, same_session: bool = False) -> None:
        previous = self._session
        self._session = new
        self._generation += 1
        if not same_session:
            self._epoch += 1
        event = SessionChanged(
            previous=previous,
            current=new,
            reason=reason,
            generation=self._generation,
        )
        logger.info(
            "session_transition",
            from_status=previous.status.value,
            to_status=new.status.value,
            reason=reason,
            generation=self._generation,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:  # pragma: no cover
                logger.error("session_listener_failed", error=str(exc), reason=reason)

    async def _enter_unauthenticated(self, reason: str) -> None:
        self._transition(Session.unauthenticated(), reason=reason)
        await self._stop_scheduler()

    def _start_scheduler(self) -> None:
        if self._scheduler is not None:
            self._scheduler.start()

    async def _stop_scheduler(self) -> None:
        if self._scheduler is not None:
            await self._scheduler.stop()
