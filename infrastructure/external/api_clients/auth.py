"""
内部认证接口客户端 - AuthGateway 的 HTTP 实现
"""
from __future__ import annotations

from pydantic import ValidationError

from application.dto import (
    AuthResponseDTO,
    ChangePasswordDTO,
    IdentityDTO,
    LoginDTO,
    UpdateProfileDTO,
)
from core.config import AuthEndpointSettings
from domain.common.exceptions import ApiError
from domain.session.entity import Identity
from infrastructure.external.api_clients.base import RequestExecutor
from shared.codes import ErrorCode


def _invalid_identity(exc: ValidationError) -> ApiError:
    return ApiError(
        code=ErrorCode.INVALID_RESPONSE.value,
        http_status=200,
        message="Identity payload is malformed",
        details={"errors": exc.errors(include_url=False)},
        synthesized=True,
    )


class AuthAPIClient:
    """
    认证端点封装

    登录/登出关闭 401 自动恢复：登录失败是凭据错误而非会话过期，
    登出不应触发刷新。
    """

    def __init__(self, executor: RequestExecutor, endpoints: AuthEndpointSettings | None = None):
        self._executor = executor
        self._endpoints = endpoints or AuthEndpointSettings()

    async def login(self, credentials: LoginDTO) -> Identity:
        payload = await self._executor.post(
            self._endpoints.login,
            json_data=credentials,
            auth_recovery=False,
        )
        try:
            return AuthResponseDTO.model_validate(payload).user.to_entity()
        except ValidationError as exc:
            raise _invalid_identity(exc) from exc

    async def fetch_identity(self) -> Identity:
        payload = await self._executor.get(self._endpoints.me)
        try:
            return IdentityDTO.from_payload(payload).to_entity()
        except ValidationError as exc:
            raise _invalid_identity(exc) from exc

    async def logout(self) -> None:
        await self._executor.post(self._endpoints.logout, auth_recovery=False)

    async def update_profile(self, changes: UpdateProfileDTO) -> Identity:
        payload = await self._executor.put(self._endpoints.me, json_data=changes)
        try:
            return IdentityDTO.from_payload(payload).to_entity()
        except ValidationError as exc:
            raise _invalid_identity(exc) from exc

    async def change_password(self, request: ChangePasswordDTO) -> None:
        await self._executor.put(self._endpoints.password, json_data=request)
