"""
REST API 请求执行器

提供带会话凭据的 HTTP 请求功能，包括：
- 共享 Cookie（凭据随每个请求携带）
- 错误分类（ApiError）
- 401 时单次刷新凭据并重试一次
- 请求/响应日志
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Type, TypeVar, Union

import httpx
from pydantic import BaseModel, ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_none

from core.logging_config import get_logger
from domain.common.exceptions import ApiError
from shared.codes import ErrorCode
from infrastructure.external.api_clients.errors import (
    classify_response,
    invalid_response_error,
    transport_error,
)
from infrastructure.external.api_clients.refresh import RefreshCoordinator

logger = get_logger(__name__)

T = TypeVar('T', bound=BaseModel)

# (error, marker captured when the request started)
AuthErrorHandler = Callable[[ApiError, Any], Awaitable[None]]
SessionMarker = Callable[[], Any]

DEFAULT_REFRESH_ENDPOINT = "/api/v1/internal/auth/refresh"


class HTTPMethod(Enum):
    """HTTP方法枚举"""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class _CredentialsRenewed(Exception):
    """401 recovered by a successful refresh; the request is attempted once more."""

    def __init__(self, error: ApiError):
        self.error = error
        super().__init__(error.message)


def build_http_client(
    base_url: str,
    timeout: float = 30.0,
    verify_ssl: bool = True,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """创建共享的 HTTP 客户端；其 Cookie 容器即会话凭据存储"""
    return httpx.AsyncClient(
        base_url=base_url.rstrip('/'),
        timeout=httpx.Timeout(timeout),
        verify=verify_ssl,
        follow_redirects=True,
        transport=transport,
    )


class RequestExecutor:
    """
    带凭据的请求执行器

    所有请求共享同一个 ``httpx.AsyncClient``，服务端在登录/刷新时下发的
    Cookie 会被自动携带。遇到 401 时交给 ``RefreshCoordinator``，刷新成功后
    原请求最多重试一次。
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        verify_ssl: bool = True,
        debug: bool = False,
        client: Optional[httpx.AsyncClient] = None,
        refresher: Optional[RefreshCoordinator] = None,
        refresh_endpoint: str = DEFAULT_REFRESH_ENDPOINT,
        user_agent: str = "Admin-Session-Client/1.0",
    ):
        """
        初始化请求执行器

        Args:
            base_url: API基础URL（传入 client 时忽略）
            timeout: 请求超时时间（秒）
            headers: 默认请求头
            verify_ssl: 是否验证SSL证书
            debug: 是否记录请求/响应调试日志
            client: 共享的HTTP客户端，不传则自行创建并负责关闭
            refresher: 凭据刷新协调器，不传则基于同一客户端创建
            refresh_endpoint: 刷新端点（仅在自行创建 refresher 时使用）
            user_agent: User-Agent 请求头
        """
        self.debug = debug
        self.default_headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": user_agent,
        }
        if headers:
            self.default_headers.update(headers)

        self._owns_client = client is None
        self._client = client or build_http_client(base_url, timeout=timeout, verify_ssl=verify_ssl)
        self._refresher = refresher or RefreshCoordinator(self._client, refresh_endpoint)
        self._auth_error_handler: Optional[AuthErrorHandler] = None
        self._session_marker: Optional[SessionMarker] = None

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    @property
    def refresher(self) -> RefreshCoordinator:
        return self._refresher

    def register_auth_error_handler(
        self,
        handler: Optional[AuthErrorHandler],
        *,
        session_marker: Optional[SessionMarker] = None,
    ) -> None:
        """
        注册 401 无法恢复时的回调（会话状态机据此转为未认证）

        ``session_marker`` 在请求发起时取值，并随错误一起交给回调，
        回调据此忽略发起后会话已被替换的旧请求。
        """
        self._auth_error_handler = handler
        self._session_marker = session_marker

    async def aclose(self) -> None:
        """关闭HTTP客户端（仅关闭自行创建的客户端）"""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    def _log_request(self, method: str, url: str, attempt: int, **kwargs):
        if self.debug:
            logger.debug(
                "api_request",
                method=method,
                url=url,
                attempt=attempt,
                params=kwargs.get("params"),
            )

    def _log_response(self, method: str, url: str, response: httpx.Response, elapsed_ms: float):
        if self.debug:
            logger.debug(
                "api_response",
                method=method,
                url=url,
                status_code=response.status_code,
                elapsed_ms=round(elapsed_ms, 2),
                request_id=response.headers.get("x-request-id"),
            )

    async def call(
        self,
        endpoint: str,
        *,
        method: Union[str, HTTPMethod] = HTTPMethod.GET,
        json_data: Optional[Union[Dict[str, Any], BaseModel]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        auth_recovery: bool = True,
        response_model: Optional[Type[T]] = None,
    ) -> Any:
        """
        发送请求并返回解析后的 JSON

        Args:
            endpoint: API端点（相对 base_url）
            method: HTTP方法
            json_data: JSON请求体
            params: 查询参数
            headers: 额外请求头（覆盖默认值）
            auth_recovery: 401 时是否尝试刷新凭据并重试；登录/登出请求应关闭
            response_model: 可选的 pydantic 模型，用于校验响应

        Returns:
            解析后的响应体；空响应返回 None

        Raises:
            ApiError: 非 2xx 响应、网络错误或响应体无法解析
        """
        if isinstance(method, HTTPMethod):
            method = method.value
        method = method.upper()

        request_headers = {**self.default_headers}
        if headers:
            request_headers.update(headers)

        if isinstance(json_data, BaseModel):
            json_data = json_data.model_dump(by_alias=True, exclude_none=True)

        marker = self._session_marker() if self._session_marker is not None else None

        # 至多两次尝试：首次 + 刷新成功后的一次重试
        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(2),
            wait=wait_none(),
            retry=retry_if_exception_type(_CredentialsRenewed),
        )
        async for attempt in retrying:
            with attempt:
                payload = await self._attempt(
                    method,
                    endpoint,
                    attempt=attempt.retry_state.attempt_number,
                    json_data=json_data,
                    params=params,
                    headers=request_headers,
                    auth_recovery=auth_recovery,
                    marker=marker,
                )
        if response_model is None or payload is None:
            return payload
        try:
            return response_model.model_validate(payload)
        except ValidationError as exc:
            raise ApiError(
                code=ErrorCode.INVALID_RESPONSE.value,
                http_status=200,
                message=f"Unexpected response shape: {exc.error_count()} validation error(s)",
                synthesized=True,
            ) from exc

    async def _attempt(
        self,
        method: str,
        endpoint: str,
        *,
        attempt: int,
        json_data: Optional[Dict[str, Any]],
        params: Optional[Dict[str, Any]],
        headers: Dict[str, str],
        auth_recovery: bool,
        marker: Any = None,
    ) -> Any:
        self._log_request(method, endpoint, attempt, params=params)
        start_time = datetime.now()
        try:
            response = await self._client.request(
                method=method,
                url=endpoint,
                params=params,
                json=json_data,
                headers=headers,
            )
        except httpx.TransportError as exc:
            logger.warning("api_transport_error", method=method, url=endpoint, error=str(exc))
            raise transport_error(exc) from exc
        elapsed = (datetime.now() - start_time).total_seconds() * 1000
        self._log_response(method, endpoint, response, elapsed)

        if response.is_success:
            return self._parse_success(response)

        error = classify_response(response)
        if response.status_code != 401 or not auth_recovery:
            raise error

        if attempt == 1 and await self._refresher.refresh():
            logger.info("request_retry_after_refresh", method=method, url=endpoint)
            raise _CredentialsRenewed(error)

        logger.warning(
            "request_unauthorized",
            method=method,
            url=endpoint,
            after_retry=attempt > 1,
            request_id=error.request_id,
        )
        if self._auth_error_handler is not None:
            await self._auth_error_handler(error, marker)
        raise error

    @staticmethod
    def _parse_success(response: httpx.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise invalid_response_error(response) from exc

    async def get(self, endpoint: str, **kwargs) -> Any:
        """GET请求"""
        return await self.call(endpoint, method=HTTPMethod.GET, **kwargs)

    async def post(self, endpoint: str, **kwargs) -> Any:
        """POST请求"""
        return await self.call(endpoint, method=HTTPMethod.POST, **kwargs)

    async def put(self, endpoint: str, **kwargs) -> Any:
        """PUT请求"""
        return await self.call(endpoint, method=HTTPMethod.PUT, **kwargs)

    async def patch(self, endpoint: str, **kwargs) -> Any:
        """PATCH请求"""
        return await self.call(endpoint, method=HTTPMethod.PATCH, **kwargs)

    async def delete(self, endpoint: str, **kwargs) -> Any:
        """DELETE请求"""
        return await self.call(endpoint, method=HTTPMethod.DELETE, **kwargs)
