"""
API客户端模块

提供带会话凭据、自动刷新与会话状态管理的后台 API 客户端
"""
from .auth import AuthAPIClient
from .base import RequestExecutor, HTTPMethod, build_http_client
from .errors import classify_response, fallback_error, transport_error
from .factory import AdminAPIClient, create_admin_client
from .refresh import RefreshCoordinator
from .scheduler import ProactiveRefreshScheduler

__all__ = [
    "AdminAPIClient",
    "AuthAPIClient",
    "HTTPMethod",
    "ProactiveRefreshScheduler",
    "RefreshCoordinator",
    "RequestExecutor",
    "build_http_client",
    "classify_response",
    "create_admin_client",
    "fallback_error",
    "transport_error",
]
