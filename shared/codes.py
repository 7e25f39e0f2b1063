"""
Shared error codes used across layers (Domain/Infrastructure/Application).

Backend error bodies carry a string code in their ``error`` field; this
module is the single source of truth for the codes the client branches on,
plus the codes it synthesizes itself when a body is missing or unusable.
"""
from enum import Enum


class ErrorCode(str, Enum):
    """错误码定义（单一来源）"""

    # 认证错误
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    FORBIDDEN = "FORBIDDEN"

    # 参数错误
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"

    # 资源错误
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    DUPLICATE_SKU = "DUPLICATE_SKU"

    # 客户端合成的错误码
    HTTP_ERROR = "HTTP_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"


AUTH_ERROR_CODES = frozenset({ErrorCode.UNAUTHORIZED.value, ErrorCode.INVALID_CREDENTIALS.value})
VALIDATION_ERROR_CODES = frozenset({ErrorCode.VALIDATION_ERROR.value, ErrorCode.INVALID_ARGUMENT.value})


__all__ = ["ErrorCode", "AUTH_ERROR_CODES", "VALIDATION_ERROR_CODES"]
