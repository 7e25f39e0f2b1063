"""领域层异常定义：客户端唯一对外抛出的 ApiError。

ApiError 放在领域层，应用层可以直接捕获而无需反向依赖基础设施层。
分类谓词全部由 code/http_status 推导，不单独存储。
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from shared.codes import AUTH_ERROR_CODES, VALIDATION_ERROR_CODES, ErrorCode


class ErrorCategory(str, Enum):
    """错误分类（闭集）"""

    AUTH = "auth"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    TRANSPORT = "transport"
    OTHER = "other"


class ApiError(Exception):
    """Failed API call, built from the backend error body or the HTTP status.

    Instances are immutable: every attribute is exposed through a read-only
    property. ``http_status`` is ``0`` when no response was received.
    """

    def __init__(
        self,
        code: str,
        http_status: int,
        message: str,
        details: Optional[dict[str, Any]] = None,
        request_id: Optional[str] = None,
        timestamp: Optional[str] = None,
        synthesized: bool = False,
    ) -> None:
        self._code = str(code)
        self._http_status = int(http_status)
        self._message = message
        self._details = dict(details) if details else None
        self._request_id = request_id
        self._timestamp = timestamp
        self._synthesized = bool(synthesized)
        super().__init__(message)

    @property
    def code(self) -> str:
        return self._code

    @property
    def http_status(self) -> int:
        return self._http_status

    @property
    def message(self) -> str:
        return self._message

    @property
    def details(self) -> Optional[dict[str, Any]]:
        return dict(self._details) if self._details is not None else None

    @property
    def request_id(self) -> Optional[str]:
        return self._request_id

    @property
    def timestamp(self) -> Optional[str]:
        return self._timestamp

    @property
    def is_synthesized(self) -> bool:
        """True when the client built the error itself instead of reading a backend error body."""
        return self._synthesized

    # 分类谓词
    @property
    def is_auth_error(self) -> bool:
        return self._http_status == 401 or self._code in AUTH_ERROR_CODES

    @property
    def is_validation_error(self) -> bool:
        return self._http_status == 400 or self._code in VALIDATION_ERROR_CODES

    @property
    def is_not_found_error(self) -> bool:
        return self._http_status == 404 or "NOT_FOUND" in self._code

    @property
    def is_conflict_error(self) -> bool:
        return (
            self._http_status == 409
            or "ALREADY_EXISTS" in self._code
            or self._code == ErrorCode.DUPLICATE_SKU.value
        )

    @property
    def is_transport_error(self) -> bool:
        return self._code == ErrorCode.NETWORK_ERROR.value

    @property
    def category(self) -> ErrorCategory:
        """First matching class in the order auth, validation, not_found, conflict, transport."""
        if self.is_auth_error:
            return ErrorCategory.AUTH
        if self.is_validation_error:
            return ErrorCategory.VALIDATION
        if self.is_not_found_error:
            return ErrorCategory.NOT_FOUND
        if self.is_conflict_error:
            return ErrorCategory.CONFLICT
        if self.is_transport_error:
            return ErrorCategory.TRANSPORT
        return ErrorCategory.OTHER

    @property
    def field_errors(self) -> dict[str, Any]:
        """Field-level detail map for form display; empty unless a validation error."""
        if not self.is_validation_error or not self._details:
            return {}
        return dict(self._details)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self._code,
            "message": self._message,
            "status": self._http_status,
            "details": self.details,
            "requestId": self._request_id,
            "timestamp": self._timestamp,
        }

    def __str__(self) -> str:
        parts = [self._message]
        if self._http_status:
            parts.append(f"Status: {self._http_status}")
        if self._request_id:
            parts.append(f"Request ID: {self._request_id}")
        return " | ".join(parts)

    def __repr__(self) -> str:
        return f"ApiError(code={self._code!r}, http_status={self._http_status}, message={self._message!r})"
