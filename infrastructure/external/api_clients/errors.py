"""
Error classification for failed HTTP responses.

Turns a non-2xx ``httpx.Response`` (or a transport failure) into an
``ApiError``. Backend bodies follow ``{error, message, details?, requestId?,
timestamp?}``; anything else falls back to a status-derived code/message.
"""
from __future__ import annotations

from typing import Any, Optional

import httpx

from domain.common.exceptions import ApiError
from shared.codes import ErrorCode


FALLBACK_ERRORS: dict[int, tuple[str, str]] = {
    401: (ErrorCode.UNAUTHORIZED.value, "Authentication required"),
    403: (ErrorCode.FORBIDDEN.value, "Access denied"),
    404: (ErrorCode.NOT_FOUND.value, "Resource not found"),
}


def fallback_error(status_code: int) -> tuple[str, str]:
    """Code and message used when the body carries no usable error shape."""
    if status_code in FALLBACK_ERRORS:
        return FALLBACK_ERRORS[status_code]
    return ErrorCode.HTTP_ERROR.value, f"Request failed with status {status_code}"


def _parse_body(response: httpx.Response) -> Optional[dict[str, Any]]:
    if not response.content:
        return None
    try:
        payload = response.json()
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    message = payload.get("message")
    if not (isinstance(error, str) and error) and not (isinstance(message, str) and message):
        return None
    return payload


def classify_response(response: httpx.Response) -> ApiError:
    """Build an ``ApiError`` from a failed response."""
    status = response.status_code
    header_request_id = response.headers.get("x-request-id")
    fallback_code, fallback_message = fallback_error(status)

    payload = _parse_body(response)
    if payload is None:
        return ApiError(
            code=fallback_code,
            http_status=status,
            message=fallback_message,
            request_id=header_request_id,
            synthesized=True,
        )

    error = payload.get("error")
    message = payload.get("message")
    details = payload.get("details")
    timestamp = payload.get("timestamp")
    return ApiError(
        code=error if isinstance(error, str) and error else fallback_code,
        http_status=status,
        message=message if isinstance(message, str) and message else fallback_message,
        details=details if isinstance(details, dict) else None,
        request_id=payload.get("requestId") or header_request_id,
        timestamp=str(timestamp) if timestamp is not None else None,
    )


def transport_error(exc: Exception) -> ApiError:
    """No response was received (connection failure, timeout, ...)."""
    if isinstance(exc, httpx.TimeoutException):
        message = "Request timed out"
    else:
        message = f"Network error: {exc}" if str(exc) else "Network error"
    return ApiError(code=ErrorCode.NETWORK_ERROR.value, http_status=0, message=message, synthesized=True)


def invalid_response_error(response: httpx.Response) -> ApiError:
    return ApiError(
        code=ErrorCode.INVALID_RESPONSE.value,
        http_status=response.status_code,
        message="Response body is not valid JSON",
        request_id=response.headers.get("x-request-id"),
        synthesized=True,
    )
