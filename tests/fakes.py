"""In-process fakes shared by the test modules.

``FakeBackend`` serves the internal auth API through ``httpx.MockTransport``
and issues a cookie on login/refresh, so credential propagation through the
shared cookie jar is exercised for real.
"""
import asyncio
import itertools
import json
from collections import Counter
from typing import Optional

import httpx

from application.dto import ChangePasswordDTO, LoginDTO, UpdateProfileDTO
from domain.common.exceptions import ApiError
from domain.session.entity import Identity


BASE_URL = "http://admin.example.com"
LOGIN = "/api/v1/internal/auth/login"
ME = "/api/v1/internal/auth/me"
REFRESH = "/api/v1/internal/auth/refresh"
LOGOUT = "/api/v1/internal/auth/logout"
PASSWORD = "/api/v1/internal/auth/me/password"


def _cookies(request: httpx.Request) -> dict:
    raw = request.headers.get("cookie", "")
    pairs = (part.strip().split("=", 1) for part in raw.split(";") if "=" in part)
    return {k: v for k, v in pairs}


class FakeBackend:
    """Cookie-issuing fake of the internal auth API plus arbitrary business routes."""

    def __init__(self) -> None:
        self.user = {
            "id": "usr_1",
            "email": "admin@shop.com",
            "firstName": "Ada",
            "lastName": "Lovelace",
            "role": "ADMIN",
        }
        self.password = "correct-horse"
        self.valid_token: Optional[str] = None
        self.refresh_ok = True
        self.refresh_delay = 0.0
        self.logout_error: Optional[Exception] = None
        self.always_unauthorized: set = set()
        self.routes: dict = {}
        self.delays: dict = {}
        self.login_response: Optional[httpx.Response] = None
        self.calls: Counter = Counter()
        self.requests: list = []
        self._seq = itertools.count(1)

    def expire(self) -> None:
        """Invalidate the access cookie; the refresh endpoint can still renew it."""
        self.valid_token = None

    def _issue(self, status: int, payload=None) -> httpx.Response:
        self.valid_token = f"tok-{next(self._seq)}"
        headers = [("set-cookie", f"access={self.valid_token}; Path=/")]
        if payload is None:
            return httpx.Response(status, headers=headers)
        return httpx.Response(status, json=payload, headers=headers)

    @staticmethod
    def _error(status: int, code: str, message: str) -> httpx.Response:
        return httpx.Response(status, json={"error": code, "message": message, "requestId": "req-1"})

    async def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls[path] += 1
        self.requests.append(request)

        if path == LOGIN:
            if self.login_response is not None:
                return self.login_response
            body = json.loads(request.content or b"{}")
            if body.get("email") == self.user["email"] and body.get("password") == self.password:
                return self._issue(200, {"user": self.user})
            return self._error(401, "INVALID_CREDENTIALS", "Invalid email or password")

        if path == REFRESH:
            if self.refresh_delay:
                await asyncio.sleep(self.refresh_delay)
            if self.refresh_ok:
                return self._issue(200)
            return self._error(401, "UNAUTHORIZED", "Refresh token expired")

        if path == LOGOUT:
            if self.logout_error is not None:
                raise self.logout_error
            self.valid_token = None
            return httpx.Response(204)

        if path in self.delays:
            await asyncio.sleep(self.delays[path])

        token = _cookies(request).get("access")
        if path in self.always_unauthorized or token is None or token != self.valid_token:
            return self._error(401, "UNAUTHORIZED", "Token expired")

        if path == ME and request.method == "GET":
            return httpx.Response(200, json={"user": self.user})
        if path == ME and request.method == "PUT":
            self.user = {**self.user, **json.loads(request.content)}
            return httpx.Response(200, json=self.user)
        if path == PASSWORD:
            return httpx.Response(204)
        if path in self.routes:
            status, payload = self.routes[path]
            return httpx.Response(status, json=payload)
        return httpx.Response(200, json={"ok": True, "path": path})


class StubCoordinator:
    """Counts refresh calls and answers with a fixed outcome."""

    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.calls = 0

    async def refresh(self) -> bool:
        self.calls += 1
        return self.result


class StubGateway:
    """In-memory AuthGateway; ``probe_gate`` lets tests hold the identity probe open."""

    def __init__(self) -> None:
        self.login_user = Identity(id="u-login", email="login@shop.com", role="ADMIN")
        self.probe_user = Identity(id="u-probe", email="probe@shop.com", role="DEVELOPER")
        self.login_error: Optional[ApiError] = None
        self.probe_error: Optional[ApiError] = None
        self.logout_error: Optional[Exception] = None
        self.logout_delay = 0.0
        self.probe_gate: Optional[asyncio.Event] = None
        self.calls: Counter = Counter()

    async def login(self, credentials: LoginDTO) -> Identity:
        self.calls["login"] += 1
        if self.login_error is not None:
            raise self.login_error
        return self.login_user

    async def fetch_identity(self) -> Identity:
        self.calls["fetch_identity"] += 1
        if self.probe_gate is not None:
            await self.probe_gate.wait()
        if self.probe_error is not None:
            raise self.probe_error
        return self.probe_user

    async def logout(self) -> None:
        self.calls["logout"] += 1
        if self.logout_delay:
            await asyncio.sleep(self.logout_delay)
        if self.logout_error is not None:
            raise self.logout_error

    async def update_profile(self, changes: UpdateProfileDTO) -> Identity:
        self.calls["update_profile"] += 1
        return Identity(
            id=self.login_user.id,
            email=self.login_user.email,
            role=self.login_user.role,
            first_name=changes.first_name,
            last_name=changes.last_name,
        )

    async def change_password(self, request: ChangePasswordDTO) -> None:
        self.calls["change_password"] += 1

