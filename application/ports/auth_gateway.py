"""
Auth gateway port (application/ports) exposing a replaceable protocol.

The session lifecycle depends on this Protocol; infrastructure implements it
on top of the request executor.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from application.dto import ChangePasswordDTO, LoginDTO, UpdateProfileDTO
from domain.session.entity import Identity


@runtime_checkable
class AuthGateway(Protocol):
    """Gateway protocol for the backend's internal auth endpoints.

    Every method raises ``ApiError`` on failure.
    """

    async def login(self, credentials: LoginDTO) -> Identity: ...

    async def fetch_identity(self) -> Identity: ...

    async def logout(self) -> None: ...

    async def update_profile(self, changes: UpdateProfileDTO) -> Identity: ...

    async def change_password(self, request: ChangePasswordDTO) -> None: ...
