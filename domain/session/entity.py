"""
会话领域实体 - 身份信息与会话状态（标签联合）
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional


DEFAULT_ADMIN_ROLES = ("ADMIN", "CUSTOMER_SERVICE", "WAREHOUSE_MANAGER", "DEVELOPER")

ROLE_DISPLAY_NAMES = {
    "ADMIN": "Admin",
    "DEVELOPER": "Developer",
    "CUSTOMER_SERVICE": "Customer Service",
    "WAREHOUSE_MANAGER": "Warehouse Manager",
}


@dataclass(frozen=True)
class Identity:
    """已认证的内部用户"""

    id: str
    email: str
    role: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        if self.first_name:
            return self.first_name
        return self.email.split("@")[0]

    @property
    def initials(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name[0]}{self.last_name[0]}".upper()
        if self.first_name:
            return self.first_name[0].upper()
        return self.email[:1].upper() or "?"

    @property
    def role_display_name(self) -> str:
        return ROLE_DISPLAY_NAMES.get(self.role, self.role)

    def is_admin(self, admin_roles: Iterable[str] = DEFAULT_ADMIN_ROLES) -> bool:
        """业务规则：角色是否允许访问后台"""
        return self.role in set(admin_roles)


class SessionStatus(str, Enum):
    ANONYMOUS = "anonymous"
    CHECKING = "checking"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True)
class Session:
    """会话状态值对象

    ``user`` is present exactly when the status is AUTHENTICATED; use the
    classmethod constructors rather than building instances by hand.
    """

    status: SessionStatus
    user: Optional[Identity] = None

    def __post_init__(self) -> None:
        if self.status is SessionStatus.AUTHENTICATED and self.user is None:
            raise ValueError("authenticated session requires a user")
        if self.status is not SessionStatus.AUTHENTICATED and self.user is not None:
            raise ValueError(f"{self.status.value} session cannot carry a user")

    @classmethod
    def anonymous(cls) -> "Session":
        return cls(SessionStatus.ANONYMOUS)

    @classmethod
    def checking(cls) -> "Session":
        return cls(SessionStatus.CHECKING)

    @classmethod
    def authenticated(cls, user: Identity) -> "Session":
        return cls(SessionStatus.AUTHENTICATED, user)

    @classmethod
    def unauthenticated(cls) -> "Session":
        return cls(SessionStatus.UNAUTHENTICATED)

    @property
    def is_authenticated(self) -> bool:
        return self.status is SessionStatus.AUTHENTICATED

    @property
    def is_loading(self) -> bool:
        return self.status in (SessionStatus.ANONYMOUS, SessionStatus.CHECKING)
