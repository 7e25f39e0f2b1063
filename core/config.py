"""
配置文件 - 项目配置管理
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator
from typing import Optional

from domain.session.entity import DEFAULT_ADMIN_ROLES


def _parse_str_list(v):
    """允许 JSON 字符串或逗号分隔字符串两种格式。"""
    if isinstance(v, (list, tuple)):
        return list(v)
    if isinstance(v, str):
        s = v.strip()
        if s.startswith("[") and s.endswith("]"):
            import json
            try:
                arr = json.loads(s)
                if isinstance(arr, list):
                    return arr
            except ValueError:
                pass
        if "," in s:
            return [item.strip() for item in s.split(",") if item.strip()]
        return [s] if s else []
    return v


class APIClientSettings(BaseModel):
    base_url: str = "http://localhost:8080"
    timeout: float = Field(default=30.0, gt=0)
    verify_ssl: bool = True
    user_agent: str = "Admin-Session-Client/1.0"
    # Log every request/response at DEBUG level
    debug: bool = False

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")


class AuthEndpointSettings(BaseModel):
    login: str = "/api/v1/internal/auth/login"
    me: str = "/api/v1/internal/auth/me"
    refresh: str = "/api/v1/internal/auth/refresh"
    logout: str = "/api/v1/internal/auth/logout"
    password: str = "/api/v1/internal/auth/me/password"


class SessionSettings(BaseModel):
    proactive_refresh_enabled: bool = True
    # Must stay below the server-side credential lifetime; the server does not expose it
    proactive_refresh_interval_seconds: float = Field(default=600.0, gt=0)
    logout_timeout_seconds: float = Field(default=5.0, gt=0)
    public_routes: list[str] = Field(
        default_factory=lambda: ["/login", "/forgot-password", "/reset-password"]
    )
    login_route: str = "/login"
    home_route: str = "/"
    admin_roles: list[str] = Field(default_factory=lambda: list(DEFAULT_ADMIN_ROLES))

    @field_validator("public_routes", "admin_roles", mode="before")
    @classmethod
    def _parse_lists(cls, v):
        return _parse_str_list(v)


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="Admin Session Client")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="development")
    LOG_LEVEL: Optional[str] = Field(default=None, description="覆盖默认日志级别，如 DEBUG/INFO/WARNING")

    # 分组配置：API/端点/会话 采用嵌套模型
    api: APIClientSettings = Field(default_factory=APIClientSettings)
    auth: AuthEndpointSettings = Field(default_factory=AuthEndpointSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def _upper_log_level(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


settings = Settings()
