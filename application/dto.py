"""
数据传输对象（DTO）- 应用层与后端接口之间的数据传输

后端使用 camelCase 字段名，DTO 内部使用 snake_case，通过别名互转。
"""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from domain.session.entity import Identity


class DTOBase(BaseModel):
    """Base DTO: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IdentityDTO(DTOBase):
    """身份信息DTO"""
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @classmethod
    def from_payload(cls, payload: Any) -> "IdentityDTO":
        """Accept both ``{"user": {...}}`` and a bare identity object."""
        if isinstance(payload, dict) and isinstance(payload.get("user"), dict):
            payload = payload["user"]
        return cls.model_validate(payload)

    def to_entity(self) -> Identity:
        return Identity(
            id=self.id,
            email=self.email,
            role=self.role,
            first_name=self.first_name,
            last_name=self.last_name,
        )


class AuthResponseDTO(DTOBase):
    """登录响应DTO"""
    user: IdentityDTO


class LoginDTO(DTOBase):
    """登录DTO"""
    email: EmailStr = Field(..., description="邮箱地址")
    password: str = Field(..., min_length=1, description="密码")
    remember_me: Optional[bool] = Field(None, description="记住登录状态")


class LoginResultDTO(BaseModel):
    """登录结果：失败时 error 为后端返回的可读消息"""
    success: bool
    error: Optional[str] = None
    user: Optional[Identity] = None


class UpdateProfileDTO(DTOBase):
    """资料更新DTO"""
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)


class ChangePasswordDTO(DTOBase):
    """修改密码DTO"""
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, description="新密码，至少8位")

    @model_validator(mode="after")
    def _differs_from_current(self):
        if self.new_password == self.current_password:
            raise ValueError("New password must differ from current password")
        return self
