"""
会话领域事件 - 记录状态机的每一次迁移
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
import uuid

from domain.session.entity import Session


@dataclass(frozen=True)
class SessionChanged:
    """会话状态迁移事件"""
    previous: Session
    current: Session
    reason: str
    generation: int
    event_id: Optional[str] = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
