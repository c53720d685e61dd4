from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ..models.enums import NotificationType


class NotificationResponse(BaseModel):
    id: int
    type: NotificationType
    message: str
    url: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    is_read: bool = False

    class Config:
        from_attributes = True


class UnreadCount(BaseModel):
    count: int
