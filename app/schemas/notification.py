"""
Notification schemas
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, field_serializer
from app.utils.datetime_utils import iso_8601_utc


class NotificationOut(BaseModel):
    id: int
    title: str
    message: str
    category: str
    link: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("read_at", "created_at", when_used="always")
    def _ser_datetime(self, dt):
        return iso_8601_utc(dt)


class UnreadCount(BaseModel):
    unread: int


class MarkAllReadResult(BaseModel):
    updated: int
