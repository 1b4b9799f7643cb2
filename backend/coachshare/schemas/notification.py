import uuid
from datetime import datetime

from pydantic import BaseModel


class NotificationRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    title: str
    message: str
    type: str
    related_id: str | None = None
    read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationPage(BaseModel):
    notifications: list[NotificationRead]
    total: int
    total_pages: int
    current_page: int


class MarkAllReadResponse(BaseModel):
    updated: int
