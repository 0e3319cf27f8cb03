"""Domain models for user notifications."""
from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, field_validator

from app.utils.coerce import parse_timestamp


class Notification(BaseModel):
    """A notification addressed to a portal user.

    ``type`` is free-form on the backend; the portal renders
    "assignment", "grade" and "announcement" specially.
    """
    id: str
    recipient_id: str
    sender_id: Optional[str] = None
    title: str
    message: Optional[str] = None
    type: Optional[str] = None
    is_read: bool = False
    created_at: Optional[datetime] = None

    class Config:
        frozen = True

    @field_validator("is_read", mode="before")
    @classmethod
    def _null_is_unread(cls, v: Any) -> Any:
        return False if v is None else v

    @field_validator("created_at", mode="before")
    @classmethod
    def _parse_date(cls, v: Any) -> Optional[datetime]:
        return parse_timestamp(v)


class NotificationList(BaseModel):
    """Notifications for a user, newest first, with the unread count."""
    notifications: List[Notification]
    unread_count: int
