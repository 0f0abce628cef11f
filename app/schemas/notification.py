from datetime import datetime
from typing import Any, Dict, Optional

from .common import CamelModel


class NotificationResponse(CamelModel):
    id: str
    recipient_id: Optional[str] = None
    recipient_role: Optional[str] = None
    type: str
    title: str
    message: str
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    read_at: Optional[datetime] = None
    read: bool = False

    @classmethod
    def from_model(cls, notification) -> "NotificationResponse":
        return cls(
            id=notification.id,
            recipient_id=notification.recipient_id,
            recipient_role=notification.recipient_role,
            type=notification.type,
            title=notification.title,
            message=notification.message,
            metadata=notification.meta,
            created_at=notification.created_at,
            read_at=notification.read_at,
            read=bool(notification.is_read) or notification.read_at is not None,
        )
