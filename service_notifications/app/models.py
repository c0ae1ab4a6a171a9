"""
Notification data models.
"""

from typing import Dict, Any, Optional, List
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field


class SubscriberState(str, Enum):
    """Event subscriber lifecycle states."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    LISTENING = "listening"
    DEGRADED = "degraded"
    STOPPED = "stopped"


def new_notification_id(record_id: int) -> str:
    """Generate a notification identifier, ``notif_<record_id>_<uuid4 hex>``."""
    return f"notif_{record_id}_{uuid4().hex}"


class NotificationRecord(BaseModel):
    """A processed notification kept in history."""
    id: str
    type: str
    event_id: str = Field(..., description="Back-reference to the originating event")
    recipient_name: str
    recipient_email: str
    record_id: int
    department: str
    status: str = "processed"
    channel: str = "email"
    priority: str = "normal"
    subject: str
    content: str
    created_at: Optional[str] = None
    processed_at: str
    source_service: str = "notification-service"
    target_service: str = "user-service"


class Pagination(BaseModel):
    limit: int
    offset: int
    total: int
    has_more: bool


class NotificationMetrics(BaseModel):
    total_notifications: int
    total_sent: int
    processed_events: int


class NotificationListResponse(BaseModel):
    """Response model for the notification listing."""
    data: List[Dict[str, Any]]
    pagination: Pagination
    metrics: NotificationMetrics
    degraded: bool = False
