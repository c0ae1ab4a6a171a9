"""
Event handlers keyed by event_type.

Handlers must tolerate re-delivery of the same event_id: a duplicate produces
a second notification rather than an error.
"""

from datetime import datetime
from typing import Awaitable, Callable, Dict

from shared.logging import get_logger
from shared.events import DomainEvent, EMPLOYEE_CREATED
from .history import NotificationHistory
from .models import NotificationRecord, new_notification_id

EventHandler = Callable[[DomainEvent], Awaitable[NotificationRecord]]

logger = get_logger("notifications.handlers")


def build_welcome_notification(event: DomainEvent) -> NotificationRecord:
    """Welcome email for a newly created employee."""
    name = event.record_name or "Unknown"
    department = event.department or "Unknown"

    return NotificationRecord(
        id=new_notification_id(event.record_id),
        type="employee_welcome",
        event_id=event.event_id,
        recipient_name=name,
        recipient_email=event.record_email,
        record_id=event.record_id,
        department=department,
        subject=f"Welcome to the team, {name}!",
        content=f"Welcome to the {department} department. We're excited to have you!",
        created_at=event.timestamp.isoformat(),
        processed_at=datetime.now().isoformat(),
    )


def employee_created_handler(history: NotificationHistory) -> EventHandler:
    """Handler that records a welcome notification in history."""

    async def handle(event: DomainEvent) -> NotificationRecord:
        logger.info(
            "Processing welcome notification",
            employee_id=event.record_id,
            recipient=event.record_name
        )
        notification = build_welcome_notification(event)
        await history.append(notification)
        logger.info("Notification processed", notification_id=notification.id)
        return notification

    return handle


def default_handlers(history: NotificationHistory) -> Dict[str, EventHandler]:
    """Handlers registered by the notifications service."""
    return {
        EMPLOYEE_CREATED: employee_created_handler(history),
    }
