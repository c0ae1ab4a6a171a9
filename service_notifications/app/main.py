"""
Notifications service for the Employee Platform.
"""

from typing import Optional

from fastapi import Query
from fastapi.responses import JSONResponse
from shared.base_service import BaseService
from shared.cache_store import RedisCacheStore
from shared.config import ServiceConfig
from shared.errors import CacheUnavailable
from shared.event_bus import EventBus
from shared.retry import RetryConfig

from .handlers import default_handlers
from .history import NotificationHistory, MAX_PAGE_SIZE
from .models import NotificationListResponse, NotificationMetrics, Pagination
from .subscriber import EventSubscriber


class NotificationsService(BaseService):
    """Notifications service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None, cache=None):
        super().__init__("notifications", 5001, config)

        self.cache = cache or RedisCacheStore(self.config.redis_url)
        self.event_bus = EventBus(self.cache, self.config.event_channel)
        self.history = NotificationHistory(self.cache, max_history=self.config.max_history)
        self.subscriber = EventSubscriber(
            self.event_bus,
            default_handlers(self.history),
            retry_config=RetryConfig(
                max_attempts=self.config.subscriber_max_attempts,
                base_delay=self.config.subscriber_base_delay,
                jitter=False
            ),
            poll_timeout=self.config.subscriber_poll_timeout,
            metrics=self.metrics
        )

        self._setup_notification_routes()
        self.app.state.notifications_service = self

    def _setup_notification_routes(self):
        """Set up notification-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "notifications",
                "message": "Employee Platform - Notifications Service",
                "version": "1.0.0",
                "capabilities": ["event_listener", "notification_history"],
                "channel": self.event_bus.channel
            }

        @self.app.get("/api/notifications", response_model=NotificationListResponse)
        async def list_notifications(
            limit: int = Query(20, ge=1),
            offset: int = Query(0, ge=0)
        ):
            """Paginated notification history, most recent first."""
            limit = min(limit, MAX_PAGE_SIZE)

            try:
                page = await self.history.page(offset=offset, limit=limit)
                total_sent = await self.history.total_sent()
            except CacheUnavailable as e:
                self.logger.warning("Notification history unavailable", error=e.message)
                return NotificationListResponse(
                    data=[],
                    pagination=Pagination(limit=limit, offset=offset, total=0, has_more=False),
                    metrics=NotificationMetrics(
                        total_notifications=0,
                        total_sent=0,
                        processed_events=self.subscriber.processed_events
                    ),
                    degraded=True
                )

            return NotificationListResponse(
                data=[item.model_dump() for item in page.items],
                pagination=Pagination(
                    limit=page.limit,
                    offset=page.offset,
                    total=page.total,
                    has_more=page.has_more
                ),
                metrics=NotificationMetrics(
                    total_notifications=page.total,
                    total_sent=total_sent,
                    processed_events=self.subscriber.processed_events
                ),
                degraded=self.subscriber.is_degraded
            )

        @self.app.get("/stats")
        async def get_stats():
            """Notification counters and listener status."""
            degraded = self.subscriber.is_degraded
            try:
                snapshot = await self.history.page(offset=0, limit=1)
                total_notifications = snapshot.total
                total_sent = await self.history.total_sent()
            except CacheUnavailable:
                total_notifications = 0
                total_sent = 0
                degraded = True

            return JSONResponse(content={
                "total_notifications": total_notifications,
                "total_sent": total_sent,
                "processed_events": self.subscriber.processed_events,
                "event_listener_active": self.subscriber.is_listening,
                "subscriber_state": self.subscriber.state.value,
                "degraded": degraded
            })

    async def _check_dependencies(self):
        """Check notifications service dependencies."""
        return {
            "cache": await self.cache.health_status(),
            "event_listener": self.subscriber.health_status()
        }

    async def _health_details(self):
        """Notification counters reported alongside the checks."""
        try:
            total_sent = await self.history.total_sent()
        except CacheUnavailable:
            total_sent = 0

        return {
            "total_sent": total_sent,
            "processed_events": self.subscriber.processed_events
        }

    async def start(self):
        """Start notifications service components."""
        await self.cache.start()
        self.subscriber.start()
        self.logger.info("Notifications service components started")

    async def stop(self):
        """Stop notifications service components."""
        try:
            await self.subscriber.stop()
        finally:
            await self.cache.stop()
        self.logger.info("Notifications service components stopped")


def create_app(**kwargs):
    """Create notifications service application."""
    service = NotificationsService(**kwargs)
    return service.app


if __name__ == "__main__":
    service = NotificationsService()
    service.run()
