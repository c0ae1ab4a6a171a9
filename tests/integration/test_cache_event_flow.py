"""
Integration tests for the write -> invalidate -> publish -> notify flow.

Both services' components share one in-memory cache store, standing in for the
single Redis instance they share in deployment.
"""

import pytest
import pytest_asyncio

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_employees.app.caching import CacheCoherentReader, InvalidatingWriter
from service_employees.app.models import EmployeeRecord
from service_notifications.app.handlers import default_handlers
from service_notifications.app.history import NotificationHistory
from service_notifications.app.subscriber import EventSubscriber
from shared.errors import DuplicateKeyError
from shared.event_bus import EventBus
from shared.retry import RetryConfig
from shared.test_helpers import InMemoryCacheStore, InMemoryEmployeeStore, wait_until


class Platform:
    """Employees and notifications components wired to one cache store."""

    def __init__(self):
        self.cache = InMemoryCacheStore()
        self.store = InMemoryEmployeeStore(EmployeeRecord)
        self.bus = EventBus(self.cache, "employee_events")
        self.reader = CacheCoherentReader(self.store, self.cache)
        self.writer = InvalidatingWriter(self.store, self.cache, self.bus)
        self.history = NotificationHistory(self.cache, max_history=100)
        self.subscriber = EventSubscriber(
            EventBus(self.cache, "employee_events"),
            default_handlers(self.history),
            retry_config=RetryConfig(max_attempts=3, base_delay=0.01, jitter=False),
            poll_timeout=0.05
        )


@pytest_asyncio.fixture
async def platform():
    platform = Platform()
    platform.subscriber.start()
    assert await wait_until(lambda: platform.subscriber.is_listening)
    yield platform
    await platform.subscriber.stop()


class TestCacheEventFlow:
    """End-to-end flow across both services."""

    @pytest.mark.asyncio
    async def test_create_produces_welcome_notification(self, platform):
        """A committed write shows up in the listing and in notification history."""
        assert (await platform.reader.read()).payload == []
        await platform.reader.read()

        record = await platform.writer.write(
            {"name": "Ada Lovelace", "email": "ada@example.com", "department": "Engineering"}
        )

        listing = await platform.reader.read()
        assert listing.source == "store"
        assert [row["id"] for row in listing.payload] == [record.id]

        assert await wait_until(lambda: platform.subscriber.processed_events == 1)
        page = await platform.history.page()
        assert page.total == 1
        notification = page.items[0]
        assert notification.record_id == record.id
        assert notification.recipient_email == "ada@example.com"
        assert notification.event_id.startswith("employee.created:")

    @pytest.mark.asyncio
    async def test_rejected_write_produces_no_notification(self, platform):
        fields = {"name": "Ada Lovelace", "email": "ada@example.com", "department": "Engineering"}
        await platform.writer.write(fields)
        assert await wait_until(lambda: platform.subscriber.processed_events == 1)

        with pytest.raises(DuplicateKeyError):
            await platform.writer.write(fields)
        await platform.writer.write({"name": "Grace Hopper", "email": "grace@example.com", "department": "Research"})

        assert await wait_until(lambda: platform.subscriber.processed_events == 2)
        page = await platform.history.page()
        assert [item.recipient_email for item in page.items] == ["grace@example.com", "ada@example.com"]
        assert await platform.history.total_sent() == 2

    @pytest.mark.asyncio
    async def test_history_keeps_most_recent(self, platform):
        for index in range(105):
            await platform.writer.write(
                {"name": f"Employee {index}", "email": f"e{index}@example.com", "department": "Ops"}
            )

        assert await wait_until(lambda: platform.subscriber.processed_events == 105, timeout=5)
        page = await platform.history.page(limit=100)
        assert page.total == 100
        assert page.items[0].recipient_email == "e104@example.com"
        assert page.items[-1].recipient_email == "e5@example.com"
        assert await platform.history.total_sent() == 105

    @pytest.mark.asyncio
    async def test_write_before_listener_is_lost(self):
        """Events published while nobody listens are dropped, not queued."""
        platform = Platform()
        await platform.writer.write({"name": "Ada", "email": "ada@example.com", "department": "Eng"})

        platform.subscriber.start()
        assert await wait_until(lambda: platform.subscriber.is_listening)
        await platform.writer.write({"name": "Grace", "email": "grace@example.com", "department": "Eng"})

        assert await wait_until(lambda: platform.subscriber.processed_events == 1)
        await platform.subscriber.stop()
        page = await platform.history.page()
        assert [item.recipient_email for item in page.items] == ["grace@example.com"]
