"""
Tests for domain event encoding and the event bus.
"""

import json
import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from shared.errors import DecodeError, TransportError
from shared.event_bus import EventBus
from shared.events import DomainEvent, EMPLOYEE_CREATED, decode_event, new_event_id
from shared.test_helpers import InMemoryCacheStore, make_event


class _Record:
    id = 9
    name = "Katherine Johnson"
    email = "katherine@example.com"
    department = "Research"


class TestDomainEvent:
    """Test cases for DomainEvent."""

    def test_employee_created(self):
        event = DomainEvent.employee_created(_Record())

        assert event.event_type == EMPLOYEE_CREATED
        assert event.record_id == 9
        assert event.source_service == "user-service"
        assert event.event_id.startswith("employee.created:9:")

    def test_event_ids_unique(self):
        ids = {new_event_id(EMPLOYEE_CREATED, 1) for _ in range(100)}

        assert len(ids) == 100

    def test_wire_format_decodes(self):
        event = make_event()

        decoded = decode_event(event.to_wire())

        assert decoded == event
        assert json.loads(event.to_wire())["timestamp"] == "2024-01-01T12:00:00"

    def test_decode_bytes(self):
        assert decode_event(make_event().to_wire().encode()).record_id == 1

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", "42", '{"event_type": "employee.created"}'])
    def test_decode_rejects_malformed(self, raw):
        with pytest.raises(DecodeError):
            decode_event(raw)

    def test_decode_reports_missing_fields(self):
        with pytest.raises(DecodeError) as exc_info:
            decode_event('{"event_type": "employee.created", "event_id": "x"}')

        fields = {error["loc"][0] for error in exc_info.value.details["errors"]}
        assert "record_id" in fields
        assert exc_info.value.details["event_type"] == "employee.created"


class TestEventBus:
    """Test cases for EventBus."""

    @pytest.mark.asyncio
    async def test_publish_without_subscribers(self):
        cache = InMemoryCacheStore()
        bus = EventBus(cache, "employee_events")

        receivers = await bus.publish(make_event())

        assert receivers == 0
        assert len(cache.published) == 1

    @pytest.mark.asyncio
    async def test_subscribers_receive_in_order(self):
        cache = InMemoryCacheStore()
        bus = EventBus(cache, "employee_events")
        first = await bus.subscribe()
        second = await bus.subscribe()

        await bus.publish(make_event(record_id=1))
        await bus.publish(make_event(record_id=2))

        for subscription in (first, second):
            received = [decode_event(await subscription.get_message(timeout=0.1)).record_id for _ in range(2)]
            assert received == [1, 2]

    @pytest.mark.asyncio
    async def test_late_subscriber_misses_earlier_events(self):
        cache = InMemoryCacheStore()
        bus = EventBus(cache, "employee_events")

        await bus.publish(make_event(record_id=1))
        subscription = await bus.subscribe()

        assert await subscription.get_message(timeout=0.05) is None

    @pytest.mark.asyncio
    async def test_publish_transport_failure(self):
        cache = InMemoryCacheStore()
        cache.available = False
        bus = EventBus(cache)

        with pytest.raises(TransportError):
            await bus.publish(make_event())
