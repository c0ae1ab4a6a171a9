"""
Invalidate-on-write path for employee creation.

Order of effects for an accepted write:
1. insert into the record store (fatal on failure)
2. delete the aggregate cache keys (logged and swallowed on failure)
3. publish one employee.created event (logged and swallowed on failure)

A stale cache entry may survive a failed delete until its TTL expires, and an
event may be lost if the bus is down; the committed write stands either way.
"""

from typing import Any, Dict

from shared.logging import get_logger
from shared.errors import CacheUnavailable, TransportError, ValidationError
from shared.events import DomainEvent
from ..models import REQUIRED_FIELDS, EmployeeRecord
from .read_through import EMPLOYEES_KEY, EMPLOYEES_CACHED_AT_KEY


class InvalidatingWriter:
    """Writes employees, invalidates the cached set and announces the write."""

    def __init__(self, store, cache, event_bus, source_service: str = "user-service", metrics=None):
        self.store = store
        self.cache = cache
        self.event_bus = event_bus
        self.source_service = source_service
        self.metrics = metrics
        self.logger = get_logger("employees.cache.invalidating_writer")

    async def write(self, fields: Dict[str, Any]) -> EmployeeRecord:
        """Create an employee.

        Raises ValidationError, DuplicateKeyError or StoreError; none of them
        touch the cache or publish an event.
        """
        clean = self._validate(fields)

        record = await self.store.insert_record(clean)

        await self._invalidate()
        await self._publish(record)

        self.logger.info("Created employee", employee_id=record.id, name=record.name)
        return record

    def _validate(self, fields: Dict[str, Any]) -> Dict[str, str]:
        if not fields:
            raise ValidationError("No data provided")

        clean = {name: str(fields.get(name) or "").strip() for name in REQUIRED_FIELDS}
        missing = [name for name, value in clean.items() if not value]
        if missing:
            raise ValidationError("Missing required fields", {"missing": missing})

        email = clean["email"]
        if "@" not in email or "." not in email:
            raise ValidationError("Invalid email format", {"email": email})

        return clean

    async def _invalidate(self):
        try:
            deleted = await self.cache.delete(EMPLOYEES_KEY, EMPLOYEES_CACHED_AT_KEY)
            self.logger.info("Cleared employee cache after creation", deleted=deleted)
        except CacheUnavailable as e:
            self.logger.warning(
                "Cache invalidation failed; stale entry may live until TTL",
                error=e.message,
                details=e.details
            )

    async def _publish(self, record: EmployeeRecord):
        event = DomainEvent.employee_created(record, source_service=self.source_service)
        try:
            await self.event_bus.publish(event)
            self._count(event.event_type, "published")
        except TransportError as e:
            self._count(event.event_type, "failed")
            self.logger.warning(
                "Event publishing error; event dropped",
                event_type=event.event_type,
                event_id=event.event_id,
                error=e.message
            )

    def _count(self, event_type: str, status: str):
        if self.metrics is not None:
            self.metrics.increment_counter("events_published_total", event_type=event_type, status=status)
