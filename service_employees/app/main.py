"""
Employees service for the Employee Platform.
"""

from typing import Optional

from fastapi import Body
from fastapi.responses import JSONResponse
from shared.base_service import BaseService
from shared.cache_store import RedisCacheStore
from shared.config import ServiceConfig
from shared.errors import CacheUnavailable
from shared.event_bus import EventBus

from .caching import CacheCoherentReader, InvalidatingWriter
from .caching.read_through import CACHE_HITS_KEY, SOURCE_CACHE
from .models import EmployeeCreateRequest, EmployeeCreateResponse, EmployeeListResponse
from .persistence.postgres import PostgresEmployeeStore


class EmployeesService(BaseService):
    """Employees service implementation."""

    def __init__(self, config: Optional[ServiceConfig] = None, store=None, cache=None):
        super().__init__("employees", 5000, config)

        # Collaborators are built once per process and shared by every component
        self.store = store or PostgresEmployeeStore(self.config.postgres_dsn)
        self.cache = cache or RedisCacheStore(self.config.redis_url)
        self.event_bus = EventBus(self.cache, self.config.event_channel)

        self.reader = CacheCoherentReader(
            self.store,
            self.cache,
            ttl_seconds=self.config.cache_ttl,
            metrics=self.metrics
        )
        self.writer = InvalidatingWriter(
            self.store,
            self.cache,
            self.event_bus,
            metrics=self.metrics
        )

        self._setup_employee_routes()
        self.app.state.employees_service = self

    def _setup_employee_routes(self):
        """Set up employee-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "employees",
                "message": "Employee Platform - Employees Service",
                "version": "1.0.0",
                "capabilities": ["read_through_cache", "invalidate_on_write", "events"]
            }

        @self.app.get("/api/employees", response_model=EmployeeListResponse, response_model_exclude_none=True)
        async def list_employees():
            """List employees through the read-through cache."""
            result = await self.reader.read()
            return EmployeeListResponse(
                data=result.payload,
                # Existing clients expect "database" for store reads
                source="cache" if result.source == SOURCE_CACHE else "database",
                count=len(result.payload),
                cached_at=result.cached_at
            )

        @self.app.post("/api/employees", status_code=201, response_model=EmployeeCreateResponse)
        async def create_employee(request: Optional[EmployeeCreateRequest] = Body(None)):
            """Create an employee, invalidate the cache and publish employee.created."""
            fields = request.model_dump(exclude_none=True) if request else {}
            record = await self.writer.write(fields)
            self.metrics.record_business_event("employee.created")
            return EmployeeCreateResponse(
                message="Employee created successfully",
                employee=record.to_dict()
            )

        @self.app.get("/stats")
        async def get_stats():
            """Employee and cache counters."""
            total_employees = await self.store.count_records()

            degraded = False
            try:
                cache_hits = int(await self.cache.get(CACHE_HITS_KEY) or 0)
            except CacheUnavailable:
                cache_hits = 0
                degraded = True

            return JSONResponse(content={
                "total_employees": total_employees,
                "cache_hits": cache_hits,
                "degraded": degraded,
                "uptime_seconds": self._get_uptime()
            })

    async def _check_dependencies(self):
        """Check employees service dependencies."""
        return {
            "database": await self.store.health_status(),
            "cache": await self.cache.health_status()
        }

    async def start(self):
        """Start employees service components."""
        await self.store.start()
        await self.cache.start()
        self.logger.info("Employees service components started")

    async def stop(self):
        """Stop employees service components."""
        await self.cache.stop()
        await self.store.stop()
        self.logger.info("Employees service components stopped")


def create_app(**kwargs):
    """Create employees service application."""
    service = EmployeesService(**kwargs)
    return service.app


if __name__ == "__main__":
    service = EmployeesService()
    service.run()
