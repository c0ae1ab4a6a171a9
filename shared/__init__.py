"""
Shared utilities for the Employee Platform services.

This package aggregates common building blocks consumed by all services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Exponential backoff for reconnecting clients
- cache_store: Redis-backed shared cache and pub/sub transport
- events / event_bus: Domain event wire format and publish/subscribe channel

Any cross-service logic should live here to avoid import cycles across
service packages. Do not import from service_* packages into shared/.
"""
