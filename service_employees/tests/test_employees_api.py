"""
HTTP tests for the Employees Service.
"""

import pytest
from fastapi.testclient import TestClient

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_employees.app.main import EmployeesService
from service_employees.app.models import EmployeeRecord
from shared.config import get_config
from shared.test_helpers import InMemoryCacheStore, InMemoryEmployeeStore


@pytest.fixture
def store():
    return InMemoryEmployeeStore(EmployeeRecord)


@pytest.fixture
def cache():
    return InMemoryCacheStore()


@pytest.fixture
def service(store, cache):
    config = get_config("employees", 5000, env="test", log_level="warning")
    return EmployeesService(config=config, store=store, cache=cache)


@pytest.fixture
def client(service):
    with TestClient(service.app) as client:
        yield client


def create(client, name="Ada Lovelace", email="ada@example.com", department="Engineering"):
    return client.post("/api/employees", json={"name": name, "email": email, "department": department})


class TestEmployeesAPI:
    """Test cases for the employees HTTP surface."""

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["service"] == "employees"

    def test_create_employee(self, client):
        """Test creating an employee returns 201 with the stored record."""
        response = create(client)

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Employee created successfully"
        assert body["employee"]["id"] == 1
        assert body["employee"]["email"] == "ada@example.com"
        assert body["employee"]["created_at"]

    def test_list_is_database_then_cache(self, client):
        """First listing comes from the database, the next from the cache."""
        create(client)

        first = client.get("/api/employees").json()
        second = client.get("/api/employees").json()

        assert first["source"] == "database"
        assert "cached_at" not in first
        assert second["source"] == "cache"
        assert second["cached_at"]
        assert second["data"] == first["data"]
        assert second["count"] == 1

    def test_create_invalidates_listing(self, client):
        """A create between two listings forces a fresh read."""
        create(client)
        client.get("/api/employees")

        create(client, name="Grace Hopper", email="grace@example.com", department="Research")
        response = client.get("/api/employees").json()

        assert response["source"] == "database"
        assert response["count"] == 2
        assert response["data"][0]["email"] == "grace@example.com"

    def test_duplicate_email_conflict(self, client, cache):
        """Test duplicate email returns 409 and publishes nothing further."""
        create(client)
        published = len(cache.published)

        response = create(client, name="Other Person")

        assert response.status_code == 409
        assert response.json()["code"] == "DUPLICATE_KEY"
        assert len(cache.published) == published

    def test_missing_fields(self, client):
        response = client.post("/api/employees", json={"name": "Ada Lovelace"})

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["details"]["missing"] == ["email", "department"]

    def test_empty_body(self, client):
        response = client.post("/api/employees")

        assert response.status_code == 400
        assert response.json()["message"] == "No data provided"

    def test_invalid_email(self, client):
        response = create(client, email="not-an-email")

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid email format"

    def test_request_id_echoed_in_errors(self, client):
        response = client.post(
            "/api/employees",
            json={"name": "Ada"},
            headers={"x-request-id": "req-123"}
        )

        assert response.json()["request_id"] == "req-123"
        assert response.headers["x-request-id"] == "req-123"

    def test_request_id_generated(self, client):
        response = client.get("/")

        assert response.headers["x-request-id"]

    def test_wrong_field_type(self, client):
        response = client.post("/api/employees", json={"name": 5, "email": "a@b.co", "department": "Ops"})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_store_down_returns_503(self, client, store):
        store.available = False

        response = client.get("/api/employees")

        assert response.status_code == 503
        assert response.json()["code"] == "STORE_ERROR"

    def test_cache_down_still_serves(self, client, cache):
        """Listing and creation keep working when the cache is unreachable."""
        cache.available = False

        assert create(client).status_code == 201
        response = client.get("/api/employees")

        assert response.status_code == 200
        assert response.json()["source"] == "database"
        assert response.json()["count"] == 1

    def test_stats(self, client):
        create(client)
        client.get("/api/employees")
        client.get("/api/employees")

        stats = client.get("/stats").json()

        assert stats["total_employees"] == 1
        assert stats["cache_hits"] == 1
        assert stats["degraded"] is False

    def test_stats_degraded_without_cache(self, client, cache):
        cache.available = False

        stats = client.get("/stats").json()

        assert stats["cache_hits"] == 0
        assert stats["degraded"] is True

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["checks"] == {"database": "healthy", "cache": "healthy"}

    def test_health_degraded(self, client, cache):
        cache.available = False

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "degraded"

    def test_metrics_endpoint(self, client):
        create(client)
        client.get("/api/employees")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "cache_misses_total" in response.text
        assert "events_published_total" in response.text
