"""
PostgreSQL record store for the Employees Service.
"""

from typing import Dict, Any, Optional, List

import asyncpg
from shared.logging import get_logger
from shared.errors import DuplicateKeyError, StoreError
from ..models import EmployeeRecord


# Errors that mean the store itself is unreachable or the query failed
STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class PostgresEmployeeStore:
    """PostgreSQL persistence for employee records."""

    def __init__(self, dsn: str):
        self.dsn = dsn
        self.logger = get_logger("employees.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=2,
                max_size=10,
                command_timeout=30
            )

            # Create tables if they don't exist
            await self._create_tables()

            self.logger.info("PostgreSQL record store started")

        except STORE_ERRORS as e:
            self.logger.error("Failed to start PostgreSQL record store", error=str(e))
            raise StoreError("Record store unavailable", {"error": str(e)}) from e

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL record store stopped")

    def _require_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise StoreError("Record store not started")
        return self.pool

    async def _create_tables(self):
        """Create database tables."""
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS employees (
                    id SERIAL PRIMARY KEY,
                    name VARCHAR(255) NOT NULL,
                    email VARCHAR(255) NOT NULL UNIQUE,
                    department VARCHAR(100) NOT NULL,
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_employees_created_at ON employees(created_at DESC);
            """)

    async def insert_record(self, fields: Dict[str, Any]) -> EmployeeRecord:
        """Insert an employee; raises DuplicateKeyError on an existing email."""
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    # Fast path; the UNIQUE constraint below is the authoritative guard
                    existing = await conn.fetchval(
                        "SELECT id FROM employees WHERE email = $1", fields["email"]
                    )
                    if existing is not None:
                        raise DuplicateKeyError(
                            "Employee with this email already exists",
                            {"email": fields["email"]}
                        )

                    row = await conn.fetchrow("""
                        INSERT INTO employees (name, email, department)
                        VALUES ($1, $2, $3)
                        RETURNING id, name, email, department, created_at
                    """, fields["name"], fields["email"], fields["department"])

        except asyncpg.UniqueViolationError as e:
            raise DuplicateKeyError(
                "Employee with this email already exists",
                {"email": fields["email"]}
            ) from e
        except STORE_ERRORS as e:
            self.logger.error("Error inserting employee", error=str(e))
            raise StoreError("Unable to create employee", {"error": str(e)}) from e

        record = self._row_to_record(row)
        self.logger.info("Employee inserted", employee_id=record.id)
        return record

    async def list_records(self) -> List[EmployeeRecord]:
        """List all employees, newest first."""
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch("""
                    SELECT id, name, email, department, created_at
                    FROM employees
                    ORDER BY created_at DESC, id DESC
                """)
        except STORE_ERRORS as e:
            self.logger.error("Error listing employees", error=str(e))
            raise StoreError("Unable to fetch employees", {"error": str(e)}) from e

        return [self._row_to_record(row) for row in rows]

    async def count_records(self) -> int:
        """Count employees."""
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetchval("SELECT COUNT(*) FROM employees")
        except STORE_ERRORS as e:
            self.logger.error("Error counting employees", error=str(e))
            raise StoreError("Unable to count employees", {"error": str(e)}) from e

    async def health_status(self) -> str:
        """Return healthy, unhealthy or unavailable."""
        if self.pool is None:
            return "unavailable"
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return "healthy"
        except STORE_ERRORS:
            return "unhealthy"

    def _row_to_record(self, row) -> EmployeeRecord:
        return EmployeeRecord(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            department=row["department"],
            created_at=row["created_at"]
        )
