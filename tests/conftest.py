# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# Fixtures shared by all tests.
#
# Key features:
# - Pins environment variables so settings loaded during tests are predictable
# - An in-memory stand-in for the asyncpg pool, so no database is needed
# =============================================================================

from __future__ import annotations

import os

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================

os.environ.setdefault("SERVER_ADDR", "127.0.0.1:8080")
os.environ.setdefault("LOG_LEVEL", "INFO")

import asyncpg
import pytest
from fastapi.testclient import TestClient

from peduncle.core import db
from peduncle.core.config import Settings
from peduncle.main import create_app
from peduncle.users.schemas import USER_FIELDS


# =============================================================================
# Fake asyncpg pool
# =============================================================================

class FakeStatement:
    """Prepared statement bound to a FakeConnection's table."""

    def __init__(self, conn: "FakeConnection", sql: str):
        self.conn = conn
        self.sql = " ".join(sql.split())

    async def fetch(self, *args):
        if self.conn.execute_error is not None:
            raise self.conn.execute_error

        table = self.conn.table
        if self.sql.startswith("INSERT INTO users"):
            row = dict(zip(USER_FIELDS, args))
            if row["username"] in table:
                raise asyncpg.exceptions.UniqueViolationError(
                    'duplicate key value violates unique constraint "users_username_key"'
                )
            table[row["username"]] = row
            if self.conn.returned_rows is not None:
                return self.conn.returned_rows
            return [dict(row)]

        if self.sql.startswith("DELETE FROM users"):
            table.pop(args[0], None)
            return []

        raise AssertionError(f"unexpected SQL: {self.sql}")


class FakeConnection:
    """Just enough of asyncpg.Connection for the users repository."""

    def __init__(self, table: dict):
        self.table = table
        self.prepared: list[str] = []
        self.prepare_error: Exception | None = None
        self.execute_error: Exception | None = None
        self.returned_rows: list | None = None

    async def prepare(self, sql: str) -> FakeStatement:
        if self.prepare_error is not None:
            raise self.prepare_error
        stmt = FakeStatement(self, sql)
        self.prepared.append(stmt.sql)
        return stmt


class FakePool:
    """Hands out a single FakeConnection and tracks borrow/release."""

    def __init__(self):
        self.table: dict[str, dict] = {}
        self.conn = FakeConnection(self.table)
        self.acquire_error: BaseException | None = None
        self.acquired = 0
        self.released = 0
        self.closed = False

    async def acquire(self, timeout=None):
        if self.acquire_error is not None:
            raise self.acquire_error
        self.acquired += 1
        return self.conn

    async def release(self, conn):
        assert conn is self.conn
        self.released += 1

    async def close(self):
        self.closed = True


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_pool() -> FakePool:
    return FakePool()


@pytest.fixture
def app(fake_pool):
    application = create_app(Settings())
    application.dependency_overrides[db.get_pool] = lambda: fake_pool
    return application


@pytest.fixture
def client(app) -> TestClient:
    # Not used as a context manager: the lifespan (real pool) stays off.
    return TestClient(app)


@pytest.fixture
def alice() -> dict:
    return {"username": "alice", "first_name": "Alice", "last_name": "A", "pwd": "x"}
