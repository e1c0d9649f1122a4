"""
User persistence helpers (raw SQL).

Both functions work on a connection the caller already borrowed from the
pool; acquiring and releasing it is the route's job.
"""

from __future__ import annotations

from typing import Any

import asyncpg
from pydantic import ValidationError

from ..core.errors import DatabaseError, MappingError, NotFoundError, StatementError
from .schemas import USER_FIELDS, User

TABLE_FIELDS = ", ".join(USER_FIELDS)

ADD_USER_SQL = """
    INSERT INTO users ($table_fields)
    VALUES ($1, $2, $3, $4)
    RETURNING $table_fields
"""

DEL_USER_SQL = """
    DELETE FROM users
    WHERE username = $1
"""


def _render(template: str) -> str:
    return template.replace("$table_fields", TABLE_FIELDS)


async def _prepare(conn: asyncpg.Connection, template: str) -> Any:
    try:
        return await conn.prepare(_render(template))
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
        raise StatementError.from_exc(exc) from exc


async def _fetch(stmt: Any, *args: Any) -> list[asyncpg.Record]:
    try:
        return await stmt.fetch(*args)
    # A connection lost mid-query surfaces as InterfaceError or OSError.
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
        raise DatabaseError.from_exc(exc) from exc


def _row_to_user(row: asyncpg.Record) -> User:
    try:
        return User.model_validate(dict(row))
    except (ValidationError, TypeError, ValueError) as exc:
        raise MappingError.from_exc(exc) from exc


async def add_user(conn: asyncpg.Connection, user: User) -> User:
    """
    Insert `user` and return the row as stored.
    """
    stmt = await _prepare(conn, ADD_USER_SQL)
    rows = await _fetch(stmt, *user.sql_values())
    users = [_row_to_user(row) for row in rows]
    if not users:
        raise NotFoundError("INSERT returned no row.")
    return users.pop()


async def del_user(conn: asyncpg.Connection, username: str) -> None:
    """
    Delete by username. Deleting a missing user is not an error.
    """
    stmt = await _prepare(conn, DEL_USER_SQL)
    await _fetch(stmt, username)
