"""
User API endpoints.

POST   /users                 -> created user as JSON
DELETE /users?username=<name> -> empty 200, whether or not a row matched
"""

from __future__ import annotations

import logging

import asyncpg
from fastapi import APIRouter, Depends, Query, Response

from ..core import db
from . import repository, schemas

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/users", response_model=schemas.User)
async def add_user(
    user: schemas.User,
    conn: asyncpg.Connection = Depends(db.connection),
) -> schemas.User:
    new_user = await repository.add_user(conn, user)
    logger.info("user_created username=%s", new_user.username)
    return new_user


@router.delete("/users")
async def del_user(
    username: str = Query(...),
    conn: asyncpg.Connection = Depends(db.connection),
) -> Response:
    await repository.del_user(conn, username)
    logger.info("user_deleted username=%s", username)
    return Response(status_code=200)
