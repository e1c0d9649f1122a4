"""
Service error taxonomy and its HTTP mapping.

Lower-level failures (asyncpg, pool acquisition, row mapping) are wrapped
into one of the kinds below where they happen. Routes never inspect driver
exceptions; `service_error_handler` turns a `ServiceError` into a response.

| Kind            | HTTP | Body                         |
|-----------------|------|------------------------------|
| NotFoundError   | 404  | empty                        |
| PoolError       | 500  | plain-text error detail      |
| DatabaseError   | 409  | empty, unique violation only |
| DatabaseError   | 500  | empty, everything else       |
| MappingError    | 500  | empty                        |
| StatementError  | 500  | empty                        |
"""

from __future__ import annotations

import logging

from fastapi import Request, status
from fastapi.responses import PlainTextResponse, Response

UNIQUE_VIOLATION = "23505"

logger = logging.getLogger(__name__)


def _describe(exc: BaseException) -> str:
    # Some driver errors (e.g. asyncio timeouts) stringify to "".
    return str(exc).strip() or type(exc).__name__


class ServiceError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    @classmethod
    def from_exc(cls, exc: BaseException) -> "ServiceError":
        return cls(_describe(exc))

    def to_response(self) -> Response:
        return Response(status_code=self.status_code)


class NotFoundError(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class PoolError(ServiceError):
    def to_response(self) -> Response:
        return PlainTextResponse(str(self) or "connection pool error", status_code=self.status_code)


class DatabaseError(ServiceError):
    def __init__(self, message: str = "", *, sqlstate: str | None = None) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate

    @classmethod
    def from_exc(cls, exc: BaseException) -> "DatabaseError":
        return cls(_describe(exc), sqlstate=getattr(exc, "sqlstate", None))

    @property
    def is_unique_violation(self) -> bool:
        return self.sqlstate == UNIQUE_VIOLATION

    def to_response(self) -> Response:
        if self.is_unique_violation:
            return Response(status_code=status.HTTP_409_CONFLICT)
        return super().to_response()


class MappingError(ServiceError):
    """
    A result row could not be converted into the expected entity.
    """


class StatementError(ServiceError):
    """
    The server refused to prepare a SQL statement.
    """


async def service_error_handler(request: Request, exc: ServiceError) -> Response:
    response = exc.to_response()
    if response.status_code >= 500:
        logger.error(
            "request_failed method=%s path=%s kind=%s status=%s detail=%s",
            request.method,
            request.url.path,
            type(exc).__name__,
            response.status_code,
            exc,
            exc_info=exc.__cause__ or exc,
        )
    else:
        logger.info(
            "request_rejected method=%s path=%s kind=%s status=%s",
            request.method,
            request.url.path,
            type(exc).__name__,
            response.status_code,
        )
    return response
