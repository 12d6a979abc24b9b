"""Typed-failure to HTTP response mapping.

One table decides the status code for every failure the booking engine
can raise; route handlers contain no error handling of their own.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from training_booking.core.errors import (
    BookingError,
    CapacityExceededError,
    DuplicateEnrollmentError,
    NotFoundError,
    StoreError,
)

logger = logging.getLogger(__name__)

# Checked in order; first isinstance match wins.
ERROR_STATUS: tuple[tuple[type[Exception], int], ...] = (
    (NotFoundError, 404),
    (DuplicateEnrollmentError, 409),
    (CapacityExceededError, 400),
)

RETRYABLE_STATUS = 503
UNEXPECTED_STATUS = 500
RETRY_AFTER_SECONDS = 1


class ErrorResponse(BaseModel):
    status: int
    message: str
    path: str
    timestamp: datetime


def status_for(exc: Exception) -> int:
    """HTTP status for *exc*."""
    for cls, status in ERROR_STATUS:
        if isinstance(exc, cls):
            return status
    if isinstance(exc, StoreError) and exc.retryable:
        return RETRYABLE_STATUS
    return UNEXPECTED_STATUS


async def handle_error(request: Request, exc: Exception) -> JSONResponse:
    status = status_for(exc)
    if status in (RETRYABLE_STATUS, UNEXPECTED_STATUS):
        message = f"An unexpected error occurred: {exc}"
        logger.error("Request %s %s failed: %s", request.method, request.url.path, exc)
    else:
        message = str(exc)

    body = ErrorResponse(
        status=status,
        message=message,
        path=request.url.path,
        timestamp=datetime.now(timezone.utc),
    )
    headers = {"Retry-After": str(RETRY_AFTER_SECONDS)} if status == RETRYABLE_STATUS else None
    return JSONResponse(
        status_code=status,
        content=body.model_dump(mode="json"),
        headers=headers,
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingError, handle_error)
    app.add_exception_handler(Exception, handle_error)
