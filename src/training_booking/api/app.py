"""FastAPI application exposing the booking engine.

Endpoints:
  POST /api/trainings/{training_id}/book?userId=  Book a training (201)
  GET  /api/users/{user_id}/trainings              List active enrollments
  GET  /health                                     Store health check
"""

from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager
from typing import Any, Callable

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from training_booking import __version__
from training_booking.booking.engine import BookingEngine
from training_booking.core.models import BookingResult, UserTrainings
from training_booking.observability.logger import new_request_id, set_request_id

from .errors import handle_error, register_error_handlers

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def create_app(
    engine: BookingEngine,
    *,
    title: str = "Training Booking Service",
    lifespan: Callable[[FastAPI], AbstractAsyncContextManager[Any]] | None = None,
) -> FastAPI:
    """Create the FastAPI application around an existing booking engine."""
    app = FastAPI(
        title=title,
        version=__version__,
        description="Enroll users in trainings without overselling or double booking",
        lifespan=lifespan,
    )
    app.state.engine = engine
    register_error_handlers(app)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Bind a request id to the logging context and echo it back."""
        incoming = request.headers.get(REQUEST_ID_HEADER)
        if incoming:
            set_request_id(incoming)
            request_id = incoming
        else:
            request_id = new_request_id()
        try:
            response = await call_next(request)
        except Exception as exc:
            # Answered here so unhandled errors also carry the request id.
            response = await handle_error(request, exc)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.post(
        "/api/trainings/{training_id}/book",
        status_code=201,
        response_model=BookingResult,
    )
    async def book_training(
        training_id: int,
        user_id: int = Query(..., alias="userId"),
    ) -> BookingResult:
        return await engine.book_training(training_id, user_id)

    @app.get("/api/users/{user_id}/trainings", response_model=UserTrainings)
    async def get_user_trainings(user_id: int) -> UserTrainings:
        return await engine.get_user_trainings(user_id)

    @app.get("/health")
    async def health() -> JSONResponse:
        if await engine.store.ping():
            return JSONResponse({"status": "ok"})
        return JSONResponse({"status": "unavailable"}, status_code=503)

    return app
