"""
Global error handling middleware for the FastAPI application.

Catches ReadAloudError subclasses, Pydantic validation errors, and
unhandled exceptions, converting them into a consistent JSON envelope.
"""

import logging
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from readaloud.core.exceptions import ReadAloudError

logger = logging.getLogger(__name__)


def _envelope(message: str, code: str, timestamp: str | None = None) -> dict:
    return {
        "error": message,
        "code": code,
        "timestamp": timestamp or datetime.now(UTC).isoformat(),
    }


def register_error_handlers(app: FastAPI) -> None:
    """Attach exception handlers to the FastAPI application.

    Registers three handlers in priority order:
    1. ``ReadAloudError`` - maps domain errors to structured JSON responses.
    2. ``RequestValidationError`` - Pydantic validation failures (422).
    3. ``Exception`` - catch-all for unexpected server errors (500).

    Args:
        app: The FastAPI application instance to register handlers on.
    """

    @app.exception_handler(ReadAloudError)
    async def readaloud_error_handler(_request: Request, exc: ReadAloudError) -> JSONResponse:
        """Convert domain-specific errors into a JSON error envelope."""
        return JSONResponse(
            status_code=exc.status_code,
            content=_envelope(exc.detail, exc.code, exc.timestamp),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        _request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle Pydantic request validation errors (malformed body/params)."""
        return JSONResponse(status_code=422, content=_envelope(str(exc), "VALIDATION_ERROR"))

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all handler; stack traces go to the log, never to clients."""
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=500, content=_envelope("Internal server error", "INTERNAL_ERROR")
        )
