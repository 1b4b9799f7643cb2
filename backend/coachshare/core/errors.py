"""Typed service errors and structured error responses.

Services raise a ``CoachShareError`` subclass; every error leaves the API in
the same JSON envelope.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("coachshare.errors")


class CoachShareError(Exception):
    """Base class for errors raised by the service layer."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind: str = "internal"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(CoachShareError):
    status_code = status.HTTP_400_BAD_REQUEST
    kind = "invalid_input"


class NotFound(CoachShareError):
    status_code = status.HTTP_404_NOT_FOUND
    kind = "not_found"


class Forbidden(CoachShareError):
    status_code = status.HTTP_403_FORBIDDEN
    kind = "forbidden"


class Conflict(CoachShareError):
    status_code = status.HTTP_400_BAD_REQUEST
    kind = "conflict"


class Internal(CoachShareError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    kind = "internal"


def _envelope(request: Request, status_code: int, detail, **extra) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    return JSONResponse(
        status_code=status_code,
        content={
            "error": True,
            "status_code": status_code,
            "detail": detail,
            **extra,
            "request_id": request_id,
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(CoachShareError)
    async def service_error_handler(request: Request, exc: CoachShareError):
        if isinstance(exc, Internal):
            logger.error("internal error: %s", exc.message)
        return _envelope(request, exc.status_code, exc.message, kind=exc.kind)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _envelope(request, exc.status_code, exc.detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _envelope(
            request,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Validation error",
            errors=exc.errors(),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.url.path)
        return _envelope(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
        )
