"""Error responses for the Beacon API.

Every error is returned with the same JSON body:

    {"error": "<code>", "message": "<text>", "timestamp": "<ISO-8601>"}
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel

from beacon.observability.logging import request_id_var

logger = logging.getLogger(__name__)


class ErrorBody(BaseModel):
    """Error payload returned to clients."""

    model_config = {"extra": "forbid"}

    error: str
    message: str
    timestamp: str


def error_body(code: str, message: str) -> ErrorBody:
    return ErrorBody(error=code, message=message, timestamp=datetime.now(UTC).isoformat())


class ApiError(HTTPException):
    """Base exception for Beacon API errors."""

    def __init__(self, status_code: int, code: str, text: str):
        self.code = code
        self.text = text
        super().__init__(status_code=status_code, detail=text)

    def to_body(self) -> ErrorBody:
        return error_body(self.code, self.text)


class ValidationError(ApiError):
    """Missing or invalid input (400)."""

    def __init__(self, text: str):
        super().__init__(status_code=400, code="ValidationError", text=text)


class UnauthorizedError(ApiError):
    """Unknown caller (401)."""

    def __init__(self, text: str = "User not found"):
        super().__init__(status_code=401, code="Unauthorized", text=text)


class ForbiddenError(ApiError):
    """Caller may not act on the resource (403)."""

    def __init__(self, text: str):
        super().__init__(status_code=403, code="Forbidden", text=text)


class NotFoundError(ApiError):
    """Resource not found (404)."""

    def __init__(self, text: str):
        super().__init__(status_code=404, code="NotFound", text=text)


class ConflictError(ApiError):
    """Resource changed by a concurrent request (409)."""

    def __init__(self, text: str):
        super().__init__(status_code=409, code="Conflict", text=text)


class InternalServerError(ApiError):
    """Internal server error (500)."""

    def __init__(self, text: str = "An unexpected error occurred"):
        super().__init__(status_code=500, code="InternalServerError", text=text)


async def api_error_handler(request: Request, exc: ApiError) -> ORJSONResponse:
    """Exception handler for Beacon API errors."""
    return ORJSONResponse(status_code=exc.status_code, content=exc.to_body().model_dump())


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> ORJSONResponse:
    """Report malformed query/body input as a 400 with the first problem."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        text = f"{location}: {first.get('msg', 'invalid value')}" if location else first["msg"]
    else:
        text = "Invalid request"
    return ORJSONResponse(status_code=400, content=error_body("ValidationError", text).model_dump())


async def generic_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    """Exception handler for unexpected errors."""
    logger.error(
        "Unhandled error on %s %s (request_id=%s)",
        request.method,
        request.url.path,
        request_id_var.get(),
        exc_info=exc,
    )
    return ORJSONResponse(
        status_code=500,
        content=error_body("InternalServerError", "An unexpected error occurred").model_dump(),
    )
