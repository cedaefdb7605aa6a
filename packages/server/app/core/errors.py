"""
Domain error kinds and their HTTP mapping.

Services raise these; ``register_exception_handlers`` turns them into the
same ``{"error": {code, message, status}}`` envelope the CSRF middleware
returns.
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

log = structlog.get_logger()


class LCPError(Exception):
    """Base exception for all workspace errors."""

    status_code = 400
    code = "ERROR"

    def __init__(self, message: str, *, code: Optional[str] = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class ValidationError(LCPError):
    """Invalid input that must block the operation (e.g. an invite code)."""

    status_code = 422
    code = "VALIDATION_FAILED"

    def __init__(self, message: str, *, kind: str, code: Optional[str] = None):
        self.kind = kind
        super().__init__(message, code=code)


class InviteCodeError(ValidationError):
    """Raised when an invite code is empty or unknown."""

    def __init__(self, kind: str):
        if kind == "empty_code":
            super().__init__(
                "You must enter an invite code.", kind=kind, code="INVITE_CODE_EMPTY"
            )
        else:
            super().__init__("Invalid invite code.", kind=kind, code="INVITE_CODE_UNKNOWN")


class PermissionDenied(LCPError):
    """Access-control deny. Also used for missing records so existence never leaks."""

    status_code = 403
    code = "PERMISSION_DENIED"

    def __init__(self, message: str = "You are not allowed to do that."):
        super().__init__(message)


class NotFound(LCPError):
    """Raised when a requested user or record does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class MalformedField(LCPError):
    """A stored field value could not be decoded. Recovered inside the export."""

    code = "MALFORMED_FIELD"

    def __init__(self, field: str, raw: str):
        self.field = field
        self.raw = raw
        super().__init__(f"Field '{field}' holds an undecodable value")


def error_response(status: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={"error": {"code": code, "message": message, "status": status}},
    )


async def _handle_lcp_error(request: Request, exc: LCPError) -> JSONResponse:
    log.debug("request.rejected", path=request.url.path, code=exc.code, status=exc.status_code)
    return error_response(exc.status_code, exc.code, exc.message)


HTTP_ERROR_CODES = {
    401: "AUTHENTICATION_REQUIRED",
    403: "PERMISSION_DENIED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
}


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = HTTP_ERROR_CODES.get(exc.status_code, "ERROR")
    response = error_response(exc.status_code, code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return error_response(422, ValidationError.code, message)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LCPError, _handle_lcp_error)
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
