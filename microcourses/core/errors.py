"""Error taxonomy and the JSON error envelope.

Workflow code raises one of the AppError subclasses below and lets it
propagate; `register_exception_handlers` turns it into

    {"error": {"code": "...", "message": "...", "field": "..."}}

with the status code of its kind.  The `code` is stable and meant for
clients to branch on; the message is for humans.

Kinds and their HTTP status:

  validation           400   malformed or missing input
  unauthorized         401   no/invalid credential
  forbidden            403   role, approval or ownership mismatch
  not_found            404   missing entity
  conflict             400   duplicate enrollment/certificate/unique field
  precondition_failed  400   course not published, course incomplete, ...
  rate_limited         429
  internal             500   anything else
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that map onto a client-visible response."""

    kind = "internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "INTERNAL_SERVER_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        field: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.field = field
        self.headers = headers

    def to_body(self) -> dict[str, Any]:
        return error_body(self.code, self.message, self.field)


class ValidationFailed(AppError):
    kind = "validation"
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "VALIDATION_ERROR"


class Unauthorized(AppError):
    kind = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "UNAUTHORIZED"

    def __init__(self, message: str = "Not authorized to access this route", **kw):
        kw.setdefault("headers", {"WWW-Authenticate": "Bearer"})
        super().__init__(message, **kw)


class Forbidden(AppError):
    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "FORBIDDEN"


class NotFound(AppError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"


class Conflict(AppError):
    kind = "conflict"
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "DUPLICATE_ERROR"


class PreconditionFailed(AppError):
    kind = "precondition_failed"
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "PRECONDITION_FAILED"


class RateLimited(AppError):
    kind = "rate_limited"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_code = "RATE_LIMIT_EXCEEDED"


class DuplicateKeyError(ValueError):
    """Raised by repositories when a uniqueness constraint rejects a write."""

    def __init__(self, field: str) -> None:
        super().__init__(f"{field} already exists")
        self.field = field


def error_body(code: str, message: str, field: str | None = None) -> dict[str, Any]:
    err: dict[str, Any] = {"code": code, "message": message}
    if field is not None:
        err["field"] = field
    return {"error": err}


_HTTP_STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    413: "PAYLOAD_TOO_LARGE",
    415: "UNSUPPORTED_MEDIA_TYPE",
    429: "RATE_LIMIT_EXCEEDED",
}


def _is_missing(error: dict[str, Any]) -> bool:
    if error.get("type") == "missing":
        return True
    # Blank strings count as absent for required text fields.
    value = error.get("input")
    return error.get("type") == "string_too_short" and isinstance(value, str) and not value.strip()


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers that render every failure in the error envelope."""

    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "%s %s rejected: %s (%s)",
            request.method,
            request.url.path,
            exc.code,
            exc.message,
            extra={"error_code": exc.code},
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_body(),
            headers=exc.headers,
        )

    @app.exception_handler(DuplicateKeyError)
    async def _duplicate(request: Request, exc: DuplicateKeyError) -> JSONResponse:
        logger.warning(
            "Duplicate key on %s %s field=%s",
            request.method,
            request.url.path,
            exc.field,
            extra={"error_code": "DUPLICATE_ERROR"},
        )
        return JSONResponse(
            status_code=Conflict.status_code,
            content=error_body("DUPLICATE_ERROR", str(exc), exc.field),
        )

    @app.exception_handler(RequestValidationError)
    async def _request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        # A malformed id in the URL can never name an existing resource.
        if any(e.get("loc", ("",))[0] == "path" for e in errors):
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content=error_body("NOT_FOUND", "Resource not found"),
            )
        first = errors[0] if errors else {}
        loc = [str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path")]
        field = ".".join(loc) or None
        missing = [e for e in errors if _is_missing(e)]
        if missing:
            names = [
                ".".join(str(p) for p in e["loc"] if p not in ("body", "query", "path"))
                for e in missing
            ]
            code = "MISSING_FIELDS"
            message = f"Please provide {', '.join(n for n in names if n) or 'a request body'}"
        else:
            code = "VALIDATION_ERROR"
            message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
        logger.warning(
            "Validation failed on %s %s: %s",
            request.method,
            request.url.path,
            message,
            extra={"error_code": code},
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(code, message, field),
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        code = _HTTP_STATUS_CODES.get(exc.status_code, "HTTP_ERROR")
        message = exc.detail if isinstance(exc.detail, str) else code
        if exc.status_code == 404 and message == "Not Found":
            message = "Route not found"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(code, message),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled error on %s %s",
            request.method,
            request.url.path,
            extra={"error_code": "INTERNAL_SERVER_ERROR"},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body("INTERNAL_SERVER_ERROR", "Server Error"),
        )
