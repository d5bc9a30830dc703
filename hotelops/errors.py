"""
Domain errors surfaced to API clients.

Every error carries an HTTP status, a stable machine-readable code and a
human-readable message. `install_error_handlers` maps them onto JSON responses
of the form {"code": ..., "message": ..., "detail": ...}.
"""
from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


class AppError(Exception):
    status_code: int = 400
    code: str = "BAD_REQUEST"
    default_message: str = "Bad request"

    def __init__(self, message: Optional[str] = None, detail: Any = None) -> None:
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "detail": self.detail}


class Unauthenticated(AppError):
    status_code = 401
    code = "UNAUTHENTICATED"
    default_message = "Not authenticated"


class Forbidden(AppError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Access denied"


class NotFound(AppError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found"


class Inactive(AppError):
    status_code = 400
    code = "INACTIVE"
    default_message = "Record is not active"


class InvalidReference(AppError):
    status_code = 400
    code = "INVALID_REFERENCE"
    default_message = "Invalid reference"

    def __init__(self, message: Optional[str] = None, raw: Any = None) -> None:
        # Echo the offending value so clients can see what was sent
        super().__init__(message, detail={"value": None if raw is None else str(raw)})


class CrossTenantViolation(AppError):
    status_code = 400
    code = "CROSS_TENANT_VIOLATION"
    default_message = "Referenced record belongs to a different company"


class DuplicateKey(AppError):
    status_code = 409
    code = "DUPLICATE_KEY"
    default_message = "Duplicate entry"


class ValidationFailed(AppError):
    status_code = 422
    code = "VALIDATION_FAILED"
    default_message = "Validation failed"


class NotificationFailed(AppError):
    status_code = 502
    code = "NOTIFICATION_FAILED"
    default_message = "Failed to send notification"


def install_error_handlers(app: FastAPI) -> None:
    log = structlog.get_logger()

    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError):
        log.info("request_rejected", path=request.url.path, code=exc.code, message=exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        err = ValidationFailed(detail=jsonable_encoder(exc.errors()))
        return JSONResponse(status_code=err.status_code, content=err.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        content = {"code": "HTTP_%d" % exc.status_code, "message": str(exc.detail), "detail": None}
        return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        log.exception("unhandled_error", path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={"code": "SERVER_ERROR", "message": "Server error", "detail": None},
        )
