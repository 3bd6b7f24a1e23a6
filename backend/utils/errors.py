# utils/errors.py
import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from schemas.common import ErrorBody, ErrorEnvelope

logger = logging.getLogger(__name__)


class ApiError(HTTPException):
    """HTTPException carrying a machine-readable error code.

    Raised from route handlers for domain failures (not found, duplicate SKU,
    insufficient stock, ...). The handler below renders it into the error
    envelope instead of FastAPI's default ``{"detail": ...}`` body.
    """

    def __init__(self, status_code: int, code: str, message: str, details=None, headers=None):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.code = code
        self.message = message
        self.details = details


def not_found(code: str, message: str) -> ApiError:
    return ApiError(status.HTTP_404_NOT_FOUND, code, message)


def error_response(status_code: int, code: str, message: str, details=None, headers=None) -> JSONResponse:
    body = ErrorEnvelope(error=ErrorBody(code=code, message=message, details=details))
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", exclude_none=True),
        headers=headers,
    )


async def api_error_handler(request: Request, exc: ApiError):
    return error_response(exc.status_code, exc.code, exc.message, exc.details, exc.headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_response(exc.status_code, f"HTTP_{exc.status_code}", message, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = []
    for err in exc.errors():
        # Drop the "body"/"query"/"path" prefix, keep the field path
        loc = [str(part) for part in err.get("loc", ())]
        if loc and loc[0] in {"body", "query", "path", "header"}:
            loc = loc[1:]
        details.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return error_response(status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", "Validation failed", details)


async def integrity_error_handler(request: Request, exc: IntegrityError):
    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None)
    text = str(orig or exc)

    if pgcode == "23505" or "UNIQUE constraint failed" in text:
        return error_response(status.HTTP_409_CONFLICT, "DUPLICATE_ENTRY", "Record already exists")
    if pgcode == "23503" or "FOREIGN KEY constraint failed" in text:
        return error_response(status.HTTP_400_BAD_REQUEST, "FOREIGN_KEY_VIOLATION", "Referenced record does not exist")

    logger.error("Unhandled integrity error on %s %s: %s", request.method, request.url.path, text)
    return error_response(status.HTTP_400_BAD_REQUEST, "CONSTRAINT_VIOLATION", "Database constraint violated")


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_SERVER_ERROR", "Something went wrong")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
