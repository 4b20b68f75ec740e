from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from taskgate.core.config import request_logger
from taskgate.core.exceptions.types import (
    ERROR_VARIANTS,
    AppException,
    RateLimited,
    Unauthorized,
    ValidationError,
)


def error_envelope(message: str, code: str, data=None) -> dict:
    return {"status": False, "message": message, "code": code, "data": data}


async def app_exception_handler(request: Request, exc: AppException):
    """
    Render any application error variant into the error envelope.

    Server-side variants (5xx) are logged as errors; client errors as warnings.
    Extra headers: ``Retry-After`` for RateLimited, ``WWW-Authenticate`` for
    Unauthorized.
    """
    log = request_logger.error if exc.status_code >= 500 else request_logger.warning
    log(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")

    headers: dict[str, str] = {}
    if isinstance(exc, RateLimited) and exc.retry_after:
        headers["Retry-After"] = str(exc.retry_after)
    if isinstance(exc, Unauthorized):
        headers["WWW-Authenticate"] = "Bearer"

    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(error_envelope(exc.message, exc.code, exc.details)),
        headers=headers or None,
    )


async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
):
    """Render FastAPI body/header validation failures as ValidationError."""
    request_logger.warning(
        f"ValidationError on {request.method} {request.url.path}: {exc.errors()}"
    )
    return JSONResponse(
        status_code=ValidationError.status_code,
        content=jsonable_encoder(
            error_envelope(
                ValidationError.default_message,
                ValidationError.code,
                {"errors": exc.errors()},
            )
        ),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    request_logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_envelope(AppException.default_message, AppException.code),
    )


def register_exception_handlers(app: FastAPI) -> None:
    for variant in ERROR_VARIANTS:
        app.add_exception_handler(variant, app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError, request_validation_exception_handler  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, unhandled_exception_handler)


exception_schema = {
    status.HTTP_500_INTERNAL_SERVER_ERROR: {
        "description": "Internal Server Error",
        "content": {
            "application/json": {
                "example": error_envelope(
                    "An unexpected error occurred.", "INTERNAL_ERROR"
                ),
            }
        },
    },
    status.HTTP_422_UNPROCESSABLE_ENTITY: {
        "description": "Validation Error",
        "content": {
            "application/json": {
                "example": error_envelope(
                    "Request validation failed.",
                    "VALIDATION_FAILED",
                    {"errors": [{"loc": ["body", "email"], "msg": "field required"}]},
                ),
            }
        },
    },
    status.HTTP_429_TOO_MANY_REQUESTS: {
        "description": "Rate Limit Exceeded",
        "content": {
            "application/json": {
                "example": error_envelope(
                    "Too many requests. Please try again later.", "TOO_MANY_REQUESTS"
                ),
            }
        },
    },
}


__all__ = [
    "app_exception_handler",
    "request_validation_exception_handler",
    "unhandled_exception_handler",
    "register_exception_handlers",
    "error_envelope",
    "exception_schema",
]
