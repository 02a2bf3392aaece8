"""
Application error hierarchy.

Every error carries the HTTP status it should be rendered with. Route
handlers let these propagate; the exception handlers registered in
``app.main`` turn them into JSON responses.
"""
import logging
from typing import Any, TypeVar

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

ERROR_CODES: dict[int, str] = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    422: "UNPROCESSABLE_CONTENT",
    429: "TOO_MANY_REQUESTS",
    500: "INTERNAL_SERVER_ERROR",
}


def error_code_for_status(status_code: int) -> str:
    return ERROR_CODES.get(status_code, ERROR_CODES[500])


class AppError(Exception):
    """Base exception for all application errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        *,
        data: Any = None,
        cause: Any = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.data = data
        self.cause = cause

    @property
    def error_code(self) -> str:
        return error_code_for_status(self.status_code)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error_code, "message": self.message, "data": self.data}

    @classmethod
    def database(cls, message: str, *, cause: Any = None, data: Any = None) -> "AppError":
        return DatabaseError(message, cause=cause, data=data)

    @classmethod
    def validation(cls, message: str, *, cause: Any = None, data: Any = None) -> "AppError":
        return InvalidInputError(message, cause=cause, data=data)

    @classmethod
    def not_found(cls, message: str, *, cause: Any = None, data: Any = None) -> "AppError":
        return NotFoundError(message, cause=cause, data=data)

    @classmethod
    def unauthorized(cls, message: str, *, cause: Any = None, data: Any = None) -> "AppError":
        return UnauthorizedError(message, cause=cause, data=data)

    @classmethod
    def forbidden(cls, message: str, *, cause: Any = None, data: Any = None) -> "AppError":
        return ForbiddenError(message, cause=cause, data=data)

    @classmethod
    def conflict(cls, message: str, *, cause: Any = None, data: Any = None) -> "AppError":
        return ConflictError(message, cause=cause, data=data)

    @classmethod
    def too_many_requests(cls, message: str, *, cause: Any = None, data: Any = None) -> "AppError":
        return UsageLimitError(message, cause=cause, data=data)

    @classmethod
    def internal(cls, message: str, *, cause: Any = None, data: Any = None) -> "AppError":
        return AppError(message, 500, cause=cause, data=data)


class DatabaseError(AppError):
    status_code = 500


class InvalidInputError(AppError):
    status_code = 400


class UnauthorizedError(AppError):
    status_code = 401


class ForbiddenError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class UsageLimitError(AppError):
    status_code = 429


def propagate_error(error: BaseException) -> None:
    """Re-raise ``error`` if it is already an AppError, otherwise return so the caller can wrap it."""
    if isinstance(error, AppError):
        raise error


def format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        path = ".".join(str(loc) for loc in item.get("loc", ())) or "value"
        parts.append(f"{path}: {item.get('msg', 'invalid')}")
    return "; ".join(parts)


def validate_input(schema: type[M], value: Any) -> M:
    try:
        return schema.model_validate(value)
    except ValidationError as exc:
        details = format_validation_error(exc)
        raise InvalidInputError(
            "Input validation failed", data={"details": details}, cause=details
        ) from exc


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
    elif exc.cause is not None:
        logger.info("%s %s rejected: %s (%s)", request.method, request.url.path, exc.message, exc.cause)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
