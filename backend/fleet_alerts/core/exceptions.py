"""
Application error taxonomy and the handlers that render it.

Every failure leaves the API as ``{"error": <kind>, "message": <text>, "details": [...]}``.
"""
import enum
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ErrorKind(str, enum.Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    DUPLICATE = "DUPLICATE"
    STATE_CONFLICT = "STATE_CONFLICT"
    STORE_ERROR = "STORE_ERROR"


class AppError(Exception):
    kind: ErrorKind = ErrorKind.STORE_ERROR
    status_code: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None, details: list[dict] | None = None) -> None:
        self.message = message or self.default_message
        self.details = details or []
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.kind.value, "message": self.message, "details": self.details}


class ValidationFailedError(AppError):
    kind = ErrorKind.VALIDATION
    status_code = 400
    default_message = "Validation failed"


class NotFoundError(AppError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404
    default_message = "Not found"


class ForbiddenError(AppError):
    kind = ErrorKind.FORBIDDEN
    status_code = 403
    default_message = "Access denied"


class DuplicateAlertError(AppError):
    kind = ErrorKind.DUPLICATE
    status_code = 409
    default_message = "An open alert with this title already exists for the device"


class StateConflictError(AppError):
    kind = ErrorKind.STATE_CONFLICT
    status_code = 400
    default_message = "Operation not allowed in the current state"


class StoreError(AppError):
    kind = ErrorKind.STORE_ERROR
    status_code = 500
    default_message = "Storage operation failed"


def format_validation_errors(errors) -> list[dict]:
    """Flatten pydantic error dicts into ``{field, message}`` pairs with dotted paths."""
    details = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ())]
        details.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return details


async def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ValidationFailedError(details=format_validation_errors(exc.errors()))
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def _store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Unhandled store error on %s %s", request.method, request.url.path, exc_info=exc)
    error = StoreError()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, _store_error_handler)
