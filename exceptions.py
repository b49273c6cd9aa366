# src/exceptions.py
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors surfaced to the caller as a failed outcome."""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(AppError):
    """Referenced payment, access record or item does not exist."""
    status_code = status.HTTP_404_NOT_FOUND


class ValidationError(AppError):
    """Malformed input, rejected before any write."""
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(AppError):
    """A conditional update matched nothing: the payment was already processed."""
    status_code = status.HTTP_409_CONFLICT


class TransientStoreError(AppError):
    """The record store timed out or is unavailable."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


def create_error_response(status_code: int, message: str, details: Optional[Any] = None) -> dict:
    response = {
        "message": message,
        "code": status_code,
    }
    if details:
        response["details"] = details
    return response


async def app_error_handler(request: Request, exc: AppError):
    """Render domain errors as JSON for the notification surface."""
    logger.warning(f"{type(exc).__name__}: {exc.detail} for {request.method} {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(status_code=exc.status_code, message=exc.detail),
    )


def register_exception_handlers(app: FastAPI):
    app.exception_handler(AppError)(app_error_handler)
