"""Error taxonomy of the Images API and the handlers that turn it into HTTP responses."""
import logging

import pydantic
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from database.errors import PersistenceError

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Error 404: Route not found"


class ImagesApiError(Exception):
    """Base class for errors reported to the client with a message."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ImagesApiError):
    """An upload broke the extension, content type, size or count rules."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid upload"


class NoFilesError(ValidationError):
    default_message = "No file selected"


class TooManyFilesError(ValidationError):
    default_message = "Too many files in one upload"


class StorageIOError(ImagesApiError):
    """Writing an image to the upload directory failed."""

    default_message = "Failed to store the uploaded images"


def _message_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


def not_found_response() -> PlainTextResponse:
    return PlainTextResponse(NOT_FOUND_MESSAGE, status_code=status.HTTP_404_NOT_FOUND)


async def handle_images_api_error(request: Request, exc: ImagesApiError):
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")
    return _message_response(exc.status_code, exc.message)


async def handle_persistence_error(request: Request, exc: PersistenceError):
    logger.error(f"{request.method} {request.url.path} database error: {exc.message}")
    return _message_response(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.message)


async def handle_http_exception(request: Request, exc: StarletteHTTPException):
    """Unknown routes and unsupported methods both answer with the plain-text 404."""
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return not_found_response()
    return _message_response(exc.status_code, str(exc.detail))


async def handle_request_validation_errors(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    detail = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    logger.warning(f"{request.method} {request.url.path} malformed request: {errors}")
    return _message_response(status.HTTP_400_BAD_REQUEST, f"Invalid request: {detail}")


async def handle_pydantic_validation_errors(request: Request, exc: pydantic.ValidationError):
    logger.warning(f"{request.method} {request.url.path} validation error: {exc.errors()}")
    return _message_response(status.HTTP_400_BAD_REQUEST, "Invalid request data")


async def handle_broad_exceptions(request: Request, call_next):
    """Handle any exception that propagates during the request."""
    try:
        return await call_next(request)
    except Exception:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return _message_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
