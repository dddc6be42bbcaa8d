"""
Domain exceptions raised by the service layer and the handlers that turn
them (and framework / database failures) into HTTP responses.

Services raise these for rule violations and for records referenced
from a request body that do not exist. A missing path target is
signalled by returning ``None`` and the router answers 404 itself.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ForumError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ForumError):
    """A required field is missing or blank."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthorizationError(ForumError):
    """The caller is not allowed to mutate a record it does not own."""

    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(ForumError):
    """A record referenced by the request does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ForumError):
    """A unique value (username, email) is already taken."""

    status_code = status.HTTP_409_CONFLICT


async def forum_error_handler(request: Request, exc: ForumError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Invalid request", "detail": jsonable_encoder(exc.errors())},
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Database error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ForumError, forum_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
