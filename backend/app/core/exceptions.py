"""Retail Ops — Typed domain errors and their HTTP rendering.

Every error carries a stable ``code`` so API clients can branch on the kind of
failure (missing resource, illegal transition, bad quantity, ...) without
matching message text.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.core.responses import error_response

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base class for errors raised by the purchase-order core."""

    code = "INTERNAL"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(DomainError):
    """PO, line, supplier, product or location absent, or owned by another store."""

    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(DomainError):
    """Operation is illegal for the purchase order's current status."""

    code = "INVALID_STATE"
    status_code = status.HTTP_409_CONFLICT


class InvalidQuantityError(DomainError):
    """Receipt quantity is non-positive or exceeds what is still outstanding."""

    code = "INVALID_QUANTITY"
    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT


class InvalidInputError(DomainError):
    code = "INVALID_INPUT"
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(DomainError):
    """Uniqueness violated: duplicate document number or unit identifier."""

    code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class InternalError(DomainError):
    code = "INTERNAL"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


GENERIC_INTERNAL_MESSAGE = "An unexpected error occurred. Please try again later."


def register_exception_handlers(app: FastAPI) -> None:
    """Render domain, validation and persistence failures in the standard error envelope."""

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        if isinstance(exc, InternalError):
            logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc.message)
            message = GENERIC_INTERNAL_MESSAGE
        else:
            message = exc.message
        return JSONResponse(status_code=exc.status_code, content=error_response(exc.code, message))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        field_errors = [
            {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_response(InvalidInputError.code, "Request validation failed", field_errors),
        )

    @app.exception_handler(SQLAlchemyError)
    async def persistence_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("Persistence failure on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_response(InternalError.code, GENERIC_INTERNAL_MESSAGE),
        )
