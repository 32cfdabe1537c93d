# salon/errors.py

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class BookingError(Exception):
    """Failure with a stable machine-checkable kind and a readable message."""

    kind = "server-error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequest(BookingError):
    kind = "invalid-request"
    status_code = 400


class NotFound(BookingError):
    kind = "not-found"
    status_code = 404


class Conflict(BookingError):
    kind = "conflict"
    status_code = 409


class ServerError(BookingError):
    pass


def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"kind": exc.kind, "detail": exc.message},
    )


def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=InvalidRequest.status_code,
        content={"kind": InvalidRequest.kind, "detail": "Missing or malformed request data."},
    )
