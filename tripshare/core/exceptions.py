"""
Booking error taxonomy.

Every error carries a machine-readable `kind` and a localized, human-readable
message. Services raise these; the API layer renders them through the handlers
registered in `register_exception_handlers`.
"""

from typing import Iterable

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from tripshare.core.logging import get_logger

logger = get_logger(__name__)


class BookingError(Exception):
    kind = "BookingError"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.message}


class ValidationError(BookingError):
    kind = "ValidationError"


class SeatConflict(BookingError):
    kind = "SeatConflict"

    def __init__(self, seats: Iterable[str], message: str | None = None) -> None:
        self.seats = sorted(seats)
        super().__init__(
            message
            or f"بعض المقاعد المختارة محجوزة بالفعل، يرجى اختيار مقاعد أخرى: {', '.join(self.seats)}"
        )

    def to_dict(self) -> dict:
        return {**super().to_dict(), "seats": self.seats}


class InsufficientCapacity(BookingError):
    kind = "InsufficientCapacity"

    def __init__(self, requested: int, available: int) -> None:
        self.requested = requested
        self.available = available
        super().__init__(
            f"لا توجد مقاعد كافية في هذه الرحلة (المطلوب: {requested}، المتاح: {available})"
        )


class InvalidTransition(BookingError):
    kind = "InvalidTransition"

    def __init__(self, current: str, event: str, message: str | None = None) -> None:
        self.current = current
        self.event = event
        super().__init__(message or f"لا يمكن تنفيذ '{event}' على حجز حالته '{current}'")


class AuthenticationError(BookingError):
    kind = "AuthenticationError"
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(BookingError):
    kind = "AuthorizationError"
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(BookingError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND


async def booking_error_handler(request: Request, exc: Exception) -> JSONResponse:
    error = exc if isinstance(exc, BookingError) else BookingError(str(exc))
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(error, AuthenticationError) else None
    return JSONResponse(status_code=error.status_code, content=error.to_dict(), headers=headers)


async def request_validation_handler(request: Request, exc: Exception) -> JSONResponse:
    errors = exc.errors() if isinstance(exc, RequestValidationError) else []
    fields = [".".join(str(p) for p in e.get("loc", ()) if p != "body") for e in errors]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": ValidationError.kind,
            "detail": "بيانات الطلب غير صالحة",
            "fields": [f for f in fields if f],
        },
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", error=str(exc), path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "InternalError", "detail": "حدث خطأ غير متوقع"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingError, booking_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
