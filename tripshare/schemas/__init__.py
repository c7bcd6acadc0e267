from tripshare.schemas.booking import (
    BookingCreate, BookingUpdate, BookingReason, PaymentUpdate, BookingResponse, BookingAnalytics,
)
from tripshare.schemas.trip import TripSeatsResponse, ConfirmedSeatResponse
from tripshare.schemas.notification import NotificationResponse, UnreadCountResponse, MarkAllReadResponse

__all__ = [
    "BookingCreate", "BookingUpdate", "BookingReason", "PaymentUpdate", "BookingResponse", "BookingAnalytics",
    "TripSeatsResponse", "ConfirmedSeatResponse",
    "NotificationResponse", "UnreadCountResponse", "MarkAllReadResponse",
]
