"""
Booking lifecycle rules.

Legal transitions live in one table keyed by (current status, event). Side
effects (seat materialization, notifications) belong to booking_service; this
module only answers "is this event legal from here, and where does it lead".
"""

import enum

from tripshare.core.exceptions import InvalidTransition
from tripshare.models.booking import BookingStatus


class BookingEvent(str, enum.Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    CANCEL_BY_REQUESTER = "cancel"
    CANCEL_BY_COMPANY = "cancel_by_company"
    EDIT = "edit"
    UPDATE_PAYMENT = "update_payment"


_TRANSITIONS: dict[tuple[BookingStatus, BookingEvent], BookingStatus] = {
    (BookingStatus.PENDING, BookingEvent.ACCEPT): BookingStatus.ACCEPTED,
    # Retried accept calls are tolerated; seat claims skip labels already held.
    (BookingStatus.ACCEPTED, BookingEvent.ACCEPT): BookingStatus.ACCEPTED,
    (BookingStatus.PENDING, BookingEvent.REJECT): BookingStatus.REJECTED,
    (BookingStatus.PENDING, BookingEvent.CANCEL_BY_REQUESTER): BookingStatus.CANCELLED,
    (BookingStatus.ACCEPTED, BookingEvent.CANCEL_BY_REQUESTER): BookingStatus.CANCELLED,
    (BookingStatus.ACCEPTED, BookingEvent.CANCEL_BY_COMPANY): BookingStatus.CANCELLED,
    (BookingStatus.PENDING, BookingEvent.EDIT): BookingStatus.PENDING,
    (BookingStatus.ACCEPTED, BookingEvent.UPDATE_PAYMENT): BookingStatus.ACCEPTED,
}

_MESSAGES = {
    (BookingStatus.CANCELLED, BookingEvent.CANCEL_BY_REQUESTER): "الطلب ملغي بالفعل",
    (BookingStatus.CANCELLED, BookingEvent.CANCEL_BY_COMPANY): "الطلب ملغي بالفعل",
    (BookingStatus.ACCEPTED, BookingEvent.EDIT): "لا يمكن تعديل الحجز بعد قبوله، يرجى التواصل مع الشركة",
    (BookingStatus.REJECTED, BookingEvent.ACCEPT): "لا يمكن قبول حجز مرفوض",
}


def next_status(current: BookingStatus | str, event: BookingEvent) -> BookingStatus:
    """Return the status `event` leads to, or raise InvalidTransition."""
    current = BookingStatus(current)
    try:
        return _TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidTransition(
            current.value, event.value, _MESSAGES.get((current, event))
        ) from None
