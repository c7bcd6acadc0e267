from tripshare.models.company import Company, CompanyMembership, MembershipSource
from tripshare.models.trip import Trip, ConfirmedSeat, TransportationType, TRANSPORTATION_CAPACITY
from tripshare.models.booking import Booking, BookingStatus, PaymentStatus, PaymentMethod
from tripshare.models.notification import Notification

__all__ = [
    "Company", "CompanyMembership", "MembershipSource",
    "Trip", "ConfirmedSeat", "TransportationType", "TRANSPORTATION_CAPACITY",
    "Booking", "BookingStatus", "PaymentStatus", "PaymentMethod",
    "Notification",
]
