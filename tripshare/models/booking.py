"""
Booking model representing a traveler's request for seats on a trip.

Key design decisions:
- `reference` is generated once at creation and is the public identifier
  (QR verification, notifications)
- Financial fields are computed at creation and only rewritten by an explicit
  seat-count edit while the booking is still pending
- `requested_seat_labels` may be empty: capacity-only bookings never take part
  in per-seat conflict checks
- Status is never deleted, only transitioned; terminal states keep their
  audit reason
"""

import enum

from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, ForeignKey, JSON, CheckConstraint, Index,
)

from tripshare.db.base import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    PARTIALLY_PAID = "partially_paid"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    OTHER = "other"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    reference = Column(String(40), unique=True, nullable=False, index=True)

    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    trip_title = Column(String(255), nullable=False)
    company_name = Column(String(255), nullable=False)

    requester_id = Column(String(128), nullable=False, index=True)
    requester_name = Column(String(255), nullable=False)
    requester_email = Column(String(255), nullable=True)
    requester_phone = Column(String(20), nullable=False)

    requested_seat_count = Column(Integer, nullable=False)
    requested_seat_labels = Column(JSON, nullable=False, default=list)
    requested_date = Column(DateTime(timezone=True), nullable=False)
    special_requests = Column(String(1000), nullable=False, default="")

    unit_price = Column(Numeric(12, 2), nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)
    commission = Column(Numeric(12, 2), nullable=False)
    net_to_operator = Column(Numeric(12, 2), nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.CASH.value)

    status_updated_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(String(500), nullable=True)
    cancellation_reason = Column(String(500), nullable=True)

    __table_args__ = (
        CheckConstraint("requested_seat_count > 0", name="check_booking_seat_count_positive"),
        CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected', 'cancelled')",
            name="check_booking_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded', 'partially_paid')",
            name="check_booking_payment_status",
        ),
        Index("ix_bookings_requester_status", "requester_id", "status"),
        Index("ix_bookings_company_status_created", "company_id", "status", "created_at"),
        Index("ix_bookings_trip_status", "trip_id", "status"),
    )

    @property
    def seat_labels(self) -> list[str]:
        return list(self.requested_seat_labels or [])

    def __repr__(self) -> str:
        return f"<Booking(ref={self.reference}, trip={self.trip_id}, status={self.status})>"
