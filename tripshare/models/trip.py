"""
Trip model with its seat map.

Key design decisions:
- `capacity` is derived from a fixed transportation tier, never stored
- `price_label` is free text for display; `unit_price` is the strict numeric
  price the booking path reads
- `version` column serializes seat-map mutation per trip (optimistic locking)
- `ConfirmedSeat` rows exist only for accepted bookings; the unique constraint
  on (trip_id, seat_label) is the last line against double assignment
"""

import enum

from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, Index,
)

from tripshare.db.base import Base, TimestampMixin


class TransportationType(str, enum.Enum):
    VAN_14 = "van-14"
    MINIBUS_28 = "minibus-28"
    BUS_48 = "bus-48"
    BUS_50 = "bus-50"


TRANSPORTATION_CAPACITY = {
    TransportationType.VAN_14: 14,
    TransportationType.MINIBUS_28: 28,
    TransportationType.BUS_48: 48,
    TransportationType.BUS_50: 50,
}


class Trip(Base, TimestampMixin):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    price_label = Column(String(100), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=True)
    transportation_type = Column(String(20), nullable=False, default=TransportationType.BUS_48.value)
    start_date = Column(DateTime(timezone=True), nullable=True)

    # Optimistic locking version counter for the seat map
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint(
            "transportation_type IN ('van-14', 'minibus-28', 'bus-48', 'bus-50')",
            name="check_trip_transportation_type",
        ),
    )

    @property
    def capacity(self) -> int:
        return TRANSPORTATION_CAPACITY[TransportationType(self.transportation_type)]

    def __repr__(self) -> str:
        return f"<Trip(id={self.id}, title={self.title}, tier={self.transportation_type})>"


class ConfirmedSeat(Base, TimestampMixin):
    __tablename__ = "confirmed_seats"

    id = Column(Integer, primary_key=True, index=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False)
    seat_label = Column(String(20), nullable=False)
    occupant_name = Column(String(255), nullable=False)
    occupant_user_id = Column(String(128), nullable=False)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("trip_id", "seat_label", name="uq_trip_seat_label"),
        Index("ix_confirmed_seats_trip", "trip_id"),
    )

    def __repr__(self) -> str:
        return f"<ConfirmedSeat(trip={self.trip_id}, seat={self.seat_label}, booking={self.booking_id})>"
