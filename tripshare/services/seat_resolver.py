"""
Seat conflict resolution.

A seat is unavailable to a new booker if it is confirmed on the trip's seat
map, or if any other *pending* booking on the same trip has requested it.
Pending requests reserve their seats provisionally from the moment they are
submitted, so two travelers are never both shown the same seat as free.

Bookings without seat labels (capacity-only) neither reserve labels nor get
blocked by them; they are bounded by `ensure_capacity` instead.
"""

from typing import Iterable, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from tripshare.core.exceptions import SeatConflict, InsufficientCapacity
from tripshare.core.logging import get_logger
from tripshare.core.metrics import record_seat_conflict
from tripshare.models.booking import Booking, BookingStatus
from tripshare.models.trip import Trip, ConfirmedSeat

logger = get_logger(__name__)


async def get_confirmed_seats(db: AsyncSession, trip_id: int) -> list[ConfirmedSeat]:
    result = await db.execute(
        select(ConfirmedSeat)
        .where(ConfirmedSeat.trip_id == trip_id)
        .order_by(ConfirmedSeat.seat_label)
    )
    return list(result.scalars().all())


async def get_unavailable_seats(
    db: AsyncSession,
    trip_id: int,
    exclude_booking_id: Optional[int] = None,
) -> set[str]:
    """Confirmed labels plus labels held by other pending bookings."""
    confirmed = await db.execute(
        select(ConfirmedSeat.seat_label).where(ConfirmedSeat.trip_id == trip_id)
    )
    unavailable = set(confirmed.scalars().all())

    query = select(Booking.requested_seat_labels).where(
        Booking.trip_id == trip_id,
        Booking.status == BookingStatus.PENDING.value,
    )
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)

    pending = await db.execute(query)
    for labels in pending.scalars().all():
        unavailable.update(labels or [])

    return unavailable


async def ensure_seats_available(
    db: AsyncSession,
    trip_id: int,
    labels: Iterable[str],
    exclude_booking_id: Optional[int] = None,
    stage: str = "create",
) -> None:
    labels = set(labels)
    if not labels:
        return

    unavailable = await get_unavailable_seats(db, trip_id, exclude_booking_id)
    conflicting = labels & unavailable
    if conflicting:
        record_seat_conflict(stage)
        logger.warning(
            "seat_conflict",
            trip_id=trip_id,
            stage=stage,
            seats=sorted(conflicting),
        )
        raise SeatConflict(conflicting)


async def committed_seat_count(
    db: AsyncSession,
    trip_id: int,
    exclude_booking_id: Optional[int] = None,
) -> int:
    """Seats requested by every pending or accepted booking on the trip."""
    query = select(func.coalesce(func.sum(Booking.requested_seat_count), 0)).where(
        Booking.trip_id == trip_id,
        Booking.status.in_([BookingStatus.PENDING.value, BookingStatus.ACCEPTED.value]),
    )
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)
    return int((await db.execute(query)).scalar() or 0)


async def ensure_capacity(
    db: AsyncSession,
    trip: Trip,
    seat_count: int,
    exclude_booking_id: Optional[int] = None,
) -> None:
    committed = await committed_seat_count(db, trip.id, exclude_booking_id)
    available = max(trip.capacity - committed, 0)
    if seat_count > available:
        logger.warning(
            "booking_failed_no_seats",
            trip_id=trip.id,
            requested=seat_count,
            available=available,
        )
        raise InsufficientCapacity(seat_count, available)
