"""
Seat map mutation for accepted bookings.

CONCURRENCY STRATEGY: per-trip version bump + unique seat slots
===============================================================

Problem:
  Two operators accept two bookings that want the same seat at the same time.
  Both check "is A1 free?", both see yes, both write. Result: A1 is assigned
  twice and the seat map no longer maps every seat to one accepted booking.

Solution:
  1. Before touching the seat map, advance the trip's `version` with a
     conditional UPDATE ... WHERE version = :seen. The row lock taken by that
     UPDATE is held until the transaction ends, so every later read of the
     seat map in this transaction sees the previous writer's committed state.
     If another transaction got there first, rowcount is 0 and we re-read the
     version and try again (bounded).
  2. Each seat is a slot keyed by (trip_id, seat_label) with a UNIQUE
     constraint. An insert that loses a race fails at the database instead of
     creating a duplicate; that IntegrityError is surfaced as SeatConflict.

Only booking_service calls into this module: the accept and cancel
transitions mutate the seat map, and creation and edits use
`acquire_seat_map` to serialize the pending-reservation and capacity checks.
"""

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tripshare.core.config import get_settings
from tripshare.core.exceptions import SeatConflict, NotFound
from tripshare.core.logging import get_logger
from tripshare.core.metrics import seat_claim_retries, record_seat_conflict
from tripshare.models.booking import Booking
from tripshare.models.trip import Trip, ConfirmedSeat

logger = get_logger(__name__)
settings = get_settings()


async def acquire_seat_map(db: AsyncSession, trip_id: int) -> int:
    """
    Serialize seat-map work on `trip_id` for the rest of the transaction.
    Returns the new seat-map version.
    """
    max_attempts = settings.SEAT_CLAIM_MAX_RETRIES
    for attempt in range(1, max_attempts + 1):
        current_version = (
            await db.execute(select(Trip.version).where(Trip.id == trip_id))
        ).scalar_one_or_none()
        if current_version is None:
            raise NotFound("الرحلة غير موجودة")

        result = await db.execute(
            update(Trip)
            .where(Trip.id == trip_id, Trip.version == current_version)
            .values(version=current_version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return current_version + 1

        seat_claim_retries.inc()
        logger.info(
            "seat_map_retry",
            trip_id=trip_id,
            attempt=attempt,
            reason="version_conflict",
        )

    raise SeatConflict([], "تعذر حجز المقاعد بسبب الضغط العالي، يرجى المحاولة مرة أخرى")


async def claim_seats(db: AsyncSession, trip: Trip, booking: Booking) -> list[ConfirmedSeat]:
    """
    Materialize the booking's requested labels onto the trip's seat map.

    Labels the booking already holds are skipped, so a retried accept leaves
    the seat map unchanged. Labels held by any other booking abort the claim.
    """
    labels = booking.seat_labels
    if not labels:
        return []

    await acquire_seat_map(db, trip.id)

    result = await db.execute(
        select(ConfirmedSeat).where(
            ConfirmedSeat.trip_id == trip.id,
            ConfirmedSeat.seat_label.in_(labels),
        )
    )
    existing = list(result.scalars().all())

    held_by_others = {s.seat_label for s in existing if s.booking_id != booking.id}
    if held_by_others:
        record_seat_conflict("accept")
        logger.warning(
            "seat_claim_conflict",
            trip_id=trip.id,
            booking_ref=booking.reference,
            seats=sorted(held_by_others),
        )
        raise SeatConflict(held_by_others)

    already_held = {s.seat_label for s in existing}
    claimed = [
        ConfirmedSeat(
            trip_id=trip.id,
            seat_label=label,
            occupant_name=booking.requester_name,
            occupant_user_id=booking.requester_id,
            booking_id=booking.id,
        )
        for label in labels
        if label not in already_held
    ]
    if not claimed:
        return []

    db.add_all(claimed)
    try:
        await db.flush()
    except IntegrityError:
        # Lost the slot race; the unique (trip_id, seat_label) slot is taken.
        # The session is unusable until the caller rolls back.
        record_seat_conflict("accept")
        contested = [s.seat_label for s in claimed]
        logger.warning("seat_claim_race_lost", trip_id=trip.id, seats=contested)
        raise SeatConflict(contested)

    logger.info(
        "seats_claimed",
        trip_id=trip.id,
        booking_ref=booking.reference,
        seats=[s.seat_label for s in claimed],
    )
    return claimed


async def release_seats(db: AsyncSession, booking: Booking) -> int:
    """Remove exactly this booking's entries from the trip's seat map."""
    await acquire_seat_map(db, booking.trip_id)

    result = await db.execute(
        delete(ConfirmedSeat)
        .where(ConfirmedSeat.booking_id == booking.id)
        .execution_options(synchronize_session=False)
    )
    released = result.rowcount or 0

    logger.info(
        "seats_released",
        trip_id=booking.trip_id,
        booking_ref=booking.reference,
        released=released,
    )
    return released
