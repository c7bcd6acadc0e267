"""
Service-level tests for the booking lifecycle and the trip seat map.
"""

from datetime import datetime, timezone, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from conftest import booking_request, make_trip, OPERATOR_ID, STAFF_ID, TRAVELER_A, TRAVELER_B
from tripshare.core.exceptions import (
    AuthorizationError,
    InsufficientCapacity,
    InvalidTransition,
    SeatConflict,
    ValidationError,
)
from tripshare.models import Booking, ConfirmedSeat, Notification
from tripshare.schemas.booking import BookingUpdate
from tripshare.services import booking_service, seat_map
from tripshare.services.authorization import register_company


async def _seat_map(db_session, trip_id: int) -> list[ConfirmedSeat]:
    result = await db_session.execute(
        select(ConfirmedSeat).where(ConfirmedSeat.trip_id == trip_id).order_by(ConfirmedSeat.seat_label)
    )
    return list(result.scalars().all())


async def _notifications_for(db_session, recipient_id: str) -> list[Notification]:
    result = await db_session.execute(
        select(Notification).where(Notification.recipient_id == recipient_id)
    )
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_example_conflict_then_accept(db_session, trip):
    """bus-48 at 500: A holds A1/A2, B is refused A1, accepting A fills the seat map."""
    booking_a = await booking_service.create_booking(db_session, TRAVELER_A, booking_request(trip, ["A1", "A2"]))

    with pytest.raises(SeatConflict) as exc_info:
        await booking_service.create_booking(db_session, TRAVELER_B, booking_request(trip, ["A1"]))
    assert exc_info.value.seats == ["A1"]
    assert "A1" in exc_info.value.message

    await booking_service.accept_booking(db_session, booking_a.id, OPERATOR_ID)

    seats = await _seat_map(db_session, trip.id)
    assert [s.seat_label for s in seats] == ["A1", "A2"]
    assert {s.booking_id for s in seats} == {booking_a.id}
    assert booking_a.total_price == Decimal("1000.00")
    assert booking_a.commission == Decimal("50.00")
    assert booking_a.net_to_operator == Decimal("950.00")

    bookings = (await db_session.execute(select(Booking))).scalars().all()
    assert len(bookings) == 1


@pytest.mark.asyncio
async def test_example_company_cancel_with_reason(db_session, trip):
    booking = await booking_service.create_booking(db_session, TRAVELER_A, booking_request(trip, ["A1", "A2"]))
    await booking_service.accept_booking(db_session, booking.id, OPERATOR_ID)
    operator_notes_before = len(await _notifications_for(db_session, OPERATOR_ID))

    await booking_service.cancel_by_company(db_session, booking.id, OPERATOR_ID, "السائق غير متاح")

    assert await _seat_map(db_session, trip.id) == []
    assert booking.status == "cancelled"
    assert booking.cancellation_reason == "السائق غير متاح"

    traveler_notes = await _notifications_for(db_session, TRAVELER_A)
    assert any("السائق غير متاح" in n.message for n in traveler_notes)
    assert len(await _notifications_for(db_session, OPERATOR_ID)) == operator_notes_before


@pytest.mark.asyncio
async def test_disjoint_seats_succeed(db_session, trip):
    await booking_service.create_booking(db_session, TRAVELER_A, booking_request(trip, ["A1", "A2"]))
    booking_b = await booking_service.create_booking(db_session, TRAVELER_B, booking_request(trip, ["A3"]))
    assert booking_b.status == "pending"


@pytest.mark.asyncio
async def test_confirmed_seats_block_new_requests(db_session, trip):
    booking = await booking_service.create_booking(db_session, TRAVELER_A, booking_request(trip, ["E1"]))
    await booking_service.accept_booking(db_session, booking.id, OPERATOR_ID)

    with pytest.raises(SeatConflict):
        await booking_service.create_booking(db_session, TRAVELER_B, booking_request(trip, ["E1"]))


@pytest.mark.asyncio
async def test_seatless_bookings_skip_conflict_checks(db_session, trip):
    await booking_service.create_booking(db_session, TRAVELER_A, booking_request(trip, ["A1"]))
    booking = await booking_service.create_booking(db_session, TRAVELER_B, booking_request(trip, seat_count=3))

    await booking_service.accept_booking(db_session, booking.id, OPERATOR_ID)
    assert await _seat_map(db_session, trip.id) == []


@pytest.mark.asyncio
async def test_total_price_matches_unit_price_times_seats(db_session, trip):
    booking = await booking_service.create_booking(db_session, TRAVELER_A, booking_request(trip, seat_count=7))
    assert booking.total_price == booking.unit_price * booking.requested_seat_count


@pytest.mark.asyncio
async def test_accept_twice_is_idempotent(db_session, trip, transport):
    booking = await booking_service.create_booking(db_session, TRAVELER_A, booking_request(trip, ["A1", "A2"]))
    await booking_service.accept_booking(db_session, booking.id, OPERATOR_ID)
    first = [(s.seat_label, s.booking_id) for s in await _seat_map(db_session, trip.id)]
    pushes = len(transport.published)

    await booking_service.accept_booking(db_session, booking.id, STAFF_ID)

    assert [(s.seat_label, s.booking_id) for s in await _seat_map(db_session, trip.id)] == first
    assert len(transport.published) == pushes


@pytest.mark.asyncio
async def test_accept_conflicting_with_confirmed_seat(db_session, trip):
    """A seat already on the map for another booking aborts the accept."""
    booking = await booking_service.create_booking(db_session, TRAVELER_A, booking_request(trip, ["F1"]))
    other = await booking_service.create_booking(db_session, TRAVELER_B, booking_request(trip, seat_count=1))
    db_session.add(
        ConfirmedSeat(
            trip_id=trip.id,
            seat_label="F1",
            occupant_name="walk-in",
            occupant_user_id=TRAVELER_B,
            booking_id=other.id,
        )
    )
    await db_session.flush()

    with pytest.raises(SeatConflict) as exc_info:
        await booking_service.accept_booking(db_session, booking.id, OPERATOR_ID)
    assert exc_info.value.seats == ["F1"]
    assert booking.status == "pending"


@pytest.mark.asyncio
async def test_cancel_releases_only_own_seats(db_session, trip):
    booking_a = await booking_service.create_booking(db_session, TRAVELER_A, booking_request(trip, ["A1", "A2"]))
    booking_b = await booking_service.create_booking(db_session, TRAVELER_B, booking_request(trip, ["B1"]))
    await booking_service.accept_booking(db_session, booking_a.id, OPERATOR_ID)
    await booking_service.accept_booking(db_session, booking_b.id, OPERATOR_ID)

    await booking_service.cancel_by_requester(db_session, booking_a.id, TRAVELER_A)

    seats = await _seat_map(db_session, trip.id)
    assert [(s.seat_label, s.booking_id) for s in seats] == [("B1", booking_b.id)]


@pytest.mark.asyncio
async def test_confirmed_seats_point_to_accepted_bookings(db_session, trip):
    bookings = []
    for requester, seats in ((TRAVELER_A, ["A1"]), (TRAVELER_B, ["A2"]), ("traveler-c", ["A3"])):
        bookings.append(await booking_service.create_booking(db_session, requester, booking_request(trip, seats)))
    for booking in bookings:
        await booking_service.accept_booking(db_session, booking.id, OPERATOR_ID)
    await booking_service.cancel_by_company(db_session, bookings[1].id, OPERATOR_ID)

    seats = await _seat_map(db_session, trip.id)
    labels = [s.seat_label for s in seats]
    assert len(labels) == len(set(labels))
    for seat in seats:
        booking = await db_session.get(Booking, seat.booking_id)
        assert booking.status == "accepted"


@pytest.mark.asyncio
@pytest.mark.parametrize("finish", ["reject", "cancel"])
async def test_terminal_bookings_cannot_move(db_session, trip, finish):
    booking = await booking_service.create_booking(db_session, TRAVELER_A, booking_request(trip, ["A1"]))
    if finish == "reject":
        await booking_service.reject_booking(db_session, booking.id, OPERATOR_ID, "ممتلئة")
    else:
        await booking_service.cancel_by_requester(db_session, booking.id, TRAVELER_A)

    with pytest.raises(InvalidTransition):
        await booking_service.accept_booking(db_session, booking.id, OPERATOR_ID)
    with pytest.raises(InvalidTransition):
        await booking_service.reject_booking(db_session, booking.id, OPERATOR_ID)
    with pytest.raises(InvalidTransition):
        await booking_service.cancel_by_requester(db_session, booking.id, TRAVELER_A)
    with pytest.raises(InvalidTransition):
        await booking_service.cancel_by_company(db_session, booking.id, OPERATOR_ID)
    assert await _seat_map(db_session, trip.id) == []


@pytest.mark.asyncio
async def test_terminal_booking_frees_pending_seats(db_session, trip):
    booking = await booking_service.create_booking(db_session, TRAVELER_A, booking_request(trip, ["A1"]))
    await booking_service.reject_booking(db_session, booking.id, OPERATOR_ID)

    retry = await booking_service.create_booking(db_session, TRAVELER_B, booking_request(trip, ["A1"]))
    assert retry.seat_labels == ["A1"]


@pytest.mark.asyncio
async def test_requester_can_rebook_after_cancelling(db_session, trip):
    booking = await booking_service.create_booking(db_session, TRAVELER_A, booking_request(trip))
    await booking_service.cancel_by_requester(db_session, booking.id, TRAVELER_A)

    again = await booking_service.create_booking(db_session, TRAVELER_A, booking_request(trip))
    assert again.id != booking.id


@pytest.mark.asyncio
async def test_operator_of_other_company_is_forbidden(db_session, trip):
    await register_company(db_session, name="شركة أخرى", owner_id="rival-operator")
    booking = await booking_service.create_booking(db_session, TRAVELER_A, booking_request(trip))

    with pytest.raises(AuthorizationError):
        await booking_service.accept_booking(db_session, booking.id, "rival-operator")
    assert booking.status == "pending"


@pytest.mark.asyncio
async def test_cannot_book_started_trip(db_session, company):
    started = await make_trip(
        db_session, company, start_date=datetime.now(timezone.utc) - timedelta(hours=1)
    )
    with pytest.raises(ValidationError):
        await booking_service.create_booking(db_session, TRAVELER_A, booking_request(started))


@pytest.mark.asyncio
async def test_edit_increasing_seats_checks_capacity(db_session, company):
    van = await make_trip(db_session, company, transportation_type="van-14")
    await booking_service.create_booking(db_session, TRAVELER_A, booking_request(van, seat_count=10))
    booking = await booking_service.create_booking(db_session, TRAVELER_B, booking_request(van, seat_count=2))

    with pytest.raises(InsufficientCapacity) as exc_info:
        await booking_service.update_by_requester(
            db_session, booking.id, TRAVELER_B, BookingUpdate(seat_count=5)
        )
    assert exc_info.value.available == 4
    assert booking.requested_seat_count == 2

    updated = await booking_service.update_by_requester(
        db_session, booking.id, TRAVELER_B, BookingUpdate(seat_count=4)
    )
    assert updated.total_price == Decimal("2000.00")


@pytest.mark.asyncio
async def test_edit_keeps_unit_price_from_creation(db_session, trip):
    booking = await booking_service.create_booking(db_session, TRAVELER_A, booking_request(trip))
    trip.unit_price = Decimal("900")
    await db_session.flush()

    updated = await booking_service.update_by_requester(
        db_session, booking.id, TRAVELER_A, BookingUpdate(seat_count=2)
    )
    assert updated.unit_price == Decimal("500.00")
    assert updated.total_price == Decimal("1000.00")


@pytest.mark.asyncio
async def test_acquire_seat_map_bumps_version(db_session, trip):
    before = trip.version
    version = await seat_map.acquire_seat_map(db_session, trip.id)
    assert version == before + 1
    assert await seat_map.acquire_seat_map(db_session, trip.id) == before + 2


def test_generate_reference_format():
    reference = booking_service.generate_reference()
    prefix, stamp, suffix = reference.split("-")
    assert prefix == "REF"
    assert stamp.isalnum() and stamp.isupper()
    assert len(suffix) == 5
    assert booking_service.generate_reference() != reference
