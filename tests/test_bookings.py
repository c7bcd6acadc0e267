"""
Tests for booking endpoints: creation, operator decisions, edits and errors.
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from conftest import booking_payload, make_trip, OPERATOR_ID, TRAVELER_A
from tripshare.models import ConfirmedSeat, Notification


async def _create(client: AsyncClient, headers: dict, trip_id: int, **overrides) -> dict:
    response = await client.post(
        "/api/v1/bookings", json=booking_payload(trip_id, **overrides), headers=headers
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_booking(client: AsyncClient, traveler_a_headers, trip):
    """New bookings are pending with financials fixed at creation."""
    data = await _create(client, traveler_a_headers, trip.id, seat_count=2, seat_labels=["A1", "A2"])

    assert data["status"] == "pending"
    assert data["payment_status"] == "pending"
    assert data["payment_method"] == "cash"
    assert data["requester_id"] == TRAVELER_A
    assert data["requester_name"] == "أحمد علي"
    assert data["requested_seat_labels"] == ["A1", "A2"]
    assert data["reference"].startswith("REF-")
    assert data["unit_price"] == 500
    assert data["total_price"] == 1000
    assert data["commission"] == 50
    assert data["net_to_operator"] == 950


@pytest.mark.asyncio
async def test_create_booking_unauthenticated(client: AsyncClient, trip):
    response = await client.post("/api/v1/bookings", json=booking_payload(trip.id))
    assert response.status_code == 401
    assert response.json()["error"] == "AuthenticationError"


@pytest.mark.asyncio
async def test_create_booking_invalid_token(client: AsyncClient, trip):
    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(trip.id),
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_booking_missing_fields(client: AsyncClient, traveler_a_headers, trip):
    """Body validation failures render as 400 ValidationError."""
    response = await client.post(
        "/api/v1/bookings", json={"trip_id": trip.id}, headers=traveler_a_headers
    )
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "ValidationError"
    assert "seat_count" in body["fields"]
    assert "phone" in body["fields"]


@pytest.mark.asyncio
async def test_create_booking_invalid_phone(client: AsyncClient, traveler_a_headers, trip):
    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(trip.id, phone="0201234567"),
        headers=traveler_a_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"


@pytest.mark.asyncio
async def test_create_booking_unknown_trip(client: AsyncClient, traveler_a_headers, trip):
    response = await client.post(
        "/api/v1/bookings", json=booking_payload(trip.id + 999), headers=traveler_a_headers
    )
    assert response.status_code == 404
    assert response.json()["error"] == "NotFound"


@pytest.mark.asyncio
async def test_create_booking_rejects_unpriced_trip(
    client: AsyncClient, db_session, traveler_a_headers, company
):
    """A price label without digits must not produce a free booking."""
    free_trip = await make_trip(db_session, company, unit_price=None, price_label="اتصل بنا")
    response = await client.post(
        "/api/v1/bookings", json=booking_payload(free_trip.id), headers=traveler_a_headers
    )
    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"


@pytest.mark.asyncio
async def test_create_booking_parses_price_label(
    client: AsyncClient, db_session, traveler_a_headers, company
):
    labelled = await make_trip(db_session, company, unit_price=None, price_label="٧٥٠ جنيه للفرد")
    data = await _create(client, traveler_a_headers, labelled.id, seat_count=2)
    assert data["unit_price"] == 750
    assert data["total_price"] == 1500


@pytest.mark.asyncio
async def test_seat_label_count_must_match(client: AsyncClient, traveler_a_headers, trip):
    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(trip.id, seat_count=2, seat_labels=["A1"]),
        headers=traveler_a_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_duplicate_booking(client: AsyncClient, traveler_a_headers, trip):
    """Same traveler cannot hold two active bookings on one trip."""
    await _create(client, traveler_a_headers, trip.id)

    response = await client.post(
        "/api/v1/bookings", json=booking_payload(trip.id), headers=traveler_a_headers
    )
    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"


@pytest.mark.asyncio
async def test_capacity_exceeded(
    client: AsyncClient, db_session, traveler_a_headers, traveler_b_headers, company
):
    van = await make_trip(db_session, company, transportation_type="van-14")
    await _create(client, traveler_a_headers, van.id, seat_count=10)

    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(van.id, seat_count=5),
        headers=traveler_b_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "InsufficientCapacity"


@pytest.mark.asyncio
async def test_list_my_bookings(client: AsyncClient, traveler_a_headers, traveler_b_headers, trip):
    await _create(client, traveler_a_headers, trip.id)
    await _create(client, traveler_b_headers, trip.id)

    response = await client.get("/api/v1/bookings/mine", headers=traveler_a_headers)
    assert response.status_code == 200
    bookings = response.json()
    assert len(bookings) == 1
    assert bookings[0]["requester_id"] == TRAVELER_A


@pytest.mark.asyncio
async def test_list_company_bookings(
    client: AsyncClient, traveler_a_headers, staff_headers, outsider_headers, trip
):
    await _create(client, traveler_a_headers, trip.id)

    response = await client.get("/api/v1/bookings/company", headers=staff_headers)
    assert response.status_code == 200
    assert len(response.json()) == 1

    response = await client.get("/api/v1/bookings/company", headers=outsider_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_verify_reference_is_public(client: AsyncClient, traveler_a_headers, trip):
    booking = await _create(client, traveler_a_headers, trip.id)

    response = await client.get(f"/api/v1/bookings/verify/{booking['reference']}")
    assert response.status_code == 200
    assert response.json()["id"] == booking["id"]

    response = await client.get("/api/v1/bookings/verify/REF-NOPE-00000")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_accept_booking(
    client: AsyncClient, db_session, traveler_a_headers, operator_headers, trip
):
    booking = await _create(client, traveler_a_headers, trip.id, seat_count=2, seat_labels=["A1", "A2"])

    response = await client.post(f"/api/v1/bookings/{booking['id']}/accept", headers=operator_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "accepted"
    assert response.json()["status_updated_at"] is not None

    seats = (await db_session.execute(select(ConfirmedSeat))).scalars().all()
    assert sorted(s.seat_label for s in seats) == ["A1", "A2"]
    assert {s.booking_id for s in seats} == {booking["id"]}


@pytest.mark.asyncio
async def test_accept_by_profile_linked_operator(
    client: AsyncClient, traveler_a_headers, staff_headers, trip
):
    booking = await _create(client, traveler_a_headers, trip.id)
    response = await client.post(f"/api/v1/bookings/{booking['id']}/accept", headers=staff_headers)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_accept_requires_company_link(
    client: AsyncClient, traveler_a_headers, outsider_headers, trip
):
    booking = await _create(client, traveler_a_headers, trip.id)

    response = await client.post(f"/api/v1/bookings/{booking['id']}/accept", headers=outsider_headers)
    assert response.status_code == 403
    assert response.json()["error"] == "AuthorizationError"


@pytest.mark.asyncio
async def test_accept_missing_booking(client: AsyncClient, operator_headers, trip):
    response = await client.post("/api/v1/bookings/4242/accept", headers=operator_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_reject_booking(
    client: AsyncClient, db_session, traveler_a_headers, operator_headers, trip
):
    booking = await _create(client, traveler_a_headers, trip.id)

    response = await client.post(
        f"/api/v1/bookings/{booking['id']}/reject",
        json={"reason": "الرحلة مكتملة"},
        headers=operator_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "rejected"
    assert response.json()["rejection_reason"] == "الرحلة مكتملة"

    notes = (
        await db_session.execute(select(Notification).where(Notification.recipient_id == TRAVELER_A))
    ).scalars().all()
    assert any("الرحلة مكتملة" in n.message for n in notes)


@pytest.mark.asyncio
async def test_reject_without_reason(client: AsyncClient, traveler_a_headers, operator_headers, trip):
    booking = await _create(client, traveler_a_headers, trip.id)

    response = await client.post(f"/api/v1/bookings/{booking['id']}/reject", headers=operator_headers)
    assert response.status_code == 200
    assert response.json()["rejection_reason"] == "لم يتم توضيح السبب"


@pytest.mark.asyncio
async def test_requester_cancel_pending(client: AsyncClient, traveler_a_headers, trip):
    booking = await _create(client, traveler_a_headers, trip.id)

    response = await client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=traveler_a_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert response.json()["cancellation_reason"] == "تم الإلغاء من قبل المستخدم"


@pytest.mark.asyncio
async def test_cancel_twice_is_invalid(client: AsyncClient, traveler_a_headers, trip):
    booking = await _create(client, traveler_a_headers, trip.id)
    await client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=traveler_a_headers)

    response = await client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=traveler_a_headers)
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "InvalidTransition"
    assert body["detail"] == "الطلب ملغي بالفعل"


@pytest.mark.asyncio
async def test_only_requester_can_cancel(
    client: AsyncClient, traveler_a_headers, traveler_b_headers, trip
):
    booking = await _create(client, traveler_a_headers, trip.id)

    response = await client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=traveler_b_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_requester_cancel_accepted_releases_seats(
    client: AsyncClient, db_session, traveler_a_headers, operator_headers, trip
):
    booking = await _create(client, traveler_a_headers, trip.id, seat_count=2, seat_labels=["B1", "B2"])
    await client.post(f"/api/v1/bookings/{booking['id']}/accept", headers=operator_headers)

    response = await client.post(f"/api/v1/bookings/{booking['id']}/cancel", headers=traveler_a_headers)
    assert response.status_code == 200

    seats = (await db_session.execute(select(ConfirmedSeat))).scalars().all()
    assert seats == []

    operator_notes = (
        await db_session.execute(select(Notification).where(Notification.recipient_id == OPERATOR_ID))
    ).scalars().all()
    assert any(booking["reference"] in n.message for n in operator_notes)


@pytest.mark.asyncio
async def test_edit_pending_booking_recomputes_financials(
    client: AsyncClient, traveler_a_headers, trip
):
    booking = await _create(client, traveler_a_headers, trip.id)

    response = await client.put(
        f"/api/v1/bookings/{booking['id']}",
        json={"seat_count": 3, "special_requests": "مقاعد متجاورة"},
        headers=traveler_a_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["requested_seat_count"] == 3
    assert data["total_price"] == 1500
    assert data["commission"] == 75
    assert data["net_to_operator"] == 1425
    assert data["special_requests"] == "مقاعد متجاورة"


@pytest.mark.asyncio
async def test_edit_seat_labels_checks_conflicts(
    client: AsyncClient, traveler_a_headers, traveler_b_headers, trip
):
    await _create(client, traveler_a_headers, trip.id, seat_labels=["C1"])
    other = await _create(client, traveler_b_headers, trip.id, seat_labels=["C2"])

    response = await client.put(
        f"/api/v1/bookings/{other['id']}",
        json={"seat_labels": ["C1"]},
        headers=traveler_b_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "SeatConflict"
    assert response.json()["seats"] == ["C1"]

    # Re-selecting the booking's own seat is not a conflict
    response = await client.put(
        f"/api/v1/bookings/{other['id']}",
        json={"seat_labels": ["C2"]},
        headers=traveler_b_headers,
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_edit_accepted_booking_is_invalid(
    client: AsyncClient, traveler_a_headers, operator_headers, trip
):
    booking = await _create(client, traveler_a_headers, trip.id)
    await client.post(f"/api/v1/bookings/{booking['id']}/accept", headers=operator_headers)

    response = await client.put(
        f"/api/v1/bookings/{booking['id']}",
        json={"seat_count": 2},
        headers=traveler_a_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidTransition"


@pytest.mark.asyncio
async def test_update_payment(
    client: AsyncClient, db_session, traveler_a_headers, operator_headers, trip, transport
):
    booking = await _create(client, traveler_a_headers, trip.id)
    await client.post(f"/api/v1/bookings/{booking['id']}/accept", headers=operator_headers)
    pushes_before = len(transport.published)

    response = await client.put(
        f"/api/v1/bookings/{booking['id']}/payment",
        json={"payment_status": "paid", "payment_method": "card"},
        headers=operator_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "accepted"
    assert response.json()["payment_status"] == "paid"
    assert response.json()["payment_method"] == "card"
    assert len(transport.published) == pushes_before


@pytest.mark.asyncio
async def test_update_payment_requires_accepted(
    client: AsyncClient, traveler_a_headers, operator_headers, trip
):
    booking = await _create(client, traveler_a_headers, trip.id)

    response = await client.put(
        f"/api/v1/bookings/{booking['id']}/payment",
        json={"payment_status": "paid"},
        headers=operator_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "InvalidTransition"


@pytest.mark.asyncio
async def test_update_payment_rejects_unknown_status(
    client: AsyncClient, traveler_a_headers, operator_headers, trip
):
    booking = await _create(client, traveler_a_headers, trip.id)
    response = await client.put(
        f"/api/v1/bookings/{booking['id']}/payment",
        json={"payment_status": "free"},
        headers=operator_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_trip_seats_endpoint(
    client: AsyncClient, traveler_a_headers, traveler_b_headers, operator_headers, trip
):
    accepted = await _create(client, traveler_a_headers, trip.id, seat_count=2, seat_labels=["A1", "A2"])
    await client.post(f"/api/v1/bookings/{accepted['id']}/accept", headers=operator_headers)
    await _create(client, traveler_b_headers, trip.id, seat_labels=["D4"])

    response = await client.get(f"/api/v1/trips/{trip.id}/seats", headers=traveler_b_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["capacity"] == 48
    assert data["committed_seats"] == 3
    assert data["available_seats"] == 45
    assert [s["seat_label"] for s in data["confirmed"]] == ["A1", "A2"]
    assert data["unavailable"] == ["A1", "A2", "D4"]


@pytest.mark.asyncio
async def test_health_and_metrics(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["cache"] == {"status": "disabled"}

    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "booking_transitions_total" in response.text
