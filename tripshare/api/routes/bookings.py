"""
Booking endpoints: traveler requests, operator decisions and analytics.

Literal paths (`/mine`, `/company`, `/analytics`, `/verify/...`) are declared
before the `/{booking_id}` routes so they are matched first.
"""

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from tripshare.db.session import get_db
from tripshare.schemas.booking import (
    BookingCreate,
    BookingUpdate,
    BookingReason,
    PaymentUpdate,
    BookingResponse,
    BookingAnalytics,
)
from tripshare.services import booking_service
from tripshare.core.security import get_current_user_id

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Request seats on a trip.

    The booking starts as pending. Requested seat labels are reserved
    provisionally; a label that is already confirmed or requested by another
    pending booking fails with SeatConflict.
    """
    return await booking_service.create_booking(db, user_id, booking_data)


@router.get("/mine", response_model=list[BookingResponse])
async def list_my_bookings(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.list_user_bookings(db, user_id)


@router.get("/company", response_model=list[BookingResponse])
async def list_company_bookings(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """All bookings on trips of the companies linked to the caller."""
    return await booking_service.list_company_bookings(db, user_id)


@router.get("/analytics", response_model=BookingAnalytics)
async def booking_analytics(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.get_booking_analytics(db, user_id)


@router.get("/verify/{reference}", response_model=BookingResponse)
async def verify_booking(reference: str, db: AsyncSession = Depends(get_db)):
    """Public lookup by booking reference (QR code verification)."""
    return await booking_service.get_booking_by_reference(db, reference)


@router.put("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: int,
    changes: BookingUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.update_by_requester(db, booking_id, user_id, changes)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.cancel_by_requester(db, booking_id, user_id)


@router.post("/{booking_id}/accept", response_model=BookingResponse)
async def accept_booking(
    booking_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Accept a pending booking and write its seats onto the trip's seat map."""
    return await booking_service.accept_booking(db, booking_id, user_id)


@router.post("/{booking_id}/reject", response_model=BookingResponse)
async def reject_booking(
    booking_id: int,
    body: Optional[BookingReason] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    reason = body.reason if body else None
    return await booking_service.reject_booking(db, booking_id, user_id, reason)


@router.post("/{booking_id}/cancel-by-company", response_model=BookingResponse)
async def cancel_booking_by_company(
    booking_id: int,
    body: Optional[BookingReason] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    reason = body.reason if body else None
    return await booking_service.cancel_by_company(db, booking_id, user_id, reason)


@router.put("/{booking_id}/payment", response_model=BookingResponse)
async def update_payment(
    booking_id: int,
    payment: PaymentUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await booking_service.update_payment(db, booking_id, user_id, payment)
