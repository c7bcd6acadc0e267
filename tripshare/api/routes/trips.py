"""
Trip seat availability.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tripshare.core.exceptions import NotFound
from tripshare.core.security import get_current_user_id
from tripshare.db.session import get_db
from tripshare.models.trip import Trip
from tripshare.schemas.trip import TripSeatsResponse, ConfirmedSeatResponse
from tripshare.services import seat_resolver

router = APIRouter(prefix="/trips", tags=["Trips"])


@router.get("/{trip_id}/seats", response_model=TripSeatsResponse)
async def get_trip_seats(
    trip_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Seat map view for the booking form: what is taken and what is left."""
    trip = await db.get(Trip, trip_id)
    if trip is None:
        raise NotFound("الرحلة غير موجودة")

    confirmed = await seat_resolver.get_confirmed_seats(db, trip_id)
    unavailable = await seat_resolver.get_unavailable_seats(db, trip_id)
    committed = await seat_resolver.committed_seat_count(db, trip_id)

    return TripSeatsResponse(
        trip_id=trip.id,
        transportation_type=trip.transportation_type,
        capacity=trip.capacity,
        committed_seats=committed,
        available_seats=max(trip.capacity - committed, 0),
        confirmed=[ConfirmedSeatResponse.model_validate(s) for s in confirmed],
        unavailable=sorted(unavailable),
    )
