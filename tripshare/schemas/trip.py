"""
Pydantic schemas for a trip's seat availability.
"""

from pydantic import BaseModel


class ConfirmedSeatResponse(BaseModel):
    seat_label: str
    occupant_name: str
    booking_id: int

    model_config = {"from_attributes": True}


class TripSeatsResponse(BaseModel):
    trip_id: int
    transportation_type: str
    capacity: int
    committed_seats: int
    available_seats: int
    confirmed: list[ConfirmedSeatResponse]
    unavailable: list[str]
