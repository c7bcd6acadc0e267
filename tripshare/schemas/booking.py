"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from tripshare.models.booking import PaymentStatus, PaymentMethod


def _clean_labels(labels: Optional[list[str]]) -> Optional[list[str]]:
    if labels is None:
        return None
    cleaned = [label.strip() for label in labels]
    if any(not label for label in cleaned):
        raise ValueError("seat labels must not be empty")
    return cleaned


class BookingCreate(BaseModel):
    trip_id: int
    seat_count: int = Field(..., gt=0, le=50)
    date: datetime
    phone: str = Field(..., min_length=1, max_length=20)
    seat_labels: list[str] = Field(default_factory=list, max_length=50)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    special_requests: str = Field("", max_length=1000)

    @field_validator("seat_labels")
    @classmethod
    def clean_seat_labels(cls, v):
        return _clean_labels(v)


class BookingUpdate(BaseModel):
    seat_count: Optional[int] = Field(None, gt=0, le=50)
    seat_labels: Optional[list[str]] = Field(None, max_length=50)
    date: Optional[datetime] = None
    phone: Optional[str] = Field(None, min_length=1, max_length=20)
    email: Optional[EmailStr] = None
    special_requests: Optional[str] = Field(None, max_length=1000)

    @field_validator("seat_labels")
    @classmethod
    def clean_seat_labels(cls, v):
        return _clean_labels(v)


class BookingReason(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class PaymentUpdate(BaseModel):
    payment_status: Optional[PaymentStatus] = None
    payment_method: Optional[PaymentMethod] = None


class BookingResponse(BaseModel):
    id: int
    reference: str
    trip_id: int
    company_id: int
    trip_title: str
    company_name: str
    requester_id: str
    requester_name: str
    requester_email: Optional[str]
    requester_phone: str
    requested_seat_count: int
    requested_seat_labels: list[str]
    requested_date: datetime
    special_requests: str
    unit_price: float
    total_price: float
    commission: float
    net_to_operator: float
    status: str
    payment_status: str
    payment_method: str
    status_updated_at: Optional[datetime]
    rejection_reason: Optional[str]
    cancellation_reason: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class AnalyticsOverview(BaseModel):
    total_bookings: int
    pending_bookings: int
    accepted_bookings: int
    today_bookings: int
    week_bookings: int
    month_bookings: int


class AnalyticsRevenue(BaseModel):
    total: float
    commission: float
    net: float
    paid: float
    paid_commission: float
    paid_net: float
    pending: float
    refunded: float
    today: float
    week: float
    month: float


class BookingAnalytics(BaseModel):
    overview: AnalyticsOverview
    revenue: AnalyticsRevenue
    cached: bool = False
