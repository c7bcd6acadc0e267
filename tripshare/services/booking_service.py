"""
Booking lifecycle: creation, operator decisions, cancellations and edits.

Every public function here is one unit of work on the caller's session:
validate, mutate, flush, then fan out notifications. The route's `get_db`
dependency commits or rolls back the whole thing, so a raised BookingError
never leaves a partial write.

Side-effect order inside a transition is fixed:
  1. authorization (403), then the booking row lock (`_lock_booking`) and
     the legality check (InvalidTransition) against the locked status
  2. seat map mutation (claim on accept, release on cancel of accepted)
  3. booking status/audit fields
  4. notification to the other party (failures swallowed)
  5. analytics cache invalidation, queued to run after the commit
"""

import secrets
import string
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from functools import partial
from typing import Optional

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from tripshare.core.exceptions import NotFound, ValidationError, AuthorizationError
from tripshare.core.logging import get_logger
from tripshare.core.metrics import record_transition, booking_latency
from tripshare.db.session import on_commit
from tripshare.models.booking import Booking, BookingStatus, PaymentStatus
from tripshare.models.company import Company
from tripshare.models.trip import Trip
from tripshare.schemas.booking import BookingCreate, BookingUpdate, PaymentUpdate
from tripshare.services import seat_map, seat_resolver
from tripshare.services.authorization import (
    ensure_company_operator,
    operator_recipient,
    require_linked_company_ids,
)
from tripshare.services.cache_service import (
    get_cached_analytics,
    set_cached_analytics,
    invalidate_company_analytics,
)
from tripshare.services.notification_service import notify, SYSTEM
from tripshare.services.pricing import compute_financials, parse_unit_price
from tripshare.services.state_machine import BookingEvent, next_status
from tripshare.services.validators import normalize_phone, validate_seat_selection

logger = get_logger(__name__)

DEFAULT_REQUESTER_NAME = "مسافر"
REQUESTER_CANCEL_REASON = "تم الإلغاء من قبل المستخدم"
DEFAULT_REJECTION_REASON = "لم يتم توضيح السبب"
DEFAULT_COMPANY_CANCEL_REASON = "تم إلغاء الحجز من قبل الشركة"

_REF_ALPHABET = string.ascii_uppercase + string.digits
_BASE36 = string.digits + string.ascii_uppercase


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _base36(number: int) -> str:
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_reference() -> str:
    """Human-readable, globally unique booking reference, e.g. REF-LZ3K9QX1-7GQ2M."""
    stamp = _base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_REF_ALPHABET) for _ in range(5))
    return f"REF-{stamp}-{suffix}"


def _booking_metadata(booking: Booking, **extra) -> dict:
    return {
        "booking_id": booking.id,
        "booking_reference": booking.reference,
        "trip_id": booking.trip_id,
        "status": booking.status,
        **{k: v for k, v in extra.items() if v is not None},
    }


async def get_booking(db: AsyncSession, booking_id: int) -> Booking:
    booking = await db.get(Booking, booking_id)
    if booking is None:
        raise NotFound("الحجز غير موجود")
    return booking


async def get_booking_by_reference(db: AsyncSession, reference: str) -> Booking:
    result = await db.execute(select(Booking).where(Booking.reference == reference))
    booking = result.scalar_one_or_none()
    if booking is None:
        raise NotFound("الحجز غير موجود")
    return booking


def _ensure_requester(booking: Booking, actor_id: str) -> None:
    if booking.requester_id != actor_id:
        logger.warning("requester_forbidden", booking_ref=booking.reference, actor_id=actor_id)
        raise AuthorizationError("غير مصرح لك بتعديل هذا الحجز")


def _resolve_unit_price(trip: Trip) -> Decimal:
    unit_price = Decimal(trip.unit_price) if trip.unit_price is not None else parse_unit_price(trip.price_label)
    if unit_price <= 0:
        logger.warning("invalid_trip_pricing", trip_id=trip.id, price_label=trip.price_label)
        raise ValidationError("تسعير الرحلة غير صالح، لا يمكن إتمام الحجز")
    return unit_price


async def _save(db: AsyncSession, booking: Booking) -> Booking:
    await db.flush()
    await db.refresh(booking)
    return booking


async def _lock_booking(db: AsyncSession, booking: Booking) -> Booking:
    """
    Hold the booking's row for the rest of the transaction and reload it.

    The no-op UPDATE takes the row lock on Postgres and the write lock on
    SQLite (where FOR UPDATE is ignored). Anything read from the booking
    after this, status included, is the last committed state and cannot
    change under us until we commit or roll back.
    """
    result = await db.execute(
        update(Booking)
        .where(Booking.id == booking.id)
        .values(status=Booking.status)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise NotFound("الحجز غير موجود")
    stale_status = booking.status
    await db.refresh(booking)
    if booking.status != stale_status:
        logger.info(
            "booking_status_moved",
            booking_ref=booking.reference,
            seen=stale_status,
            current=booking.status,
        )
    return booking


def _invalidate_analytics(db: AsyncSession, company_id: int) -> None:
    on_commit(db, partial(invalidate_company_analytics, company_id))


async def create_booking(db: AsyncSession, requester_id: str, data: BookingCreate) -> Booking:
    """
    Create a pending booking.

    Requested seat labels are checked against the trip's confirmed seats and
    every other pending request, and the seat count against the remaining
    capacity. Both checks run with the trip's seat map acquired so two
    concurrent requests cannot both take the last seats.
    """
    started = time.perf_counter()
    phone = normalize_phone(data.phone)
    labels = validate_seat_selection(data.seat_labels, data.seat_count)

    trip = await db.get(Trip, data.trip_id)
    if trip is None:
        raise NotFound("الرحلة غير موجودة")

    if trip.start_date and _as_utc(trip.start_date) <= _utcnow():
        raise ValidationError("لا يمكن الحجز بعد بدء موعد الرحلة")

    company = await db.get(Company, trip.company_id)
    if company is None:
        raise NotFound("الشركة غير موجودة")

    await seat_map.acquire_seat_map(db, trip.id)

    existing = await db.execute(
        select(Booking.id).where(
            Booking.trip_id == trip.id,
            Booking.requester_id == requester_id,
            Booking.status.in_([BookingStatus.PENDING.value, BookingStatus.ACCEPTED.value]),
        )
    )
    if existing.first() is not None:
        raise ValidationError("لديك حجز سابق لهذه الرحلة بالفعل")

    await seat_resolver.ensure_seats_available(db, trip.id, labels, stage="create")
    await seat_resolver.ensure_capacity(db, trip, data.seat_count)

    financials = compute_financials(_resolve_unit_price(trip), data.seat_count)
    name = " ".join(p for p in (data.first_name, data.last_name) if p).strip() or DEFAULT_REQUESTER_NAME

    booking = Booking(
        reference=generate_reference(),
        trip_id=trip.id,
        company_id=company.id,
        trip_title=trip.title,
        company_name=company.name,
        requester_id=requester_id,
        requester_name=name,
        requester_email=data.email,
        requester_phone=phone,
        requested_seat_count=data.seat_count,
        requested_seat_labels=labels,
        requested_date=data.date,
        special_requests=data.special_requests or "",
        unit_price=financials.unit_price,
        total_price=financials.total_price,
        commission=financials.commission,
        net_to_operator=financials.net_to_operator,
        status=BookingStatus.PENDING.value,
        payment_status=PaymentStatus.PENDING.value,
    )
    db.add(booking)
    await _save(db, booking)

    logger.info(
        "booking_created",
        booking_ref=booking.reference,
        trip_id=trip.id,
        requester_id=requester_id,
        seats=data.seat_count,
        seat_labels=labels,
        total_price=str(booking.total_price),
    )
    record_transition("create")
    booking_latency.labels(event="create").observe(time.perf_counter() - started)

    await notify(
        db,
        recipient_id=operator_recipient(company),
        actor_id=requester_id,
        actor_name=name,
        type=SYSTEM,
        message=f'حجز جديد لرحلة "{trip.title}" من {name}',
        metadata=_booking_metadata(booking, seats=labels or None),
    )
    _invalidate_analytics(db, company.id)
    return booking


async def list_user_bookings(db: AsyncSession, user_id: str) -> list[Booking]:
    result = await db.execute(
        select(Booking)
        .where(Booking.requester_id == user_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())


async def list_company_bookings(db: AsyncSession, operator_id: str) -> list[Booking]:
    company_ids = await require_linked_company_ids(db, operator_id)
    result = await db.execute(
        select(Booking)
        .where(Booking.company_id.in_(company_ids))
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())


async def cancel_by_requester(db: AsyncSession, booking_id: int, requester_id: str) -> Booking:
    booking = await get_booking(db, booking_id)
    _ensure_requester(booking, requester_id)
    await _lock_booking(db, booking)

    previous = booking.status
    new_status = next_status(previous, BookingEvent.CANCEL_BY_REQUESTER)

    released = 0
    if previous == BookingStatus.ACCEPTED.value:
        released = await seat_map.release_seats(db, booking)

    booking.status = new_status.value
    booking.cancellation_reason = REQUESTER_CANCEL_REASON
    booking.status_updated_at = _utcnow()
    await _save(db, booking)

    logger.info(
        "booking_cancelled",
        booking_ref=booking.reference,
        by="requester",
        previous_status=previous,
        seats_released=released,
    )
    record_transition(BookingEvent.CANCEL_BY_REQUESTER.value)

    company = await db.get(Company, booking.company_id)
    if company is not None:
        await notify(
            db,
            recipient_id=operator_recipient(company),
            actor_id=requester_id,
            actor_name=booking.requester_name,
            type=SYSTEM,
            message=(
                f'ألغى {booking.requester_name} حجزه لرحلة "{booking.trip_title}" '
                f"(المرجع: {booking.reference})."
            ),
            metadata=_booking_metadata(booking, reason=booking.cancellation_reason),
        )
    _invalidate_analytics(db, booking.company_id)
    return booking


async def update_by_requester(
    db: AsyncSession,
    booking_id: int,
    requester_id: str,
    data: BookingUpdate,
) -> Booking:
    """
    Edit a pending booking's request fields.

    A changed seat count recomputes the financials from the unit price fixed
    at creation. New seat labels go through the conflict resolver again and a
    larger seat count goes through the capacity check again.
    """
    booking = await get_booking(db, booking_id)
    _ensure_requester(booking, requester_id)
    await _lock_booking(db, booking)
    next_status(booking.status, BookingEvent.EDIT)

    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("لا توجد بيانات للتعديل")

    seat_count = changes.get("seat_count") or booking.requested_seat_count
    labels = changes["seat_labels"] if changes.get("seat_labels") is not None else booking.seat_labels
    labels = validate_seat_selection(labels, seat_count)

    relabelled = "seat_labels" in changes and bool(labels)
    grows = seat_count > booking.requested_seat_count
    if relabelled or grows:
        trip = await db.get(Trip, booking.trip_id)
        if trip is None:
            raise NotFound("الرحلة غير موجودة")
        await seat_map.acquire_seat_map(db, trip.id)
        if relabelled:
            await seat_resolver.ensure_seats_available(
                db, trip.id, labels, exclude_booking_id=booking.id, stage="edit"
            )
        if grows:
            await seat_resolver.ensure_capacity(db, trip, seat_count, exclude_booking_id=booking.id)

    if seat_count != booking.requested_seat_count:
        financials = compute_financials(booking.unit_price, seat_count)
        booking.requested_seat_count = seat_count
        booking.total_price = financials.total_price
        booking.commission = financials.commission
        booking.net_to_operator = financials.net_to_operator

    if labels != booking.seat_labels:
        booking.requested_seat_labels = labels
    if changes.get("phone") is not None:
        booking.requester_phone = normalize_phone(changes["phone"])
    if changes.get("email") is not None:
        booking.requester_email = changes["email"]
    if changes.get("special_requests") is not None:
        booking.special_requests = changes["special_requests"]
    if changes.get("date") is not None:
        booking.requested_date = changes["date"]

    await _save(db, booking)

    logger.info(
        "booking_updated",
        booking_ref=booking.reference,
        fields=sorted(changes),
        seats=booking.requested_seat_count,
        total_price=str(booking.total_price),
    )
    record_transition(BookingEvent.EDIT.value)
    _invalidate_analytics(db, booking.company_id)
    return booking


async def accept_booking(db: AsyncSession, booking_id: int, operator_id: str) -> Booking:
    """
    Accept a pending booking and materialize its seats.

    Accepting an already-accepted booking re-runs the seat claim, which skips
    labels the booking already holds, and does not notify again.
    """
    started = time.perf_counter()
    booking = await get_booking(db, booking_id)
    company = await ensure_company_operator(db, operator_id, booking.company_id)
    await _lock_booking(db, booking)

    previous = booking.status
    new_status = next_status(previous, BookingEvent.ACCEPT)

    trip = await db.get(Trip, booking.trip_id)
    if trip is None:
        raise NotFound("الرحلة غير موجودة")

    await seat_map.claim_seats(db, trip, booking)

    if previous == new_status.value:
        logger.info("booking_accept_repeated", booking_ref=booking.reference)
        return booking

    booking.status = new_status.value
    booking.status_updated_at = _utcnow()
    await _save(db, booking)

    logger.info(
        "booking_accepted",
        booking_ref=booking.reference,
        trip_id=trip.id,
        operator_id=operator_id,
        seats=booking.seat_labels,
    )
    record_transition(BookingEvent.ACCEPT.value)
    booking_latency.labels(event="accept").observe(time.perf_counter() - started)

    await notify(
        db,
        recipient_id=booking.requester_id,
        actor_id=operator_id,
        actor_name=company.name,
        type=SYSTEM,
        message=f'تم قبول حجزك لرحلة "{booking.trip_title}" 🎉',
        metadata=_booking_metadata(booking, seats=booking.seat_labels or None),
    )
    _invalidate_analytics(db, booking.company_id)
    return booking


async def reject_booking(
    db: AsyncSession,
    booking_id: int,
    operator_id: str,
    reason: Optional[str] = None,
) -> Booking:
    booking = await get_booking(db, booking_id)
    company = await ensure_company_operator(db, operator_id, booking.company_id)
    await _lock_booking(db, booking)
    new_status = next_status(booking.status, BookingEvent.REJECT)

    booking.status = new_status.value
    booking.rejection_reason = (reason or "").strip() or DEFAULT_REJECTION_REASON
    booking.status_updated_at = _utcnow()
    await _save(db, booking)

    logger.info("booking_rejected", booking_ref=booking.reference, operator_id=operator_id)
    record_transition(BookingEvent.REJECT.value)

    await notify(
        db,
        recipient_id=booking.requester_id,
        actor_id=operator_id,
        actor_name=company.name,
        type=SYSTEM,
        message=f'تم رفض حجزك لرحلة "{booking.trip_title}". السبب: {booking.rejection_reason}',
        metadata=_booking_metadata(booking, reason=booking.rejection_reason),
    )
    _invalidate_analytics(db, booking.company_id)
    return booking


async def cancel_by_company(
    db: AsyncSession,
    booking_id: int,
    operator_id: str,
    reason: Optional[str] = None,
) -> Booking:
    booking = await get_booking(db, booking_id)
    company = await ensure_company_operator(db, operator_id, booking.company_id)
    await _lock_booking(db, booking)
    new_status = next_status(booking.status, BookingEvent.CANCEL_BY_COMPANY)

    released = await seat_map.release_seats(db, booking)

    booking.status = new_status.value
    booking.cancellation_reason = (reason or "").strip() or DEFAULT_COMPANY_CANCEL_REASON
    booking.status_updated_at = _utcnow()
    await _save(db, booking)

    logger.info(
        "booking_cancelled",
        booking_ref=booking.reference,
        by="company",
        operator_id=operator_id,
        seats_released=released,
    )
    record_transition(BookingEvent.CANCEL_BY_COMPANY.value)

    await notify(
        db,
        recipient_id=booking.requester_id,
        actor_id=operator_id,
        actor_name=company.name,
        type=SYSTEM,
        message=(
            f'تم إلغاء حجزك لرحلة "{booking.trip_title}" من قبل الشركة. '
            f"السبب: {booking.cancellation_reason}"
        ),
        metadata=_booking_metadata(booking, reason=booking.cancellation_reason),
    )
    _invalidate_analytics(db, booking.company_id)
    return booking


async def update_payment(
    db: AsyncSession,
    booking_id: int,
    operator_id: str,
    data: PaymentUpdate,
) -> Booking:
    """Payment status is a label tracked by the operator; it is not notified."""
    booking = await get_booking(db, booking_id)
    await ensure_company_operator(db, operator_id, booking.company_id)
    await _lock_booking(db, booking)
    next_status(booking.status, BookingEvent.UPDATE_PAYMENT)

    if data.payment_status is None and data.payment_method is None:
        raise ValidationError("لا توجد بيانات دفع للتعديل")

    if data.payment_status is not None:
        booking.payment_status = data.payment_status.value
    if data.payment_method is not None:
        booking.payment_method = data.payment_method.value
    await _save(db, booking)

    logger.info(
        "booking_payment_updated",
        booking_ref=booking.reference,
        payment_status=booking.payment_status,
        payment_method=booking.payment_method,
    )
    record_transition(BookingEvent.UPDATE_PAYMENT.value)
    _invalidate_analytics(db, booking.company_id)
    return booking


def _window_starts(now: datetime) -> tuple[datetime, datetime, datetime]:
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    # Weeks start on Sunday
    start_of_week = start_of_day - timedelta(days=(start_of_day.weekday() + 1) % 7)
    start_of_month = start_of_day.replace(day=1)
    return start_of_day, start_of_week, start_of_month


async def _count(db: AsyncSession, *criteria) -> int:
    result = await db.execute(select(func.count(Booking.id)).where(*criteria))
    return int(result.scalar() or 0)


async def _sum_financials(db: AsyncSession, *criteria) -> dict[str, float]:
    result = await db.execute(
        select(
            func.coalesce(func.sum(Booking.total_price), 0),
            func.coalesce(func.sum(Booking.commission), 0),
            func.coalesce(func.sum(Booking.net_to_operator), 0),
        ).where(*criteria)
    )
    total, commission, net = result.one()
    return {"total": float(total), "commission": float(commission), "net": float(net)}


async def get_booking_analytics(db: AsyncSession, operator_id: str) -> dict:
    """Counts and revenue rollups across the operator's linked companies."""
    company_ids = await require_linked_company_ids(db, operator_id)

    cached = await get_cached_analytics(company_ids)
    if cached:
        cached["cached"] = True
        return cached

    day, week, month = _window_starts(_utcnow())
    in_company = Booking.company_id.in_(company_ids)
    accepted = Booking.status == BookingStatus.ACCEPTED.value

    overview = {
        "total_bookings": await _count(db, in_company),
        "pending_bookings": await _count(db, in_company, Booking.status == BookingStatus.PENDING.value),
        "accepted_bookings": await _count(db, in_company, accepted),
        "today_bookings": await _count(db, in_company, Booking.created_at >= day),
        "week_bookings": await _count(db, in_company, Booking.created_at >= week),
        "month_bookings": await _count(db, in_company, Booking.created_at >= month),
    }

    all_accepted = await _sum_financials(db, in_company, accepted)
    paid = await _sum_financials(db, in_company, accepted, Booking.payment_status == PaymentStatus.PAID.value)
    outstanding = await _sum_financials(
        db,
        in_company,
        accepted,
        Booking.payment_status.in_([PaymentStatus.PENDING.value, PaymentStatus.PARTIALLY_PAID.value]),
    )
    refunded = await _sum_financials(
        db, in_company, accepted, Booking.payment_status == PaymentStatus.REFUNDED.value
    )
    today = await _sum_financials(db, in_company, accepted, Booking.created_at >= day)
    this_week = await _sum_financials(db, in_company, accepted, Booking.created_at >= week)
    this_month = await _sum_financials(db, in_company, accepted, Booking.created_at >= month)

    analytics = {
        "overview": overview,
        "revenue": {
            "total": all_accepted["total"],
            "commission": all_accepted["commission"],
            "net": all_accepted["net"],
            "paid": paid["total"],
            "paid_commission": paid["commission"],
            "paid_net": paid["net"],
            "pending": outstanding["total"],
            "refunded": refunded["total"],
            "today": today["net"],
            "week": this_week["net"],
            "month": this_month["net"],
        },
        "cached": False,
    }
    await set_cached_analytics(company_ids, analytics)
    return analytics
