"""
Booking endpoints: create, read, status updates and cancellation.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from court_booking.api.deps import actor_for_court, get_locale, get_now
from court_booking.core.exceptions import PermissionDeniedException, ValidationException
from court_booking.core.logging import get_logger
from court_booking.core.security import get_current_user_id
from court_booking.core.timeutils import parse_date
from court_booking.db.session import get_db
from court_booking.models.booking import Booking
from court_booking.schemas.booking import (
    BookingCreate,
    BookingCreateResponse,
    BookingResponse,
    BookingStatusUpdate,
    CancelRequest,
    CancellationResponse,
)
from court_booking.services.availability_service import get_court
from court_booking.services.booking_service import (
    create_booking,
    ensure_can_view,
    get_booking,
    list_bookings,
    to_booking_response,
)
from court_booking.services.cache_service import invalidate_slot_cache
from court_booking.services.cancellation_service import cancel_booking, update_booking_status
from court_booking.services.interfaces.payment import PaymentProvider
from court_booking.services.membership_service import resolve_actor
from court_booking.services.payment_factory import get_payment_provider

logger = get_logger(__name__)
router = APIRouter(prefix="/bookings", tags=["Bookings"])


async def _respond(db: AsyncSession, booking: Booking, now: datetime, locale: str) -> BookingResponse:
    court = await get_court(db, booking.court_id)
    return to_booking_response(booking, court.facility.timezone, now, locale)


@router.post("/", response_model=BookingCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    booking_data: BookingCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    payments: PaymentProvider = Depends(get_payment_provider),
    now: datetime = Depends(get_now),
):
    """
    Book a court window.

    The window is re-validated against current availability; a concurrent
    booking of the same window returns 409. Priced bookings return the
    payment client secret for the client to confirm.
    """
    actor = await actor_for_court(db, user_id, booking_data.court_id)
    result = await create_booking(db, payments, booking_data, actor, now)
    await invalidate_slot_cache(booking_data.court_id, parse_date(booking_data.booking_date))
    return BookingCreateResponse(
        booking_id=result.booking_id,
        status=result.status,
        client_secret=result.client_secret,
        price_cents=result.price_cents,
    )


@router.get("/", response_model=list[BookingResponse])
async def list_bookings_endpoint(
    organization_id: Optional[int] = Query(None, description="Staff only: list the organization's bookings"),
    court_id: Optional[int] = Query(None),
    date: Optional[str] = Query(None),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
    locale: str = Depends(get_locale),
):
    """The caller's own bookings, or an organization's bookings for its staff."""
    day = None
    if date:
        try:
            day = parse_date(date)
        except ValueError:
            raise ValidationException("date must be a YYYY-MM-DD date", {"field": "date"})

    if organization_id is not None:
        actor = await resolve_actor(db, user_id, organization_id)
        if not actor.is_staff:
            raise PermissionDeniedException("Only organization staff can list its bookings")
        bookings = await list_bookings(db, organization_id=organization_id, court_id=court_id, booking_date=day)
    else:
        bookings = await list_bookings(db, player_id=user_id, court_id=court_id, booking_date=day)

    return [await _respond(db, booking, now, locale) for booking in bookings]


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking_endpoint(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
    locale: str = Depends(get_locale),
):
    """Booking with its live status derived at request time."""
    booking = await get_booking(db, booking_id)
    actor = await resolve_actor(db, user_id, booking.organization_id)
    ensure_can_view(booking, actor)
    return await _respond(db, booking, now, locale)


@router.patch("/{booking_id}", response_model=BookingResponse)
async def update_booking_status_endpoint(
    booking_id: int,
    update: BookingStatusUpdate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
    locale: str = Depends(get_locale),
):
    """Confirm, complete or mark a booking as no-show."""
    booking = await get_booking(db, booking_id)
    actor = await resolve_actor(db, user_id, booking.organization_id)
    booking = await update_booking_status(db, booking_id, update.status, actor, now)
    await invalidate_slot_cache(booking.court_id, booking.booking_date)
    return await _respond(db, booking, now, locale)


@router.post("/{booking_id}/cancel", response_model=CancellationResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    cancel_request: Optional[CancelRequest] = None,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    payments: PaymentProvider = Depends(get_payment_provider),
    now: datetime = Depends(get_now),
):
    """Cancel a booking and refund according to the organization's cancellation policy."""
    cancel_request = cancel_request or CancelRequest()
    booking = await get_booking(db, booking_id)
    actor = await resolve_actor(db, user_id, booking.organization_id)
    result = await cancel_booking(
        db,
        payments,
        booking_id,
        actor,
        reason=cancel_request.reason,
        force_cancel=cancel_request.force_cancel,
        now=now,
    )
    await invalidate_slot_cache(result.court_id, result.booking_date)
    return CancellationResponse(
        success=result.success,
        refund_amount_cents=result.refund_amount_cents,
        refund_status=result.refund_status,
        message=result.message,
    )
