"""
Cancellation, refund and status-transition engine.

STATE MACHINE
=============

    pending           -> confirmed | completed | no_show | cancelled*
    awaiting_approval -> confirmed | completed | no_show | cancelled*
    confirmed         -> completed | no_show | cancelled*

    cancelled, completed, no_show are absorbing.
    * only through cancel_booking, which owns the refund.

Rows are loaded FOR UPDATE, so two concurrent terminal writers serialize on
the booking row; the second one sees a terminal status and fails closed
instead of issuing a second refund.

REFUND ORDERING
===============

  provider reversal -> status write -> commit

A provider failure aborts before the booking is touched. A commit failure
after a successful refund is logged as `refund_issued_booking_not_cancelled`
so it can be repaired by hand.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from court_booking.core.exceptions import InvalidStateTransitionException, PermissionDeniedException
from court_booking.core.logging import get_logger
from court_booking.core.metrics import record_cancellation, record_status_transition
from court_booking.core.timeutils import create_instant, hours_until
from court_booking.models.booking import Booking, BookingStatus, RefundStatus
from court_booking.models.organization import CancellationPolicy
from court_booking.services.availability_service import get_court
from court_booking.services.booking_service import format_price, get_booking
from court_booking.services.interfaces.payment import PaymentProvider
from court_booking.services.membership_service import Actor

logger = get_logger(__name__)

ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW},
    BookingStatus.AWAITING_APPROVAL: {BookingStatus.CONFIRMED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW},
    BookingStatus.CONFIRMED: {BookingStatus.COMPLETED, BookingStatus.NO_SHOW},
}


@dataclass(frozen=True)
class RefundPolicy:
    free_cancellation_hours: int = 24
    partial_refund_hours: int = 12
    partial_refund_percent: int = 50
    no_refund_hours: int = 0

    @classmethod
    def from_model(cls, policy: Optional[CancellationPolicy]) -> "RefundPolicy":
        if policy is None:
            return cls()
        return cls(
            free_cancellation_hours=policy.free_cancellation_hours,
            partial_refund_hours=policy.partial_refund_hours,
            partial_refund_percent=policy.partial_refund_percent,
            no_refund_hours=policy.no_refund_hours,
        )


@dataclass(frozen=True)
class CancellationResult:
    success: bool
    refund_amount_cents: int
    refund_status: str
    message: str
    court_id: int
    booking_date: date


def calculate_refund(price_cents: int, hours_until_start: float, policy: RefundPolicy) -> int:
    """
    Refund owed for cancelling `hours_until_start` hours before the start.

    More notice never yields less money. Integer floor arithmetic; the result
    is always within [0, price_cents].
    """
    if price_cents <= 0 or hours_until_start < policy.no_refund_hours:
        return 0
    if hours_until_start >= policy.free_cancellation_hours:
        percent = 100
    elif hours_until_start >= policy.partial_refund_hours:
        percent = policy.partial_refund_percent
    else:
        return 0
    percent = max(0, min(100, percent))
    return price_cents * percent // 100


def refund_status_for(amount_cents: int, price_cents: int) -> RefundStatus:
    if amount_cents <= 0:
        return RefundStatus.NONE
    if amount_cents >= price_cents:
        return RefundStatus.REFUNDED
    return RefundStatus.PARTIAL


async def _load_policy(db: AsyncSession, organization_id: int) -> RefundPolicy:
    result = await db.execute(
        select(CancellationPolicy).where(CancellationPolicy.organization_id == organization_id)
    )
    return RefundPolicy.from_model(result.scalar_one_or_none())


def _ensure_not_terminal(booking: Booking) -> None:
    if booking.is_terminal:
        raise InvalidStateTransitionException(
            f"Booking is already {booking.status}",
            {"booking_id": booking.id, "status": booking.status},
        )


async def cancel_booking(
    db: AsyncSession,
    payments: PaymentProvider,
    booking_id: int,
    actor: Actor,
    *,
    reason: Optional[str] = None,
    force_cancel: bool = False,
    now: datetime,
) -> CancellationResult:
    """
    Cancel a booking and reverse its payment according to the cancellation policy.

    The booking's own player may cancel; so may an organization owner/admin.
    Only owner/admin may force-cancel, which refunds in full regardless of timing.
    """
    booking = await get_booking(db, booking_id, for_update=True)

    if booking.player_id != actor.user_id and not actor.is_admin:
        raise PermissionDeniedException("You can only cancel your own bookings")
    if force_cancel and not actor.is_admin:
        raise PermissionDeniedException("Only organization owners and admins can force-cancel a booking")
    _ensure_not_terminal(booking)

    court = await get_court(db, booking.court_id)
    start_at = create_instant(booking.booking_date, booking.start_time, court.facility.timezone)
    hours_left = hours_until(start_at, now)

    if force_cancel:
        refund_cents = booking.price_cents
    else:
        policy = await _load_policy(db, booking.organization_id)
        refund_cents = calculate_refund(booking.price_cents, hours_left, policy)

    refund_id = None
    if not booking.payment_intent_id:
        refund_cents = 0
    elif refund_cents > 0:
        reversal = await payments.reverse_authorization(booking.payment_intent_id, refund_cents)
        if reversal.voided:
            # Never captured: the hold is released and no money moved.
            refund_cents = 0
        refund_id = reversal.refund_id
    else:
        await payments.cancel_authorization(booking.payment_intent_id)

    refund_status = refund_status_for(refund_cents, booking.price_cents)

    booking.status = BookingStatus.CANCELLED.value
    booking.cancelled_at = now
    booking.cancelled_by = actor.user_id
    booking.cancellation_reason = reason
    booking.refund_amount_cents = refund_cents
    booking.refund_status = refund_status.value

    try:
        await db.flush()
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        if refund_id:
            logger.error(
                "refund_issued_booking_not_cancelled",
                booking_id=booking_id,
                refund_id=refund_id,
                refund_amount_cents=refund_cents,
                error=str(e),
            )
        raise

    record_status_transition(BookingStatus.CANCELLED.value)
    record_cancellation(refund_status.value, force_cancel, refund_cents)
    logger.info(
        "booking_cancelled",
        booking_id=booking_id,
        actor_id=actor.user_id,
        forced=force_cancel,
        hours_until_start=round(hours_left, 2),
        refund_amount_cents=refund_cents,
        refund_status=refund_status.value,
        refund_id=refund_id,
    )

    if refund_cents > 0:
        message = f"Booking cancelled. A refund of {format_price(refund_cents, booking.currency)} will be issued."
    else:
        message = "Booking cancelled. No refund applies."

    return CancellationResult(
        success=True,
        refund_amount_cents=refund_cents,
        refund_status=refund_status.value,
        message=message,
        court_id=booking.court_id,
        booking_date=booking.booking_date,
    )


async def update_booking_status(
    db: AsyncSession,
    booking_id: int,
    new_status: str,
    actor: Actor,
    now: datetime,
) -> Booking:
    """Confirm, complete or mark a booking as no-show."""
    try:
        target = BookingStatus(new_status)
    except ValueError:
        raise InvalidStateTransitionException(
            f"Invalid booking status: {new_status}",
            {"allowed": [s.value for s in BookingStatus]},
        )

    booking = await get_booking(db, booking_id, for_update=True)

    if booking.player_id != actor.user_id and not actor.is_staff:
        raise PermissionDeniedException("You do not have permission to update this booking")
    _ensure_not_terminal(booking)

    if target == BookingStatus.CANCELLED:
        raise InvalidStateTransitionException("Use the cancel endpoint to cancel a booking")
    if not actor.is_staff and target != BookingStatus.COMPLETED:
        raise PermissionDeniedException("Players can only mark their own booking as completed")

    current = BookingStatus(booking.status)
    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidStateTransitionException(
            f"Cannot change booking from {current.value} to {target.value}",
            {"from": current.value, "to": target.value},
        )

    if current == BookingStatus.AWAITING_APPROVAL and target == BookingStatus.CONFIRMED:
        booking.approved_by = actor.user_id
        booking.approved_at = now

    booking.status = target.value
    await db.flush()
    await db.commit()
    await db.refresh(booking)

    record_status_transition(target.value)
    logger.info(
        "booking_status_updated",
        booking_id=booking_id,
        actor_id=actor.user_id,
        from_status=current.value,
        to_status=target.value,
    )
    return booking
