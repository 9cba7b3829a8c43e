"""
Booking transaction manager.

DOUBLE-BOOKING GUARD
====================

Problem:
  Two players view the same free slot and both submit. Both requests see the
  slot as available, both insert, the court is double-booked.

Solution, in two layers:
  1. Re-resolve the court's slots at write time (never from the cache, never
     from what the client saw) and require the requested window to be in
     the current result.
  2. A partial unique index on (court_id, booking_date, start_time, end_time)
     WHERE status != 'cancelled'. This is the actual guarantee: the losing
     concurrent insert raises IntegrityError and is reported as a conflict.

PAYMENT ORDERING
================

  authorize -> insert -> commit

  If authorization fails, nothing was written. If the insert fails after a
  successful authorization, the authorization is cancelled as a compensating
  action. If that also fails the authorization is orphaned: it is logged as
  `orphaned_payment_authorization` and counted so a sweep can release it.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from court_booking.core.config import get_settings
from court_booking.core.exceptions import (
    DomainException,
    NotFoundException,
    PaymentProviderException,
    PaymentSetupRequiredException,
    PermissionDeniedException,
    SlotUnavailableException,
    ValidationException,
)
from court_booking.core.logging import get_logger
from court_booking.core.metrics import booking_latency, orphaned_authorizations, record_booking_attempt
from court_booking.core.timeutils import (
    create_instant,
    format_time_range_in_timezone,
    hours_until,
    normalize_time,
    parse_date,
    parse_time,
    today_in_timezone,
)
from court_booking.models.booking import Booking, BookingStatus
from court_booking.models.organization import OrganizationSettings, PaymentAccount, PlayerBlock
from court_booking.schemas.booking import BookingCreate, BookingResponse, GuestContact
from court_booking.services.availability_service import get_court, resolve_slots_for_court
from court_booking.services.interfaces.payment import PaymentAuthorization, PaymentProvider
from court_booking.services.membership_service import Actor
from court_booking.services.status_service import booking_live_status

logger = get_logger(__name__)

_LEGACY_NOTE_FIELD = re.compile(r"^(?P<label>Guest|Email|Phone):\s*(?P<value>.*)$")


@dataclass(frozen=True)
class BookingCreateResult:
    booking_id: int
    status: str
    client_secret: Optional[str]
    price_cents: int


CURRENCY_SYMBOLS = {"CAD": "$", "USD": "$", "AUD": "$", "NZD": "$", "EUR": "€", "GBP": "£"}


def format_price(amount_cents: int, currency: str) -> str:
    """Amount with symbol and code, e.g. "€20.00 EUR"; unknown currencies get no symbol."""
    code = currency.upper()
    return f"{CURRENCY_SYMBOLS.get(code, '')}{amount_cents / 100:.2f} {code}"


def parse_legacy_guest_notes(notes: Optional[str]) -> Optional[GuestContact]:
    """
    Read guest contact from the old notes encoding:
    "Guest: X | Email: Y | Phone: Z | <caller notes>", where Email and Phone
    are omitted when empty. Labelled segments are read up to the
    first unlabelled one; whatever follows is the caller's own notes.
    """
    if not notes:
        return None
    fields = {}
    for segment in notes.split("|"):
        match = _LEGACY_NOTE_FIELD.match(segment.strip())
        if not match:
            break
        label = match.group("label").lower()
        if label in fields or (label == "guest") != (not fields):
            break
        fields[label] = match.group("value").strip()
    if not fields.get("guest"):
        return None
    return GuestContact(
        name=fields["guest"],
        email=fields.get("email") or None,
        phone=fields.get("phone") or None,
    )


def guest_contact_of(booking: Booking) -> Optional[GuestContact]:
    if booking.guest_name:
        return GuestContact(name=booking.guest_name, email=booking.guest_email, phone=booking.guest_phone)
    if booking.player_id is None:
        return parse_legacy_guest_notes(booking.notes)
    return None


def to_booking_response(
    booking: Booking,
    tz_name: Optional[str],
    now: datetime,
    locale: Optional[str] = "en-US",
) -> BookingResponse:
    return BookingResponse(
        id=booking.id,
        organization_id=booking.organization_id,
        court_id=booking.court_id,
        player_id=booking.player_id,
        booking_date=booking.booking_date,
        start_time=normalize_time(booking.start_time),
        end_time=normalize_time(booking.end_time),
        status=booking.status,
        live_status=booking_live_status(booking, tz_name, now).value,
        display_time=format_time_range_in_timezone(
            booking.booking_date, booking.start_time, booking.end_time, tz_name, locale
        ),
        price_cents=booking.price_cents,
        currency=booking.currency,
        requires_approval=booking.requires_approval,
        approved_by=booking.approved_by,
        approved_at=booking.approved_at,
        cancelled_at=booking.cancelled_at,
        cancellation_reason=booking.cancellation_reason,
        refund_amount_cents=booking.refund_amount_cents,
        refund_status=booking.refund_status,
        notes=booking.notes,
        guest=guest_contact_of(booking),
        created_at=booking.created_at,
    )


def _validate_request(data: BookingCreate) -> tuple[int, date, time, time]:
    missing = [
        name
        for name in ("court_id", "booking_date", "start_time", "end_time")
        if getattr(data, name) in (None, "")
    ]
    if missing:
        raise ValidationException(
            f"Missing required fields: {', '.join(missing)}",
            {"missing": missing},
        )

    try:
        day = parse_date(data.booking_date)
    except ValueError:
        raise ValidationException("booking_date must be a YYYY-MM-DD date", {"field": "booking_date"})
    try:
        start = parse_time(data.start_time)
        end = parse_time(data.end_time)
    except ValueError:
        raise ValidationException("start_time and end_time must be HH:MM times", {"field": "time"})

    if normalize_time(start) == normalize_time(end):
        raise ValidationException("start_time and end_time must differ")

    if data.guest is not None and data.player_id is not None:
        raise ValidationException("A booking is either for a player or for a guest, not both")

    return data.court_id, day, start, end


async def _load_settings(db: AsyncSession, organization_id: int) -> OrganizationSettings:
    result = await db.execute(
        select(OrganizationSettings).where(OrganizationSettings.organization_id == organization_id)
    )
    # Missing row = defaults
    return result.scalar_one_or_none() or OrganizationSettings(
        organization_id=organization_id,
        require_booking_approval=False,
        allow_same_day_booking=True,
        min_booking_notice_hours=1,
        max_advance_booking_days=30,
    )


async def _ensure_not_blocked(db: AsyncSession, organization_id: int, player_id: int, now: datetime) -> None:
    result = await db.execute(
        select(PlayerBlock).where(
            PlayerBlock.organization_id == organization_id,
            PlayerBlock.player_id == player_id,
            PlayerBlock.is_active.is_(True),
        )
    )
    for block in result.scalars().all():
        until = block.blocked_until
        if until is not None and until.tzinfo is None:
            until = until.replace(tzinfo=timezone.utc)
        if until is None or until > now:
            logger.warning("booking_rejected_player_blocked", organization_id=organization_id, player_id=player_id)
            raise PermissionDeniedException(
                "You are not allowed to book at this facility",
                {"reason": block.reason} if block.reason else {},
            )


def _check_booking_window(
    org_settings: OrganizationSettings,
    tz_name: Optional[str],
    day: date,
    start: time,
    now: datetime,
) -> None:
    start_at = create_instant(day, start, tz_name)
    if start_at <= now:
        raise ValidationException("Cannot book a time slot that has already started")

    today = today_in_timezone(tz_name, now)
    if day == today and not org_settings.allow_same_day_booking:
        raise ValidationException("Same-day bookings are not allowed at this facility")

    notice = org_settings.min_booking_notice_hours or 0
    if hours_until(start_at, now) < notice:
        raise ValidationException(
            f"Bookings must be made at least {notice} hours in advance",
            {"min_booking_notice_hours": notice},
        )

    max_days = org_settings.max_advance_booking_days
    if max_days and (day - today).days > max_days:
        raise ValidationException(
            f"Bookings can only be made up to {max_days} days in advance",
            {"max_advance_booking_days": max_days},
        )


async def _payment_account(
    db: AsyncSession,
    payments: PaymentProvider,
    organization_id: int,
) -> Optional[PaymentAccount]:
    result = await db.execute(select(PaymentAccount).where(PaymentAccount.organization_id == organization_id))
    account = result.scalar_one_or_none()
    if account and not account.charges_enabled:
        # The stored flag may predate onboarding; ask the provider.
        status = await payments.get_account_status(account.provider_account_id)
        account.onboarding_complete = status.onboarding_complete
        account.charges_enabled = status.charges_enabled
        account.payouts_enabled = status.payouts_enabled
        logger.info(
            "payment_account_refreshed",
            organization_id=organization_id,
            charges_enabled=status.charges_enabled,
        )
    return account


async def _release_authorization(payments: PaymentProvider, authorization: PaymentAuthorization, **context) -> None:
    try:
        await payments.cancel_authorization(authorization.payment_intent_id)
        logger.info("payment_authorization_released", payment_intent_id=authorization.payment_intent_id, **context)
    except PaymentProviderException as e:
        orphaned_authorizations.inc()
        logger.error(
            "orphaned_payment_authorization",
            payment_intent_id=authorization.payment_intent_id,
            error=e.message,
            **context,
        )


async def create_booking(
    db: AsyncSession,
    payments: PaymentProvider,
    data: BookingCreate,
    actor: Actor,
    now: datetime,
) -> BookingCreateResult:
    """
    Validate, optionally authorize payment, and insert one booking.

    Raises a DomainException subclass for every rejection; no booking row
    exists afterwards unless this returns.
    """
    with booking_latency.time():
        try:
            result = await _create_booking(db, payments, data, actor, now)
        except SlotUnavailableException:
            record_booking_attempt("conflict")
            raise
        except DomainException:
            record_booking_attempt("rejected")
            raise
        except Exception:
            record_booking_attempt("error")
            raise

    record_booking_attempt("created")
    return result


async def _create_booking(
    db: AsyncSession,
    payments: PaymentProvider,
    data: BookingCreate,
    actor: Actor,
    now: datetime,
) -> BookingCreateResult:
    settings = get_settings()
    court_id, day, start, end = _validate_request(data)

    court = await get_court(db, court_id)
    facility = court.facility
    organization_id = facility.organization_id

    if data.guest is not None:
        player_id = None
    elif data.player_id is not None:
        player_id = data.player_id
    else:
        player_id = actor.user_id

    if (data.guest is not None or player_id != actor.user_id) and not actor.is_staff:
        raise PermissionDeniedException("Only facility staff can book for guests or other players")

    slots = await resolve_slots_for_court(db, court, day, now)
    slot = next((s for s in slots if s.matches(start, end)), None)
    if slot is None:
        logger.info(
            "booking_failed_slot_unavailable",
            court_id=court_id,
            date=day.isoformat(),
            start_time=normalize_time(start),
            end_time=normalize_time(end),
        )
        raise SlotUnavailableException(
            "This time slot is no longer available. Please pick another one.",
            {"court_id": court_id, "date": day.isoformat(), "start_time": normalize_time(start)},
        )

    if player_id is not None:
        await _ensure_not_blocked(db, organization_id, player_id, now)

    org_settings = await _load_settings(db, organization_id)
    if not actor.is_staff:
        _check_booking_window(org_settings, facility.timezone, day, start, now)

    price_cents = slot.price_cents
    skip_payment = (
        price_cents <= 0
        or data.skip_payment is True
        or (actor.is_staff and data.skip_payment is not False)
    )

    currency = settings.DEFAULT_CURRENCY
    account = None
    if not skip_payment:
        account = await _payment_account(db, payments, organization_id)
        if account is None or not account.charges_enabled:
            raise PaymentSetupRequiredException(
                "This facility is not set up to accept online payments yet. "
                f"The booking costs {format_price(price_cents, currency)}; "
                "please contact the facility to book.",
                {"price_cents": price_cents, "currency": currency},
            )
        currency = account.default_currency or currency

    requires_approval = bool(org_settings.require_booking_approval) and not actor.is_staff
    if requires_approval:
        status = BookingStatus.AWAITING_APPROVAL
    elif skip_payment:
        status = BookingStatus.CONFIRMED
    else:
        status = BookingStatus.PENDING

    authorization: Optional[PaymentAuthorization] = None
    if not skip_payment:
        authorization = await payments.create_authorization(
            amount_cents=price_cents,
            currency=currency,
            destination_account=account.provider_account_id,
            application_fee_percent=settings.PLATFORM_FEE_PERCENT,
            metadata={
                "organization_id": str(organization_id),
                "court_id": str(court_id),
                "booking_date": day.isoformat(),
                "start_time": normalize_time(start),
                "end_time": normalize_time(end),
                "player_id": str(player_id) if player_id is not None else "",
            },
        )

    booking = Booking(
        organization_id=organization_id,
        court_id=court_id,
        player_id=player_id,
        booking_date=day,
        start_time=slot.key.start,
        end_time=slot.key.end,
        status=status.value,
        price_cents=price_cents,
        currency=currency,
        requires_approval=requires_approval,
        payment_intent_id=authorization.payment_intent_id if authorization else None,
        notes=data.notes,
        guest_name=data.guest.name if data.guest else None,
        guest_email=data.guest.email if data.guest else None,
        guest_phone=data.guest.phone if data.guest else None,
    )
    db.add(booking)

    try:
        await db.flush()
        booking_id = booking.id
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        if authorization:
            await _release_authorization(payments, authorization, court_id=court_id, date=day.isoformat())
        if isinstance(e, IntegrityError):
            logger.warning(
                "booking_failed_conflict",
                court_id=court_id,
                date=day.isoformat(),
                start_time=normalize_time(start),
            )
            raise SlotUnavailableException(
                "This time slot was just booked by someone else. Please pick another one.",
                {"court_id": court_id, "date": day.isoformat(), "start_time": normalize_time(start)},
            ) from e
        logger.error("booking_insert_failed", court_id=court_id, error=str(e))
        raise

    logger.info(
        "booking_created",
        booking_id=booking_id,
        court_id=court_id,
        player_id=player_id,
        actor_id=actor.user_id,
        status=status.value,
        price_cents=price_cents,
        payment_intent_id=booking.payment_intent_id,
    )
    return BookingCreateResult(
        booking_id=booking_id,
        status=status.value,
        client_secret=authorization.client_secret if authorization else None,
        price_cents=price_cents,
    )


async def get_booking(db: AsyncSession, booking_id: int, for_update: bool = False) -> Booking:
    query = select(Booking).where(Booking.id == booking_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(query)
    booking = result.scalar_one_or_none()
    if not booking:
        raise NotFoundException("Booking not found", {"booking_id": booking_id})
    return booking


def ensure_can_view(booking: Booking, actor: Actor) -> None:
    if booking.player_id != actor.user_id and not actor.is_staff:
        raise PermissionDeniedException("You do not have access to this booking")


async def list_bookings(
    db: AsyncSession,
    player_id: Optional[int] = None,
    organization_id: Optional[int] = None,
    court_id: Optional[int] = None,
    booking_date: Optional[date] = None,
) -> List[Booking]:
    query = select(Booking)
    if player_id is not None:
        query = query.where(Booking.player_id == player_id)
    if organization_id is not None:
        query = query.where(Booking.organization_id == organization_id)
    if court_id is not None:
        query = query.where(Booking.court_id == court_id)
    if booking_date is not None:
        query = query.where(Booking.booking_date == booking_date)
    result = await db.execute(query.order_by(Booking.booking_date.desc(), Booking.start_time.desc()))
    return list(result.scalars().all())
