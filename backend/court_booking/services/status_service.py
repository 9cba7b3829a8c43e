"""
Live status derivation for bookings and matches.

A stored status column drifts: a match that ended an hour ago still reads
"scheduled" until something rewrites it. Instead the live status is computed
on every read from the cancellation timestamp, the result and the time window,
against an explicit `now`.

Precedence, strictly in this order:
  1. cancelled_at set                      -> cancelled
  2. result present, or end instant passed -> completed
  3. start instant passed                  -> in_progress
  4. otherwise                             -> scheduled
"""

import enum
from datetime import date, datetime, time
from typing import Any, Optional

from court_booking.core.timeutils import create_instant, end_instant, signed_difference_from_now
from court_booking.models.booking import Booking, BookingStatus


class LiveStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def derive_status(
    cancelled_at: Optional[datetime],
    event_date: date | str,
    start_time: time | str,
    end_time: time | str,
    timezone: Optional[str],
    result: Any,
    now: datetime,
) -> LiveStatus:
    if cancelled_at is not None:
        return LiveStatus.CANCELLED

    if result is not None:
        return LiveStatus.COMPLETED

    end_at = end_instant(event_date, start_time, end_time, timezone)
    if signed_difference_from_now(end_at, now) < 0:
        return LiveStatus.COMPLETED

    start_at = create_instant(event_date, start_time, timezone)
    if signed_difference_from_now(start_at, now) < 0:
        return LiveStatus.IN_PROGRESS

    return LiveStatus.SCHEDULED


def booking_live_status(booking: Booking, timezone: Optional[str], now: datetime) -> LiveStatus:
    # A cancelled booking without a timestamp still reads as cancelled.
    cancelled_at = booking.cancelled_at
    if cancelled_at is None and booking.status == BookingStatus.CANCELLED.value:
        cancelled_at = now

    result = booking.status if booking.status in (
        BookingStatus.COMPLETED.value,
        BookingStatus.NO_SHOW.value,
    ) else None

    return derive_status(
        cancelled_at,
        booking.booking_date,
        booking.start_time,
        booking.end_time,
        timezone,
        result,
        now,
    )
