"""
Tests for live status derivation.
"""

from datetime import date, datetime, time, timezone

from court_booking.models.booking import Booking
from court_booking.services.status_service import LiveStatus, booking_live_status, derive_status

NY = "America/New_York"
# 2025-06-10 18:00 EDT
NOW = datetime(2025, 6, 10, 22, 0, tzinfo=timezone.utc)


def _derive(start, end, now=NOW, cancelled_at=None, result=None, day="2025-06-10"):
    return derive_status(cancelled_at, day, start, end, NY, result, now)


def test_future_window_is_scheduled():
    assert _derive("19:00", "20:00") == LiveStatus.SCHEDULED


def test_started_window_is_in_progress():
    assert _derive("17:30", "19:00") == LiveStatus.IN_PROGRESS


def test_ended_window_is_completed():
    assert _derive("15:00", "16:00") == LiveStatus.COMPLETED


def test_start_instant_itself_is_still_scheduled():
    assert _derive("18:00", "19:00") == LiveStatus.SCHEDULED


def test_cancellation_wins_over_everything():
    assert _derive("15:00", "16:00", cancelled_at=NOW, result="6-4 6-3") == LiveStatus.CANCELLED
    assert _derive("19:00", "20:00", cancelled_at=NOW) == LiveStatus.CANCELLED


def test_result_completes_before_the_window_ends():
    assert _derive("19:00", "20:00", result="walkover") == LiveStatus.COMPLETED
    assert _derive("17:30", "19:00", result="6-0 6-0") == LiveStatus.COMPLETED


def test_overnight_window_in_progress_after_midnight_local():
    # 23:30 local on 2025-06-10; the window ends 00:30 on the 11th.
    now = datetime(2025, 6, 11, 3, 30, tzinfo=timezone.utc)
    assert _derive("22:00", "00:30", now=now) == LiveStatus.IN_PROGRESS


def test_overnight_window_completed_after_rollover_end():
    now = datetime(2025, 6, 11, 4, 31, tzinfo=timezone.utc)
    assert _derive("22:00", "00:30", now=now) == LiveStatus.COMPLETED


def test_derivation_is_deterministic_for_a_fixed_now():
    results = {_derive("17:30", "19:00") for _ in range(5)}
    assert results == {LiveStatus.IN_PROGRESS}


def test_same_wall_clock_differs_across_timezones():
    now = datetime(2025, 6, 10, 14, 30, tzinfo=timezone.utc)
    tokyo = derive_status(None, "2025-06-10", "09:00", "10:00", "Asia/Tokyo", None, now)
    la = derive_status(None, "2025-06-10", "09:00", "10:00", "America/Los_Angeles", None, now)
    assert tokyo == LiveStatus.COMPLETED
    assert la == LiveStatus.SCHEDULED


def _booking(status, cancelled_at=None):
    return Booking(
        court_id=1,
        booking_date=date(2025, 6, 10),
        start_time=time(19, 0),
        end_time=time(20, 0),
        status=status,
        cancelled_at=cancelled_at,
    )


def test_booking_status_cancelled_without_timestamp():
    assert booking_live_status(_booking("cancelled"), NY, NOW) == LiveStatus.CANCELLED


def test_booking_terminal_results_read_as_completed():
    assert booking_live_status(_booking("completed"), NY, NOW) == LiveStatus.COMPLETED
    assert booking_live_status(_booking("no_show"), NY, NOW) == LiveStatus.COMPLETED


def test_booking_live_status_ignores_stored_pending():
    later = datetime(2025, 6, 11, 1, 0, tzinfo=timezone.utc)
    assert booking_live_status(_booking("pending"), NY, NOW) == LiveStatus.SCHEDULED
    assert booking_live_status(_booking("confirmed"), NY, later) == LiveStatus.COMPLETED
