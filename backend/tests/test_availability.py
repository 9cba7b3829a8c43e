"""
Tests for slot resolution: template slicing, override precedence, exclusion
of bookings and blocks, pricing rules and the availability endpoints.
"""

from datetime import date, time, timedelta

import pytest
from httpx import AsyncClient

from court_booking.core.exceptions import ValidationException
from court_booking.models import (
    AvailabilityBlock,
    AvailabilityOverride,
    AvailabilityTemplate,
    Booking,
    Court,
    PricingRule,
)
from court_booking.services.availability_service import (
    AvailabilitySources,
    SlotKey,
    SlotSource,
    build_slots,
    resolve_facility_slots,
    resolve_facility_slots_range,
    resolve_slots,
    takes_precedence,
)
from tests.conftest import BOOKING_DAY, FIXED_NOW, TUESDAY

DAY = date.fromisoformat(BOOKING_DAY)


def _windows(slots):
    return [(s.start_time, s.end_time) for s in slots]


def _court(**overrides):
    fields = dict(id=1, facility_id=1, name="Court 1", default_price_cents=1000, is_active=True)
    fields.update(overrides)
    return Court(**fields)


def _template(start=time(9, 0), end=time(17, 0), court_id=1, price_cents=2000, duration=60, **extra):
    return AvailabilityTemplate(
        facility_id=1,
        court_id=court_id,
        day_of_week=TUESDAY,
        start_time=start,
        end_time=end,
        slot_duration_minutes=duration,
        price_cents=price_cents,
        is_available=True,
        **extra,
    )


def _override(start, end, court_id=None, price_cents=None, is_available=True, duration=60):
    return AvailabilityOverride(
        facility_id=1,
        court_id=court_id,
        override_date=DAY,
        start_time=start,
        end_time=end,
        slot_duration_minutes=duration,
        price_cents=price_cents,
        is_available=is_available,
    )


def _booking(start, end, status="confirmed", court_id=1):
    return Booking(
        organization_id=1,
        court_id=court_id,
        booking_date=DAY,
        start_time=start,
        end_time=end,
        status=status,
        price_cents=2000,
    )


# ---------------------------------------------------------------------------
# Resolution against the database
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_template_slots_for_open_day(db_session, world):
    slots = await resolve_slots(db_session, world.court_id, DAY, FIXED_NOW)

    assert len(slots) == 8
    assert (slots[0].start_time, slots[0].end_time, slots[0].price_cents) == ("09:00", "10:00", 2000)
    assert (slots[-1].start_time, slots[-1].end_time, slots[-1].price_cents) == ("16:00", "17:00", 2000)
    assert all(s.source == SlotSource.COURT_TEMPLATE for s in slots)


@pytest.mark.asyncio
async def test_closed_weekday_has_no_slots(db_session, world):
    wednesday = date(2025, 6, 11)
    assert await resolve_slots(db_session, world.court_id, wednesday, FIXED_NOW) == []


@pytest.mark.asyncio
async def test_confirmed_booking_excludes_slot(db_session, world):
    db_session.add(Booking(
        organization_id=world.organization_id,
        court_id=world.court_id,
        player_id=world.player_id,
        booking_date=DAY,
        start_time=time(10, 0),
        end_time=time(11, 0),
        status="confirmed",
        price_cents=2000,
    ))
    await db_session.commit()

    slots = await resolve_slots(db_session, world.court_id, DAY, FIXED_NOW)

    assert len(slots) == 7
    assert ("10:00", "11:00") not in _windows(slots)


@pytest.mark.asyncio
async def test_cancelled_booking_does_not_exclude_slot(db_session, world):
    db_session.add(Booking(
        organization_id=world.organization_id,
        court_id=world.court_id,
        player_id=world.player_id,
        booking_date=DAY,
        start_time=time(10, 0),
        end_time=time(11, 0),
        status="cancelled",
        price_cents=2000,
    ))
    await db_session.commit()

    slots = await resolve_slots(db_session, world.court_id, DAY, FIXED_NOW)

    assert ("10:00", "11:00") in _windows(slots)
    assert len(slots) == 8


@pytest.mark.asyncio
async def test_court_override_beats_facility_override(db_session, world):
    db_session.add_all([
        AvailabilityOverride(
            facility_id=world.facility_id,
            court_id=None,
            override_date=DAY,
            start_time=time(8, 0),
            end_time=time(9, 0),
            slot_duration_minutes=60,
            price_cents=1500,
            reason="Extended hours",
            is_available=True,
        ),
        AvailabilityOverride(
            facility_id=world.facility_id,
            court_id=world.court_id,
            override_date=DAY,
            start_time=time(8, 0),
            end_time=time(9, 0),
            slot_duration_minutes=60,
            price_cents=1800,
            reason="Extended hours",
            is_available=True,
        ),
    ])
    await db_session.commit()

    slots = await resolve_slots(db_session, world.court_id, DAY, FIXED_NOW)

    early = [s for s in slots if s.matches("08:00", "09:00")]
    assert len(early) == 1
    assert early[0].price_cents == 1800
    assert early[0].source == SlotSource.COURT_OVERRIDE
    assert len(slots) == 9


@pytest.mark.asyncio
async def test_overrides_ignored_for_past_dates(db_session, world):
    past_tuesday = date(2025, 5, 27)
    db_session.add(AvailabilityOverride(
        facility_id=world.facility_id,
        court_id=world.court_id,
        override_date=past_tuesday,
        start_time=time(9, 0),
        end_time=time(17, 0),
        slot_duration_minutes=60,
        is_available=False,
    ))
    await db_session.commit()

    slots = await resolve_slots(db_session, world.court_id, past_tuesday, FIXED_NOW)

    assert len(slots) == 8


@pytest.mark.asyncio
async def test_whole_day_block_closes_court(db_session, world):
    db_session.add(AvailabilityBlock(
        facility_id=world.facility_id,
        court_id=world.court_id,
        block_date=DAY,
        reason="Resurfacing",
        block_type="maintenance",
    ))
    await db_session.commit()

    assert await resolve_slots(db_session, world.court_id, DAY, FIXED_NOW) == []


@pytest.mark.asyncio
async def test_facility_slots_cover_active_courts(db_session, world):
    db_session.add_all([
        Court(facility_id=world.facility_id, name="Court 2", default_price_cents=1200, is_active=True),
        Court(facility_id=world.facility_id, name="Retired", default_price_cents=1200, is_active=False),
        AvailabilityTemplate(
            facility_id=world.facility_id,
            court_id=None,
            day_of_week=TUESDAY,
            start_time=time(18, 0),
            end_time=time(20, 0),
            slot_duration_minutes=60,
            is_available=True,
        ),
    ])
    await db_session.commit()

    resolved = await resolve_facility_slots(db_session, world.facility_id, DAY, FIXED_NOW)

    assert len(resolved) == 2
    assert len(resolved[world.court_id]) == 10
    second = next(court_id for court_id in resolved if court_id != world.court_id)
    assert _windows(resolved[second]) == [("18:00", "19:00"), ("19:00", "20:00")]
    assert [s.price_cents for s in resolved[second]] == [1200, 1200]


@pytest.mark.asyncio
async def test_facility_range_merges_each_day(db_session, world):
    past_tuesday = date(2025, 5, 27)
    next_tuesday = date(2025, 6, 3)
    db_session.add_all([
        AvailabilityOverride(
            facility_id=world.facility_id,
            court_id=world.court_id,
            override_date=past_tuesday,
            start_time=time(9, 0),
            end_time=time(17, 0),
            slot_duration_minutes=60,
            is_available=False,
        ),
        Booking(
            organization_id=world.organization_id,
            court_id=world.court_id,
            player_id=world.player_id,
            booking_date=next_tuesday,
            start_time=time(10, 0),
            end_time=time(11, 0),
            status="confirmed",
            price_cents=2000,
        ),
        AvailabilityBlock(
            facility_id=world.facility_id,
            court_id=world.court_id,
            block_date=DAY,
            reason="Resurfacing",
            block_type="maintenance",
        ),
    ])
    await db_session.commit()

    resolved = await resolve_facility_slots_range(db_session, world.facility_id, past_tuesday, DAY, FIXED_NOW)

    by_day = resolved[world.court_id]
    assert list(by_day) == [past_tuesday + timedelta(days=n) for n in range(15)]
    assert len(by_day[past_tuesday]) == 8
    assert len(by_day[next_tuesday]) == 7
    assert ("10:00", "11:00") not in _windows(by_day[next_tuesday])
    assert by_day[DAY] == []
    assert by_day[date(2025, 5, 28)] == []


@pytest.mark.asyncio
async def test_facility_range_matches_single_day_resolution(db_session, world):
    db_session.add(AvailabilityOverride(
        facility_id=world.facility_id,
        court_id=None,
        override_date=DAY,
        start_time=time(8, 0),
        end_time=time(9, 0),
        slot_duration_minutes=60,
        price_cents=1500,
        is_available=True,
    ))
    await db_session.commit()

    ranged = await resolve_facility_slots_range(db_session, world.facility_id, DAY, DAY, FIXED_NOW)
    single = await resolve_facility_slots(db_session, world.facility_id, DAY, FIXED_NOW)

    assert ranged[world.court_id][DAY] == single[world.court_id]
    assert ranged[world.court_id][DAY][0].source == SlotSource.FACILITY_OVERRIDE


@pytest.mark.asyncio
async def test_facility_range_rejects_reversed_and_oversized_ranges(db_session, world):
    with pytest.raises(ValidationException):
        await resolve_facility_slots_range(db_session, world.facility_id, DAY, DAY - timedelta(days=1), FIXED_NOW)

    with pytest.raises(ValidationException):
        await resolve_facility_slots_range(db_session, world.facility_id, DAY, DAY + timedelta(days=31), FIXED_NOW)


# ---------------------------------------------------------------------------
# Pure merge
# ---------------------------------------------------------------------------


def test_precedence_order():
    assert takes_precedence(SlotSource.COURT_OVERRIDE, SlotSource.FACILITY_OVERRIDE)
    assert takes_precedence(SlotSource.FACILITY_OVERRIDE, SlotSource.COURT_TEMPLATE)
    assert takes_precedence(SlotSource.COURT_TEMPLATE, SlotSource.FACILITY_TEMPLATE)
    assert not takes_precedence(SlotSource.COURT_TEMPLATE, SlotSource.COURT_TEMPLATE)


def test_slot_keys_order_by_start():
    assert SlotKey.of(DAY, 540, 600) < SlotKey.of(DAY, 600, 660)


def test_partial_overlap_booking_excludes_both_slots():
    sources = AvailabilitySources(
        templates=[_template()],
        bookings=[_booking(time(10, 30), time(11, 30))],
    )
    slots = build_slots(_court(), DAY, sources)

    assert ("10:00", "11:00") not in _windows(slots)
    assert ("11:00", "12:00") not in _windows(slots)
    assert len(slots) == 6


def test_booking_on_other_court_is_ignored():
    sources = AvailabilitySources(
        templates=[_template()],
        bookings=[_booking(time(10, 0), time(11, 0), court_id=2)],
    )
    assert len(build_slots(_court(), DAY, sources)) == 8


def test_windowed_block_removes_overlapping_slots():
    block = AvailabilityBlock(
        facility_id=1, court_id=None, block_date=DAY, start_time=time(12, 0), end_time=time(14, 0)
    )
    slots = build_slots(_court(), DAY, AvailabilitySources(templates=[_template()], blocks=[block]))

    assert ("12:00", "13:00") not in _windows(slots)
    assert ("13:00", "14:00") not in _windows(slots)
    assert len(slots) == 6


def test_unavailable_override_closes_window():
    sources = AvailabilitySources(
        templates=[_template()],
        overrides=[_override(time(9, 0), time(11, 0), is_available=False)],
    )
    slots = build_slots(_court(), DAY, sources)

    assert _windows(slots)[0] == ("11:00", "12:00")
    assert len(slots) == 6


def test_override_window_replaces_overlapping_template_slots():
    sources = AvailabilitySources(
        templates=[_template()],
        overrides=[_override(time(9, 0), time(11, 0), court_id=1, price_cents=3000, duration=120)],
    )
    slots = build_slots(_court(), DAY, sources)

    assert _windows(slots)[:2] == [("09:00", "11:00"), ("11:00", "12:00")]
    assert slots[0].price_cents == 3000
    assert len(slots) == 7


def test_overrides_skipped_when_not_included():
    sources = AvailabilitySources(
        templates=[_template()],
        overrides=[_override(time(9, 0), time(17, 0), is_available=False)],
    )
    assert len(build_slots(_court(), DAY, sources, include_overrides=False)) == 8


def test_pricing_rule_beats_template_price():
    rule = PricingRule(
        facility_id=1,
        court_id=None,
        name="Evening peak",
        days_of_week=[TUESDAY],
        start_time=time(15, 0),
        end_time=time(17, 0),
        price_cents=2600,
        priority=1,
        is_active=True,
    )
    slots = build_slots(_court(), DAY, AvailabilitySources(templates=[_template()], pricing_rules=[rule]))

    prices = {s.start_time: s.price_cents for s in slots}
    assert prices["14:00"] == 2000
    assert prices["15:00"] == 2600
    assert prices["16:00"] == 2600


def test_court_specific_rule_beats_higher_priority_facility_rule():
    common = dict(facility_id=1, days_of_week=[TUESDAY], start_time=time(9, 0), end_time=time(10, 0), is_active=True)
    rules = [
        PricingRule(court_id=None, price_cents=900, priority=10, **common),
        PricingRule(court_id=1, price_cents=1100, priority=0, **common),
    ]
    slots = build_slots(_court(), DAY, AvailabilitySources(templates=[_template()], pricing_rules=rules))

    assert slots[0].price_cents == 1100


def test_template_without_price_falls_back_to_court_default():
    slots = build_slots(_court(), DAY, AvailabilitySources(templates=[_template(price_cents=None)]))
    assert {s.price_cents for s in slots} == {1000}


def test_court_template_wins_over_facility_template():
    sources = AvailabilitySources(
        templates=[_template(court_id=None, price_cents=500), _template(price_cents=2000)],
    )
    slots = build_slots(_court(), DAY, sources)

    assert len(slots) == 8
    assert {s.source for s in slots} == {SlotSource.COURT_TEMPLATE}
    assert {s.price_cents for s in slots} == {2000}


def test_template_outside_validity_is_skipped():
    template = _template(valid_from=date(2025, 7, 1))
    assert build_slots(_court(), DAY, AvailabilitySources(templates=[template])) == []


def test_inactive_or_unavailable_court_has_no_slots():
    sources = AvailabilitySources(templates=[_template()])
    assert build_slots(_court(is_active=False), DAY, sources) == []
    assert build_slots(_court(availability_status="maintenance"), DAY, sources) == []


def test_overnight_template_slices_past_midnight():
    template = _template(start=time(22, 0), end=time(1, 0))
    slots = build_slots(_court(), DAY, AvailabilitySources(templates=[template]))

    assert sorted(_windows(slots)) == [("00:00", "01:00"), ("22:00", "23:00"), ("23:00", "00:00")]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_court_availability_endpoint(client: AsyncClient, world):
    response = await client.get(f"/api/v1/courts/{world.court_id}/availability", params={"date": BOOKING_DAY})

    assert response.status_code == 200
    data = response.json()
    assert data["timezone"] == "America/Toronto"
    assert len(data["slots"]) == 8
    assert data["slots"][0] == {
        "date": BOOKING_DAY,
        "start_time": "09:00",
        "end_time": "10:00",
        "price_cents": 2000,
        "source": "court_template",
    }


@pytest.mark.asyncio
async def test_court_availability_bad_date(client: AsyncClient, world):
    response = await client.get(f"/api/v1/courts/{world.court_id}/availability", params={"date": "June 10"})

    assert response.status_code == 400
    assert response.json()["detail"]["kind"] == "validation"


@pytest.mark.asyncio
async def test_court_availability_unknown_court(client: AsyncClient, world):
    response = await client.get("/api/v1/courts/99999/availability", params={"date": BOOKING_DAY})

    assert response.status_code == 404
    assert response.json()["detail"]["kind"] == "not_found"


@pytest.mark.asyncio
async def test_facility_availability_endpoint(client: AsyncClient, world):
    response = await client.get(
        f"/api/v1/facilities/{world.facility_id}/availability", params={"date": BOOKING_DAY}
    )

    assert response.status_code == 200
    courts = response.json()["courts"]
    assert [c["court_id"] for c in courts] == [world.court_id]
    assert len(courts[0]["slots"]) == 8


@pytest.mark.asyncio
async def test_facility_range_endpoint(client: AsyncClient, world):
    response = await client.get(
        f"/api/v1/facilities/{world.facility_id}/availability/range",
        params={"date_from": "2025-06-09", "date_to": BOOKING_DAY},
    )

    assert response.status_code == 200
    data = response.json()
    assert (data["date_from"], data["date_to"]) == ("2025-06-09", BOOKING_DAY)
    assert [(c["court_id"], c["date"]) for c in data["courts"]] == [
        (world.court_id, "2025-06-09"),
        (world.court_id, BOOKING_DAY),
    ]
    assert data["courts"][0]["slots"] == []
    assert len(data["courts"][1]["slots"]) == 8


@pytest.mark.asyncio
async def test_facility_range_endpoint_rejects_reversed_range(client: AsyncClient, world):
    response = await client.get(
        f"/api/v1/facilities/{world.facility_id}/availability/range",
        params={"date_from": BOOKING_DAY, "date_to": "2025-06-09"},
    )

    assert response.status_code == 400
    assert response.json()["detail"]["kind"] == "validation"
