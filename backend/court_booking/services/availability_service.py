"""
Slot availability resolver.

RESOLUTION STRATEGY
===================

Sources, for one court on one date:
  - weekly templates for the weekday (court-specific and facility-wide)
  - one-time overrides for the date (court-specific and facility-wide),
    only when the date is today or later in the facility timezone
  - pricing rules, blocks and non-cancelled bookings

Merge:
  Every candidate slot is keyed by SlotKey(date, start, end) in an ordered
  map. On a key collision `takes_precedence` decides which source survives:

      court override > facility override > court template > facility template

  An override window also replaces any template slot it overlaps, so a
  one-time window is never combined additively with the weekly template.

Exclusion:
  A slot is dropped when it overlaps a non-cancelled booking, a block
  (whole-day or windowed) or an unavailable override for the court. Times
  are compared as minutes-of-day, so "09:00:00" and "9:00" are the same
  instant, and a partially overlapping booking also removes the slot.

Nothing here reads the slot cache: the booking write path calls
`resolve_slots_for_court` directly so validation always sees committed state.
"""

import enum
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from court_booking.core.config import get_settings
from court_booking.core.exceptions import NotFoundException, ValidationException
from court_booking.core.logging import get_logger
from court_booking.core.metrics import slot_resolution_latency
from court_booking.core.timeutils import (
    MINUTES_PER_DAY,
    minute_of_day,
    normalize_time,
    time_from_minutes,
    today_in_timezone,
)
from court_booking.models.availability import (
    AvailabilityBlock,
    AvailabilityOverride,
    AvailabilityTemplate,
    PricingRule,
)
from court_booking.models.booking import Booking, BookingStatus
from court_booking.models.facility import Court, Facility

logger = get_logger(__name__)


class SlotSource(enum.IntEnum):
    """Where a slot came from. Higher value wins on a key collision."""

    FACILITY_TEMPLATE = 1
    COURT_TEMPLATE = 2
    FACILITY_OVERRIDE = 3
    COURT_OVERRIDE = 4

    @property
    def label(self) -> str:
        return self.name.lower()

    @property
    def is_override(self) -> bool:
        return self in (SlotSource.FACILITY_OVERRIDE, SlotSource.COURT_OVERRIDE)


@dataclass(frozen=True, order=True)
class SlotKey:
    date: date
    start: time
    end: time

    @classmethod
    def of(cls, day: date, start_minute: int, end_minute: int) -> "SlotKey":
        return cls(day, time_from_minutes(start_minute), time_from_minutes(end_minute))


@dataclass(frozen=True)
class Slot:
    key: SlotKey
    price_cents: int
    source: SlotSource

    @property
    def start_time(self) -> str:
        return normalize_time(self.key.start)

    @property
    def end_time(self) -> str:
        return normalize_time(self.key.end)

    @property
    def start_minute(self) -> int:
        return minute_of_day(self.key.start)

    @property
    def end_minute(self) -> int:
        return _window_end(self.start_minute, minute_of_day(self.key.end))

    def matches(self, start: time | str, end: time | str) -> bool:
        return self.start_time == normalize_time(start) and self.end_time == normalize_time(end)

    def to_dict(self) -> dict:
        return {
            "date": self.key.date.isoformat(),
            "start_time": self.start_time,
            "end_time": self.end_time,
            "price_cents": self.price_cents,
            "source": self.source.label,
        }


def takes_precedence(candidate: SlotSource, existing: SlotSource) -> bool:
    """Court-specific beats facility-wide, override beats template. Ties keep the first."""
    return candidate > existing


@dataclass
class SlotMap:
    """Ordered merge map of candidate slots keyed by SlotKey."""

    _entries: Dict[SlotKey, Slot] = field(default_factory=dict)

    def offer(self, slot: Slot) -> None:
        existing = self._entries.get(slot.key)
        if existing is None or takes_precedence(slot.source, existing.source):
            self._entries[slot.key] = slot

    def discard_where(self, predicate) -> None:
        for key in [k for k, s in self._entries.items() if predicate(s)]:
            del self._entries[key]

    def ordered(self) -> List[Slot]:
        return [self._entries[k] for k in sorted(self._entries)]

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class AvailabilitySources:
    """Rows loaded for one facility and date; filtered per court in `build_slots`."""

    templates: Sequence[AvailabilityTemplate] = ()
    overrides: Sequence[AvailabilityOverride] = ()
    pricing_rules: Sequence[PricingRule] = ()
    blocks: Sequence[AvailabilityBlock] = ()
    bookings: Sequence[Booking] = ()


def _window_end(start_minute: int, end_minute: int) -> int:
    # A window whose end is at or before its start runs to/through midnight.
    return end_minute if end_minute > start_minute else end_minute + MINUTES_PER_DAY


def _window(start: time, end: time) -> tuple[int, int]:
    start_minute = minute_of_day(start)
    return start_minute, _window_end(start_minute, minute_of_day(end))


def _overlaps(a: tuple[int, int], b: tuple[int, int]) -> bool:
    return a[0] < b[1] and b[0] < a[1]


def _slice(start: time, end: time, duration_minutes: int) -> Iterable[tuple[int, int]]:
    """Consecutive windows of `duration_minutes`; only whole slots inside the window."""
    if not duration_minutes or duration_minutes <= 0:
        return
    cursor, window_end = _window(start, end)
    while cursor + duration_minutes <= window_end:
        yield cursor, cursor + duration_minutes
        cursor += duration_minutes


def _applies_to_court(row, court: Court) -> bool:
    return row.court_id is None or row.court_id == court.id


def _within_validity(row, day: date) -> bool:
    if row.valid_from is not None and day < row.valid_from:
        return False
    if row.valid_until is not None and day > row.valid_until:
        return False
    return True


def _rule_price(
    rules: Sequence[PricingRule],
    court: Court,
    day: date,
    window: tuple[int, int],
) -> Optional[int]:
    weekday = day.weekday()

    def covers(rule: PricingRule) -> bool:
        rule_start, rule_end = _window(rule.start_time, rule.end_time)
        return rule_start <= window[0] < rule_end

    candidates = [
        rule
        for rule in rules
        if rule.is_active
        and _applies_to_court(rule, court)
        and _within_validity(rule, day)
        and weekday in (rule.days_of_week or [])
        and covers(rule)
    ]
    if not candidates:
        return None
    candidates.sort(key=lambda r: (r.court_id is None, -r.priority))
    return candidates[0].price_cents


def build_slots(
    court: Court,
    day: date,
    sources: AvailabilitySources,
    include_overrides: bool = True,
) -> List[Slot]:
    """Pure merge of loaded sources into the ordered bookable slots of one court."""
    if not court.is_bookable:
        return []

    weekday = day.weekday()
    slots = SlotMap()

    for template in sources.templates:
        if (
            not template.is_available
            or template.day_of_week != weekday
            or not _applies_to_court(template, court)
            or not _within_validity(template, day)
        ):
            continue
        source = SlotSource.FACILITY_TEMPLATE if template.court_id is None else SlotSource.COURT_TEMPLATE
        for window in _slice(template.start_time, template.end_time, template.slot_duration_minutes):
            price = _rule_price(sources.pricing_rules, court, day, window)
            if price is None:
                price = template.price_cents if template.price_cents is not None else court.default_price_cents
            slots.offer(Slot(SlotKey.of(day, *window), price, source))

    closures: List[tuple[int, int]] = []
    if include_overrides:
        overrides = [
            o for o in sources.overrides if o.override_date == day and _applies_to_court(o, court)
        ]
        override_windows = [_window(o.start_time, o.end_time) for o in overrides]
        slots.discard_where(
            lambda s: not s.source.is_override
            and any(_overlaps((s.start_minute, s.end_minute), w) for w in override_windows)
        )

        for override in overrides:
            if not override.is_available:
                closures.append(_window(override.start_time, override.end_time))
                continue
            source = SlotSource.FACILITY_OVERRIDE if override.court_id is None else SlotSource.COURT_OVERRIDE
            for window in _slice(override.start_time, override.end_time, override.slot_duration_minutes):
                price = override.price_cents
                if price is None:
                    price = _rule_price(sources.pricing_rules, court, day, window)
                if price is None:
                    price = court.default_price_cents
                slots.offer(Slot(SlotKey.of(day, *window), price, source))

    taken: List[tuple[int, int]] = [
        _window(b.start_time, b.end_time)
        for b in sources.bookings
        if b.court_id == court.id
        and b.booking_date == day
        and b.status != BookingStatus.CANCELLED.value
    ]

    for block in sources.blocks:
        if block.block_date != day or not _applies_to_court(block, court):
            continue
        if block.is_whole_day:
            return []
        closures.append(_window(block.start_time, block.end_time))

    unavailable = taken + closures
    slots.discard_where(
        lambda s: any(_overlaps((s.start_minute, s.end_minute), w) for w in unavailable)
    )
    return slots.ordered()


async def _load_sources(
    db: AsyncSession,
    facility: Facility,
    date_from: date,
    date_to: date,
    court_ids: Sequence[int],
    overrides_from: Optional[date],
) -> AvailabilitySources:
    """Rows for a facility over [date_from, date_to]; overrides only from `overrides_from` on."""

    def scoped(model):
        return or_(model.court_id.in_(court_ids), model.court_id.is_(None))

    weekdays = sorted({d.weekday() for d in iter_dates(date_from, date_to)})
    templates = await db.execute(
        select(AvailabilityTemplate).where(
            AvailabilityTemplate.facility_id == facility.id,
            AvailabilityTemplate.day_of_week.in_(weekdays),
            AvailabilityTemplate.is_available.is_(True),
            scoped(AvailabilityTemplate),
        )
    )

    overrides: Sequence[AvailabilityOverride] = ()
    if overrides_from is not None and overrides_from <= date_to:
        override_result = await db.execute(
            select(AvailabilityOverride).where(
                AvailabilityOverride.facility_id == facility.id,
                AvailabilityOverride.override_date >= max(date_from, overrides_from),
                AvailabilityOverride.override_date <= date_to,
                scoped(AvailabilityOverride),
            )
        )
        overrides = list(override_result.scalars().all())

    rules = await db.execute(
        select(PricingRule).where(
            PricingRule.facility_id == facility.id,
            PricingRule.is_active.is_(True),
            scoped(PricingRule),
        )
    )
    blocks = await db.execute(
        select(AvailabilityBlock).where(
            AvailabilityBlock.facility_id == facility.id,
            AvailabilityBlock.block_date >= date_from,
            AvailabilityBlock.block_date <= date_to,
            scoped(AvailabilityBlock),
        )
    )
    bookings = await db.execute(
        select(Booking).where(
            Booking.court_id.in_(court_ids),
            Booking.booking_date >= date_from,
            Booking.booking_date <= date_to,
            Booking.status != BookingStatus.CANCELLED.value,
        )
    )

    return AvailabilitySources(
        templates=list(templates.scalars().all()),
        overrides=overrides,
        pricing_rules=list(rules.scalars().all()),
        blocks=list(blocks.scalars().all()),
        bookings=list(bookings.scalars().all()),
    )


def iter_dates(date_from: date, date_to: date) -> Iterator[date]:
    day = date_from
    while day <= date_to:
        yield day
        day += timedelta(days=1)


def _overrides_visible(facility: Facility, day: date, now: datetime) -> bool:
    return day >= today_in_timezone(facility.timezone, now)


async def get_court(db: AsyncSession, court_id: int) -> Court:
    result = await db.execute(select(Court).where(Court.id == court_id))
    court = result.scalar_one_or_none()
    if not court:
        raise NotFoundException(f"Court {court_id} not found", {"court_id": court_id})
    return court


async def resolve_slots_for_court(
    db: AsyncSession,
    court: Court,
    day: date,
    now: datetime,
) -> List[Slot]:
    with slot_resolution_latency.time():
        if not court.is_bookable:
            return []
        include_overrides = _overrides_visible(court.facility, day, now)
        sources = await _load_sources(
            db, court.facility, day, day, [court.id], day if include_overrides else None
        )
        slots = build_slots(court, day, sources, include_overrides=include_overrides)

    logger.debug("slots_resolved", court_id=court.id, date=day.isoformat(), count=len(slots))
    return slots


async def resolve_slots(db: AsyncSession, court_id: int, day: date, now: datetime) -> List[Slot]:
    """Bookable slots of one court on one date, ordered by start time."""
    court = await get_court(db, court_id)
    return await resolve_slots_for_court(db, court, day, now)


async def _facility_with_courts(db: AsyncSession, facility_id: int) -> tuple[Facility, List[Court]]:
    facility = await db.get(Facility, facility_id)
    if not facility:
        raise NotFoundException(f"Facility {facility_id} not found", {"facility_id": facility_id})

    result = await db.execute(
        select(Court)
        .where(Court.facility_id == facility_id, Court.is_active.is_(True))
        .order_by(Court.id)
    )
    return facility, list(result.scalars().all())


async def resolve_facility_slots(
    db: AsyncSession,
    facility_id: int,
    day: date,
    now: datetime,
) -> Dict[int, List[Slot]]:
    """Bookable slots for every active court of a facility, keyed by court id."""
    facility, courts = await _facility_with_courts(db, facility_id)
    if not courts:
        return {}

    with slot_resolution_latency.time():
        include_overrides = _overrides_visible(facility, day, now)
        sources = await _load_sources(
            db, facility, day, day, [c.id for c in courts], day if include_overrides else None
        )
        resolved = {
            court.id: build_slots(court, day, sources, include_overrides=include_overrides)
            for court in courts
        }

    logger.debug(
        "facility_slots_resolved",
        facility_id=facility_id,
        date=day.isoformat(),
        courts=len(resolved),
    )
    return resolved


async def resolve_facility_slots_range(
    db: AsyncSession,
    facility_id: int,
    date_from: date,
    date_to: date,
    now: datetime,
) -> Dict[int, Dict[date, List[Slot]]]:
    """
    Bookable slots for every active court of a facility over an inclusive
    date range, keyed by court id then date.

    Sources are loaded once for the whole range and merged per (court, day),
    so a week view costs the same handful of queries as a single day.
    """
    if date_to < date_from:
        raise ValidationException(
            "date_to must not be before date_from",
            {"date_from": date_from.isoformat(), "date_to": date_to.isoformat()},
        )
    max_days = get_settings().AVAILABILITY_MAX_RANGE_DAYS
    if (date_to - date_from).days + 1 > max_days:
        raise ValidationException(
            f"Date range may span at most {max_days} days",
            {"date_from": date_from.isoformat(), "date_to": date_to.isoformat()},
        )

    facility, courts = await _facility_with_courts(db, facility_id)
    if not courts:
        return {}

    days = list(iter_dates(date_from, date_to))
    today = today_in_timezone(facility.timezone, now)
    with slot_resolution_latency.time():
        sources = await _load_sources(db, facility, date_from, date_to, [c.id for c in courts], today)
        resolved = {
            court.id: {
                day: build_slots(court, day, sources, include_overrides=day >= today)
                for day in days
            }
            for court in courts
        }

    logger.debug(
        "facility_range_slots_resolved",
        facility_id=facility_id,
        date_from=date_from.isoformat(),
        date_to=date_to.isoformat(),
        courts=len(resolved),
    )
    return resolved
