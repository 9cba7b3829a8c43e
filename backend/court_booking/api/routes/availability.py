"""
Slot availability endpoints with Redis caching per court and date.
"""

from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from court_booking.api.deps import get_now
from court_booking.core.exceptions import ValidationException
from court_booking.core.logging import get_logger
from court_booking.core.timeutils import parse_date
from court_booking.db.session import get_db
from court_booking.models.facility import Facility
from court_booking.schemas.availability import (
    CourtAvailabilityResponse,
    FacilityAvailabilityResponse,
    FacilityRangeAvailabilityResponse,
)
from court_booking.services.availability_service import (
    get_court,
    resolve_facility_slots,
    resolve_facility_slots_range,
    resolve_slots_for_court,
)
from court_booking.services.cache_service import get_cached_slots, set_cached_slots

logger = get_logger(__name__)
router = APIRouter(tags=["Availability"])


def _parse_day(value: str, field: str = "date") -> date:
    try:
        return parse_date(value)
    except ValueError:
        raise ValidationException(f"{field} must be a YYYY-MM-DD date", {"field": field})


@router.get("/courts/{court_id}/availability", response_model=CourtAvailabilityResponse)
async def court_availability(
    court_id: int,
    date: str = Query(..., description="YYYY-MM-DD, facility-local"),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """
    Bookable slots for one court on one date.
    Served from Redis when cached; the cache is invalidated on every booking write.
    """
    day = _parse_day(date)
    court = await get_court(db, court_id)

    slots = await get_cached_slots(court_id, day)
    if slots is None:
        slots = [slot.to_dict() for slot in await resolve_slots_for_court(db, court, day, now)]
        await set_cached_slots(court_id, day, slots)
    else:
        logger.info("availability_cache_hit", court_id=court_id, date=day.isoformat())

    return CourtAvailabilityResponse(
        court_id=court_id,
        date=day.isoformat(),
        timezone=court.facility.timezone,
        slots=slots,
    )


@router.get("/facilities/{facility_id}/availability", response_model=FacilityAvailabilityResponse)
async def facility_availability(
    facility_id: int,
    date: str = Query(..., description="YYYY-MM-DD, facility-local"),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Bookable slots for every active court of a facility."""
    day = _parse_day(date)
    resolved = await resolve_facility_slots(db, facility_id, day, now)
    facility = await db.get(Facility, facility_id)

    return FacilityAvailabilityResponse(
        facility_id=facility_id,
        date=day.isoformat(),
        timezone=facility.timezone,
        courts=[
            CourtAvailabilityResponse(
                court_id=court_id,
                date=day.isoformat(),
                timezone=facility.timezone,
                slots=[slot.to_dict() for slot in slots],
            )
            for court_id, slots in resolved.items()
        ],
    )


@router.get("/facilities/{facility_id}/availability/range", response_model=FacilityRangeAvailabilityResponse)
async def facility_availability_range(
    facility_id: int,
    date_from: str = Query(..., description="YYYY-MM-DD, facility-local, inclusive"),
    date_to: str = Query(..., description="YYYY-MM-DD, facility-local, inclusive"),
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Bookable slots for every active court of a facility across a date range (calendar views)."""
    first_day = _parse_day(date_from, "date_from")
    last_day = _parse_day(date_to, "date_to")
    resolved = await resolve_facility_slots_range(db, facility_id, first_day, last_day, now)
    facility = await db.get(Facility, facility_id)

    return FacilityRangeAvailabilityResponse(
        facility_id=facility_id,
        date_from=first_day.isoformat(),
        date_to=last_day.isoformat(),
        timezone=facility.timezone,
        courts=[
            CourtAvailabilityResponse(
                court_id=court_id,
                date=day.isoformat(),
                timezone=facility.timezone,
                slots=[slot.to_dict() for slot in slots],
            )
            for court_id, by_day in resolved.items()
            for day, slots in by_day.items()
        ],
    )
