"""
Match reads. Every read goes through status derivation; matches have no
stored status to trust.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from court_booking.core.exceptions import NotFoundException
from court_booking.core.timeutils import format_time_range_in_timezone, normalize_time
from court_booking.models.match import Match
from court_booking.schemas.match import MatchResponse
from court_booking.services.status_service import derive_status


async def _load_match(db: AsyncSession, match_id: int) -> Match:
    match = await db.get(Match, match_id)
    if not match:
        raise NotFoundException("Match not found", {"match_id": match_id})
    return match


def to_match_response(match: Match, now: datetime, locale: Optional[str] = "en-US") -> MatchResponse:
    status = derive_status(
        match.cancelled_at,
        match.match_date,
        match.start_time,
        match.end_time,
        match.timezone,
        match.result,
        now,
    )
    return MatchResponse(
        id=match.id,
        court_id=match.court_id,
        match_date=match.match_date,
        start_time=normalize_time(match.start_time),
        end_time=normalize_time(match.end_time),
        timezone=match.timezone,
        cancelled_at=match.cancelled_at,
        result=match.result,
        status=status.value,
        display_time=format_time_range_in_timezone(
            match.match_date, match.start_time, match.end_time, match.timezone, locale
        ),
    )


async def get_match(db: AsyncSession, match_id: int, now: datetime, locale: Optional[str] = "en-US") -> MatchResponse:
    """The match with its live status derived at `now`."""
    return to_match_response(await _load_match(db, match_id), now, locale)
