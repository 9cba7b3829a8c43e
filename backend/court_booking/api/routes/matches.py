"""
Match endpoints.
"""

from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from court_booking.api.deps import get_locale, get_now
from court_booking.db.session import get_db
from court_booking.schemas.match import MatchResponse
from court_booking.services.match_service import get_match

router = APIRouter(prefix="/matches", tags=["Matches"])


@router.get("/{match_id}", response_model=MatchResponse)
async def get_match_endpoint(
    match_id: int,
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
    locale: str = Depends(get_locale),
):
    """Match with its live status (scheduled, in_progress, completed, cancelled)."""
    return await get_match(db, match_id, now, locale)
