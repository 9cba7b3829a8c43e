"""
Shared route dependencies: the request clock, display locale and actor resolution.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import Header
from sqlalchemy.ext.asyncio import AsyncSession

from court_booking.models.facility import Court
from court_booking.services.availability_service import get_court
from court_booking.services.membership_service import Actor, resolve_actor


def get_now() -> datetime:
    """The one place the wall clock is read for a request."""
    return datetime.now(timezone.utc)


def get_locale(accept_language: Optional[str] = Header(default=None)) -> str:
    if not accept_language:
        return "en-US"
    return accept_language.split(",")[0].split(";")[0].strip() or "en-US"


async def actor_for_court(db: AsyncSession, user_id: int, court_id: Optional[int]) -> Actor:
    if court_id is None:
        return Actor(user_id=user_id)
    court: Court = await get_court(db, court_id)
    return await resolve_actor(db, user_id, court.facility.organization_id)
