"""
Pydantic schemas for match responses.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel


class MatchResponse(BaseModel):
    id: int
    court_id: Optional[int]
    match_date: date
    start_time: str
    end_time: str
    timezone: str
    cancelled_at: Optional[datetime] = None
    result: Optional[str] = None
    status: str
    display_time: str
