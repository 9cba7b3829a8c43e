"""
Pydantic schemas for slot availability responses.
"""

from pydantic import BaseModel


class SlotResponse(BaseModel):
    date: str
    start_time: str
    end_time: str
    price_cents: int
    source: str


class CourtAvailabilityResponse(BaseModel):
    court_id: int
    date: str
    timezone: str
    slots: list[SlotResponse]


class FacilityAvailabilityResponse(BaseModel):
    facility_id: int
    date: str
    timezone: str
    courts: list[CourtAvailabilityResponse]


class FacilityRangeAvailabilityResponse(BaseModel):
    facility_id: int
    date_from: str
    date_to: str
    timezone: str
    # One entry per (court, date), courts in id order then dates ascending
    courts: list[CourtAvailabilityResponse]
