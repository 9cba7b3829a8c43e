"""
Pydantic schemas for booking-related request/response validation.

Field presence on BookingCreate is checked by the booking service so that a
missing court/date/time is reported as a domain validation fault (400) with
the field named, the same way every other rejection is reported.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field


class GuestContact(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)


class BookingCreate(BaseModel):
    court_id: Optional[int] = None
    booking_date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    # Staff only: book for another player, or for a guest
    player_id: Optional[int] = None
    guest: Optional[GuestContact] = None
    notes: Optional[str] = Field(default=None, max_length=2000)
    # None lets staff bookings skip payment by default
    skip_payment: Optional[bool] = None


class BookingCreateResponse(BaseModel):
    booking_id: int
    status: str
    client_secret: Optional[str] = None
    price_cents: int


class BookingResponse(BaseModel):
    id: int
    organization_id: int
    court_id: int
    player_id: Optional[int]
    booking_date: date
    start_time: str
    end_time: str
    status: str
    live_status: str
    display_time: str
    price_cents: int
    currency: str
    requires_approval: bool
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    refund_amount_cents: Optional[int] = None
    refund_status: Optional[str] = None
    notes: Optional[str] = None
    guest: Optional[GuestContact] = None
    created_at: Optional[datetime] = None


class BookingStatusUpdate(BaseModel):
    status: str


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)
    force_cancel: bool = False


class CancellationResponse(BaseModel):
    success: bool
    refund_amount_cents: int
    refund_status: str
    message: str
