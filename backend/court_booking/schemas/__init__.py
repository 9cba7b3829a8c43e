from court_booking.schemas.availability import (
    CourtAvailabilityResponse,
    FacilityAvailabilityResponse,
    FacilityRangeAvailabilityResponse,
    SlotResponse,
)
from court_booking.schemas.booking import (
    BookingCreate,
    BookingCreateResponse,
    BookingResponse,
    BookingStatusUpdate,
    CancelRequest,
    CancellationResponse,
    GuestContact,
)
from court_booking.schemas.match import MatchResponse

__all__ = [
    "SlotResponse", "CourtAvailabilityResponse", "FacilityAvailabilityResponse",
    "FacilityRangeAvailabilityResponse",
    "BookingCreate", "BookingCreateResponse", "BookingResponse", "BookingStatusUpdate",
    "CancelRequest", "CancellationResponse", "GuestContact",
    "MatchResponse",
]
