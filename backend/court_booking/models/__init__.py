from court_booking.models.user import User
from court_booking.models.organization import (
    CancellationPolicy,
    Organization,
    OrganizationMember,
    OrganizationSettings,
    PaymentAccount,
    PlayerBlock,
)
from court_booking.models.facility import Court, Facility
from court_booking.models.availability import (
    AvailabilityBlock,
    AvailabilityOverride,
    AvailabilityTemplate,
    PricingRule,
)
from court_booking.models.booking import Booking, BookingStatus, RefundStatus
from court_booking.models.match import Match

__all__ = [
    "User",
    "Organization",
    "OrganizationMember",
    "OrganizationSettings",
    "CancellationPolicy",
    "PaymentAccount",
    "PlayerBlock",
    "Facility",
    "Court",
    "AvailabilityTemplate",
    "AvailabilityOverride",
    "AvailabilityBlock",
    "PricingRule",
    "Booking",
    "BookingStatus",
    "RefundStatus",
    "Match",
]
