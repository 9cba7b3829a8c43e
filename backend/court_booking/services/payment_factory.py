"""
Payment provider factory.
Configures which payment provider the booking engine talks to.
"""

from typing import Optional

from court_booking.infrastructure.stripe_provider import StripePaymentProvider
from court_booking.services.interfaces.payment import PaymentProvider


def create_payment_provider() -> PaymentProvider:
    """Stripe is the only production provider; tests override the dependency."""
    return StripePaymentProvider()


# Singleton instance
_provider: Optional[PaymentProvider] = None


def get_payment_provider() -> PaymentProvider:
    """Get payment provider singleton."""
    global _provider
    if _provider is None:
        _provider = create_payment_provider()
    return _provider
