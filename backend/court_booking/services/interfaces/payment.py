"""
Payment provider interface.
Lets the booking engine authorize, reverse and release payments without
knowing which provider sits behind it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class PaymentAuthorization:
    payment_intent_id: str
    client_secret: Optional[str]


@dataclass(frozen=True)
class PaymentReversal:
    """
    Outcome of reversing a payment.

    `status` is "succeeded"/"pending" for an issued refund, or "canceled" when
    the payment was never captured and the authorization was voided instead
    (in which case no money moved and amount_cents is 0).
    """

    refund_id: Optional[str]
    status: str
    amount_cents: int

    @property
    def voided(self) -> bool:
        return self.refund_id is None and self.status == "canceled"


@dataclass(frozen=True)
class AccountStatus:
    onboarding_complete: bool
    charges_enabled: bool
    payouts_enabled: bool


class PaymentProvider(ABC):
    """
    Interface for payment providers.

    Implementations:
    - StripePaymentProvider: Stripe Connect destination charges
    - Test fakes recording calls in memory

    Every method is a fallible remote call. Implementations raise
    PaymentProviderException on failure and never retry.
    """

    @abstractmethod
    async def create_authorization(
        self,
        amount_cents: int,
        currency: str,
        destination_account: str,
        application_fee_percent: float,
        metadata: Optional[Dict[str, str]] = None,
    ) -> PaymentAuthorization:
        """
        Create a payment authorization routed to the organization's account.

        Args:
            amount_cents: Charge amount in minor currency units
            currency: ISO currency code
            destination_account: Connected account receiving the funds
            application_fee_percent: Platform fee skimmed from the charge
            metadata: Free-form key/value pairs stored with the payment
        """
        pass

    @abstractmethod
    async def reverse_authorization(self, payment_intent_id: str, amount_cents: int) -> PaymentReversal:
        """Refund `amount_cents` of a payment, or void it if it was never captured."""
        pass

    @abstractmethod
    async def cancel_authorization(self, payment_intent_id: str) -> None:
        """Release an authorization without moving money."""
        pass

    @abstractmethod
    async def get_account_status(self, account_id: str) -> AccountStatus:
        pass
