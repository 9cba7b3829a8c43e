"""
Stripe Connect implementation of the payment provider interface.

Charges are destination charges: the PaymentIntent is created on the platform
account with `transfer_data.destination` set to the organization's connected
account and the platform fee taken as `application_fee_amount`.

The stripe SDK is synchronous; calls run in a worker thread so they do not
block the event loop.
"""

import asyncio
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional

import stripe

from court_booking.core.config import get_settings
from court_booking.core.exceptions import PaymentProviderException
from court_booking.core.logging import get_logger
from court_booking.core.metrics import record_payment_error
from court_booking.services.interfaces.payment import (
    AccountStatus,
    PaymentAuthorization,
    PaymentProvider,
    PaymentReversal,
)

logger = get_logger(__name__)

# Intent states in which no money has been captured yet
UNCAPTURED_STATES = frozenset(
    {
        "requires_payment_method",
        "requires_confirmation",
        "requires_action",
        "requires_capture",
        "processing",
    }
)


def application_fee_cents(amount_cents: int, fee_percent: float) -> int:
    """Platform fee rounded half-up to the nearest minor unit."""
    fee = Decimal(amount_cents) * Decimal(str(fee_percent)) / Decimal(100)
    return int(fee.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripePaymentProvider(PaymentProvider):
    def __init__(self, api_key: Optional[str] = None, api_version: Optional[str] = None):
        settings = get_settings()
        stripe.api_key = api_key or settings.STRIPE_SECRET_KEY
        stripe.api_version = api_version or settings.STRIPE_API_VERSION

    async def create_authorization(
        self,
        amount_cents: int,
        currency: str,
        destination_account: str,
        application_fee_percent: float,
        metadata: Optional[Dict[str, str]] = None,
    ) -> PaymentAuthorization:
        fee = application_fee_cents(amount_cents, application_fee_percent)
        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                amount=amount_cents,
                currency=currency.lower(),
                automatic_payment_methods={"enabled": True},
                application_fee_amount=fee,
                transfer_data={"destination": destination_account},
                metadata=metadata or {},
            )
        except stripe.StripeError as e:
            record_payment_error("authorize")
            logger.error("stripe_authorization_failed", amount_cents=amount_cents, error=str(e))
            raise PaymentProviderException(f"Failed to create payment: {e.user_message or str(e)}")

        logger.info(
            "stripe_authorization_created",
            payment_intent_id=intent.id,
            amount_cents=amount_cents,
            application_fee_cents=fee,
        )
        return PaymentAuthorization(payment_intent_id=intent.id, client_secret=intent.client_secret)

    async def reverse_authorization(self, payment_intent_id: str, amount_cents: int) -> PaymentReversal:
        try:
            intent = await asyncio.to_thread(stripe.PaymentIntent.retrieve, payment_intent_id)

            if intent.status in UNCAPTURED_STATES:
                await asyncio.to_thread(stripe.PaymentIntent.cancel, payment_intent_id)
                logger.info("stripe_authorization_voided", payment_intent_id=payment_intent_id)
                return PaymentReversal(refund_id=None, status="canceled", amount_cents=0)

            refund = await asyncio.to_thread(
                stripe.Refund.create,
                payment_intent=payment_intent_id,
                amount=amount_cents,
                reverse_transfer=True,
                refund_application_fee=True,
            )
        except stripe.StripeError as e:
            record_payment_error("reverse")
            logger.error(
                "stripe_reversal_failed",
                payment_intent_id=payment_intent_id,
                amount_cents=amount_cents,
                error=str(e),
            )
            raise PaymentProviderException(f"Failed to process refund: {e.user_message or str(e)}")

        logger.info(
            "stripe_refund_created",
            payment_intent_id=payment_intent_id,
            refund_id=refund.id,
            amount_cents=amount_cents,
            status=refund.status,
        )
        return PaymentReversal(refund_id=refund.id, status=refund.status, amount_cents=amount_cents)

    async def cancel_authorization(self, payment_intent_id: str) -> None:
        try:
            intent = await asyncio.to_thread(stripe.PaymentIntent.retrieve, payment_intent_id)
            if intent.status not in UNCAPTURED_STATES:
                logger.info(
                    "stripe_cancel_skipped",
                    payment_intent_id=payment_intent_id,
                    intent_status=intent.status,
                )
                return
            await asyncio.to_thread(stripe.PaymentIntent.cancel, payment_intent_id)
        except stripe.StripeError as e:
            record_payment_error("cancel")
            logger.error("stripe_cancel_failed", payment_intent_id=payment_intent_id, error=str(e))
            raise PaymentProviderException(f"Failed to release payment: {e.user_message or str(e)}")

        logger.info("stripe_authorization_cancelled", payment_intent_id=payment_intent_id)

    async def get_account_status(self, account_id: str) -> AccountStatus:
        try:
            account = await asyncio.to_thread(stripe.Account.retrieve, account_id)
        except stripe.StripeError as e:
            record_payment_error("account_status")
            logger.error("stripe_account_status_failed", account_id=account_id, error=str(e))
            raise PaymentProviderException(f"Failed to check account status: {e.user_message or str(e)}")

        charges_enabled = bool(getattr(account, "charges_enabled", False))
        details_submitted = bool(getattr(account, "details_submitted", False))
        return AccountStatus(
            onboarding_complete=charges_enabled and details_submitted,
            charges_enabled=charges_enabled,
            payouts_enabled=bool(getattr(account, "payouts_enabled", False)),
        )
