"""
Tests for the Stripe Connect adapter with the SDK calls patched out.
"""

from types import SimpleNamespace

import pytest
import stripe

from court_booking.core.exceptions import PaymentProviderException
from court_booking.infrastructure.stripe_provider import StripePaymentProvider, application_fee_cents


class StripeRecorder:
    def __init__(self, monkeypatch, intent_status="requires_payment_method"):
        self.calls = []
        self.intent_status = intent_status

        def create_intent(**kwargs):
            self.calls.append(("intent.create", kwargs))
            return SimpleNamespace(id="pi_123", client_secret="pi_123_secret", status=self.intent_status)

        def retrieve_intent(intent_id):
            self.calls.append(("intent.retrieve", intent_id))
            return SimpleNamespace(id=intent_id, status=self.intent_status)

        def cancel_intent(intent_id):
            self.calls.append(("intent.cancel", intent_id))
            return SimpleNamespace(id=intent_id, status="canceled")

        def create_refund(**kwargs):
            self.calls.append(("refund.create", kwargs))
            return SimpleNamespace(id="re_123", status="succeeded")

        monkeypatch.setattr(stripe.PaymentIntent, "create", create_intent)
        monkeypatch.setattr(stripe.PaymentIntent, "retrieve", retrieve_intent)
        monkeypatch.setattr(stripe.PaymentIntent, "cancel", cancel_intent)
        monkeypatch.setattr(stripe.Refund, "create", create_refund)

    def names(self):
        return [name for name, _ in self.calls]


@pytest.fixture
def provider():
    return StripePaymentProvider(api_key="sk_test_dummy")


def test_application_fee_rounds_half_up():
    assert application_fee_cents(2000, 5.0) == 100
    assert application_fee_cents(1010, 5.0) == 51
    assert application_fee_cents(999, 2.5) == 25


@pytest.mark.asyncio
async def test_authorization_is_a_destination_charge(monkeypatch, provider):
    recorder = StripeRecorder(monkeypatch)

    authorization = await provider.create_authorization(
        amount_cents=2000,
        currency="CAD",
        destination_account="acct_riverside",
        application_fee_percent=5.0,
        metadata={"court_id": "1"},
    )

    assert authorization.payment_intent_id == "pi_123"
    assert authorization.client_secret == "pi_123_secret"
    _, kwargs = recorder.calls[0]
    assert kwargs["amount"] == 2000
    assert kwargs["currency"] == "cad"
    assert kwargs["application_fee_amount"] == 100
    assert kwargs["transfer_data"] == {"destination": "acct_riverside"}
    assert kwargs["metadata"] == {"court_id": "1"}


@pytest.mark.asyncio
async def test_reversal_of_captured_payment_refunds(monkeypatch, provider):
    recorder = StripeRecorder(monkeypatch, intent_status="succeeded")

    reversal = await provider.reverse_authorization("pi_123", 1000)

    assert reversal.refund_id == "re_123"
    assert not reversal.voided
    _, kwargs = recorder.calls[-1]
    assert kwargs == {
        "payment_intent": "pi_123",
        "amount": 1000,
        "reverse_transfer": True,
        "refund_application_fee": True,
    }


@pytest.mark.asyncio
async def test_reversal_of_uncaptured_payment_voids(monkeypatch, provider):
    recorder = StripeRecorder(monkeypatch, intent_status="requires_capture")

    reversal = await provider.reverse_authorization("pi_123", 1000)

    assert reversal.voided
    assert reversal.amount_cents == 0
    assert recorder.names() == ["intent.retrieve", "intent.cancel"]


@pytest.mark.asyncio
async def test_cancel_skips_captured_payment(monkeypatch, provider):
    recorder = StripeRecorder(monkeypatch, intent_status="succeeded")

    await provider.cancel_authorization("pi_123")

    assert recorder.names() == ["intent.retrieve"]


@pytest.mark.asyncio
async def test_sdk_error_becomes_provider_exception(monkeypatch, provider):
    def declined(**kwargs):
        raise stripe.StripeError("Your card was declined.")

    monkeypatch.setattr(stripe.PaymentIntent, "create", declined)

    with pytest.raises(PaymentProviderException) as exc_info:
        await provider.create_authorization(2000, "CAD", "acct_riverside", 5.0)

    assert "declined" in exc_info.value.message


@pytest.mark.asyncio
async def test_account_status(monkeypatch, provider):
    monkeypatch.setattr(
        stripe.Account,
        "retrieve",
        lambda account_id: SimpleNamespace(charges_enabled=True, details_submitted=False, payouts_enabled=True),
    )

    status = await provider.get_account_status("acct_riverside")

    assert status.charges_enabled
    assert status.payouts_enabled
    assert not status.onboarding_complete
