import re
from decimal import Decimal
from types import SimpleNamespace

import pytest
import stripe

from impactmining.errors import PaymentError
from impactmining.forms import DonationForm, ProjectDonationForm
from impactmining.services import payments
from impactmining.services.payments import (
    SimulatedPaymentProvider,
    StripePaymentProvider,
    build_payment_provider,
    idempotency_key,
    to_cents,
)


def test_simulated_reference_shape():
    provider = SimulatedPaymentProvider()
    auth = provider.authorize(Decimal("25"), method="card", idempotency_key="k")
    ref = provider.capture(auth)
    assert re.fullmatch(r"sim_card_\d{13}_[0-9a-f]{6}", ref)


def test_simulated_rejects_unknown_method():
    with pytest.raises(PaymentError):
        SimulatedPaymentProvider().authorize(Decimal("1"), method="cheque", idempotency_key="k")


def test_simulated_refund_is_recorded():
    provider = SimulatedPaymentProvider()
    provider.refund("sim_card_1_abcdef", Decimal("5"))
    assert provider.refunds == ["sim_card_1_abcdef"]


def test_idempotency_key_is_deterministic():
    a = idempotency_key("attempt-1", Decimal("10.00"), "card")
    assert a == idempotency_key("attempt-1", Decimal("10.00"), "card")
    assert a != idempotency_key("attempt-2", Decimal("10.00"), "card")
    assert a.startswith("im_pi_")


@pytest.mark.parametrize("amount, cents", [("10", 1000), ("0.015", 2), ("99.99", 9999)])
def test_to_cents(amount, cents):
    assert to_cents(Decimal(amount)) == cents


def test_build_provider_from_config():
    assert isinstance(build_payment_provider({"PAYMENT_PROVIDER": "simulated"}), SimulatedPaymentProvider)
    stripe_provider = build_payment_provider({"PAYMENT_PROVIDER": "stripe", "STRIPE_SECRET_KEY": "sk_test_x"})
    assert isinstance(stripe_provider, StripePaymentProvider)
    with pytest.raises(PaymentError):
        build_payment_provider({"PAYMENT_PROVIDER": "stripe"})


def test_donation_form_defaults_to_crypto_for_simulated_payments(app):
    with app.test_request_context("/donate"):
        assert DonationForm().method.data == "crypto"


def test_donation_form_defaults_to_card_for_stripe(app):
    app.config["PAYMENT_PROVIDER"] = "stripe"
    with app.test_request_context("/donate"):
        assert DonationForm().method.data == "card"
        assert ProjectDonationForm().method.data == "card"


@pytest.fixture
def fake_stripe(monkeypatch):
    calls = {}

    def create(**kwargs):
        calls["create"] = kwargs
        return SimpleNamespace(id="pi_123", status=calls.get("create_status", "requires_capture"))

    def capture(intent_id):
        calls["capture"] = intent_id
        return SimpleNamespace(id=intent_id, status="succeeded")

    def refund(**kwargs):
        calls["refund"] = kwargs

    monkeypatch.setattr(payments.stripe.PaymentIntent, "create", staticmethod(create))
    monkeypatch.setattr(payments.stripe.PaymentIntent, "capture", staticmethod(capture))
    monkeypatch.setattr(payments.stripe.Refund, "create", staticmethod(refund))
    return calls


def test_stripe_authorize_and_capture(fake_stripe):
    provider = StripePaymentProvider("sk_test_x")
    auth = provider.authorize(
        Decimal("12.34"), method="card", idempotency_key="im_pi_abc", payment_token="pm_card_visa"
    )
    assert provider.capture(auth) == "pi_123"
    created = fake_stripe["create"]
    assert created["amount"] == 1234
    assert created["capture_method"] == "manual"
    assert created["idempotency_key"] == "im_pi_abc"
    assert fake_stripe["capture"] == "pi_123"


def test_stripe_requires_card_token(fake_stripe):
    provider = StripePaymentProvider("sk_test_x")
    with pytest.raises(PaymentError):
        provider.authorize(Decimal("5"), method="crypto", idempotency_key="k", payment_token="pm")
    with pytest.raises(PaymentError):
        provider.authorize(Decimal("5"), method="card", idempotency_key="k")


def test_stripe_unauthorized_status(fake_stripe):
    fake_stripe["create_status"] = "requires_action"
    with pytest.raises(PaymentError, match="requires_action"):
        StripePaymentProvider("sk_test_x").authorize(
            Decimal("5"), method="card", idempotency_key="k", payment_token="pm"
        )


def test_stripe_decline_surfaces_user_message(monkeypatch):
    def create(**kwargs):
        raise stripe.CardError("declined", "payment_method", "card_declined")

    monkeypatch.setattr(payments.stripe.PaymentIntent, "create", staticmethod(create))
    with pytest.raises(PaymentError):
        StripePaymentProvider("sk_test_x").authorize(
            Decimal("5"), method="card", idempotency_key="k", payment_token="pm"
        )


def test_stripe_refund(fake_stripe):
    StripePaymentProvider("sk_test_x").refund("pi_123", Decimal("7.50"))
    assert fake_stripe["refund"]["amount"] == 750
    assert fake_stripe["refund"]["payment_intent"] == "pi_123"
