from decimal import Decimal

import pytest

from impactmining.backend import Identity
from impactmining.errors import AuthRequired, BackendError, DonationError, ValidationError
from impactmining.extensions import donation_recorded
from impactmining.services.donations import (
    FAILED_MESSAGE,
    INVALID_AMOUNT_MESSAGE,
    SIGN_IN_MESSAGE,
    DonationService,
    project_ref,
)
from impactmining.services.payments import SimulatedPaymentProvider

AMARA = Identity(id="u-1", email="amara@example.org")


class FakeClient:
    def __init__(self, fail=False):
        self.fail = fail
        self.recorded = []

    def record_donation(self, **kwargs):
        if self.fail:
            raise BackendError("connection reset")
        self.recorded.append(kwargs)
        return {
            "id": "d-1",
            "project_id": kwargs["project_id"],
            "user_id": kwargs["user_id"],
            "amount_usd": kwargs["amount_usd"],
            "tx_hash": kwargs["tx_hash"],
            "created_at": "2026-01-05T10:00:00",
        }


@pytest.mark.parametrize("target, expected", [("general", None), ("", None), (None, None), ("p-1", "p-1")])
def test_project_ref(target, expected):
    assert project_ref(target) == expected


def test_unauthenticated_writes_nothing():
    client, provider = FakeClient(), SimulatedPaymentProvider()
    with pytest.raises(AuthRequired) as exc:
        DonationService(client, provider).donate(None, target="general", amount="100")
    assert exc.value.message == SIGN_IN_MESSAGE
    assert client.recorded == []


@pytest.mark.parametrize("amount", ["", "0", "-5", "abc", None])
def test_invalid_amount_writes_nothing(amount):
    client = FakeClient()
    with pytest.raises(ValidationError) as exc:
        DonationService(client, SimulatedPaymentProvider()).donate(AMARA, target="general", amount=amount)
    assert exc.value.message == INVALID_AMOUNT_MESSAGE
    assert client.recorded == []


def test_general_fund_donation():
    client = FakeClient()
    donation = DonationService(client, SimulatedPaymentProvider()).donate(
        AMARA, target="general", amount="100", method="crypto"
    )
    assert client.recorded[0]["project_id"] is None
    assert client.recorded[0]["amount_usd"] == Decimal("100.00")
    assert client.recorded[0]["tx_hash"].startswith("sim_crypto_")
    assert donation.amount_usd == Decimal("100.00")


def test_record_failure_refunds_payment():
    provider = SimulatedPaymentProvider()
    with pytest.raises(DonationError) as exc:
        DonationService(FakeClient(fail=True), provider).donate(AMARA, target="p-1", amount="20", method="card")
    assert exc.value.message == FAILED_MESSAGE
    assert len(provider.refunds) == 1
    assert provider.refunds[0].startswith("sim_card_")


def test_success_sends_signal():
    received = []

    def listener(sender, **kwargs):
        received.append(kwargs)

    donation_recorded.connect(listener)
    try:
        DonationService(FakeClient(), SimulatedPaymentProvider()).donate(AMARA, target="p-1", amount="15")
    finally:
        donation_recorded.disconnect(listener)
    assert len(received) == 1
    assert received[0]["identity"] is AMARA
    assert received[0]["donation"].project_id == "p-1"
