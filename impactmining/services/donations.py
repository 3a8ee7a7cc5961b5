# impactmining/services/donations.py
"""
Donation write path.

  1. identity present, amount positive     (nothing is written otherwise)
  2. provider.authorize -> provider.capture (reference becomes tx_hash)
  3. client.record_donation                 (insert + raised_usd increment, one unit)
  4. on a recording failure the captured payment is refunded
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Optional

from impactmining.backend import DataClient, Identity
from impactmining.entities import DonationView, parse_amount
from impactmining.errors import AuthRequired, BackendError, DonationError, PaymentError, ValidationError
from impactmining.extensions import donation_recorded

from .payments import PAYMENT_METHODS, PaymentProvider, idempotency_key

log = logging.getLogger(__name__)

GENERAL_FUND = "general"

SIGN_IN_MESSAGE = "Please sign in to make a donation"
INVALID_AMOUNT_MESSAGE = "Please enter a valid donation amount"
FAILED_MESSAGE = "Error processing donation. Please try again."


def project_ref(target: Optional[str]) -> Optional[str]:
    """'general' (or nothing) means the general fund, which has no project reference."""
    t = (target or "").strip()
    if not t or t == GENERAL_FUND:
        return None
    return t


class DonationService:
    def __init__(self, client: DataClient, payments: PaymentProvider) -> None:
        self.client = client
        self.payments = payments

    def validate(self, identity: Optional[Identity], amount: object, method: str) -> Decimal:
        if identity is None:
            raise AuthRequired(SIGN_IN_MESSAGE)
        value = parse_amount(amount)
        if value is None:
            raise ValidationError(INVALID_AMOUNT_MESSAGE, field="amount")
        if method not in PAYMENT_METHODS:
            raise ValidationError("Please choose a payment method", field="method")
        return value

    def donate(
        self,
        identity: Optional[Identity],
        *,
        target: Optional[str],
        amount: object,
        method: str = "crypto",
        attempt_id: Optional[str] = None,
        payment_token: Optional[str] = None,
    ) -> DonationView:
        value = self.validate(identity, amount, method)
        project_id = project_ref(target)
        key = idempotency_key(attempt_id or uuid.uuid4().hex, value, method)

        try:
            authorization = self.payments.authorize(
                value,
                method=method,
                idempotency_key=key,
                payment_token=payment_token,
                metadata={"user_id": identity.id, "project_id": project_id or GENERAL_FUND},
            )
            tx_hash = self.payments.capture(authorization)
        except PaymentError as e:
            log.error("Error processing donation (payment): %s", e)
            raise DonationError(FAILED_MESSAGE, cause=e) from e

        try:
            row = self.client.record_donation(
                project_id=project_id,
                user_id=identity.id,
                amount_usd=value,
                tx_hash=tx_hash,
            )
        except BackendError as e:
            log.error("Error processing donation (record %s): %s", tx_hash, e)
            self._refund(tx_hash, value)
            raise DonationError(FAILED_MESSAGE, cause=e) from e

        donation = DonationView.from_row(row)
        donation_recorded.send(self, donation=donation, identity=identity)
        return donation

    def _refund(self, tx_hash: str, amount: Decimal) -> None:
        try:
            self.payments.refund(tx_hash, amount)
        except PaymentError as e:
            # Needs a manual refund; the reference is in the log line.
            log.critical("REFUND FAILED for %s (%s): %s", tx_hash, amount, e)
