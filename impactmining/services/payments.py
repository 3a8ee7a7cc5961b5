# impactmining/services/payments.py
"""
Payment providers: authorize -> capture -> (refund).

The provider reference returned by ``capture`` becomes the donation's
``tx_hash``. Stripe is the production provider; the simulated provider is a
development/test double and is refused by ProductionConfig.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

import stripe
from flask import current_app

from impactmining.errors import PaymentError

log = logging.getLogger(__name__)

PAYMENT_METHODS = ("crypto", "card")


@dataclass(frozen=True)
class PaymentAuthorization:
    reference: str
    amount_usd: Decimal
    method: str
    currency: str = "usd"


def idempotency_key(attempt_id: str, amount_usd: Decimal, method: str) -> str:
    raw = f"im|attempt:{attempt_id}|amt:{amount_usd}|m:{method}"
    digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()[:48]
    return f"im_pi_{digest}"


def to_cents(amount_usd: Decimal) -> int:
    return int((Decimal(amount_usd) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentProvider(ABC):
    name = "abstract"

    @abstractmethod
    def authorize(
        self,
        amount_usd: Decimal,
        *,
        method: str,
        idempotency_key: str,
        payment_token: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> PaymentAuthorization:
        ...

    @abstractmethod
    def capture(self, authorization: PaymentAuthorization) -> str:
        """Capture the authorized funds; returns the settled payment reference."""

    @abstractmethod
    def refund(self, reference: str, amount_usd: Decimal) -> None:
        ...


@dataclass
class SimulatedPaymentProvider(PaymentProvider):
    """Always succeeds. References look like ``sim_card_1718000000000_3f9a1c``."""

    currency: str = "usd"
    refunds: List[str] = field(default_factory=list)
    name = "simulated"

    def authorize(
        self,
        amount_usd: Decimal,
        *,
        method: str,
        idempotency_key: str,
        payment_token: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> PaymentAuthorization:
        if method not in PAYMENT_METHODS:
            raise PaymentError(f"Unsupported payment method: {method}")
        reference = f"sim_{method}_{int(time.time() * 1000)}_{secrets.token_hex(3)}"
        return PaymentAuthorization(reference, Decimal(amount_usd), method, self.currency)

    def capture(self, authorization: PaymentAuthorization) -> str:
        return authorization.reference

    def refund(self, reference: str, amount_usd: Decimal) -> None:
        log.info("simulated refund of %s for %s", amount_usd, reference)
        self.refunds.append(reference)


class StripePaymentProvider(PaymentProvider):
    """Card payments through PaymentIntents with manual capture."""

    name = "stripe"

    def __init__(self, secret_key: str, currency: str = "usd") -> None:
        if not secret_key:
            raise PaymentError("Stripe is not configured")
        self.currency = currency
        stripe.api_key = secret_key

    def authorize(
        self,
        amount_usd: Decimal,
        *,
        method: str,
        idempotency_key: str,
        payment_token: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> PaymentAuthorization:
        if method != "card":
            raise PaymentError("Only card payments are accepted at the moment.")
        if not payment_token:
            raise PaymentError("Card details are required.")

        try:
            intent = stripe.PaymentIntent.create(
                amount=to_cents(amount_usd),
                currency=self.currency,
                payment_method=payment_token,
                capture_method="manual",
                confirm=True,
                automatic_payment_methods={"enabled": True, "allow_redirects": "never"},
                metadata=dict(metadata or {}),
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as e:
            msg = getattr(e, "user_message", None) or str(e)
            log.error("stripe authorize failed: %s", msg)
            raise PaymentError(msg, cause=e) from e

        if intent.status != "requires_capture":
            raise PaymentError(f"Payment was not authorized (status {intent.status}).")
        return PaymentAuthorization(intent.id, Decimal(amount_usd), method, self.currency)

    def capture(self, authorization: PaymentAuthorization) -> str:
        try:
            intent = stripe.PaymentIntent.capture(authorization.reference)
        except stripe.StripeError as e:
            log.error("stripe capture failed for %s: %s", authorization.reference, e)
            self._cancel(authorization.reference)
            raise PaymentError("Payment could not be completed.", cause=e) from e
        if intent.status != "succeeded":
            raise PaymentError(f"Payment was not captured (status {intent.status}).")
        return intent.id

    def refund(self, reference: str, amount_usd: Decimal) -> None:
        try:
            stripe.Refund.create(
                payment_intent=reference,
                amount=to_cents(amount_usd),
                idempotency_key=f"im_refund_{reference}",
            )
        except stripe.StripeError as e:
            log.error("stripe refund failed for %s: %s", reference, e)
            raise PaymentError("Refund failed", cause=e) from e
        log.info("refunded %s for %s", amount_usd, reference)

    def _cancel(self, reference: str) -> None:
        try:
            stripe.PaymentIntent.cancel(reference)
        except stripe.StripeError as e:
            log.warning("stripe cancel failed for %s: %s", reference, e)


def build_payment_provider(config: Any) -> PaymentProvider:
    kind = str(config.get("PAYMENT_PROVIDER") or "simulated").lower()
    currency = str(config.get("DONATION_CURRENCY") or "usd").lower()
    if kind == "stripe":
        return StripePaymentProvider(config.get("STRIPE_SECRET_KEY") or "", currency)
    return SimulatedPaymentProvider(currency=currency)


def get_payment_provider() -> PaymentProvider:
    """App-wide provider, built on first use."""
    provider = current_app.extensions.get("impactmining.payments")
    if provider is None:
        provider = build_payment_provider(current_app.config)
        current_app.extensions["impactmining.payments"] = provider
    return provider
