from .donations import DonationService
from .payments import (
    PaymentAuthorization,
    PaymentProvider,
    SimulatedPaymentProvider,
    StripePaymentProvider,
    get_payment_provider,
)

__all__ = [
    "DonationService",
    "PaymentAuthorization",
    "PaymentProvider",
    "SimulatedPaymentProvider",
    "StripePaymentProvider",
    "get_payment_provider",
]
