# impactmining/errors.py
"""
Exception taxonomy.

Fetch and write failures from the data client are ``BackendError``; identity
failures are ``AuthError`` and carry the backend's own message, which is shown
to the user verbatim. Validation problems are raised before any write happens.
"""

from __future__ import annotations

from typing import Optional


class AppError(Exception):
    """Base class for every error the application raises on purpose."""

    def __init__(self, message: str = "", *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        return self.message or self.__class__.__name__


class ConfigError(AppError):
    """Missing or invalid startup configuration (fatal)."""


class BackendError(AppError):
    """A read or write against the data backend failed."""

    def __init__(
        self,
        message: str = "",
        *,
        collection: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.collection = collection


class NotFound(BackendError):
    """A single-row read matched nothing."""


class AuthError(AppError):
    """Identity operation rejected by the backend."""


class AuthRequired(AppError):
    """The action needs a signed-in identity."""


class ValidationError(AppError):
    """Form input rejected before any write was attempted."""

    def __init__(self, message: str = "", *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class PaymentError(AppError):
    """The payment provider declined or failed an operation."""


class DonationError(AppError):
    """The donation could not be recorded after payment."""


__all__ = [
    "AppError",
    "ConfigError",
    "BackendError",
    "NotFound",
    "AuthError",
    "AuthRequired",
    "ValidationError",
    "PaymentError",
    "DonationError",
]
