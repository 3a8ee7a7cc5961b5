# impactmining/backend/base.py
"""
Remote Data Client contract.

Every page talks to the backend through one ``DataClient`` per request:

    select(collection, filters, order)  -> rows
    count(collection, filters)          -> int
    insert(collection, row)             -> row
    update(collection, filters, patch)  -> rows
    record_donation(...)                -> donation row (atomic, idempotent on tx_hash)

plus the identity operations and an auth-state-change subscription. Rows are
plain dicts keyed by column name, exactly as the hosted backend returns them.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from impactmining.errors import AuthError, BackendError

log = logging.getLogger(__name__)

COLLECTIONS = ("profiles", "projects", "donations", "stories", "donee_submissions")

# Public provider name -> backend provider id
OAUTH_PROVIDERS = {
    "google": "google",
    "github": "github",
    "microsoft": "azure",
}

Row = Dict[str, Any]
FilterValue = Union[str, int, float, bool, Decimal, None, Sequence[Any]]
Filters = Mapping[str, FilterValue]


class AuthEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"


@dataclass(frozen=True)
class Identity:
    id: str
    email: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def handle(self) -> str:
        """Short name shown in the navbar (email local part)."""
        return (self.email or "").split("@")[0] or "friend"

    @property
    def display_name(self) -> str:
        return str(self.metadata.get("display_name") or self.handle)


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    refresh_token: str
    identity: Identity
    expires_at: Optional[int] = None

    def to_storage(self) -> Dict[str, Any]:
        """What the browser session cookie keeps between requests."""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
        }


@dataclass(frozen=True)
class Order:
    column: str
    descending: bool = False


AuthCallback = Callable[[AuthEvent, Optional[AuthSession]], None]


class Subscription:
    """Handle returned by ``on_auth_state_change``; call ``unsubscribe`` on teardown."""

    def __init__(self, registry: "AuthEvents", callback: AuthCallback) -> None:
        self._registry = registry
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._registry.discard(self)
            self.active = False


class AuthEvents:
    """Synchronous fan-out of auth state changes to subscribers."""

    def __init__(self) -> None:
        self._subscribers: List[Subscription] = []

    def subscribe(self, callback: AuthCallback) -> Subscription:
        sub = Subscription(self, callback)
        self._subscribers.append(sub)
        return sub

    def discard(self, sub: Subscription) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)

    def emit(self, event: AuthEvent, session: Optional[AuthSession]) -> None:
        for sub in list(self._subscribers):
            sub.callback(event, session)

    def __len__(self) -> int:
        return len(self._subscribers)


def parse_columns(columns: str) -> Optional[List[str]]:
    """'*' -> None (all columns); 'id, title' -> ['id', 'title']."""
    cols = [c.strip() for c in (columns or "*").split(",") if c.strip()]
    if not cols or "*" in cols:
        return None
    return cols


def normalize_order(order: Union[None, Order, Iterable[Order]]) -> Tuple[Order, ...]:
    if order is None:
        return ()
    if isinstance(order, Order):
        return (order,)
    return tuple(order)


def oauth_provider_id(provider: str) -> str:
    try:
        return OAUTH_PROVIDERS[(provider or "").strip().lower()]
    except KeyError:
        raise AuthError(f"Unsupported sign-in provider: {provider}") from None


class DataClient(ABC):
    """Abstract Remote Data Client; one instance per request."""

    kind: str = "abstract"

    def __init__(self) -> None:
        self._auth_events = AuthEvents()

    # ── Collections ─────────────────────────────────────────────
    @staticmethod
    def check_collection(collection: str) -> str:
        if collection not in COLLECTIONS:
            raise BackendError(f"Unknown collection '{collection}'", collection=collection)
        return collection

    @abstractmethod
    def select(
        self,
        collection: str,
        *,
        columns: str = "*",
        filters: Optional[Filters] = None,
        order: Union[None, Order, Iterable[Order]] = None,
        limit: Optional[int] = None,
    ) -> List[Row]:
        ...

    def select_one(self, collection: str, *, columns: str = "*", filters: Optional[Filters] = None) -> Optional[Row]:
        rows = self.select(collection, columns=columns, filters=filters, limit=1)
        return rows[0] if rows else None

    @abstractmethod
    def count(self, collection: str, *, filters: Optional[Filters] = None) -> int:
        ...

    @abstractmethod
    def insert(self, collection: str, row: Mapping[str, Any], *, returning: bool = True) -> Row:
        """
        Store one row and return it as saved. Pass ``returning=False`` when the
        caller does not need the stored row; the input row comes back instead.
        """

    @abstractmethod
    def update(self, collection: str, filters: Filters, patch: Mapping[str, Any]) -> List[Row]:
        ...

    @abstractmethod
    def record_donation(
        self,
        *,
        project_id: Optional[str],
        user_id: str,
        amount_usd: Decimal,
        tx_hash: str,
    ) -> Row:
        """
        Insert the donation and add its amount to the project's raised total as
        one server-side unit. Recording an already-recorded tx_hash returns the
        existing row and changes nothing.
        """

    # ── Identity ────────────────────────────────────────────────
    @abstractmethod
    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        ...

    @abstractmethod
    def sign_up(
        self, email: str, password: str, metadata: Optional[Mapping[str, Any]] = None
    ) -> Tuple[Identity, Optional[AuthSession]]:
        """Create an identity. The session is None when the backend wants email confirmation first."""

    @abstractmethod
    def sign_in_with_oauth(self, provider: str, redirect_to: str) -> str:
        """Return the provider URL the browser must be redirected to."""

    @abstractmethod
    def exchange_code_for_session(self, code: str) -> AuthSession:
        ...

    @abstractmethod
    def restore_session(self, stored: Mapping[str, Any]) -> Optional[AuthSession]:
        """Rebuild the session kept in the cookie; refreshes expired access tokens."""

    @abstractmethod
    def sign_out(self) -> None:
        ...

    def on_auth_state_change(self, callback: AuthCallback) -> Subscription:
        return self._auth_events.subscribe(callback)

    def _emit(self, event: AuthEvent, session: Optional[AuthSession]) -> None:
        log.debug("auth event %s (identity=%s)", event.value, session.identity.id if session else None)
        self._auth_events.emit(event, session)

    def close(self) -> None:
        """Release per-request resources."""
