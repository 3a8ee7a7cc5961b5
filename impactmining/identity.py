# impactmining/identity.py
"""
Per-request identity context and page context injection.

The identity is never read from a process-wide singleton. ``create_app``
builds a ``PageContext`` (data client + identity) in ``before_request``,
closes it in ``teardown_request``, and views receive it as their first
argument through ``@with_page``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, MutableMapping, Optional

from flask import current_app, flash, g, redirect, render_template, request, url_for

from impactmining.backend import AuthEvent, AuthSession, DataClient, Identity, Subscription
from impactmining.entities import ProfileView
from impactmining.errors import AuthRequired, BackendError
from impactmining.services.payments import PaymentProvider, get_payment_provider

log = logging.getLogger(__name__)

SESSION_KEY = "auth"


class IdentityContext:
    """Current identity (or none) for one request, kept in sync with the client's auth events."""

    def __init__(self, client: DataClient, store: MutableMapping[str, Any]) -> None:
        self._client = client
        self._store = store
        self._subscription: Optional[Subscription] = None
        self._profile: Optional[ProfileView] = None
        self._profile_loaded = False
        self.identity: Optional[Identity] = None

    # ── Lifecycle ───────────────────────────────────────────────
    def init(self) -> "IdentityContext":
        self._subscription = self._client.on_auth_state_change(self._on_auth_change)
        stored = self._store.get(SESSION_KEY)
        if stored:
            session = self._client.restore_session(stored)
            if session is None:
                self._clear()
            else:
                self._apply(session)
        return self

    def teardown(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def _on_auth_change(self, event: AuthEvent, session: Optional[AuthSession]) -> None:
        if event is AuthEvent.SIGNED_OUT:
            self._clear()
        elif session is not None:
            self._apply(session)

    def _apply(self, session: AuthSession) -> None:
        if self.identity is None or self.identity.id != session.identity.id:
            self._profile = None
            self._profile_loaded = False
        self.identity = session.identity
        stored = session.to_storage()
        if self._store.get(SESSION_KEY) != stored:
            self._store[SESSION_KEY] = stored

    def _clear(self) -> None:
        self.identity = None
        self._profile = None
        self._profile_loaded = False
        self._store.pop(SESSION_KEY, None)

    # ── State ───────────────────────────────────────────────────
    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    def require(self, message: str = "Please sign in to continue") -> Identity:
        if self.identity is None:
            raise AuthRequired(message)
        return self.identity

    @property
    def profile(self) -> Optional[ProfileView]:
        if self.identity is None:
            return None
        if not self._profile_loaded:
            self._profile_loaded = True
            try:
                row = self._client.select_one("profiles", filters={"id": self.identity.id})
            except BackendError as e:
                log.error("Error fetching profile: %s", e)
                row = None
            self._profile = ProfileView.from_row(row) if row else None
        return self._profile

    @property
    def is_admin(self) -> bool:
        return bool(self.profile and self.profile.is_admin)

    @property
    def display_name(self) -> str:
        if self.identity is None:
            return ""
        if self.profile and self.profile.display_name:
            return self.profile.display_name
        return self.identity.display_name

    # ── Operations ──────────────────────────────────────────────
    def sign_in(self, email: str, password: str) -> Identity:
        session = self._client.sign_in_with_password(email, password)
        self._apply(session)
        self.ensure_profile()
        return session.identity

    def sign_up(self, email: str, password: str, display_name: str) -> Identity:
        """
        Create the identity, then its profile. A profile failure propagates as
        BackendError with the identity already created; ``ensure_profile`` on the
        next sign-in fills the gap. When the backend holds the session back
        until the email is confirmed, the profile waits for that sign-in too.
        """
        identity, session = self._client.sign_up(
            email, password, {"display_name": display_name}
        )
        if session is None:
            log.info("signed up %s; profile deferred until first sign-in", identity.id)
            return identity
        self._apply(session)
        self._client.insert(
            "profiles",
            {"id": identity.id, "display_name": display_name, "role": "user"},
        )
        self._profile_loaded = False
        log.info("signed up %s", identity.id)
        return identity

    def sign_out(self) -> None:
        try:
            self._client.sign_out()
        finally:
            self._clear()

    def oauth_sign_in(self, provider: str, redirect_to: str) -> str:
        return self._client.sign_in_with_oauth(provider, redirect_to)

    def complete_oauth(self, code: str) -> Identity:
        session = self._client.exchange_code_for_session(code)
        self._apply(session)
        self.ensure_profile()
        return session.identity

    def ensure_profile(self) -> Optional[ProfileView]:
        """Create the profile row for the current identity if it is missing."""
        if self.identity is None:
            return None
        try:
            row = self._client.select_one("profiles", filters={"id": self.identity.id})
            if row is None:
                meta = self.identity.metadata
                name = meta.get("display_name") or meta.get("full_name") or meta.get("name") or self.identity.handle
                row = self._client.insert(
                    "profiles",
                    {"id": self.identity.id, "display_name": name, "role": "user"},
                )
                log.warning("created missing profile for %s", self.identity.id)
        except BackendError as e:
            log.error("ensure_profile failed for %s: %s", self.identity.id, e)
            return None
        self._profile = ProfileView.from_row(row)
        self._profile_loaded = True
        return self._profile


@dataclass
class PageContext:
    """Everything a page controller needs, built once per request."""

    client: DataClient
    identity: IdentityContext

    @property
    def payments(self) -> PaymentProvider:
        return get_payment_provider()

    def close(self) -> None:
        self.identity.teardown()
        self.client.close()


def current_page() -> PageContext:
    page = g.get("page")
    if page is None:
        raise RuntimeError("PageContext is not available outside a request")
    return page


def with_page(view: Callable[..., Any]) -> Callable[..., Any]:
    """Pass the request's PageContext as the view's first argument."""

    @wraps(view)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return view(current_page(), *args, **kwargs)

    return wrapper


def admin_required(view: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(view)
    def wrapper(page: PageContext, *args: Any, **kwargs: Any) -> Any:
        if not page.identity.is_authenticated:
            flash("Please sign in to continue", "error")
            return redirect(url_for("auth.sign_in", next=request.full_path))
        if not page.identity.is_admin:
            current_app.logger.warning("admin: denied for %s", page.identity.identity.id)
            return render_template("errors/403.html"), 403
        return view(page, *args, **kwargs)

    return wrapper
