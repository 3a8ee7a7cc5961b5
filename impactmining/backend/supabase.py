# impactmining/backend/supabase.py
"""
Hosted data client (Supabase) through supabase-py.

One client per request. The client never persists the session itself
(the Flask session cookie does); only the PKCE code verifier lives in the
per-request storage adapter so an OAuth redirect can be completed on the
callback request.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, MutableMapping, Optional, Tuple, Union

from postgrest import ReturnMethod
from supabase import AuthError as SupabaseAuthError
from supabase import Client, ClientOptions, PostgrestAPIError, create_client

from impactmining.errors import AuthError, BackendError, NotFound

from .base import (
    AuthEvent,
    AuthSession,
    DataClient,
    Filters,
    Identity,
    Order,
    Row,
    normalize_order,
    oauth_provider_id,
)

log = logging.getLogger(__name__)

_STORAGE_PREFIX = "sb:"


class SessionStorage:
    """Sync storage adapter for the auth client, backed by any mutable mapping (the Flask session)."""

    def __init__(self, backing: MutableMapping[str, Any]) -> None:
        self._backing = backing

    def get_item(self, key: str) -> Optional[str]:
        return self._backing.get(_STORAGE_PREFIX + key)

    def set_item(self, key: str, value: str) -> None:
        self._backing[_STORAGE_PREFIX + key] = value

    def remove_item(self, key: str) -> None:
        self._backing.pop(_STORAGE_PREFIX + key, None)


def _identity(user: Any) -> Identity:
    return Identity(
        id=str(user.id),
        email=user.email or "",
        metadata=dict(getattr(user, "user_metadata", None) or {}),
    )


def _session(sb_session: Any) -> Optional[AuthSession]:
    if sb_session is None or getattr(sb_session, "user", None) is None:
        return None
    return AuthSession(
        access_token=sb_session.access_token,
        refresh_token=sb_session.refresh_token,
        identity=_identity(sb_session.user),
        expires_at=getattr(sb_session, "expires_at", None),
    )


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


_EVENTS = {e.value: e for e in AuthEvent}


class SupabaseDataClient(DataClient):
    kind = "supabase"

    def __init__(
        self,
        url: str,
        key: str,
        *,
        storage: Optional[MutableMapping[str, Any]] = None,
        client: Optional[Client] = None,
    ) -> None:
        super().__init__()
        if client is None:
            options = ClientOptions(
                auto_refresh_token=False,
                persist_session=False,
                storage=SessionStorage(storage if storage is not None else {}),
                flow_type="pkce",
            )
            client = create_client(url, key, options=options)
        self._client = client
        self._auth_sub = self._client.auth.on_auth_state_change(self._forward)

    def _forward(self, event: str, sb_session: Any) -> None:
        mapped = _EVENTS.get(str(event))
        if mapped is None:
            log.debug("ignoring auth event %s", event)
            return
        self._emit(mapped, _session(sb_session))

    def close(self) -> None:
        sub = getattr(self, "_auth_sub", None)
        if sub is not None:
            try:
                sub.unsubscribe()
            except Exception as e:  # pragma: no cover - best effort
                log.debug("auth unsubscribe failed: %s", e)
            self._auth_sub = None

    # ── Collections ─────────────────────────────────────────────
    @staticmethod
    def _apply_filters(query, filters: Optional[Filters]):
        for name, value in (filters or {}).items():
            if value is None:
                query = query.is_(name, "null")
            elif isinstance(value, (list, tuple, set, frozenset)):
                query = query.in_(name, [_jsonable(v) for v in value])
            else:
                query = query.eq(name, _jsonable(value))
        return query

    def _run(self, collection: str, query, action: str):
        try:
            return query.execute()
        except PostgrestAPIError as e:
            log.error("%s %s failed: %s", action, collection, e.message)
            raise BackendError(e.message or f"Could not {action} {collection}", collection=collection, cause=e) from e
        except Exception as e:
            log.error("%s %s failed: %s", action, collection, e)
            raise BackendError(f"Could not {action} {collection}", collection=collection, cause=e) from e

    def select(
        self,
        collection: str,
        *,
        columns: str = "*",
        filters: Optional[Filters] = None,
        order: Union[None, Order, Iterable[Order]] = None,
        limit: Optional[int] = None,
    ) -> List[Row]:
        self.check_collection(collection)
        query = self._apply_filters(self._client.table(collection).select(columns or "*"), filters)
        for o in normalize_order(order):
            query = query.order(o.column, desc=o.descending)
        if limit:
            query = query.limit(int(limit))
        resp = self._run(collection, query, "load")
        return list(resp.data or [])

    def count(self, collection: str, *, filters: Optional[Filters] = None) -> int:
        self.check_collection(collection)
        query = self._apply_filters(
            self._client.table(collection).select("id", count="exact"), filters
        )
        resp = self._run(collection, query, "count")
        return int(resp.count or 0)

    def insert(self, collection: str, row: Mapping[str, Any], *, returning: bool = True) -> Row:
        self.check_collection(collection)
        # Minimal inserts skip the read-back, which row policies may forbid.
        method = ReturnMethod.representation if returning else ReturnMethod.minimal
        query = self._client.table(collection).insert(_jsonable(dict(row)), returning=method)
        resp = self._run(collection, query, "save to")
        data = resp.data or []
        return dict(data[0]) if data else dict(row)

    def update(self, collection: str, filters: Filters, patch: Mapping[str, Any]) -> List[Row]:
        self.check_collection(collection)
        if not filters:
            raise BackendError("update requires at least one filter", collection=collection)
        query = self._apply_filters(
            self._client.table(collection).update(_jsonable(dict(patch))), filters
        )
        resp = self._run(collection, query, "update")
        return list(resp.data or [])

    def record_donation(
        self,
        *,
        project_id: Optional[str],
        user_id: str,
        amount_usd: Decimal,
        tx_hash: str,
    ) -> Row:
        params = {
            "p_project_id": project_id or None,
            "p_user_id": user_id,
            "p_amount_usd": float(amount_usd),
            "p_tx_hash": tx_hash,
        }
        try:
            resp = self._client.rpc("record_donation", params).execute()
        except PostgrestAPIError as e:
            log.error("record_donation rpc failed: %s", e.message)
            # Raised by the function when the project id does not exist.
            if e.code == "P0002":
                raise NotFound("Project not found", collection="projects", cause=e) from e
            raise BackendError(e.message or "Could not record donation", collection="donations", cause=e) from e
        except Exception as e:
            log.error("record_donation rpc failed: %s", e)
            raise BackendError("Could not record donation", collection="donations", cause=e) from e

        data = resp.data
        if isinstance(data, list):
            data = data[0] if data else None
        if not data:
            raise BackendError("record_donation returned no row", collection="donations")
        return dict(data)

    # ── Identity ────────────────────────────────────────────────
    def _auth_call(self, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except SupabaseAuthError as e:
            raise AuthError(getattr(e, "message", None) or str(e), cause=e) from e

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        resp = self._auth_call(
            self._client.auth.sign_in_with_password,
            {"email": (email or "").strip(), "password": password},
        )
        session = _session(resp.session)
        if session is None:
            raise AuthError("Sign in did not return a session")
        return session

    def sign_up(
        self, email: str, password: str, metadata: Optional[Mapping[str, Any]] = None
    ) -> Tuple[Identity, Optional[AuthSession]]:
        credentials: Dict[str, Any] = {"email": (email or "").strip(), "password": password}
        if metadata:
            credentials["options"] = {"data": dict(metadata)}
        resp = self._auth_call(self._client.auth.sign_up, credentials)
        if resp.user is None:
            raise AuthError("Sign up did not return a user")
        return _identity(resp.user), _session(resp.session)

    def sign_in_with_oauth(self, provider: str, redirect_to: str) -> str:
        resp = self._auth_call(
            self._client.auth.sign_in_with_oauth,
            {"provider": oauth_provider_id(provider), "options": {"redirect_to": redirect_to}},
        )
        return resp.url

    def exchange_code_for_session(self, code: str) -> AuthSession:
        resp = self._auth_call(self._client.auth.exchange_code_for_session, {"auth_code": code})
        session = _session(resp.session)
        if session is None:
            raise AuthError("Could not complete sign in")
        return session

    def restore_session(self, stored: Mapping[str, Any]) -> Optional[AuthSession]:
        access = (stored or {}).get("access_token")
        refresh = (stored or {}).get("refresh_token")
        if not access or not refresh:
            return None
        try:
            resp = self._client.auth.set_session(access, refresh)
        except SupabaseAuthError as e:
            log.info("stored session rejected: %s", getattr(e, "message", e))
            return None
        return _session(resp.session)

    def sign_out(self) -> None:
        try:
            self._client.auth.sign_out()
        except SupabaseAuthError as e:
            # Local state is cleared regardless; the stored session is gone either way.
            log.warning("sign_out: %s", getattr(e, "message", e))
            self._emit(AuthEvent.SIGNED_OUT, None)
