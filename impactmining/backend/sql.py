# impactmining/backend/sql.py
"""
Self-hosted data client on Flask-SQLAlchemy.

Implements the same contract as the hosted client so pages never know which
one they talk to. Identity tokens are HS256 JWTs signed with BACKEND_KEY:

  access  -> {"sub", "email", "user_metadata", "typ": "access"}
  refresh -> {"sub", "typ": "refresh", "jti"}

Sessions are stateless; sign-out only clears what the browser keeps.
"""

from __future__ import annotations

import logging
import time
import uuid
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import jwt
import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from impactmining.errors import AuthError, BackendError, NotFound
from impactmining.extensions import db
from impactmining.models import MODEL_BY_COLLECTION, Account, Donation, Project

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
    parse_columns,
)

log = logging.getLogger(__name__)

_ALGORITHM = "HS256"
MIN_PASSWORD_LENGTH = 6


class SqlDataClient(DataClient):
    kind = "sql"

    def __init__(
        self,
        *,
        secret: str,
        access_ttl: int = 3600,
        refresh_ttl: int = 60 * 60 * 24 * 30,
    ) -> None:
        super().__init__()
        if not secret:
            raise AuthError("SqlDataClient needs a signing key")
        self._secret = secret
        self._access_ttl = int(access_ttl)
        self._refresh_ttl = int(refresh_ttl)
        self._session: Optional[AuthSession] = None

    # ── Query helpers ───────────────────────────────────────────
    def _model(self, collection: str):
        self.check_collection(collection)
        return MODEL_BY_COLLECTION[collection]

    @staticmethod
    def _column(model, collection: str, name: str):
        col = model.__table__.columns.get(name)
        if col is None:
            raise BackendError(
                f"column {collection}.{name} does not exist", collection=collection
            )
        return getattr(model, col.key)

    def _apply_filters(self, query, model, collection: str, filters: Optional[Filters]):
        for name, value in (filters or {}).items():
            attr = self._column(model, collection, name)
            if value is None:
                query = query.where(attr.is_(None))
            elif isinstance(value, (list, tuple, set, frozenset)):
                query = query.where(attr.in_(list(value)))
            else:
                query = query.where(attr == value)
        return query

    @staticmethod
    def _project(row: Row, cols: Optional[List[str]]) -> Row:
        if cols is None:
            return row
        return {c: row.get(c) for c in cols}

    # ── Collections ─────────────────────────────────────────────
    def select(
        self,
        collection: str,
        *,
        columns: str = "*",
        filters: Optional[Filters] = None,
        order: Union[None, Order, Iterable[Order]] = None,
        limit: Optional[int] = None,
    ) -> List[Row]:
        model = self._model(collection)
        cols = parse_columns(columns)
        if cols:
            for name in cols:
                self._column(model, collection, name)

        stmt = self._apply_filters(sa.select(model), model, collection, filters)
        for o in normalize_order(order):
            attr = self._column(model, collection, o.column)
            stmt = stmt.order_by(attr.desc() if o.descending else attr.asc())
        if limit:
            stmt = stmt.limit(int(limit))

        try:
            objs = db.session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            db.session.rollback()
            log.error("select %s failed: %s", collection, e)
            raise BackendError(f"Could not load {collection}", collection=collection, cause=e) from e
        return [self._project(o.as_row(), cols) for o in objs]

    def count(self, collection: str, *, filters: Optional[Filters] = None) -> int:
        model = self._model(collection)
        stmt = self._apply_filters(
            sa.select(sa.func.count()).select_from(model), model, collection, filters
        )
        try:
            return int(db.session.execute(stmt).scalar_one())
        except SQLAlchemyError as e:
            db.session.rollback()
            log.error("count %s failed: %s", collection, e)
            raise BackendError(f"Could not count {collection}", collection=collection, cause=e) from e

    def insert(self, collection: str, row: Mapping[str, Any], *, returning: bool = True) -> Row:
        model = self._model(collection)
        for name in row:
            self._column(model, collection, name)
        try:
            obj = model(**dict(row))
            db.session.add(obj)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            log.error("insert into %s failed: %s", collection, e)
            raise BackendError(f"Could not save to {collection}", collection=collection, cause=e) from e
        return obj.as_row()

    def update(self, collection: str, filters: Filters, patch: Mapping[str, Any]) -> List[Row]:
        if not filters:
            raise BackendError("update requires at least one filter", collection=collection)
        model = self._model(collection)
        for name in patch:
            self._column(model, collection, name)

        stmt = self._apply_filters(sa.select(model), model, collection, filters)
        try:
            objs = db.session.execute(stmt).scalars().all()
            for obj in objs:
                for name, value in patch.items():
                    setattr(obj, name, value)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            log.error("update %s failed: %s", collection, e)
            raise BackendError(f"Could not update {collection}", collection=collection, cause=e) from e
        return [o.as_row() for o in objs]

    def record_donation(
        self,
        *,
        project_id: Optional[str],
        user_id: str,
        amount_usd: Decimal,
        tx_hash: str,
    ) -> Row:
        amount = Decimal(amount_usd)
        if amount <= 0:
            raise BackendError("amount_usd must be positive", collection="donations")

        existing = db.session.execute(
            sa.select(Donation).where(Donation.tx_hash == tx_hash)
        ).scalar_one_or_none()
        if existing is not None:
            log.info("donation %s already recorded; returning existing row", tx_hash)
            return existing.as_row()

        try:
            if project_id:
                result = db.session.execute(
                    sa.update(Project)
                    .where(Project.id == project_id)
                    .values(raised_usd=Project.raised_usd + amount)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    db.session.rollback()
                    raise NotFound("Project not found", collection="projects")

            donation = Donation(
                project_id=project_id or None,
                user_id=user_id,
                amount_usd=amount,
                tx_hash=tx_hash,
            )
            db.session.add(donation)
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            # A concurrent request recorded the same payment first.
            again = db.session.execute(
                sa.select(Donation).where(Donation.tx_hash == tx_hash)
            ).scalar_one_or_none()
            if again is not None:
                return again.as_row()
            log.error("record_donation failed: %s", e)
            raise BackendError("Could not record donation", collection="donations", cause=e) from e
        except SQLAlchemyError as e:
            db.session.rollback()
            log.error("record_donation failed: %s", e)
            raise BackendError("Could not record donation", collection="donations", cause=e) from e

        log.info("donation recorded: %s %s -> %s", tx_hash, amount, project_id or "general")
        return donation.as_row()

    # ── Tokens ──────────────────────────────────────────────────
    def _issue(self, account: Account) -> AuthSession:
        now = int(time.time())
        identity = _identity(account)
        access = jwt.encode(
            {
                "sub": account.id,
                "email": account.email,
                "user_metadata": identity.metadata,
                "typ": "access",
                "iat": now,
                "exp": now + self._access_ttl,
            },
            self._secret,
            algorithm=_ALGORITHM,
        )
        refresh = jwt.encode(
            {
                "sub": account.id,
                "typ": "refresh",
                "jti": uuid.uuid4().hex,
                "iat": now,
                "exp": now + self._refresh_ttl,
            },
            self._secret,
            algorithm=_ALGORITHM,
        )
        return AuthSession(
            access_token=access,
            refresh_token=refresh,
            identity=identity,
            expires_at=now + self._access_ttl,
        )

    def _decode(self, token: str, typ: str) -> Dict[str, Any]:
        claims = jwt.decode(token, self._secret, algorithms=[_ALGORITHM])
        if claims.get("typ") != typ:
            raise jwt.InvalidTokenError(f"expected {typ} token")
        return claims

    # ── Identity ────────────────────────────────────────────────
    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        email = (email or "").strip().lower()
        account = db.session.execute(
            sa.select(Account).where(Account.email == email)
        ).scalar_one_or_none()
        if account is None or not account.check_password(password or ""):
            raise AuthError("Invalid login credentials")

        self._session = self._issue(account)
        self._emit(AuthEvent.SIGNED_IN, self._session)
        return self._session

    def sign_up(
        self, email: str, password: str, metadata: Optional[Mapping[str, Any]] = None
    ) -> Tuple[Identity, Optional[AuthSession]]:
        email = (email or "").strip().lower()
        if not email or "@" not in email:
            raise AuthError("Unable to validate email address: invalid format")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters.")

        exists = db.session.execute(
            sa.select(Account.id).where(Account.email == email)
        ).scalar_one_or_none()
        if exists is not None:
            raise AuthError("User already registered")

        account = Account(email=email, user_metadata=dict(metadata or {}))
        account.set_password(password)
        try:
            db.session.add(account)
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            raise AuthError("User already registered", cause=e) from e
        except SQLAlchemyError as e:
            db.session.rollback()
            log.error("sign_up failed: %s", e)
            raise AuthError("Sign up failed. Please try again.", cause=e) from e

        self._session = self._issue(account)
        self._emit(AuthEvent.SIGNED_IN, self._session)
        return self._session.identity, self._session

    def sign_in_with_oauth(self, provider: str, redirect_to: str) -> str:
        provider_id = oauth_provider_id(provider)
        raise AuthError(
            f"Sign-in with {provider_id} is not enabled on this server. Use email and password."
        )

    def exchange_code_for_session(self, code: str) -> AuthSession:
        raise AuthError("OAuth sign-in is not enabled on this server.")

    def restore_session(self, stored: Mapping[str, Any]) -> Optional[AuthSession]:
        access = (stored or {}).get("access_token")
        refresh = (stored or {}).get("refresh_token")
        if not access:
            return None

        try:
            claims = self._decode(access, "access")
            account = db.session.get(Account, claims.get("sub"))
            if account is None:
                return None
            self._session = AuthSession(
                access_token=access,
                refresh_token=refresh or "",
                identity=_identity(account),
                expires_at=claims.get("exp"),
            )
            return self._session
        except jwt.ExpiredSignatureError:
            pass
        except jwt.InvalidTokenError as e:
            log.info("discarding unreadable session: %s", e)
            return None

        # Access token expired: try the refresh token.
        if not refresh:
            return None
        try:
            claims = self._decode(refresh, "refresh")
        except jwt.InvalidTokenError as e:
            log.info("refresh token rejected: %s", e)
            return None
        account = db.session.get(Account, claims.get("sub"))
        if account is None:
            return None

        self._session = self._issue(account)
        self._emit(AuthEvent.TOKEN_REFRESHED, self._session)
        return self._session

    def sign_out(self) -> None:
        self._session = None
        self._emit(AuthEvent.SIGNED_OUT, None)


def _identity(account: Account) -> Identity:
    return Identity(
        id=account.id,
        email=account.email,
        metadata=dict(account.user_metadata or {}),
    )
