# impactmining/models/mixins.py
"""Shared SQLAlchemy mixins for ids, timestamps and row serialization."""

import uuid
from datetime import date, datetime, timezone

from impactmining.extensions import db


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_uuid() -> str:
    return str(uuid.uuid4())


class UUIDPrimaryKeyMixin:
    """String UUID primary key, matching the hosted backend's `uuid` ids."""

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)


class TimestampMixin:
    """Adds an immutable created_at column (rows are never edited in place by users)."""

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)


class RowMixin:
    """
    Serialize a mapped row the way the hosted backend returns it:
    one key per column, datetimes as ISO strings.
    """

    def as_row(self) -> dict:
        row = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            row[column.key] = value
        return row
