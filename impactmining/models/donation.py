from __future__ import annotations

# -----------------------------------------------------------------------------
# Donation Model
# USD amounts, optional project link (NULL = general fund), unique payment
# reference so the same payment can never be recorded twice.
# -----------------------------------------------------------------------------
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from impactmining.extensions import db

from .mixins import RowMixin, new_uuid, utcnow


class Donation(db.Model, RowMixin):
    __tablename__ = "donations"
    __table_args__ = (
        CheckConstraint("amount_usd > 0", name="ck_donations_amount_positive"),
        Index("ix_donations_user_created", "user_id", "created_at"),
    )

    # ---- Identifiers ----
    id: Mapped[str] = mapped_column(db.String(36), primary_key=True, default=new_uuid)

    # ---- Relationships ----
    project_id: Mapped[Optional[str]] = mapped_column(
        db.ForeignKey("projects.id", ondelete="RESTRICT"),
        index=True,
        nullable=True,
        doc="Target project; NULL means the general fund",
    )
    project: Mapped[Optional["Project"]] = relationship(  # noqa: F821
        "Project", back_populates="donations"
    )
    user_id: Mapped[str] = mapped_column(
        db.ForeignKey("accounts.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    # ---- Financials ----
    amount_usd: Mapped[Decimal] = mapped_column(db.Numeric(12, 2), nullable=False)

    # ---- Payment tracking ----
    tx_hash: Mapped[Optional[str]] = mapped_column(
        db.String(120),
        nullable=True,
        unique=True,
        index=True,
        doc="Payment provider reference (idempotency key for recording).",
    )

    created_at: Mapped[datetime] = mapped_column(
        db.DateTime, default=utcnow, nullable=False, index=True
    )

    def __repr__(self) -> str:  # pragma: no cover
        target = self.project_id or "general"
        return f"<Donation ${self.amount_usd} -> {target} tx={self.tx_hash}>"
