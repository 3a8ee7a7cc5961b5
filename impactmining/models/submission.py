from __future__ import annotations

import sqlalchemy as sa

from impactmining.extensions import db

from .mixins import RowMixin, TimestampMixin, UUIDPrimaryKeyMixin

SUBMISSION_STATUSES = ("pending", "approved", "rejected")


class DoneeSubmission(db.Model, UUIDPrimaryKeyMixin, TimestampMixin, RowMixin):
    """An organization's funding proposal awaiting review."""

    __tablename__ = "donee_submissions"
    __table_args__ = (
        sa.CheckConstraint("budget_usd >= 0", name="ck_submissions_budget_nonneg"),
        sa.CheckConstraint(
            "status in ('pending', 'approved', 'rejected')",
            name="ck_submissions_status",
        ),
    )

    org_name = db.Column(db.String(200), nullable=False)
    proposal_md = db.Column(db.Text, nullable=False)
    budget_usd = db.Column(db.Numeric(12, 2), nullable=False)
    initial_kpis = db.Column(db.JSON, nullable=False, default=dict)
    submitted_by = db.Column(db.String(255), nullable=False, doc="Contact email")
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<DoneeSubmission {self.org_name!r} {self.status}>"
