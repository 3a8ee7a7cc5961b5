from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy import event

from impactmining.extensions import db

from .mixins import RowMixin, TimestampMixin, UUIDPrimaryKeyMixin

PROJECT_STATUSES = ("pending", "in-progress", "completed")


class Project(db.Model, UUIDPrimaryKeyMixin, TimestampMixin, RowMixin):
    __tablename__ = "projects"
    __table_args__ = (
        sa.CheckConstraint("target_usd >= 0", name="ck_projects_target_nonneg"),
        sa.CheckConstraint("raised_usd >= 0", name="ck_projects_raised_nonneg"),
        sa.CheckConstraint(
            "status in ('pending', 'in-progress', 'completed')",
            name="ck_projects_status",
        ),
    )

    title = db.Column(db.String(200), nullable=False)
    summary = db.Column(db.String(500), nullable=False, default="")
    description = db.Column(db.Text, nullable=False, default="")
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)

    # ── Money (USD, two decimals) ───────────────────────────────
    target_usd = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    raised_usd = db.Column(
        db.Numeric(12, 2),
        nullable=False,
        default=0,
        doc="Only ever incremented by recorded donations",
    )

    kpi_jsonb = db.Column(db.JSON, nullable=False, default=dict)
    image_url = db.Column(db.String(512), nullable=True)

    donations = db.relationship("Donation", back_populates="project", lazy="dynamic")

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Project {self.title!r} {self.status} ${self.raised_usd}/{self.target_usd}>"


@event.listens_for(Project, "before_insert")
def _project_before_insert(mapper, connection, target) -> None:
    target.kpi_jsonb = dict(target.kpi_jsonb or {})
    if target.raised_usd is None:
        target.raised_usd = 0
