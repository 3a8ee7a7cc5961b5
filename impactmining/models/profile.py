from __future__ import annotations

from sqlalchemy import CheckConstraint

from impactmining.extensions import db

from .mixins import RowMixin, TimestampMixin

PROFILE_ROLES = ("admin", "user")


class Profile(db.Model, TimestampMixin, RowMixin):
    """Public profile attached one-to-one to an identity."""

    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("role in ('admin', 'user')", name="ck_profiles_role"),
    )

    id = db.Column(
        db.String(36),
        db.ForeignKey("accounts.id", ondelete="CASCADE"),
        primary_key=True,
        doc="Same id as the identity",
    )
    display_name = db.Column(db.String(120), nullable=True)
    avatar_url = db.Column(db.String(512), nullable=True)
    role = db.Column(db.String(16), nullable=False, default="user", index=True)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Profile {self.display_name!r} ({self.role})>"
