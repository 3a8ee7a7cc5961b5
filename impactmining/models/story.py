from __future__ import annotations

from impactmining.extensions import db

from .mixins import RowMixin, TimestampMixin, UUIDPrimaryKeyMixin


class Story(db.Model, UUIDPrimaryKeyMixin, TimestampMixin, RowMixin):
    """User-submitted impact story; hidden until a moderator approves it."""

    __tablename__ = "stories"

    user_id = db.Column(
        db.String(36),
        db.ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(200), nullable=False)
    body_md = db.Column(db.Text, nullable=False)
    approved = db.Column(db.Boolean, nullable=False, default=False, index=True)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Story {self.title!r} approved={self.approved}>"
