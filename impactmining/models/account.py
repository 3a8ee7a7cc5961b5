from __future__ import annotations

"""
Account model — identity records for the self-hosted (SQL) backend.

Plays the part of the hosted backend's auth users table: the application only
ever sees the identity id, the email and the user metadata.
"""

from werkzeug.security import check_password_hash, generate_password_hash

from impactmining.extensions import db

from .mixins import RowMixin, TimestampMixin, UUIDPrimaryKeyMixin


class Account(db.Model, UUIDPrimaryKeyMixin, TimestampMixin, RowMixin):
    __tablename__ = "accounts"

    # ── Auth ────────────────────────────────────────────────────
    email = db.Column(
        db.String(255),
        unique=True,
        nullable=False,
        index=True,
        doc="Sign-in email, stored lower-cased",
    )
    password_hash = db.Column(
        db.String(255),
        nullable=True,
        doc="Hashed password (never store plaintext)",
    )
    user_metadata = db.Column(
        db.JSON,
        nullable=False,
        default=dict,
        doc="Free-form metadata supplied at sign-up (display_name, ...)",
    )

    # ── Auth helpers ────────────────────────────────────────────
    def set_password(self, password: str) -> None:
        """Hash & store the given plaintext password securely."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Verify a plaintext password against the stored hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Account {self.email}>"
