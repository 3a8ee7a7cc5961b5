# impactmining/forms/donation.py
from __future__ import annotations

import uuid

from flask import current_app
from flask_wtf import FlaskForm
from wtforms import HiddenField, RadioField, SelectField, StringField

from impactmining.content import PAYMENT_METHODS


def _attempt_id() -> str:
    return uuid.uuid4().hex


def _default_method() -> str:
    # Stripe only takes cards.
    return "card" if current_app.config.get("PAYMENT_PROVIDER") == "stripe" else "crypto"


class ProjectDonationForm(FlaskForm):
    """
    Amount and method only; the project comes from the URL.
    Amount is validated by the donation service so the messages match everywhere.
    """

    amount = StringField(
        "Donation Amount (USD)",
        render_kw={"placeholder": "Enter custom amount", "inputmode": "decimal"},
    )
    method = RadioField("Payment Method", choices=list(PAYMENT_METHODS), default=_default_method)
    # One id per rendered form; a double-submitted form reuses the same payment attempt.
    attempt_id = HiddenField(default=_attempt_id)
    payment_token = HiddenField()


class DonationForm(ProjectDonationForm):
    project = SelectField("Select Project", choices=[("general", "General Fund")], default="general")

    def set_projects(self, projects) -> None:
        self.project.choices = [("general", "General Fund")] + [(p.id, p.title) for p in projects]
