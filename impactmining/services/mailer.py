# impactmining/services/mailer.py
"""
Transactional email: donation receipts and proposal confirmations.

Hooked to the blinker signals in ``impactmining.extensions``. With
MAIL_MODE=log (the default outside production) messages are only logged.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import Any, List, Mapping, Optional

from flask import current_app, has_app_context

from impactmining.extensions import donation_recorded, proposal_submitted, send_email_async, story_submitted

log = logging.getLogger(__name__)

_connected = False


def deliver(subject: str, recipients: List[str], body: str) -> Optional[Future]:
    if not has_app_context():
        log.warning("mail skipped outside app context: %s", subject)
        return None
    app = current_app._get_current_object()
    recipients = [r for r in recipients if r]
    if not recipients:
        return None
    if str(app.config.get("MAIL_MODE") or "log").lower() != "smtp":
        log.info("mail (log mode) to=%s subject=%r", ",".join(recipients), subject)
        return None
    return send_email_async(app, subject, recipients, body=body)


def donation_receipt_body(donation: Any, brand: str) -> str:
    return (
        f"Thank you for supporting {brand}!\n\n"
        f"Amount: ${donation.amount_usd:,.2f}\n"
        f"Designation: {donation.target_label}\n"
        f"Reference: {donation.tx_hash}\n\n"
        "You can track the impact of your donation on your dashboard.\n"
    )


def proposal_body(row: Mapping[str, Any], brand: str) -> str:
    return (
        f"Hello {row.get('org_name')},\n\n"
        f"We received your project proposal on {brand}. Our team will review it "
        "and get back to you within 5-7 business days.\n"
    )


def _on_donation(sender: Any, donation: Any = None, identity: Any = None, **extra: Any) -> None:
    if donation is None or identity is None:
        return
    brand = current_app.config.get("BRAND_NAME", "Impact Mining")
    deliver(f"Your {brand} donation receipt", [identity.email], donation_receipt_body(donation, brand))


def _on_proposal(sender: Any, row: Optional[Mapping[str, Any]] = None, **extra: Any) -> None:
    if not row:
        return
    brand = current_app.config.get("BRAND_NAME", "Impact Mining")
    deliver(f"We received your proposal - {brand}", [row.get("submitted_by") or ""], proposal_body(row, brand))


def _on_story(sender: Any, title: str = "", **extra: Any) -> None:
    log.info("story awaiting moderation: %r", title)


def init_mailer(app: Any) -> None:
    global _connected
    if not _connected:
        donation_recorded.connect(_on_donation, weak=False)
        proposal_submitted.connect(_on_proposal, weak=False)
        story_submitted.connect(_on_story, weak=False)
        _connected = True
    app.logger.debug("mailer ready (mode=%s)", app.config.get("MAIL_MODE"))
