# impactmining/entities.py
"""
Typed views over backend rows.

Rows arrive as dicts (numbers may be str, float or Decimal depending on the
backend); these dataclasses normalize them once per request. Derived values
such as the funding percentage are properties, so they are recomputed from
current state every time a template reads them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Mapping, Optional

CENT = Decimal("0.01")
GENERAL_FUND_LABEL = "General Fund"
TX_DISPLAY_LENGTH = 12


def to_decimal(value: Any, default: str = "0") -> Decimal:
    if value is None or value == "":
        return Decimal(default)
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal(default)
    if not d.is_finite():
        return Decimal(default)
    return d


def parse_amount(raw: Any) -> Optional[Decimal]:
    """
    Parse a user-entered money amount. Returns a positive Decimal rounded to
    cents, or None when the input is blank, non-numeric, zero or negative.
    """
    if raw is None:
        return None
    s = str(raw).strip().replace(",", "").lstrip("$").strip()
    if not s:
        return None
    try:
        d = Decimal(s)
    except InvalidOperation:
        return None
    if not d.is_finite():
        return None
    d = d.quantize(CENT, rounding=ROUND_HALF_UP)
    return d if d > 0 else None


def to_number(value: Any) -> float:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return 0.0
    return n if math.isfinite(n) else 0.0


def parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    s = str(value).strip().replace("Z", "+00:00")
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        return None


# ────────────────────────────────────────────────────────────
# Funding math
# ────────────────────────────────────────────────────────────
def funding_percent(raised: Any, target: Any) -> float:
    """raised / target * 100, unclamped; 0 when the target is not positive."""
    t = to_decimal(target)
    if t <= 0:
        return 0.0
    return float(to_decimal(raised) / t * 100)


def progress_width(percent: float) -> float:
    return max(0.0, min(100.0, float(percent)))


def percent_label(percent: float) -> str:
    return f"{percent:.1f}%"


# ────────────────────────────────────────────────────────────
# Views
# ────────────────────────────────────────────────────────────
@dataclass
class ProjectView:
    id: str
    title: str
    summary: str = ""
    description: str = ""
    status: str = "pending"
    target_usd: Decimal = Decimal("0")
    raised_usd: Decimal = Decimal("0")
    kpis: Dict[str, float] = field(default_factory=dict)
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ProjectView":
        kpis = row.get("kpi_jsonb") or {}
        return cls(
            id=str(row.get("id") or ""),
            title=row.get("title") or "",
            summary=row.get("summary") or "",
            description=row.get("description") or "",
            status=row.get("status") or "pending",
            target_usd=to_decimal(row.get("target_usd")),
            raised_usd=to_decimal(row.get("raised_usd")),
            kpis={str(k): to_number(v) for k, v in dict(kpis).items()},
            image_url=row.get("image_url"),
            created_at=parse_timestamp(row.get("created_at")),
        )

    @property
    def funding_percent(self) -> float:
        return funding_percent(self.raised_usd, self.target_usd)

    @property
    def progress_width(self) -> float:
        return progress_width(self.funding_percent)

    @property
    def percent_label(self) -> str:
        return percent_label(self.funding_percent)

    @property
    def status_label(self) -> str:
        return self.status.replace("-", " ").title()

    def kpi(self, key: str) -> float:
        return self.kpis.get(key, 0.0)


@dataclass
class DonationView:
    id: str
    amount_usd: Decimal
    project_id: Optional[str] = None
    tx_hash: Optional[str] = None
    created_at: Optional[datetime] = None
    project_title: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any], project_title: Optional[str] = None) -> "DonationView":
        return cls(
            id=str(row.get("id") or ""),
            amount_usd=to_decimal(row.get("amount_usd")),
            project_id=row.get("project_id"),
            tx_hash=row.get("tx_hash"),
            created_at=parse_timestamp(row.get("created_at")),
            project_title=project_title,
        )

    @property
    def target_label(self) -> str:
        if not self.project_id:
            return GENERAL_FUND_LABEL
        return self.project_title or "Project"

    @property
    def tx_short(self) -> str:
        tx = self.tx_hash or ""
        return tx[:TX_DISPLAY_LENGTH] + ("..." if len(tx) > TX_DISPLAY_LENGTH else "")


@dataclass
class StoryView:
    id: str
    user_id: str
    title: str
    body_md: str
    approved: bool = False
    created_at: Optional[datetime] = None
    author: str = "Anonymous"

    @classmethod
    def from_row(cls, row: Mapping[str, Any], author: Optional[str] = None) -> "StoryView":
        return cls(
            id=str(row.get("id") or ""),
            user_id=str(row.get("user_id") or ""),
            title=row.get("title") or "",
            body_md=row.get("body_md") or "",
            approved=bool(row.get("approved")),
            created_at=parse_timestamp(row.get("created_at")),
            author=author or "Anonymous",
        )

    def excerpt(self, length: int = 200) -> str:
        if len(self.body_md) <= length:
            return self.body_md
        return self.body_md[:length].rstrip() + "..."


@dataclass
class ProfileView:
    id: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    role: str = "user"

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ProfileView":
        return cls(
            id=str(row.get("id") or ""),
            display_name=row.get("display_name"),
            avatar_url=row.get("avatar_url"),
            role=row.get("role") or "user",
        )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass
class SubmissionView:
    id: str
    org_name: str
    proposal_md: str
    budget_usd: Decimal
    submitted_by: str
    status: str = "pending"
    initial_kpis: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SubmissionView":
        return cls(
            id=str(row.get("id") or ""),
            org_name=row.get("org_name") or "",
            proposal_md=row.get("proposal_md") or "",
            budget_usd=to_decimal(row.get("budget_usd")),
            submitted_by=row.get("submitted_by") or "",
            status=row.get("status") or "pending",
            initial_kpis=dict(row.get("initial_kpis") or {}),
            created_at=parse_timestamp(row.get("created_at")),
        )
