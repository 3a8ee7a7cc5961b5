from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from impactmining.content import CO2_TONS_PER_KWH, KWH_PER_USD, STUDENTS_PER_USD
from impactmining.entities import DonationView, ProjectView, parse_amount

STATUS_FILTERS = ("all", "pending", "in-progress", "completed")
RECENT_DONATIONS = 5


def filter_projects(projects: Iterable[ProjectView], query: str = "", status: str = "all") -> List[ProjectView]:
    """Case-insensitive text match on title/summary plus an optional status filter."""
    q = (query or "").strip().lower()
    status = status if status in STATUS_FILTERS else "all"
    out = []
    for p in projects:
        if q and q not in p.title.lower() and q not in p.summary.lower():
            continue
        if status != "all" and p.status != status:
            continue
        out.append(p)
    return out


@dataclass(frozen=True)
class HomeStats:
    total_raised: Decimal
    project_count: int
    donation_count: int
    kwh_generated: float
    students_served: float


def home_stats(projects: Sequence[ProjectView], donation_count: int) -> HomeStats:
    return HomeStats(
        total_raised=sum((p.raised_usd for p in projects), Decimal("0")),
        project_count=len(projects),
        donation_count=int(donation_count),
        kwh_generated=sum(p.kpi("kwh_generated") for p in projects),
        students_served=sum(p.kpi("students_served") for p in projects),
    )


@dataclass(frozen=True)
class DashboardStats:
    total_donated: Decimal
    projects_supported: int
    impact_kwh: int
    co2_offset_tons: int
    students_supported: int
    community_projects: int
    recent: List[DonationView]
    has_more: bool


def dashboard_stats(donations: Sequence[DonationView], show_all: bool = False) -> DashboardStats:
    """
    Roll a user's donations up into the dashboard figures.

    ``donations`` must already be ordered newest first. ``recent`` holds the
    newest five unless ``show_all`` is set; ``has_more`` says whether any
    were cut.
    """
    total = sum((d.amount_usd for d in donations), Decimal("0"))
    # The general fund counts as one supported target.
    targets = {d.project_id or None for d in donations}
    kwh = round(float(total) * KWH_PER_USD)
    recent = list(donations) if show_all else list(donations[:RECENT_DONATIONS])
    return DashboardStats(
        total_donated=total,
        projects_supported=len(targets),
        impact_kwh=kwh,
        co2_offset_tons=round(kwh * CO2_TONS_PER_KWH),
        students_supported=round(float(total) * STUDENTS_PER_USD),
        community_projects=len(targets),
        recent=recent,
        has_more=len(donations) > len(recent),
    )


@dataclass(frozen=True)
class ImpactEstimate:
    kwh: int
    students: int


def impact_estimate(amount: object) -> ImpactEstimate:
    value: Optional[Decimal] = parse_amount(amount)
    if value is None:
        return ImpactEstimate(0, 0)
    return ImpactEstimate(
        kwh=round(float(value) * KWH_PER_USD),
        students=round(float(value) * STUDENTS_PER_USD),
    )
