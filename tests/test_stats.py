from decimal import Decimal

from impactmining.entities import DonationView, ProjectView
from impactmining.services.stats import dashboard_stats, filter_projects, home_stats, impact_estimate


def _projects():
    return [
        ProjectView.from_row({"id": "1", "title": "Solar School", "summary": "Rooftop panels", "status": "in-progress",
                              "raised_usd": "100", "kpi_jsonb": {"kwh_generated": 1000}}),
        ProjectView.from_row({"id": "2", "title": "Coding Lab", "summary": "Laptops and SOLAR chargers", "status": "completed",
                              "raised_usd": "250.50", "kpi_jsonb": {"students_served": 40}}),
        ProjectView.from_row({"id": "3", "title": "Wind Pump", "summary": "Water access", "status": "pending"}),
    ]


def test_filter_by_text_is_case_insensitive_over_title_and_summary():
    got = [p.id for p in filter_projects(_projects(), "solar")]
    assert got == ["1", "2"]


def test_filter_by_status():
    assert [p.id for p in filter_projects(_projects(), "", "pending")] == ["3"]
    assert [p.id for p in filter_projects(_projects(), "solar", "completed")] == ["2"]
    assert len(filter_projects(_projects(), "", "bogus")) == 3


def test_home_stats():
    stats = home_stats(_projects(), 7)
    assert stats.total_raised == Decimal("350.50")
    assert stats.project_count == 3
    assert stats.donation_count == 7
    assert stats.kwh_generated == 1000
    assert stats.students_served == 40


def _donation(i, amount, project_id=None):
    return DonationView.from_row({"id": str(i), "amount_usd": amount, "project_id": project_id})


def test_dashboard_stats_counts_general_fund_once():
    ds = [
        _donation(1, "100"),
        _donation(2, "50", "p1"),
        _donation(3, "25", "p1"),
        _donation(4, "10"),
        _donation(5, "5", "p2"),
        _donation(6, "1", "p3"),
    ]
    stats = dashboard_stats(ds)
    assert stats.total_donated == Decimal("191")
    assert stats.projects_supported == 4  # general, p1, p2, p3
    assert stats.impact_kwh == round(191 * 2.5)
    assert [d.id for d in stats.recent] == ["1", "2", "3", "4", "5"]


def test_dashboard_stats_empty():
    stats = dashboard_stats([])
    assert stats.total_donated == 0
    assert stats.projects_supported == 0
    assert stats.recent == []


def test_dashboard_stats_impact_summary():
    ds = [_donation(1, "4000", "p1"), _donation(2, "900"), _donation(3, "100", "p1")]
    stats = dashboard_stats(ds)
    assert stats.impact_kwh == 12500
    assert stats.co2_offset_tons == 5
    assert stats.students_supported == 500
    assert stats.community_projects == 2
    assert stats.has_more is False


def test_dashboard_stats_show_all_keeps_every_donation():
    ds = [_donation(i, "1") for i in range(1, 8)]
    assert dashboard_stats(ds).has_more is True
    everything = dashboard_stats(ds, show_all=True)
    assert len(everything.recent) == 7
    assert everything.has_more is False


def test_impact_estimate():
    est = impact_estimate("100")
    assert est.kwh == 250
    assert est.students == 10
    assert impact_estimate("junk").kwh == 0
