from datetime import datetime
from decimal import Decimal

import pytest

from impactmining.entities import (
    DonationView,
    ProjectView,
    StoryView,
    funding_percent,
    parse_amount,
    percent_label,
    progress_width,
)
from impactmining.filters import commafy, usd


def _project(**kw):
    row = {"id": "p1", "title": "Solar", "target_usd": "1000", "raised_usd": "750"}
    row.update(kw)
    return ProjectView.from_row(row)


def test_funding_label_and_width():
    p = _project()
    assert p.funding_percent == pytest.approx(75.0)
    assert p.percent_label == "75.0%"
    assert p.progress_width == pytest.approx(75.0)


def test_overfunded_label_unclamped_width_clamped():
    p = _project(raised_usd="1500")
    assert p.percent_label == "150.0%"
    assert p.progress_width == 100.0


def test_zero_target_yields_zero():
    assert funding_percent(100, 0) == 0.0
    assert funding_percent(100, -5) == 0.0
    assert _project(target_usd="0").percent_label == "0.0%"


def test_negative_width_clamped():
    assert progress_width(-3) == 0.0
    assert percent_label(33.333) == "33.3%"


def test_derived_values_are_stable_across_reads():
    p = _project()
    assert [p.percent_label, p.progress_width] == [p.percent_label, p.progress_width]


def test_derived_values_follow_current_state():
    p = _project()
    p.raised_usd = Decimal("250")
    assert p.percent_label == "25.0%"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("100", Decimal("100.00")),
        (" 25.5 ", Decimal("25.50")),
        ("$1,250", Decimal("1250.00")),
        ("0.004", None),
        ("0", None),
        ("-10", None),
        ("abc", None),
        ("", None),
        (None, None),
        ("nan", None),
    ],
)
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


def test_project_row_normalization():
    p = ProjectView.from_row(
        {
            "id": "p1",
            "title": "Wind",
            "status": "in-progress",
            "kpi_jsonb": {"kwh_generated": "1200.5", "students_served": 7},
            "created_at": "2024-05-01T10:00:00Z",
        }
    )
    assert p.status_label == "In Progress"
    assert p.kpi("kwh_generated") == 1200.5
    assert p.kpi("missing") == 0.0
    assert p.created_at.year == 2024


def test_donation_view_general_fund_and_short_tx():
    d = DonationView.from_row({"id": "d1", "amount_usd": "50", "tx_hash": "sim_card_1718000000000_abc123"})
    assert d.target_label == "General Fund"
    assert d.tx_short == "sim_card_171..."

    d2 = DonationView.from_row({"id": "d2", "amount_usd": 5, "project_id": "p1", "tx_hash": "short"}, project_title="Solar")
    assert d2.target_label == "Solar"
    assert d2.tx_short == "short"


def test_story_defaults_to_anonymous():
    s = StoryView.from_row({"id": "s1", "user_id": "u1", "title": "T", "body_md": "x" * 300})
    assert s.author == "Anonymous"
    assert s.excerpt(10).endswith("...")


def test_commafy_and_usd():
    assert commafy(1234567) == "1,234,567"
    assert commafy("1234.5", decimals=2) == "1,234.50"
    assert commafy(None) == "0"
    assert commafy(None, blank_for_none=True) == ""
    assert usd(Decimal("2500.4")) == "$2,500"
    assert usd(12.5, 2) == "$12.50"
    assert commafy("n/a") == "n/a"


def test_short_date():
    from impactmining.filters import short_date

    assert short_date(datetime(2024, 3, 5)) == "Mar 05, 2024"
    assert short_date(None) == ""
