from decimal import Decimal

import pytest

from impactmining.errors import BackendError
from impactmining.wizard import SUBMIT_FAILED_MESSAGE, SubmissionWizard, WizardStatus

FULL = {
    "org_name": "Sunrise Collective",
    "email": "hello@sunrise.org",
    "proposal_md": "Solar kiosks for 3 villages.",
    "budget_usd": "12000",
    "expected_beneficiaries": "900",
    "timeline_months": "9",
    "kwh_target": "45000",
    "students_target": "",
}


class RecordingClient:
    def __init__(self, fail=False):
        self.inserts = []
        self.returning = []
        self.fail = fail

    def insert(self, collection, row, returning=True):
        if self.fail:
            raise BackendError("permission denied")
        self.inserts.append((collection, row))
        self.returning.append(returning)
        return dict(row, id="sub-1")


def _at_step(step, **values):
    form = dict(FULL, step=str(step))
    form.update(values)
    return SubmissionWizard.from_form(form)


@pytest.mark.parametrize(
    "step, field",
    [(1, "org_name"), (1, "email"), (2, "proposal_md"), (2, "budget_usd")],
)
def test_next_blocked_when_required_field_empty(step, field):
    w = _at_step(step, **{field: "   "})
    assert not w.next()
    assert w.step == step
    assert w.errors


def test_budget_must_be_positive_number():
    w = _at_step(2, budget_usd="-5")
    assert not w.next()
    assert w.step == 2
    assert "positive" in w.errors[0]


def test_back_then_forward_preserves_every_value():
    w = _at_step(1)
    assert w.next() and w.step == 2
    assert w.next() and w.step == 3
    assert w.back() and w.step == 2
    assert w.back() and w.step == 1
    assert not w.back()
    assert w.next() and w.next()
    assert w.values == {k: v for k, v in FULL.items()}


def test_step_is_clamped():
    assert SubmissionWizard.from_form({"step": "9"}).step == 3
    assert SubmissionWizard.from_form({"step": "x"}).step == 1


def test_hidden_values_exclude_current_step_fields():
    w = _at_step(2)
    hidden = w.hidden_values
    assert "proposal_md" not in hidden
    assert hidden["org_name"] == "Sunrise Collective"


def test_submit_issues_exactly_one_insert():
    client = RecordingClient()
    w = _at_step(3)
    assert w.submit(client)
    assert w.status is WizardStatus.SUCCEEDED
    assert len(client.inserts) == 1
    collection, row = client.inserts[0]
    assert collection == "donee_submissions"
    assert row == {
        "org_name": "Sunrise Collective",
        "proposal_md": "Solar kiosks for 3 villages.",
        "budget_usd": Decimal("12000.00"),
        "initial_kpis": {"expected_beneficiaries": 900, "timeline_months": 9, "kwh_target": 45000},
        "submitted_by": "hello@sunrise.org",
        "status": "pending",
    }


def test_submit_does_not_read_the_row_back():
    client = RecordingClient()
    assert _at_step(3).submit(client)
    assert client.returning == [False]


def test_free_text_kpis_are_kept_as_typed():
    w = _at_step(3, timeline_months=" 6-12 ", expected_beneficiaries="about 500 families", kwh_target="1e3")
    assert w.initial_kpis() == {
        "expected_beneficiaries": "about 500 families",
        "timeline_months": "6-12",
        "kwh_target": 1000,
    }


def test_non_finite_kpi_is_kept_as_text():
    w = _at_step(3, kwh_target="inf", timeline_months="2.5")
    kpis = w.initial_kpis()
    assert kpis["kwh_target"] == "inf"
    assert kpis["timeline_months"] == 2.5


def test_submit_failure_returns_to_last_step_with_values():
    w = _at_step(3)
    assert not w.submit(RecordingClient(fail=True))
    assert w.step == 3
    assert w.status is WizardStatus.EDITING
    assert w.errors == [SUBMIT_FAILED_MESSAGE]
    assert w.values["org_name"] == "Sunrise Collective"


def test_submit_rechecks_earlier_steps():
    client = RecordingClient()
    w = _at_step(3, org_name="")
    assert not w.submit(client)
    assert w.step == 1
    assert client.inserts == []


def test_submit_only_from_last_step():
    client = RecordingClient()
    assert not _at_step(2).submit(client)
    assert client.inserts == []
