# impactmining/wizard.py
"""
Three-step proposal wizard.

    Step1(Org) -> Step2(Proposal) -> Step3(Impact) -> Submitting -> Succeeded
                                         ^                |
                                         +---- failure ---+

Field values travel in the posted form, so every request rebuilds the wizard
from what the browser sent. Moving back never drops a value.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from impactmining.backend import DataClient
from impactmining.entities import parse_amount
from impactmining.errors import BackendError

log = logging.getLogger(__name__)

FIRST_STEP = 1
LAST_STEP = 3

STEP_TITLES = {1: "Organization", 2: "Proposal", 3: "Impact Goals"}

STEP_FIELDS: Dict[int, Tuple[str, ...]] = {
    1: ("org_name", "email"),
    2: ("proposal_md", "budget_usd"),
    3: ("expected_beneficiaries", "timeline_months", "kwh_target", "students_target"),
}

REQUIRED_FIELDS: Dict[int, Tuple[str, ...]] = {
    1: ("org_name", "email"),
    2: ("proposal_md", "budget_usd"),
    3: ("expected_beneficiaries", "timeline_months"),
}

FIELD_LABELS = {
    "org_name": "Organization Name",
    "email": "Contact Email",
    "proposal_md": "Project Proposal",
    "budget_usd": "Total Budget (USD)",
    "expected_beneficiaries": "Expected Beneficiaries",
    "timeline_months": "Timeline (Months)",
    "kwh_target": "kWh Target",
    "students_target": "Students Target",
}

ALL_FIELDS: Tuple[str, ...] = tuple(f for step in sorted(STEP_FIELDS) for f in STEP_FIELDS[step])

SUBMIT_FAILED_MESSAGE = "Error submitting proposal. Please try again."


def _kpi_value(raw: str) -> Any:
    try:
        n = float(raw)
    except ValueError:
        return raw
    if not math.isfinite(n):
        return raw
    return int(n) if n.is_integer() else n


class WizardStatus(str, Enum):
    EDITING = "editing"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"


@dataclass
class SubmissionWizard:
    step: int = FIRST_STEP
    values: Dict[str, str] = field(default_factory=lambda: {name: "" for name in ALL_FIELDS})
    status: WizardStatus = WizardStatus.EDITING
    errors: List[str] = field(default_factory=list)

    @classmethod
    def from_form(cls, form: Mapping[str, Any]) -> "SubmissionWizard":
        try:
            step = int(form.get("step") or FIRST_STEP)
        except (TypeError, ValueError):
            step = FIRST_STEP
        step = min(max(step, FIRST_STEP), LAST_STEP)
        values = {name: str(form.get(name) or "") for name in ALL_FIELDS}
        return cls(step=step, values=values)

    # ── Validation ──────────────────────────────────────────────
    def missing(self, step: Optional[int] = None) -> List[str]:
        step = self.step if step is None else step
        return [name for name in REQUIRED_FIELDS.get(step, ()) if not self.values.get(name, "").strip()]

    def step_errors(self, step: Optional[int] = None) -> List[str]:
        step = self.step if step is None else step
        errors = [f"{FIELD_LABELS[name]} is required" for name in self.missing(step)]
        if step == 2 and "budget_usd" not in self.missing(2) and self.budget is None:
            errors.append("Total Budget (USD) must be a positive number")
        return errors

    def is_step_valid(self, step: Optional[int] = None) -> bool:
        return not self.step_errors(step)

    @property
    def budget(self) -> Optional[Decimal]:
        return parse_amount(self.values.get("budget_usd"))

    # ── Transitions ─────────────────────────────────────────────
    @property
    def can_go_back(self) -> bool:
        return self.step > FIRST_STEP and self.status is WizardStatus.EDITING

    @property
    def is_last_step(self) -> bool:
        return self.step == LAST_STEP

    def next(self) -> bool:
        if self.status is not WizardStatus.EDITING or self.step >= LAST_STEP:
            return False
        self.errors = self.step_errors()
        if self.errors:
            return False
        self.step += 1
        return True

    def back(self) -> bool:
        if not self.can_go_back:
            return False
        self.errors = []
        self.step -= 1
        return True

    def submit(self, client: DataClient) -> bool:
        """Issue the single insert. On failure the wizard stays on the last step with its values."""
        if self.status is not WizardStatus.EDITING or self.step != LAST_STEP:
            return False

        # Earlier steps are re-checked because hidden values could have been edited.
        for step in range(FIRST_STEP, LAST_STEP + 1):
            errors = self.step_errors(step)
            if errors:
                self.step = step
                self.errors = errors
                return False

        self.status = WizardStatus.SUBMITTING
        try:
            # Submitters cannot read pending proposals back.
            client.insert("donee_submissions", self.to_row(), returning=False)
        except BackendError as e:
            log.error("Error submitting proposal: %s", e)
            self.status = WizardStatus.EDITING
            self.step = LAST_STEP
            self.errors = [SUBMIT_FAILED_MESSAGE]
            return False

        self.status = WizardStatus.SUCCEEDED
        self.errors = []
        return True

    # ── Output ──────────────────────────────────────────────────
    def initial_kpis(self) -> Dict[str, Any]:
        """Numbers where the answer parses as one; free text like "6-12" is kept as typed."""
        kpis: Dict[str, Any] = {}
        for name in STEP_FIELDS[3]:
            raw = self.values.get(name, "").strip()
            if raw:
                kpis[name] = _kpi_value(raw)
        return kpis

    def to_row(self) -> Dict[str, Any]:
        return {
            "org_name": self.values["org_name"].strip(),
            "proposal_md": self.values["proposal_md"].strip(),
            "budget_usd": self.budget,
            "initial_kpis": self.initial_kpis(),
            "submitted_by": self.values["email"].strip(),
            "status": "pending",
        }

    @property
    def succeeded(self) -> bool:
        return self.status is WizardStatus.SUCCEEDED

    @property
    def hidden_values(self) -> Dict[str, str]:
        """Values for fields not shown on the current step."""
        shown = set(STEP_FIELDS[self.step])
        return {k: v for k, v in self.values.items() if k not in shown}
