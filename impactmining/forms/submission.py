from __future__ import annotations

from flask_wtf import FlaskForm
from wtforms import EmailField, HiddenField, StringField, TextAreaField

# No field validators here: per-step gating lives in impactmining.wizard.


class SubmissionForm(FlaskForm):
    step = HiddenField(default="1")

    org_name = StringField(
        "Organization Name *", render_kw={"placeholder": "Enter your organization name"}
    )
    email = EmailField("Contact Email *", render_kw={"placeholder": "Enter your email address"})

    proposal_md = TextAreaField(
        "Project Proposal *",
        render_kw={
            "rows": 10,
            "placeholder": "Describe your project in detail. Include the problem you're solving, "
            "your solution, methodology, and expected outcomes. Use markdown formatting if desired.",
        },
    )
    budget_usd = StringField(
        "Total Budget (USD) *",
        render_kw={"placeholder": "Enter total project budget", "inputmode": "decimal"},
    )

    expected_beneficiaries = StringField(
        "Expected Beneficiaries *", render_kw={"placeholder": "Number of people impacted"}
    )
    timeline_months = StringField("Timeline (Months) *", render_kw={"placeholder": "Project duration"})
    kwh_target = StringField("kWh Target (Optional)", render_kw={"placeholder": "Renewable energy generated"})
    students_target = StringField("Students Target (Optional)", render_kw={"placeholder": "Students to educate"})
