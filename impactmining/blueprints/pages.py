# impactmining/blueprints/pages.py
"""
Site pages.

Every read goes through a Fetchable so the templates only ever branch on
loading / loaded / failed; writes flash a message and either redirect (so the
next GET re-fetches) or re-render with the posted values.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for

from impactmining import content
from impactmining.backend import DataClient, Order
from impactmining.entities import DonationView, ProjectView, StoryView
from impactmining.errors import AuthRequired, BackendError, DonationError, NotFound, ValidationError
from impactmining.extensions import proposal_submitted, story_submitted
from impactmining.fetchable import Fetchable
from impactmining.forms import DonationForm, ProjectDonationForm, StoryForm, SubmissionForm
from impactmining.identity import PageContext, with_page
from impactmining.services.donations import DonationService
from impactmining.services.stats import (
    STATUS_FILTERS,
    dashboard_stats,
    filter_projects,
    home_stats,
    impact_estimate,
)
from impactmining.wizard import STEP_TITLES, SubmissionWizard

bp = Blueprint("pages", __name__)

DONATION_SUCCESS = "Donation successful! Thank you for your support."
STORY_SUCCESS = "Story submitted successfully! It will be reviewed and published soon."
STORY_FAILED = "Error submitting story. Please try again."
STORY_SIGN_IN = "Please sign in to share your story"
PROJECT_SIGN_IN = "Please sign in to donate"


# ----------------------------
# Loaders
# ----------------------------
def _projects(client: DataClient, **kwargs) -> List[ProjectView]:
    return [ProjectView.from_row(r) for r in client.select("projects", **kwargs)]


def _project(client: DataClient, project_id: str) -> ProjectView:
    row = client.select_one("projects", filters={"id": project_id})
    if row is None:
        raise NotFound("Project not found", collection="projects")
    return ProjectView.from_row(row)


def _approved_stories(client: DataClient) -> List[StoryView]:
    rows = client.select(
        "stories",
        filters={"approved": True},
        order=Order("created_at", descending=True),
    )
    author_ids = sorted({r["user_id"] for r in rows if r.get("user_id")})
    names: Dict[str, Optional[str]] = {}
    if author_ids:
        for p in client.select("profiles", columns="id, display_name", filters={"id": author_ids}):
            names[p["id"]] = p.get("display_name")
    return [StoryView.from_row(r, author=names.get(r.get("user_id"))) for r in rows]


def _user_donations(client: DataClient, user_id: str) -> List[DonationView]:
    rows = client.select(
        "donations",
        filters={"user_id": user_id},
        order=Order("created_at", descending=True),
    )
    project_ids = sorted({r["project_id"] for r in rows if r.get("project_id")})
    titles: Dict[str, str] = {}
    if project_ids:
        for p in client.select("projects", columns="id, title", filters={"id": project_ids}):
            titles[p["id"]] = p.get("title") or ""
    return [DonationView.from_row(r, project_title=titles.get(r.get("project_id"))) for r in rows]


def _flash_form_errors(form) -> None:
    for errors in form.errors.values():
        for message in errors:
            flash(message, "error")


# ----------------------------
# Home / About
# ----------------------------
@bp.get("/")
@with_page
def home(page: PageContext):
    projects = Fetchable("stats").load(
        lambda: _projects(page.client, columns="id, raised_usd, kpi_jsonb")
    )
    donations = Fetchable("donation count").load(lambda: page.client.count("donations"))

    stats = None
    if projects.loaded and donations.loaded:
        stats = home_stats(projects.value, donations.value)
    return render_template(
        "pages/home.html",
        stats=stats,
        stats_failed=projects.failed or donations.failed,
        tagline=content.TAGLINE,
    )


@bp.get("/about")
def about():
    return render_template(
        "pages/about.html",
        mission=content.MISSION,
        vision=content.VISION,
        board_members=content.BOARD_MEMBERS,
        values=content.CORE_VALUES,
        governance=content.GOVERNANCE,
        financials=content.FINANCIALS,
    )


# ----------------------------
# Projects
# ----------------------------
@bp.get("/projects")
@with_page
def projects(page: PageContext):
    q = (request.args.get("q") or "").strip()
    status = (request.args.get("status") or "all").strip()
    if status not in STATUS_FILTERS:
        status = "all"

    listing = Fetchable("projects").load(
        lambda: _projects(page.client, order=Order("created_at", descending=True))
    )
    visible = filter_projects(listing.value, q, status) if listing.loaded else []
    return render_template(
        "pages/projects.html",
        listing=listing,
        projects=visible,
        q=q,
        status=status,
        status_filters=STATUS_FILTERS,
    )


def _render_project(page: PageContext, project_id: str, form: Optional[ProjectDonationForm] = None, open_modal: bool = False):
    detail = Fetchable("project").load(lambda: _project(page.client, project_id), key=project_id)
    code = 404 if detail.not_found else 200
    return (
        render_template(
            "pages/project_detail.html",
            detail=detail,
            project=detail.value,
            form=form or ProjectDonationForm(formdata=None),
            open_modal=open_modal,
            quick_amounts=content.QUICK_AMOUNTS,
        ),
        code,
    )


@bp.get("/projects/<project_id>")
@with_page
def project_detail(page: PageContext, project_id: str):
    return _render_project(page, project_id)


@bp.post("/projects/<project_id>/donate")
@with_page
def project_donate(page: PageContext, project_id: str):
    form = ProjectDonationForm()
    if not form.validate_on_submit():
        _flash_form_errors(form)
        return _render_project(page, project_id, form, open_modal=True)

    service = DonationService(page.client, page.payments)
    try:
        service.donate(
            page.identity.identity,
            target=project_id,
            amount=form.amount.data,
            method=form.method.data,
            attempt_id=form.attempt_id.data,
            payment_token=form.payment_token.data,
        )
    except AuthRequired:
        flash(PROJECT_SIGN_IN, "error")
        return _render_project(page, project_id, form)
    except (ValidationError, DonationError) as e:
        flash(e.message, "error")
        return _render_project(page, project_id, form, open_modal=True)

    flash(DONATION_SUCCESS, "success")
    return redirect(url_for("pages.project_detail", project_id=project_id))


# ----------------------------
# Donate
# ----------------------------
def _donatable_projects(page: PageContext) -> Fetchable:
    return Fetchable("donate projects").load(
        lambda: _projects(
            page.client,
            columns="id, title, status",
            filters={"status": "in-progress"},
            order=Order("title"),
        )
    )


def _render_donate(form: DonationForm, choices: Fetchable):
    return render_template(
        "pages/donate.html",
        form=form,
        choices=choices,
        quick_amounts=content.QUICK_AMOUNTS,
        payment_methods=content.PAYMENT_METHODS,
        estimate=impact_estimate(form.amount.data),
        stripe_publishable_key=current_app.config.get("STRIPE_PUBLISHABLE_KEY") or "",
        payment_provider=current_app.config.get("PAYMENT_PROVIDER"),
    )


@bp.route("/donate", methods=["GET", "POST"])
@with_page
def donate(page: PageContext):
    choices = _donatable_projects(page)
    form = DonationForm()
    form.set_projects(choices.value_or([]))

    if request.method == "GET":
        preselect = request.args.get("project")
        if preselect and any(value == preselect for value, _ in form.project.choices):
            form.project.data = preselect
        return _render_donate(form, choices)

    if not form.validate_on_submit():
        _flash_form_errors(form)
        return _render_donate(form, choices)

    service = DonationService(page.client, page.payments)
    try:
        donation = service.donate(
            page.identity.identity,
            target=form.project.data,
            amount=form.amount.data,
            method=form.method.data,
            attempt_id=form.attempt_id.data,
            payment_token=form.payment_token.data,
        )
    except (AuthRequired, ValidationError, DonationError) as e:
        flash(e.message, "error")
        return _render_donate(form, choices)

    return render_template("pages/donate_thanks.html", donation=donation)


# ----------------------------
# Stories
# ----------------------------
def _render_stories(page: PageContext, form: StoryForm, open_modal: bool = False):
    listing = Fetchable("stories").load(lambda: _approved_stories(page.client))
    return render_template(
        "pages/stories.html",
        listing=listing,
        stories=listing.value_or([]),
        featured=content.FEATURED_STORIES,
        form=form,
        open_modal=open_modal,
    )


@bp.route("/stories", methods=["GET", "POST"])
@with_page
def stories(page: PageContext):
    if request.method == "GET":
        return _render_stories(page, StoryForm(formdata=None))

    form = StoryForm()
    if not page.identity.is_authenticated:
        flash(STORY_SIGN_IN, "error")
        return _render_stories(page, form)
    if not form.validate_on_submit():
        _flash_form_errors(form)
        return _render_stories(page, form, open_modal=True)

    try:
        row = page.client.insert(
            "stories",
            {
                "user_id": page.identity.identity.id,
                "title": form.title.data.strip(),
                "body_md": form.body_md.data.strip(),
                "approved": False,
            },
        )
    except BackendError as e:
        current_app.logger.error("Error submitting story: %s", e)
        flash(STORY_FAILED, "error")
        return _render_stories(page, form, open_modal=True)

    story_submitted.send(current_app._get_current_object(), title=row.get("title"), story_id=row.get("id"))
    flash(STORY_SUCCESS, "success")
    return redirect(url_for("pages.stories"))


# ----------------------------
# Submit (3-step wizard)
# ----------------------------
@bp.route("/submit", methods=["GET", "POST"])
@with_page
def submit(page: PageContext):
    form = SubmissionForm()
    wizard = SubmissionWizard.from_form(request.form) if request.method == "POST" else SubmissionWizard()

    if request.method == "POST":
        if not form.validate_on_submit():
            _flash_form_errors(form)
        else:
            action = request.form.get("action", "next")
            if action == "back":
                wizard.back()
            elif action == "submit":
                if wizard.submit(page.client):
                    proposal_submitted.send(current_app._get_current_object(), row=wizard.to_row())
                    return render_template("pages/submit_success.html")
            else:
                wizard.next()
            for message in wizard.errors:
                flash(message, "error")

    form.step.data = str(wizard.step)
    return render_template(
        "pages/submit.html",
        form=form,
        wizard=wizard,
        step_titles=STEP_TITLES,
    )


# ----------------------------
# Dashboard
# ----------------------------
@bp.get("/dashboard")
@with_page
def dashboard(page: PageContext):
    identity = page.identity.identity
    if identity is None:
        return render_template("pages/dashboard.html", signed_in=False)

    donations = Fetchable("dashboard").load(lambda: _user_donations(page.client, identity.id), key=identity.id)
    show_all = request.args.get("all") == "1"
    stats = dashboard_stats(donations.value, show_all=show_all) if donations.loaded else None
    return render_template(
        "pages/dashboard.html",
        signed_in=True,
        donations=donations,
        stats=stats,
        handle=identity.handle,
    )
