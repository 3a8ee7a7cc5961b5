# impactmining/blueprints/admin.py
"""
Moderation
────────────────────────────────────────────────────────────
• /admin/                               → pending stories + submissions
• /admin/stories/<id>/approve           → publish a story
• /admin/submissions/<id>/<decision>    → approve / reject a proposal
• /admin/submissions/export.csv         → CSV export of all proposals

Admin = profile.role == "admin" (see ``flask set-role``).
"""

from __future__ import annotations

import csv
import io
import logging

from flask import Blueprint, Response, flash, redirect, render_template, url_for

from impactmining.backend import Order
from impactmining.entities import StoryView, SubmissionView
from impactmining.errors import BackendError
from impactmining.fetchable import Fetchable
from impactmining.identity import PageContext, admin_required, with_page

log = logging.getLogger(__name__)

bp = Blueprint("admin", __name__)

DECISIONS = {"approve": "approved", "reject": "rejected"}


@bp.get("/")
@with_page
@admin_required
def index(page: PageContext):
    stories = Fetchable("pending stories").load(
        lambda: [
            StoryView.from_row(r)
            for r in page.client.select(
                "stories", filters={"approved": False}, order=Order("created_at", descending=True)
            )
        ]
    )
    submissions = Fetchable("pending submissions").load(
        lambda: [
            SubmissionView.from_row(r)
            for r in page.client.select(
                "donee_submissions", filters={"status": "pending"}, order=Order("created_at", descending=True)
            )
        ]
    )
    return render_template("admin/index.html", stories=stories, submissions=submissions)


@bp.post("/stories/<story_id>/approve")
@with_page
@admin_required
def approve_story(page: PageContext, story_id: str):
    try:
        rows = page.client.update("stories", {"id": story_id}, {"approved": True})
    except BackendError as e:
        log.error("admin: approve story %s failed: %s", story_id, e)
        flash("Could not approve story. Please try again.", "error")
        return redirect(url_for("admin.index"))

    if rows:
        log.info("admin: story %s approved by %s", story_id, page.identity.identity.id)
        flash("Story approved and published.", "success")
    else:
        flash("Story not found.", "error")
    return redirect(url_for("admin.index"))


@bp.post("/submissions/<submission_id>/<decision>")
@with_page
@admin_required
def decide_submission(page: PageContext, submission_id: str, decision: str):
    status = DECISIONS.get(decision)
    if status is None:
        flash("Unknown decision.", "error")
        return redirect(url_for("admin.index"))

    try:
        rows = page.client.update("donee_submissions", {"id": submission_id}, {"status": status})
    except BackendError as e:
        log.error("admin: %s submission %s failed: %s", decision, submission_id, e)
        flash("Could not update submission. Please try again.", "error")
        return redirect(url_for("admin.index"))

    if rows:
        log.info("admin: submission %s %s by %s", submission_id, status, page.identity.identity.id)
        flash(f"Submission {status}.", "success")
    else:
        flash("Submission not found.", "error")
    return redirect(url_for("admin.index"))


@bp.get("/submissions/export.csv")
@with_page
@admin_required
def export_submissions(page: PageContext):
    try:
        rows = page.client.select("donee_submissions", order=Order("created_at", descending=True))
    except BackendError as e:
        log.error("admin: export failed: %s", e)
        flash("Could not export submissions.", "error")
        return redirect(url_for("admin.index"))

    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(["id", "org_name", "submitted_by", "budget_usd", "status", "created_at"])
    for s in map(SubmissionView.from_row, rows):
        writer.writerow(
            [s.id, s.org_name, s.submitted_by, f"{s.budget_usd:.2f}", s.status, s.created_at.isoformat() if s.created_at else ""]
        )
    return Response(
        buf.getvalue(),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=submissions.csv"},
    )
