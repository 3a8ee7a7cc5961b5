# impactmining/blueprints/auth.py
from __future__ import annotations

from urllib.parse import urlparse

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for

from impactmining.backend import OAUTH_PROVIDERS
from impactmining.errors import AuthError, BackendError
from impactmining.forms import SignInForm, SignUpForm
from impactmining.identity import PageContext, with_page

bp = Blueprint("auth", __name__)

PROFILE_FAILED = (
    "Your account was created, but we could not finish setting up your profile. "
    "It will be completed the next time you sign in."
)


def _safe_next(target: str | None) -> str:
    """Only same-site relative paths are followed after sign-in."""
    t = (target or "").strip()
    if not t.startswith("/") or t.startswith("//"):
        return url_for("pages.home")
    parsed = urlparse(t)
    if parsed.scheme or parsed.netloc:
        return url_for("pages.home")
    return t


@bp.route("/sign-in", methods=["GET", "POST"])
@with_page
def sign_in(page: PageContext):
    form = SignInForm()
    if request.method == "GET":
        form.next.data = request.args.get("next", "")
        return render_template("auth/sign_in.html", form=form, providers=OAUTH_PROVIDERS)

    if not form.validate_on_submit():
        for errors in form.errors.values():
            for message in errors:
                flash(message, "error")
        return render_template("auth/sign_in.html", form=form, providers=OAUTH_PROVIDERS), 400

    try:
        page.identity.sign_in(form.email.data.strip(), form.password.data)
    except AuthError as e:
        flash(e.message, "error")
        return render_template("auth/sign_in.html", form=form, providers=OAUTH_PROVIDERS), 401

    return redirect(_safe_next(form.next.data))


@bp.route("/sign-up", methods=["GET", "POST"])
@with_page
def sign_up(page: PageContext):
    form = SignUpForm()
    if request.method == "GET":
        return render_template("auth/sign_up.html", form=form, providers=OAUTH_PROVIDERS)

    if not form.validate_on_submit():
        for errors in form.errors.values():
            for message in errors:
                flash(message, "error")
        return render_template("auth/sign_up.html", form=form, providers=OAUTH_PROVIDERS), 400

    try:
        page.identity.sign_up(
            form.email.data.strip(),
            form.password.data,
            form.display_name.data.strip(),
        )
    except AuthError as e:
        flash(e.message, "error")
        return render_template("auth/sign_up.html", form=form, providers=OAUTH_PROVIDERS), 400
    except BackendError as e:
        current_app.logger.error("profile creation failed after sign-up: %s", e)
        flash(PROFILE_FAILED, "error")
        return redirect(url_for("pages.home"))

    if not page.identity.is_authenticated:
        # Backend requires email confirmation before the first session.
        flash("Check your email to confirm your account, then sign in.", "info")
        return redirect(url_for("auth.sign_in"))
    return redirect(url_for("pages.home"))


@bp.post("/sign-out")
@with_page
def sign_out(page: PageContext):
    try:
        page.identity.sign_out()
    except AuthError as e:
        current_app.logger.warning("sign-out: %s", e)
    return redirect(url_for("pages.home"))


@bp.get("/auth/oauth/<provider>")
@with_page
def oauth(page: PageContext, provider: str):
    callback = url_for("auth.callback", _external=True)
    try:
        url = page.identity.oauth_sign_in(provider, callback)
    except AuthError as e:
        flash(e.message, "error")
        return redirect(url_for("auth.sign_in"))
    return redirect(url)


@bp.get("/auth/callback")
@with_page
def callback(page: PageContext):
    error = request.args.get("error_description") or request.args.get("error")
    if error:
        flash(error, "error")
        return redirect(url_for("auth.sign_in"))

    code = (request.args.get("code") or "").strip()
    if not code:
        flash("Missing authorization code.", "error")
        return redirect(url_for("auth.sign_in"))

    try:
        page.identity.complete_oauth(code)
    except AuthError as e:
        flash(e.message, "error")
        return redirect(url_for("auth.sign_in"))
    return redirect(url_for("pages.home"))
