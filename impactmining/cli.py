from __future__ import annotations

import random
from decimal import Decimal

import click
from faker import Faker
from flask import current_app
from flask.cli import with_appcontext

from impactmining.backend import make_client
from impactmining.errors import BackendError

fake = Faker()

PROJECT_KINDS = (
    ("Solar Microgrid", "kwh_generated", (20_000, 250_000)),
    ("Coding Bootcamp", "students_served", (40, 600)),
    ("Wind Pump Cooperative", "kwh_generated", (10_000, 120_000)),
    ("Rural STEM Lab", "students_served", (80, 900)),
)
STATUSES = ("pending", "in-progress", "in-progress", "completed")

SERVICE_KEY_OPTION = click.option(
    "--service-key",
    envvar="BACKEND_SERVICE_KEY",
    default=None,
    help="Service-role key for a hosted backend (defaults to BACKEND_SERVICE_KEY).",
)


def _admin_settings(config, service_key=None) -> dict:
    """
    Settings for an admin-side client. Against a hosted backend the anon key
    cannot write projects or other people's profiles, so the service-role key
    replaces it; the SQL backend has no row policies and keeps its own key.
    """
    settings = dict(config)
    if settings.get("BACKEND_KIND") != "supabase":
        return settings
    key = (service_key or settings.get("BACKEND_SERVICE_KEY") or "").strip()
    if not key:
        raise click.ClickException("BACKEND_SERVICE_KEY (or --service-key) is required for the hosted backend")
    settings["BACKEND_KEY"] = key
    return settings


def _demo_project() -> dict:
    kind, kpi, (low, high) = random.choice(PROJECT_KINDS)
    status = random.choice(STATUSES)
    target = Decimal(fake.random_int(min=10, max=200) * 1000)
    if status == "completed":
        raised = target
    elif status == "pending":
        raised = Decimal("0")
    else:
        raised = (target * Decimal(fake.random_int(min=5, max=95)) / 100).quantize(Decimal("0.01"))
    return {
        "title": f"{fake.city()} {kind}",
        "summary": fake.sentence(nb_words=14),
        "description": "\n\n".join(fake.paragraphs(nb=3)),
        "status": status,
        "target_usd": target,
        "raised_usd": raised,
        "kpi_jsonb": {kpi: fake.random_int(min=low, max=high)} if status != "pending" else {},
        "image_url": f"https://picsum.photos/seed/{fake.unique.pyint(1, 10_000)}/800/450",
    }


@click.command("seed-demo")
@click.option("--projects", default=6, show_default=True, help="Number of demo projects.")
@SERVICE_KEY_OPTION
@with_appcontext
def seed_demo(projects, service_key):
    """🌱 Seed demo projects."""
    client = make_client(_admin_settings(current_app.config, service_key))
    try:
        for _ in range(projects):
            row = client.insert("projects", _demo_project())
            click.secho(f"  ↳ {row.get('title')} ({row.get('status')})", fg="cyan")
    except BackendError as e:
        raise click.ClickException(f"Seeding failed: {e}") from e
    finally:
        client.close()
    click.secho("✅ Demo data seeded!", fg="bright_green", bold=True)


@click.command("set-role")
@click.argument("profile_id")
@click.argument("role", type=click.Choice(["admin", "user"]))
@SERVICE_KEY_OPTION
@with_appcontext
def set_role(profile_id, role, service_key):
    """Grant or revoke admin for a profile."""
    client = make_client(_admin_settings(current_app.config, service_key))
    try:
        rows = client.update("profiles", {"id": profile_id}, {"role": role})
    except BackendError as e:
        raise click.ClickException(str(e)) from e
    finally:
        client.close()
    if not rows:
        raise click.ClickException(f"No profile with id {profile_id}")
    click.secho(f"✅ {profile_id} is now {role}", fg="bright_green", bold=True)


def register_cli(app) -> None:
    app.cli.add_command(seed_demo)
    app.cli.add_command(set_role)
