"""
Shared fixtures: an app over a throwaway SQLite backend, its test client, and
helpers to seed projects and register users through the real sign-up page.
"""

from decimal import Decimal

import pytest

from impactmining import create_app
from impactmining.backend import Identity, make_client
from impactmining.backend.sql import SqlDataClient
from impactmining.config import TestingConfig
from impactmining.extensions import db
from impactmining.models import Account, Donation, Profile, Project


@pytest.fixture
def app(tmp_path):
    class _Config(TestingConfig):
        BACKEND_URL = f"sqlite:///{tmp_path / 'impactmining-test.db'}"

    app = create_app(_Config)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def backend(ctx):
    """A SqlDataClient bound to the test database."""
    c = make_client(ctx.config)
    yield c
    c.close()


@pytest.fixture
def seed_project(app):
    def _seed(**overrides):
        row = {
            "title": "Solar Microgrid",
            "summary": "Clean power for a rural school",
            "description": "A 40 kW array with storage.",
            "status": "in-progress",
            "target_usd": Decimal("1000"),
            "raised_usd": Decimal("500"),
            "kpi_jsonb": {"kwh_generated": 1200, "students_served": 30},
        }
        row.update(overrides)
        with app.app_context():
            project = Project(**row)
            db.session.add(project)
            db.session.commit()
            return project.id

    return _seed


@pytest.fixture
def register(client):
    """Sign up through /sign-up; the test client keeps the session cookie."""

    def _register(display_name="Amara", email="amara@example.org", password="secret"):
        return client.post(
            "/sign-up",
            data={"display_name": display_name, "email": email, "password": password},
        )

    return _register


def project_raised(app, project_id):
    with app.app_context():
        return db.session.get(Project, project_id).raised_usd


def donations(app):
    with app.app_context():
        return db.session.execute(db.select(Donation)).scalars().all()


def profiles(app):
    with app.app_context():
        return db.session.execute(db.select(Profile)).scalars().all()


class ConfirmEmailClient(SqlDataClient):
    """Creates the account but issues no session until the first sign-in."""

    def sign_up(self, email, password, metadata=None):
        account = Account(email=email.strip().lower(), user_metadata=dict(metadata or {}))
        account.set_password(password)
        db.session.add(account)
        db.session.commit()
        return Identity(id=account.id, email=account.email, metadata=dict(account.user_metadata)), None
