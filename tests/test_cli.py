import click
import pytest

from impactmining.cli import _admin_settings
from impactmining.extensions import db
from impactmining.models import Project

from .conftest import profiles


def test_seed_demo_creates_projects(app):
    result = app.test_cli_runner().invoke(args=["seed-demo", "--projects", "3"])
    assert result.exit_code == 0, result.output
    assert "Demo data seeded" in result.output
    with app.app_context():
        assert len(db.session.execute(db.select(Project)).scalars().all()) == 3


def test_set_role_promotes_a_profile(app, register):
    register()
    profile_id = profiles(app)[0].id

    result = app.test_cli_runner().invoke(args=["set-role", profile_id, "admin"])
    assert result.exit_code == 0, result.output
    assert profiles(app)[0].role == "admin"


def test_set_role_unknown_profile_fails(app):
    result = app.test_cli_runner().invoke(args=["set-role", "no-such-id", "admin"])
    assert result.exit_code != 0
    assert "No profile with id no-such-id" in result.output


def test_sql_backend_keeps_its_own_key():
    config = {"BACKEND_KIND": "sql", "BACKEND_KEY": "signing-key", "BACKEND_SERVICE_KEY": "ignored"}
    assert _admin_settings(config, "other")["BACKEND_KEY"] == "signing-key"


def test_hosted_backend_uses_service_key():
    config = {"BACKEND_KIND": "supabase", "BACKEND_KEY": "anon", "BACKEND_SERVICE_KEY": "service-role"}
    assert _admin_settings(config)["BACKEND_KEY"] == "service-role"
    assert _admin_settings(config, "from-option")["BACKEND_KEY"] == "from-option"
    assert config["BACKEND_KEY"] == "anon"


def test_hosted_backend_without_service_key_refuses():
    with pytest.raises(click.ClickException, match="BACKEND_SERVICE_KEY"):
        _admin_settings({"BACKEND_KIND": "supabase", "BACKEND_KEY": "anon"})
