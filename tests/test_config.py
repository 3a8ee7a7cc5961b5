import pytest

from impactmining import create_app
from impactmining.config import DevelopmentConfig, ProductionConfig, TestingConfig, backend_kind
from impactmining.errors import ConfigError


def test_missing_backend_settings_are_fatal():
    class NoBackend(TestingConfig):
        BACKEND_URL = None
        BACKEND_KEY = None

    with pytest.raises(ConfigError) as exc:
        create_app(NoBackend)
    assert "BACKEND_URL" in str(exc.value)
    assert "BACKEND_KEY" in str(exc.value)


def test_missing_key_alone_is_fatal():
    class NoKey(TestingConfig):
        BACKEND_KEY = ""

    with pytest.raises(ConfigError, match="BACKEND_KEY"):
        create_app(NoKey)


@pytest.mark.parametrize(
    "url, kind",
    [
        ("https://abc.supabase.co", "supabase"),
        ("http://localhost:54321", "supabase"),
        ("sqlite:///impactmining.db", "sql"),
        ("postgresql+psycopg://u:p@db/impact", "sql"),
    ],
)
def test_backend_kind_follows_url_scheme(url, kind):
    assert backend_kind(url) == kind


def test_sql_backend_maps_database_uri(app):
    assert app.config["BACKEND_KIND"] == "sql"
    assert app.config["SQLALCHEMY_DATABASE_URI"] == app.config["BACKEND_URL"]


def test_unknown_payment_provider_rejected(tmp_path):
    class BadProvider(TestingConfig):
        BACKEND_URL = f"sqlite:///{tmp_path / 'x.db'}"
        PAYMENT_PROVIDER = "paypal"

    with pytest.raises(ConfigError, match="PAYMENT_PROVIDER"):
        create_app(BadProvider)


def test_production_refuses_simulated_payments(tmp_path):
    class Prod(ProductionConfig):
        BACKEND_URL = f"sqlite:///{tmp_path / 'prod.db'}"
        BACKEND_KEY = "k"
        SECRET_KEY = "a-strong-secret"
        PAYMENT_PROVIDER = "simulated"

    with pytest.raises(ConfigError, match="Simulated payments"):
        create_app(Prod)


def test_production_requires_real_secret_key(tmp_path):
    class Prod(ProductionConfig):
        BACKEND_URL = f"sqlite:///{tmp_path / 'prod.db'}"
        BACKEND_KEY = "k"
        SECRET_KEY = "dev-change-me"

    with pytest.raises(ConfigError, match="SECRET_KEY"):
        create_app(Prod)


def test_unknown_config_path_is_a_config_error():
    with pytest.raises(ConfigError, match="Invalid FLASK_CONFIG"):
        create_app("impactmining.config.DoesNotExist")


@pytest.mark.skipif(
    DevelopmentConfig.BACKEND_URL is not None or DevelopmentConfig.BACKEND_KEY is not None,
    reason="backend settings present in the environment",
)
def test_development_without_backend_settings_is_fatal(monkeypatch):
    for name in ("BACKEND_URL", "BACKEND_KEY", "APP_ENV", "FLASK_ENV", "FLASK_CONFIG"):
        monkeypatch.delenv(name, raising=False)
    with pytest.raises(ConfigError, match="BACKEND_URL"):
        create_app()
