# impactmining/config/config.py
# Canonical Impact Mining configuration (env-first, production-safe)

from __future__ import annotations

import os
from datetime import timedelta
from typing import Optional
from urllib.parse import urlparse

from impactmining.errors import ConfigError

# ----------------------------
# Env helpers
# ----------------------------
_TRUTHY = {"1", "true", "yes", "on", "y"}
_FALSY = {"0", "false", "no", "off", "n"}


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    if v is None:
        return default
    s = str(v).strip()
    return s if s else default


def _bool(name: str, default: bool = False) -> bool:
    v = _env(name)
    if v is None:
        return default
    s = v.strip().lower()
    if s in _TRUTHY:
        return True
    if s in _FALSY:
        return False
    return default


def _int(name: str, default: int) -> int:
    v = _env(name)
    if v is None:
        return default
    try:
        return int(str(v).strip())
    except ValueError:
        return default


def _clean_base_url(v: Optional[str]) -> str:
    return (v or "").strip().rstrip("/")


def backend_kind(url: Optional[str]) -> str:
    """
    Which data client serves BACKEND_URL.
      - http(s)://<project>.supabase.co  -> "supabase"
      - anything SQLAlchemy understands  -> "sql"
    """
    scheme = urlparse(url or "").scheme.lower()
    if scheme in {"http", "https"}:
        return "supabase"
    return "sql"


# ----------------------------
# Config classes
# ----------------------------
class BaseConfig:
    """
    Env-first config:
    - every important setting can be overridden via environment variables
    - BACKEND_URL + BACKEND_KEY have no defaults; create_app refuses to boot without them
    """

    ENV = (_env("APP_ENV") or _env("ENV") or _env("FLASK_ENV") or "base").strip().lower()

    DEBUG = _bool("FLASK_DEBUG", False)
    TESTING = _bool("TESTING", False)

    # Security
    SECRET_KEY = _env("SECRET_KEY", "dev-change-me")

    # Backend (required)
    BACKEND_URL = _env("BACKEND_URL")
    BACKEND_KEY = _env("BACKEND_KEY")
    # Service-role key for the admin CLI against a hosted backend (bypasses row policies)
    BACKEND_SERVICE_KEY = _env("BACKEND_SERVICE_KEY")

    # Identity tokens issued by the SQL backend
    ACCESS_TOKEN_TTL = _int("ACCESS_TOKEN_TTL", 3600)
    REFRESH_TOKEN_TTL = _int("REFRESH_TOKEN_TTL", 60 * 60 * 24 * 30)

    # URLs / scheme
    PUBLIC_BASE_URL = _clean_base_url(_env("PUBLIC_BASE_URL", ""))
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "https")
    TRUST_PROXY = _bool("TRUST_PROXY", False)

    # Payments
    PAYMENT_PROVIDER = (_env("PAYMENT_PROVIDER", "simulated") or "simulated").lower()
    STRIPE_SECRET_KEY = _env("STRIPE_SECRET_KEY", "")
    STRIPE_PUBLISHABLE_KEY = _env("STRIPE_PUBLISHABLE_KEY", "")
    DONATION_CURRENCY = (_env("DONATION_CURRENCY", "usd") or "usd").lower()

    # Mail (receipts + proposal confirmations)
    MAIL_MODE = (_env("MAIL_MODE", "log") or "log").lower()
    MAIL_SERVER = _env("MAIL_SERVER", "localhost")
    MAIL_PORT = _int("MAIL_PORT", 587)
    MAIL_USE_TLS = _bool("MAIL_USE_TLS", True)
    MAIL_USERNAME = _env("MAIL_USERNAME")
    MAIL_PASSWORD = _env("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = _env("MAIL_DEFAULT_SENDER", "hello@impactmining.org")

    # Logging
    LOG_LEVEL = _env("LOG_LEVEL", "INFO")
    WERKZEUG_LOG_LEVEL = _env("WERKZEUG_LOG_LEVEL", "WARNING")

    BRAND_NAME = _env("BRAND_NAME", "Impact Mining")

    # Cookies
    SESSION_COOKIE_NAME = _env("SESSION_COOKIE_NAME", "impactmining")
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = _env("SESSION_COOKIE_SAMESITE", "Lax")
    SESSION_COOKIE_SECURE = True
    PERMANENT_SESSION_LIFETIME = timedelta(days=_int("SESSION_DAYS", 31))

    # SQLAlchemy (only used by the SQL backend; filled from BACKEND_URL)
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    AUTO_CREATE_SQLITE = _bool("AUTO_CREATE_SQLITE", True)

    @classmethod
    def init_app(cls, app) -> None:
        """
        Boot hardening, called by create_app() after app.config.from_object(...).
        Missing backend settings are fatal.
        """
        url = (app.config.get("BACKEND_URL") or "").strip()
        key = (app.config.get("BACKEND_KEY") or "").strip()
        missing = [name for name, val in (("BACKEND_URL", url), ("BACKEND_KEY", key)) if not val]
        if missing:
            raise ConfigError(f"Missing required backend configuration: {', '.join(missing)}")

        kind = backend_kind(url)
        app.config["BACKEND_KIND"] = kind

        if kind == "sql":
            app.config["SQLALCHEMY_DATABASE_URI"] = url

            # SQLite tuning (better concurrency behavior than default)
            if url.startswith("sqlite:"):
                opts = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
                connect_args = dict(opts.get("connect_args") or {})
                connect_args.setdefault("check_same_thread", False)
                opts["connect_args"] = connect_args
                opts.setdefault("pool_pre_ping", True)
                app.config["SQLALCHEMY_ENGINE_OPTIONS"] = opts

        provider = str(app.config.get("PAYMENT_PROVIDER") or "simulated").lower()
        if provider not in {"simulated", "stripe"}:
            raise ConfigError(f"Unknown PAYMENT_PROVIDER '{provider}' (expected simulated or stripe)")
        app.config["PAYMENT_PROVIDER"] = provider


class DevelopmentConfig(BaseConfig):
    ENV = "development"
    DEBUG = True

    SESSION_COOKIE_SECURE = False
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "http")


class TestingConfig(BaseConfig):
    ENV = "testing"
    TESTING = True
    DEBUG = False

    SECRET_KEY = "testing-secret"
    BACKEND_URL = "sqlite:///:memory:"
    BACKEND_KEY = "testing-backend-key"

    WTF_CSRF_ENABLED = False
    SESSION_COOKIE_SECURE = False
    PREFERRED_URL_SCHEME = "http"

    PAYMENT_PROVIDER = "simulated"
    MAIL_MODE = "log"
    LOG_LEVEL = "WARNING"


class ProductionConfig(BaseConfig):
    ENV = "production"
    DEBUG = False

    SESSION_COOKIE_SECURE = True
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "https")
    TRUST_PROXY = _bool("TRUST_PROXY", True)
    PAYMENT_PROVIDER = (_env("PAYMENT_PROVIDER", "stripe") or "stripe").lower()

    @classmethod
    def init_app(cls, app) -> None:
        super().init_app(app)

        # ---- Production guardrails (fail fast) ----
        sk = app.config.get("SECRET_KEY")
        if not sk or sk == "dev-change-me":
            raise ConfigError("SECRET_KEY must be set to a strong random value in production.")

        base = (app.config.get("PUBLIC_BASE_URL") or "").strip()
        if base and base.startswith("http://"):
            raise ConfigError("PUBLIC_BASE_URL must be https:// in production.")

        if app.config["PAYMENT_PROVIDER"] != "stripe":
            raise ConfigError("Simulated payments are not allowed in production; set PAYMENT_PROVIDER=stripe.")
        if not (app.config.get("STRIPE_SECRET_KEY") or "").startswith(("sk_", "rk_")):
            raise ConfigError("STRIPE_SECRET_KEY must be set in production.")

        if _bool("FLASK_DEBUG", False):
            raise ConfigError("FLASK_DEBUG must be 0 in production.")
