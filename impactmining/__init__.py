# impactmining/__init__.py
# Impact Mining: Flask app factory
# Goals:
# - fail fast on missing backend configuration
# - one data client + identity context per request (no process-wide identity)
# - proxy-correct behind a reverse proxy
# - JSON error shape for API-style callers, HTML for the site

from __future__ import annotations

import logging
import os
import time
from typing import Any, Optional, Type, Union
from uuid import uuid4

from dotenv import load_dotenv
from flask import Flask, g, jsonify, render_template, request, session
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix
from werkzeug.utils import import_string

# never override real env vars in prod
load_dotenv(override=False)

from impactmining.backend import make_client  # noqa: E402
from impactmining.errors import AppError, ConfigError  # noqa: E402
from impactmining.extensions import db, init_all_extensions  # noqa: E402
from impactmining.filters import register_filters  # noqa: E402
from impactmining.identity import IdentityContext, PageContext  # noqa: E402

ConfigLike = Union[str, Type[Any]]

__version__ = "1.0.0"

NAV_LINKS = (
    ("pages.home", "Home"),
    ("pages.about", "About"),
    ("pages.dashboard", "Impact"),
    ("pages.projects", "Projects"),
    ("pages.stories", "Stories"),
    ("pages.donate", "Donate"),
    ("pages.submit", "Submit"),
)

# Endpoints that never touch the backend
_NO_PAGE_ENDPOINTS = {"static", "health.healthz", "health.health", "health.version"}


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _resolve_config(target: Optional[ConfigLike]) -> Type[Any]:
    """
    Explicit argument wins; else FLASK_CONFIG (dotted path); else ProductionConfig
    when APP_ENV/FLASK_ENV says production, DevelopmentConfig otherwise.
    """
    if target is None:
        target = (os.getenv("FLASK_CONFIG") or "").strip() or None
    if target is None:
        env = (os.getenv("APP_ENV") or os.getenv("FLASK_ENV") or "").strip().lower()
        target = (
            "impactmining.config.ProductionConfig"
            if env in {"prod", "production"}
            else "impactmining.config.DevelopmentConfig"
        )
    if isinstance(target, str):
        try:
            return import_string(target)
        except ImportError as e:
            raise ConfigError(f"Invalid FLASK_CONFIG '{target}': {e}") from e
    return target


def _json_error(message: str, status: int, **extra: Any):
    payload = {"ok": False, "error": {"code": int(status), "message": str(message)}}
    rid = extra.pop("request_id", None)
    if rid:
        payload["error"]["request_id"] = rid
    if extra:
        payload["error"].update(extra)

    resp = jsonify(payload)
    resp.status_code = int(status)
    return resp


def _wants_json_response() -> bool:
    path = request.path or ""
    if path.startswith(("/api/", "/healthz", "/health", "/version")):
        return True
    accept = (request.headers.get("Accept") or "").lower()
    return ("application/json" in accept and "text/html" not in accept) or bool(request.is_json)


# -----------------------------------------------------------------------------
# Logging with request_id
# -----------------------------------------------------------------------------
class _RequestIDFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        try:
            record.request_id = getattr(g, "request_id", "-")
        except RuntimeError:
            # outside an app/request context
            record.request_id = "-"
        return True


def _configure_logging(app: Flask) -> None:
    fmt = "%(asctime)s [%(levelname)s] %(name)s [rid=%(request_id)s]: %(message)s"
    root = logging.getLogger()

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt))
        handler.addFilter(_RequestIDFilter())
        root.addHandler(handler)
    else:
        for h in root.handlers:
            if not any(isinstance(f, _RequestIDFilter) for f in h.filters):
                h.addFilter(_RequestIDFilter())
            if not getattr(h, "formatter", None) or "%(request_id)s" not in getattr(h.formatter, "_fmt", ""):
                h.setFormatter(logging.Formatter(fmt))

    root.setLevel(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    logging.getLogger("werkzeug").setLevel(str(app.config.get("WERKZEUG_LOG_LEVEL", "WARNING")).upper())
    app.logger.info(
        "Loaded config: ENV=%s DEBUG=%s backend=%s payments=%s",
        app.config.get("ENV", "?"),
        app.debug,
        app.config.get("BACKEND_KIND"),
        app.config.get("PAYMENT_PROVIDER"),
    )


# -----------------------------------------------------------------------------
# ProxyFix (reverse proxy)
# -----------------------------------------------------------------------------
def _apply_proxyfix(app: Flask) -> None:
    if not app.config.get("TRUST_PROXY"):
        return
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=1)
    app.logger.info("ProxyFix enabled (trusting X-Forwarded-* headers).")


def _maybe_create_sqlite_tables(app: Flask) -> None:
    if app.config.get("BACKEND_KIND") != "sql":
        return
    uri = (app.config.get("SQLALCHEMY_DATABASE_URI") or "").strip()
    if not uri.startswith("sqlite") or app.config.get("AUTO_CREATE_SQLITE", True) is not True:
        return
    with app.app_context():
        db.create_all()


# -----------------------------------------------------------------------------
# Request lifecycle + errors
# -----------------------------------------------------------------------------
def _register_request_lifecycle(app: Flask) -> None:
    @app.before_request
    def _bootstrap_request():
        g.request_id = request.headers.get("X-Request-ID") or uuid4().hex
        g._start_ts = time.perf_counter()

        if request.endpoint in _NO_PAGE_ENDPOINTS:
            return None

        client = make_client(app.config, storage=session)
        identity = IdentityContext(client, session)
        g.page = PageContext(client=client, identity=identity)
        try:
            identity.init()
        except AppError as e:
            app.logger.warning("session restore failed: %s", e)
        return None

    @app.after_request
    def _attach_request_headers(resp):
        resp.headers["X-Request-ID"] = getattr(g, "request_id", "-")
        start = getattr(g, "_start_ts", None)
        if start:
            resp.headers["X-Response-Time-ms"] = str(int((time.perf_counter() - start) * 1000))
        return resp

    @app.teardown_request
    def _close_page(_exc: Optional[BaseException]):
        page = g.pop("page", None)
        if page is not None:
            page.close()

    @app.context_processor
    def _page_context():
        page = g.get("page")
        return {
            "identity": page.identity if page else None,
            "nav_links": NAV_LINKS,
            "brand_name": app.config.get("BRAND_NAME", "Impact Mining"),
        }


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(HTTPException)
    def _http_err(err: HTTPException):
        if _wants_json_response():
            return _json_error(err.description or err.name, err.code or 500, request_id=getattr(g, "request_id", "-"))
        if err.code in (403, 404):
            return render_template(f"errors/{err.code}.html"), err.code
        return err

    @app.errorhandler(Exception)
    def _uncaught(err: Exception):
        app.logger.exception("Unhandled error")
        if _wants_json_response():
            return _json_error("Internal Server Error", 500, request_id=getattr(g, "request_id", "-"))
        return render_template("errors/500.html"), 500


def _register_blueprints(app: Flask) -> None:
    from impactmining.blueprints.admin import bp as admin_bp
    from impactmining.blueprints.auth import bp as auth_bp
    from impactmining.blueprints.health import bp as health_bp
    from impactmining.blueprints.pages import bp as pages_bp

    app.register_blueprint(pages_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(health_bp)


# -----------------------------------------------------------------------------
# App Factory
# -----------------------------------------------------------------------------
def create_app(config_class: Optional[ConfigLike] = None) -> Flask:
    app = Flask(__name__)

    # ---- Config loading (missing backend settings are fatal)
    cfg = _resolve_config(config_class)
    app.config.from_object(cfg)
    cfg.init_app(app)

    app.config.setdefault("JSON_SORT_KEYS", False)
    app.config["APP_VERSION"] = __version__

    # ---- Proxy handling first
    _apply_proxyfix(app)

    # ---- Logging / Jinja helpers
    _configure_logging(app)
    register_filters(app)

    # ---- Core extensions
    init_all_extensions(app)
    if app.config["BACKEND_KIND"] == "sql":
        import impactmining.models  # noqa: F401  (register tables for create_all / migrate)
    _maybe_create_sqlite_tables(app)

    from impactmining.services.mailer import init_mailer

    init_mailer(app)

    # ---- Request lifecycle / errors
    _register_request_lifecycle(app)
    _register_error_handlers(app)

    # ---- Blueprints + CLI
    _register_blueprints(app)

    from impactmining.cli import register_cli

    register_cli(app)

    return app


__all__ = ["create_app", "__version__"]
