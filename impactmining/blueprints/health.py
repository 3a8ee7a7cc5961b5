from __future__ import annotations

import os
import socket
import time
from datetime import datetime, timezone
from typing import Any, Dict

import requests
import stripe
from flask import Blueprint, current_app, jsonify

bp = Blueprint("health", __name__)

APP_STARTED_AT = time.time()
HOSTNAME = socket.gethostname()

GIT_SHA = os.getenv("GIT_SHA", "")[:12]


def _flag(name: str) -> bool:
    return str(current_app.config.get(name) or os.getenv(name, "0")).lower() in {"1", "true", "yes", "on"}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _overall_status(parts: Dict[str, Dict[str, Any]]) -> str:
    states = [p.get("status", "ok") for p in parts.values()]
    if any(s == "fail" for s in states):
        return "fail"
    if any(s == "degraded" for s in states):
        return "degraded"
    return "ok"


def _backend_check() -> Dict[str, Any]:
    kind = current_app.config.get("BACKEND_KIND")
    strict = _flag("STRICT_HEALTH")

    if kind == "sql":
        from impactmining.extensions import db

        try:
            db.session.execute(db.text("SELECT 1"))
            return {"status": "ok", "ok": True, "kind": kind}
        except Exception as e:
            db.session.rollback()
            return {"status": "fail", "ok": False, "kind": kind, "error": str(e)}

    status: Dict[str, Any] = {"status": "ok", "ok": True, "kind": kind}
    if _flag("HEALTH_DEEP_CHECKS"):
        url = f"{current_app.config['BACKEND_URL'].rstrip('/')}/auth/v1/health"
        try:
            r = requests.get(url, headers={"apikey": current_app.config["BACKEND_KEY"]}, timeout=3)
            r.raise_for_status()
        except requests.RequestException as e:
            status = {"status": "fail" if strict else "degraded", "ok": False, "kind": kind, "error": str(e)}
    return status


def _payments_check() -> Dict[str, Any]:
    provider = current_app.config.get("PAYMENT_PROVIDER")
    if provider != "stripe":
        return {"status": "ok", "ok": True, "provider": provider}

    key = current_app.config.get("STRIPE_SECRET_KEY") or ""
    if not key:
        return {"status": "degraded", "ok": False, "provider": provider, "reason": "no-secret-key"}
    status: Dict[str, Any] = {
        "status": "ok",
        "ok": True,
        "provider": provider,
        "mode": "live" if key.startswith(("sk_live_", "rk_live_")) else "test",
    }
    if _flag("HEALTH_DEEP_CHECKS"):
        try:
            acct = stripe.Account.retrieve(api_key=key)
            status["account"] = {
                "id": getattr(acct, "id", None),
                "charges_enabled": getattr(acct, "charges_enabled", None),
            }
        except stripe.StripeError as e:
            status = {
                "status": "fail" if _flag("STRICT_HEALTH") else "degraded",
                "ok": False,
                "provider": provider,
                "error": str(e),
            }
    return status


def _summary_payload() -> Dict[str, Any]:
    parts = {
        "backend": _backend_check(),
        "payments": _payments_check(),
    }
    return {
        "status": _overall_status(parts),
        "version": current_app.config.get("APP_VERSION"),
        "git": GIT_SHA,
        "hostname": HOSTNAME,
        "started_at": datetime.fromtimestamp(APP_STARTED_AT, tz=timezone.utc).isoformat(timespec="seconds"),
        "uptime_s": int(time.time() - APP_STARTED_AT),
        "now": _now_iso(),
        "parts": parts,
    }


@bp.get("/healthz")
def healthz():
    return jsonify({"status": "ok", "now": _now_iso(), "uptime_s": int(time.time() - APP_STARTED_AT)})


@bp.get("/health")
def health():
    p = _summary_payload()
    code = 200 if p["status"] != "fail" else 503
    return jsonify(p), code


@bp.get("/version")
def version():
    return jsonify({"version": current_app.config.get("APP_VERSION"), "git": GIT_SHA})
