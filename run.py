#!/usr/bin/env python3
from __future__ import annotations

"""
Impact Mining dev launcher.

- Local dev:             ./run.py --env development
- Local dev (no reload): ./run.py --env development --no-reload
- Gunicorn:              gunicorn "wsgi:app"
"""

import argparse
import logging
import os
import socket
import sys

from dotenv import load_dotenv

_TRUTHY = {"1", "true", "yes", "on", "y"}
_FALSY = {"0", "false", "no", "off", "n"}

CONFIG_ALIASES = {
    "dev": "impactmining.config.DevelopmentConfig",
    "development": "impactmining.config.DevelopmentConfig",
    "test": "impactmining.config.TestingConfig",
    "testing": "impactmining.config.TestingConfig",
    "prod": "impactmining.config.ProductionConfig",
    "production": "impactmining.config.ProductionConfig",
}


def _sanitize_bool_equals(argv: list[str]) -> list[str]:
    """--debug=false -> --no-debug, so systemd-style flags won't crash argparse."""
    out: list[str] = []
    for a in argv:
        if a.startswith("--debug="):
            v = a.split("=", 1)[1].strip().lower()
            out.append("--debug" if v in _TRUTHY else "--no-debug" if v in _FALSY else a)
            continue
        out.append(a)
    return out


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run the Impact Mining Flask app.")
    p.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"))
    p.add_argument("--port", type=int, default=int(os.getenv("PORT", "5000")))
    p.add_argument("--env", choices=["development", "testing", "production"], default=os.getenv("APP_ENV", "development"))
    p.add_argument("--config", help="Explicit dotted config path or alias (dev/prod/test)")
    p.add_argument("--debug", action=argparse.BooleanOptionalAction, default=None, help="Force debug on/off (default: on in dev).")
    p.add_argument("--no-reload", action="store_true", help="Disable the Werkzeug reloader.")
    p.add_argument("--force", dest="force_run", action="store_true", help="Start even if the port looks busy.")
    return p.parse_args(_sanitize_bool_equals(sys.argv[1:]))


def _port_in_use(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.settimeout(0.3)
        return s.connect_ex((host if host != "0.0.0.0" else "127.0.0.1", port)) == 0


def main() -> None:
    load_dotenv(override=False)
    args = parse_args()

    os.environ["APP_ENV"] = args.env
    config_path = CONFIG_ALIASES.get((args.config or args.env).lower(), args.config)
    debug = args.debug if args.debug is not None else args.env == "development"

    if not args.force_run and _port_in_use(args.host, args.port):
        logging.error("Port %s already in use (host=%s). Stop the other process or use --force.", args.port, args.host)
        raise SystemExit(2)

    from impactmining import create_app

    app = create_app(config_path)
    app.run(host=args.host, port=args.port, debug=debug, use_reloader=debug and not args.no_reload)


if __name__ == "__main__":
    main()
