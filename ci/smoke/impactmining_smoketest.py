#!/usr/bin/env python3
"""
Impact Mining smoke check against a running deployment.

Hits the public pages and the health endpoints, with retry/backoff and
concurrency. Exit code 1 when any required check fails.

    python ci/smoke/impactmining_smoketest.py --base https://impactmining.example
"""

from __future__ import annotations

import argparse
import concurrent.futures as cf
import sys
import time
from dataclasses import dataclass
from typing import Literal

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

OK_CODES = {200, 301, 302, 303, 307, 308}

GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
DIM = "\033[2m"
RESET = "\033[0m"

Kind = Literal["page", "json"]
Group = Literal["core", "pages", "auth"]


@dataclass(frozen=True)
class Check:
    path: str
    kind: Kind = "page"
    required: bool = True
    group: Group = "core"
    expect: str = ""


def checks() -> list[Check]:
    return [
        Check("/healthz", "json", True, "core"),
        Check("/health", "json", True, "core"),
        Check("/version", "json", True, "core"),
        Check("/", "page", True, "pages", expect="Total Raised"),
        Check("/about", "page", True, "pages"),
        Check("/projects", "page", True, "pages"),
        Check("/stories", "page", True, "pages", expect="Impact Stories"),
        Check("/donate", "page", True, "pages", expect="Make a Donation"),
        Check("/submit", "page", True, "pages", expect="Step 1"),
        Check("/dashboard", "page", False, "pages"),
        Check("/sign-in", "page", True, "auth"),
        Check("/sign-up", "page", True, "auth"),
    ]


def make_session(retries: int, timeout: float) -> requests.Session:
    sess = requests.Session()
    retry = Retry(
        total=retries,
        connect=retries,
        read=retries,
        backoff_factor=0.4,
        status_forcelist=[429, 500, 502, 504],
        allowed_methods=["GET"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=10, pool_maxsize=20)
    sess.mount("http://", adapter)
    sess.mount("https://", adapter)
    sess.headers.update({"User-Agent": "ImpactMiningSmoke/1.0"})
    sess._timeout = timeout  # type: ignore[attr-defined]
    return sess


def fmt(dt: float) -> str:
    ms = dt * 1000
    return f"{ms:.0f}ms" if ms < 1000 else f"{ms/1000:.2f}s"


def wait_for_healthz(sess: requests.Session, base: str, seconds: float) -> None:
    url = base.rstrip("/") + "/healthz"
    deadline = time.time() + seconds
    while time.time() < deadline:
        try:
            if sess.get(url, timeout=sess._timeout).status_code == 200:  # type: ignore[attr-defined]
                return
        except requests.RequestException:
            pass
        time.sleep(0.5)
    print(f"{YELLOW}⚠ /healthz not reachable yet via {base}{RESET}")


def run_check(sess: requests.Session, base: str, check: Check):
    url = base.rstrip("/") + check.path
    try:
        t0 = time.perf_counter()
        r = sess.get(url, timeout=sess._timeout, allow_redirects=False)  # type: ignore[attr-defined]
        dt = time.perf_counter() - t0
    except requests.RequestException as e:
        return check, False, f"request error: {e}", 0.0

    if r.status_code not in OK_CODES:
        return check, False, f"HTTP {r.status_code}", dt

    if check.kind == "json":
        try:
            payload = r.json()
        except ValueError:
            return check, False, "not JSON", dt
        status = payload.get("status") if isinstance(payload, dict) else None
        if status not in (None, "ok", "degraded"):
            return check, False, f"status={status}", dt
        return check, True, f"status={status or 'n/a'}", dt

    if check.expect and check.expect not in (r.text or ""):
        return check, False, f"missing {check.expect!r}", dt
    return check, True, f"HTTP {r.status_code}", dt


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Impact Mining smoke checks")
    ap.add_argument("--base", default="http://localhost:5000")
    ap.add_argument("--groups", default="core,pages,auth", help="Comma-separated: core,pages,auth")
    ap.add_argument("--timeout", type=float, default=8.0)
    ap.add_argument("--retries", type=int, default=2)
    ap.add_argument("--workers", type=int, default=6)
    ap.add_argument("--warmup", type=float, default=10.0, help="Seconds to wait for /healthz first")
    args = ap.parse_args(argv)

    groups = {g.strip() for g in args.groups.split(",") if g.strip()}
    selected = [c for c in checks() if c.group in groups]

    sess = make_session(args.retries, args.timeout)
    wait_for_healthz(sess, args.base, args.warmup)

    failures = 0
    with cf.ThreadPoolExecutor(max_workers=args.workers) as pool:
        futures = [pool.submit(run_check, sess, args.base, c) for c in selected]
        for fut in cf.as_completed(futures):
            check, ok, detail, dt = fut.result()
            if ok:
                print(f"{GREEN}✔{RESET} {check.path:<14} {detail} {DIM}{fmt(dt)}{RESET}")
            elif check.required:
                failures += 1
                print(f"{RED}✘{RESET} {check.path:<14} {detail}")
            else:
                print(f"{YELLOW}⚠{RESET} {check.path:<14} {detail}")

    if failures:
        print(f"{RED}{failures} required check(s) failed{RESET}")
        return 1
    print(f"{GREEN}All required checks passed{RESET}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
