import atexit
import logging
import os
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, List, Optional

from blinker import Namespace
from flask_mail import Mail, Message
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect

log = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Core singletons
# ─────────────────────────────────────────────────────────────
db = SQLAlchemy()
migrate = Migrate()
mail = Mail()
csrf = CSRFProtect()


# ─────────────────────────────────────────────────────────────
# Background tasks + clean shutdown
# ─────────────────────────────────────────────────────────────
_BG_MAX_WORKERS = int(os.getenv("BG_MAX_WORKERS", "4"))
_EXECUTOR = ThreadPoolExecutor(max_workers=_BG_MAX_WORKERS)


def run_bg(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
    return _EXECUTOR.submit(func, *args, **kwargs)


@atexit.register
def _shutdown_executor() -> None:
    _EXECUTOR.shutdown(wait=False, cancel_futures=True)


# ─────────────────────────────────────────────────────────────
# Email helper
# ─────────────────────────────────────────────────────────────
def send_email_async(
    app: Any,
    subject: str,
    recipients: List[str],
    *,
    body: str,
    html: Optional[str] = None,
    sender: Optional[str] = None,
    max_retries: int = 2,
    retry_backoff: float = 0.5,
) -> Future:
    def _job() -> bool:
        # Always run inside an app context
        with app.app_context():
            logger = getattr(app, "logger", log)

            msg = Message(
                subject=subject,
                recipients=recipients,
                sender=sender or app.config.get("MAIL_DEFAULT_SENDER"),
                body=body,
                html=html,
            )

            attempts = 0
            while True:
                try:
                    mail.send(msg)
                    return True
                except Exception as e:
                    attempts += 1
                    if attempts > max_retries:
                        logger.error("Email send permanently failed: %s", e, exc_info=True)
                        return False
                    logger.warning("Mail send failed (attempt %s/%s): %s", attempts, max_retries, e)
                    time.sleep(float(retry_backoff) * attempts)

    return run_bg(_job)


# ─────────────────────────────────────────────────────────────
# Lightweight signals
# ─────────────────────────────────────────────────────────────
_signals = Namespace()
donation_recorded = _signals.signal("donation-recorded")
proposal_submitted = _signals.signal("proposal-submitted")
story_submitted = _signals.signal("story-submitted")


__all__ = [
    "db",
    "migrate",
    "mail",
    "csrf",
    "run_bg",
    "init_all_extensions",
    "send_email_async",
    "donation_recorded",
    "proposal_submitted",
    "story_submitted",
]


# ─────────────────────────────────────────────────────────────
# Init all extensions
# ─────────────────────────────────────────────────────────────
def init_all_extensions(app: Any) -> None:
    # SQLAlchemy is only bound when the SQL backend serves the data.
    if app.config.get("BACKEND_KIND") == "sql":
        db.init_app(app)
        migrate.init_app(app, db, compare_type=True, render_as_batch=True)
    mail.init_app(app)
    csrf.init_app(app)
