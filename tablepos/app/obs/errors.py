"""Error reporting through Sentry."""

from __future__ import annotations

import logging
from typing import Optional

import sentry_sdk

from config import get_settings

from ..middlewares.request_id import current_request_id

logger = logging.getLogger("obs")


def init_sentry(dsn: Optional[str] = None, env: Optional[str] = None) -> bool:
    """Start the Sentry client when a DSN is configured; return whether it did."""
    settings = get_settings()
    dsn = dsn or settings.error_dsn
    if not dsn:
        logger.info("error_dsn not set; error reporting disabled")
        return False
    sentry_sdk.init(dsn=dsn, environment=env or settings.env, send_default_pii=False)
    return True


def capture_exception(exc: BaseException, restaurant: str | None = None) -> str | None:
    """Report ``exc`` tagged with the request id and restaurant.

    Returns the Sentry event id, or ``None`` when reporting is disabled.
    """
    if not sentry_sdk.get_client().is_active():
        return None
    with sentry_sdk.new_scope() as scope:
        scope.set_tag("req_id", current_request_id())
        if restaurant:
            scope.set_tag("restaurant", restaurant)
        return sentry_sdk.capture_exception(exc)
