"""SQL timing hooks: slow statements are logged and counted."""

from __future__ import annotations

import hashlib
import logging
import time

from sqlalchemy import event

from config import get_settings

from ..routes_metrics import slow_queries_total

MAX_SQL = 200

logger = logging.getLogger("obs")


def _shorten(statement: str) -> str:
    sql = " ".join(statement.split())
    return sql if len(sql) <= MAX_SQL else sql[: MAX_SQL - 3] + "..."


def add_query_logger(engine, label: str) -> None:
    """Time every statement on ``engine``; report those over ``slow_query_ms``."""
    target = getattr(engine, "sync_engine", engine)
    threshold = get_settings().slow_query_ms

    @event.listens_for(target, "before_cursor_execute")
    def _start(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_start", []).append(time.perf_counter())

    @event.listens_for(target, "after_cursor_execute")
    def _stop(conn, cursor, statement, parameters, context, executemany):
        elapsed_ms = (time.perf_counter() - conn.info["query_start"].pop()) * 1000
        if elapsed_ms <= threshold:
            return
        slow_queries_total.labels(db=label).inc()
        logger.warning(
            "slow query %dms db=%s sql=%s params=%s",
            int(elapsed_ms),
            label,
            _shorten(statement),
            hashlib.sha256(repr(parameters).encode()).hexdigest()[:8],
        )
