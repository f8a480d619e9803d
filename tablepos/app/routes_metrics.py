# routes_metrics.py

"""Prometheus metrics and /metrics endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

# Counters
http_requests_total = Counter(
    "http_requests_total", "Total HTTP requests", ["path", "method", "status"]
)

orders_opened_total = Counter(
    "orders_opened_total", "Total orders opened", ["order_type"]
)
orders_opened_total.labels(order_type="dine-in").inc(0)
orders_opened_total.labels(order_type="takeaway").inc(0)

orders_completed_total = Counter(
    "orders_completed_total", "Total orders completed", ["order_type"]
)
orders_completed_total.labels(order_type="dine-in").inc(0)
orders_completed_total.labels(order_type="takeaway").inc(0)

orders_deleted_total = Counter("orders_deleted_total", "Total open orders deleted")
orders_deleted_total.inc(0)

order_conflicts_total = Counter(
    "order_conflicts_total", "Uniqueness conflicts hit while writing orders", ["kind"]
)
order_conflicts_total.labels(kind="active_table").inc(0)
order_conflicts_total.labels(kind="takeaway_number").inc(0)

takeaway_number_retries_total = Counter(
    "takeaway_number_retries_total", "Takeaway numbers recomputed after a clash"
)
takeaway_number_retries_total.inc(0)

tables_healed_total = Counter(
    "tables_healed_total", "Table statuses corrected from open orders"
)
tables_healed_total.inc(0)

slow_queries_total = Counter(
    "slow_queries_total", "SQL statements slower than the configured threshold", ["db"]
)

rollup_runs_total = Counter("rollup_runs_total", "Total rollup runs")
rollup_runs_total.inc(0)

rollup_failures_total = Counter("rollup_failures_total", "Total rollup failures")
rollup_failures_total.inc(0)

router = APIRouter()


@router.get("/metrics")
async def metrics_endpoint() -> Response:
    """Expose Prometheus metrics."""
    data = generate_latest()
    return Response(data, media_type=CONTENT_TYPE_LATEST)
