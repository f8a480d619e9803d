"""Prometheus middleware for HTTP request metrics."""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ..routes_metrics import http_requests_total


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Increment HTTP request counters keyed by route template."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        route = request.scope.get("route")
        # Route templates keep restaurant and order ids out of label values.
        route_path = route.path if route else "unmatched"
        http_requests_total.labels(
            path=route_path,
            method=request.method,
            status=str(response.status_code),
        ).inc()
        return response
