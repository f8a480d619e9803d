import json
import logging
import random
import time
import uuid
from datetime import datetime, timezone

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from config import get_settings

from ..utils.responses import err
from .request_id import HEADER, request_id_ctx, resolve_request_id

# Customer contact fields masked in logged bodies and query strings
PII_KEYS = {"customer_phone", "customer_name", "phone", "email"}
LOG_SAMPLE_2XX = get_settings().log_sample_2xx

logger = logging.getLogger("api")


def _restaurant_from_path(path: str) -> str | None:
    parts = path.strip("/").split("/")
    if len(parts) >= 3 and parts[:2] == ["api", "restaurants"]:
        return parts[2]
    return None


def _redact(obj):
    if isinstance(obj, dict):
        return {
            k: ("***" if k.lower() in PII_KEYS else _redact(v)) for k, v in obj.items()
        }
    if isinstance(obj, list):
        return [_redact(v) for v in obj]
    return obj


async def _buffer_body(request: Request):
    """Read the body once, replay it downstream and return it decoded."""
    raw = await request.body()

    async def receive() -> dict:
        return {"type": "http.request", "body": raw, "more_body": False}

    request._receive = receive
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


def _sampled_out(status: int) -> bool:
    return 200 <= status < 300 and random.random() >= LOG_SAMPLE_2XX


class LoggingMiddleware(BaseHTTPMiddleware):
    """Log one inbound and one outbound JSON line per request."""

    async def dispatch(self, request: Request, call_next):
        req_id = getattr(request.state, "request_id", None)
        token = None
        if not req_id:
            # Running without RequestIdMiddleware
            req_id = resolve_request_id(request)
            request.state.request_id = req_id
            token = request_id_ctx.set(req_id)

        restaurant = _restaurant_from_path(request.url.path)
        inbound = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": "INFO",
            "req_id": req_id,
            "restaurant": restaurant,
            "method": request.method,
            "path": request.url.path,
            "ip": request.client.host if request.client else None,
        }
        if request.query_params:
            inbound["query"] = _redact(dict(request.query_params))
        body = await _buffer_body(request)
        if body is not None:
            inbound["body"] = _redact(body)

        start = time.perf_counter()
        error_id = None
        try:
            response = await call_next(request)
        except Exception:
            error_id = uuid.uuid4().hex
            logger.exception(json.dumps({"req_id": req_id, "error_id": error_id}))
            payload = err(500, "Internal Server Error")
            payload["error_id"] = error_id
            response = JSONResponse(payload, status_code=500)

        status = response.status_code
        outbound = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": "ERROR" if status >= 500 else "INFO",
            "req_id": req_id,
            "restaurant": restaurant,
            "route": request.url.path,
            "status": status,
            "latency_ms": int((time.perf_counter() - start) * 1000),
        }
        if error_id:
            outbound["error_id"] = error_id

        if not _sampled_out(status):
            logger.info(json.dumps(inbound))
            if status >= 500:
                logger.error(json.dumps(outbound))
            else:
                logger.info(json.dumps(outbound))

        response.headers[HEADER] = req_id
        if token is not None:
            request_id_ctx.reset(token)
        return response
