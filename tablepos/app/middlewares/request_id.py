import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

HEADER = "X-Request-ID"
MAX_LENGTH = 64

# Read by the log filter and the error envelope
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


def current_request_id() -> str | None:
    return request_id_ctx.get(None)


def resolve_request_id(request: Request) -> str:
    """Return the caller's request id when usable, otherwise a fresh one."""
    incoming = (request.headers.get(HEADER) or "").strip()
    if incoming and len(incoming) <= MAX_LENGTH and incoming.isprintable():
        return incoming
    return uuid.uuid4().hex


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag every request and response with a request id."""

    async def dispatch(self, request: Request, call_next):
        req_id = resolve_request_id(request)
        request.state.request_id = req_id
        token = request_id_ctx.set(req_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers[HEADER] = req_id
        return response
