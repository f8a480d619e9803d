"""Response envelopes shared by every route.

Success: ``{"ok": true, "data": ...}``. Failure: ``{"ok": false,
"request_id": ..., "error": {"code", "message", "details"?}}``.
"""

from typing import Any, Dict

from fastapi.responses import JSONResponse

from ..errors import PosError


def ok(data: Any) -> Dict[str, Any]:
    """Return a success envelope."""
    return {"ok": True, "data": data}


def err(
    code: int | str,
    message: str,
    details: Dict[str, Any] | None = None,
) -> Dict[str, Any]:
    """Return an error envelope tagged with the current request id."""
    from ..middlewares.request_id import current_request_id

    error: Dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return {"ok": False, "request_id": current_request_id(), "error": error}


def error_response(exc: PosError) -> JSONResponse:
    """Render a typed order/table error with its own HTTP status."""
    return JSONResponse(
        err(exc.code, exc.message, exc.details or None), status_code=exc.status_code
    )
