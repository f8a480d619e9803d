# main.py

"""FastAPI application for the restaurant POS order and table service."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from redis.asyncio import from_url
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import get_settings

from . import db as app_db
from .errors import PosError
from .middlewares import LoggingMiddleware, PrometheusMiddleware, RequestIdMiddleware
from .obs import capture_exception, init_sentry
from .obs.logging import configure_logging
from .routes_metrics import router as metrics_router
from .routes_orders import router as orders_router
from .routes_restaurants import router as restaurants_router
from .routes_summaries import router as summaries_router
from .utils.responses import err, error_response, ok

settings = get_settings()
configure_logging(settings.log_level)
logger = logging.getLogger("api")
init_sentry(env=settings.env)

app = FastAPI(title="TablePOS API", version="1.0.0")
app.state.redis = from_url(settings.redis_url, decode_responses=True)

app.add_middleware(PrometheusMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIdMiddleware)


def _restaurant(request: Request) -> str | None:
    return request.path_params.get("restaurant_id")


@app.exception_handler(PosError)
async def pos_error_handler(request: Request, exc: PosError):
    logger.warning(
        "%s: %s",
        exc.code,
        exc.message,
        extra={
            "status": exc.status_code,
            "route": request.url.path,
            "restaurant": _restaurant(request),
        },
    )
    return error_response(exc)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(
        exc.detail,
        extra={
            "status": exc.status_code,
            "route": request.url.path,
            "restaurant": _restaurant(request),
        },
    )
    return JSONResponse(err(exc.status_code, exc.detail), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning(
        "request validation failed",
        extra={
            "status": 422,
            "route": request.url.path,
            "restaurant": _restaurant(request),
        },
    )
    details = {"errors": [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]}
    return JSONResponse(
        err("VALIDATION_ERROR", "invalid request", details), status_code=422
    )


@app.exception_handler(Exception)
async def general_error_handler(request: Request, exc: Exception):
    logger.exception(
        "unhandled_error",
        extra={
            "status": 500,
            "route": request.url.path,
            "restaurant": _restaurant(request),
        },
    )
    capture_exception(exc, restaurant=_restaurant(request))
    return JSONResponse(err(500, "Internal Server Error"), status_code=500)


@app.on_event("startup")
async def create_dev_schema() -> None:
    """Create tables on a local SQLite database; migrations do it elsewhere."""

    if settings.env != "dev" or not settings.database_url.startswith("sqlite"):
        return
    if app_db.engine is None:
        app_db.init_engine()
    await app_db.create_schema(app_db.engine)


@app.get("/health")
async def health() -> dict:
    return ok({"status": "ok"})


app.include_router(restaurants_router)
app.include_router(orders_router)
app.include_router(summaries_router)
app.include_router(metrics_router)
