from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from admin import router as admin_router
from core import schema
from core.db import Database
from core.errors import ROUTE_NOT_FOUND_MESSAGE, register_exception_handlers
from core.log import configure_logging
from core.middleware import (
    FixedWindowRateLimiter,
    RateLimitMiddleware,
    RequestTimeoutMiddleware,
    SecurityHeadersMiddleware,
)
from core.settings import Settings, load_settings
from tracking import router as tracking_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    missing = settings.missing_required()
    if missing:
        logger.error("config_missing variables=%s", ",".join(missing))
        raise RuntimeError(f"Missing required configuration: {', '.join(missing)}")

    # Storage trouble at boot is logged, never fatal.
    database: Database = app.state.database
    await database.connect()
    await schema.init_schema(database)
    logger.info("server_started port=%s", settings.port)
    try:
        yield
    finally:
        await database.close()
        logger.info("server_stopped")


def create_app(settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Search Tracker API",
        version="1.0.0",
        description="Tracks mobile number searches and serves test results.",
        docs_url="/api-docs",
        redoc_url=None,
        openapi_url="/api-docs/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database or Database(settings)

    register_exception_handlers(app)

    # The last middleware added runs first: CORS -> security headers -> rate limit -> timeout -> routes.
    app.add_middleware(RequestTimeoutMiddleware, timeout_s=settings.request_timeout_s)
    app.add_middleware(
        RateLimitMiddleware,
        limiter=FixedWindowRateLimiter(settings.rate_limit_max, settings.rate_limit_window_s),
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    )

    app.include_router(tracking_router.router, tags=["tracking"])
    app.include_router(admin_router.router, tags=["admin"])

    @app.get("/health", tags=["health"])
    def health() -> dict:
        timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        return {"status": "OK", "timestamp": timestamp.replace("+00:00", "Z")}

    @app.options("/{path:path}", include_in_schema=False)
    def preflight(path: str) -> Response:
        return Response(status_code=200)

    async def route_not_found(request: Request) -> Response:
        raise HTTPException(status_code=404, detail=ROUTE_NOT_FOUND_MESSAGE)

    # Registered last so every real route matches first. A plain Starlette
    # route without `methods` accepts every verb, including TRACE and WebDAV ones.
    app.add_route("/{path:path}", route_not_found, include_in_schema=False)

    return app


app = create_app()


if __name__ == "__main__":
    # uvicorn drains in-flight requests on SIGINT/SIGTERM before the lifespan closes the pool.
    uvicorn.run(app, host=app.state.settings.host, port=app.state.settings.port)
