"""FastAPI application for the Vitruvi construction-monitoring API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.middleware.base import BaseHTTPMiddleware

from vitruvi import __version__
from vitruvi.config import get_config
from vitruvi.core.logging import bind_request_context, configure_logging
from vitruvi.db.connection import close_db, init_db
from vitruvi.web.routes import (
    alerts,
    auth,
    health,
    notifications,
    portfolio,
    project_data,
    projects,
    reports,
    subscriptions,
)

configure_logging(get_config().log_level, get_config().log_format)
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_config()
    config.storage.upload_dir.mkdir(parents=True, exist_ok=True)
    await init_db()
    logger.info("app_started", environment=config.environment, version=__version__)
    yield
    await close_db()
    logger.info("app_stopped")


# Request Logging Middleware
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        bind_request_context(request_id)

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("request_failed", error=str(exc))
            raise

        logger.info("request_completed", status_code=response.status_code)
        response.headers["X-Request-ID"] = request_id
        return response


def create_app() -> FastAPI:
    config = get_config()

    app = FastAPI(
        title="VitruviAI API",
        description="Construction site photo analysis, project tracking and portfolio insights",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Prometheus Metrics
    Instrumentator().instrument(app).expose(app)

    # Exception Handlers
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("unhandled_error", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    # Include Routers
    app.include_router(auth.router)
    app.include_router(subscriptions.router)
    app.include_router(projects.router)
    app.include_router(project_data.router)
    app.include_router(portfolio.router)
    app.include_router(alerts.router)
    app.include_router(notifications.router)
    app.include_router(reports.router)
    app.include_router(health.router)

    @app.get("/")
    async def root():
        return {"name": "VitruviAI API", "version": __version__, "docs": "/docs"}

    return app


app = create_app()
