"""
FastAPI application entry point.

Configures middleware, lifespan events, error mapping, and mounts all routers.
Run locally: uvicorn pulse.main:app --reload
Production:  gunicorn pulse.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from langchain_core.language_models.chat_models import BaseChatModel
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from pulse.api.routes import admin, feed, health, progress
from pulse.core.config import Settings, get_settings
from pulse.core.errors import PulseError
from pulse.core.logging import get_logger, setup_logging
from pulse.core.security import limiter
from pulse.models.database import Database
from pulse.services.completion import build_chat_model

logger = get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    db: Database | None = None,
    llm: BaseChatModel | None = None,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown events."""
        setup_logging(settings)
        database = db or Database(settings.database_url, echo=(settings.app_env == "development"))
        await database.open()
        if settings.is_sqlite:
            await database.create_all()
        app.state.db = database
        app.state.llm = llm or build_chat_model(settings)
        logger.info(
            "app_starting",
            environment=settings.app_env,
            database=settings.database_url[:30] + "...",
        )

        yield

        logger.info("app_shutting_down")
        await database.close()

    app = FastAPI(
        title="Product Pulse",
        description="Daily product-launch digest: stories, strategy challenges, streaks",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.app_env != "production" else None,
        redoc_url="/redoc" if settings.app_env != "production" else None,
    )

    # ── Middleware ──────────────────────────────────────────────
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Rate limiting ──────────────────────────────────────────
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # ── Domain errors → HTTP ───────────────────────────────────
    @app.exception_handler(PulseError)
    async def pulse_error_handler(request: Request, exc: PulseError) -> JSONResponse:
        log = logger.warning if exc.status_code < 500 else logger.error
        log("request_failed", path=request.url.path, code=exc.code, error=exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "code": exc.code},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_error", path=request.url.path)
        message = "Internal server error" if settings.app_env == "production" else str(exc)
        return JSONResponse(status_code=500, content={"error": message, "code": "internal"})

    # ── Routes ─────────────────────────────────────────────────
    app.include_router(health.router)
    app.include_router(feed.router, prefix="/api")
    app.include_router(progress.router, prefix="/api")
    app.include_router(admin.router, prefix="/api")

    @app.get("/")
    async def root():
        return {
            "service": "Product Pulse",
            "version": "0.1.0",
            "docs": "/docs",
            "health": "/healthz/",
        }

    return app


app = create_app()
