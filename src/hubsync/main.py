"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, Sentry,
a lifespan that wires the sync components onto app.state, and the API router.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from functools import partial

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from src.hubsync.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.hubsync.api.v1.router import router as v1_router
from src.hubsync.config import get_settings
from src.hubsync.core.database import close_db, get_session_factory
from src.hubsync.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.hubsync.crm.hubspot import HubSpotClient
from src.hubsync.source.merge import CompanyMerger
from src.hubsync.source.reader import SourceReader
from src.hubsync.sync.reservation import InMemoryReservationGuard


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: wire components on startup, dispose the engine on shutdown."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    # One guard per process; it is the only state shared between requests
    app.state.reservation_guard = InMemoryReservationGuard()

    try:
        session_factory = get_session_factory()
        app.state.source_reader = SourceReader(
            session_factory,
            order_statuses=settings.order_statuses,
            page_size=settings.PAGE_SIZE,
        )
        app.state.company_merger = CompanyMerger(session_factory)
        log.info("startup.source_initialized")
    except Exception:
        log.warning("startup.source_init_failed", exc_info=True)
        app.state.source_reader = None
        app.state.company_merger = None

    # A client per request; HubSpotClient raises ConfigurationError at
    # construction when the token is missing, which the endpoints report.
    app.state.crm_factory = partial(HubSpotClient.from_settings, settings)
    if not settings.HUBSPOT_PRIVATE_APP_TOKEN:
        log.warning("startup.hubspot_token_missing")

    log.info("startup.complete", environment=settings.ENVIRONMENT.value)
    yield

    await close_db()
    log.info("shutdown.complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="HubSync API",
        version="0.1.0",
        description="Storefront company and admin user sync into HubSpot",
        lifespan=lifespan,
    )

    # Metrics wraps logging, which wraps CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(LoggingMiddleware)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        return get_metrics_response()

    return app


app = create_app()
