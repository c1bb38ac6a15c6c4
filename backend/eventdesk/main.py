"""
EventDesk API - Main Application Entry Point

Registration and scheduling for community events:
- Admission with duplicate, capacity, time-conflict and weekly-quota checks
- Staff-managed waitlists with explicit promotion
- Attendance tracking and audited removals
- Spreadsheet-shaped row store (in-memory or SQL backed)
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from eventdesk.api.errors import register_exception_handlers
from eventdesk.api.middleware import RequestLoggingMiddleware
from eventdesk.api.router import api_router
from eventdesk.core.config import get_settings
from eventdesk.core.logging import get_logger, setup_logging
from eventdesk.core.metrics import metrics_endpoint
from eventdesk.infrastructure.redis_client import close_redis
from eventdesk.services.container import Services, build_services


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Build the application. Pass `services` to run over an existing row store (tests)."""
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        logger = get_logger(__name__)
        logger.info(
            "application_starting",
            app=settings.APP_NAME,
            version=settings.APP_VERSION,
            environment=settings.ENVIRONMENT,
            row_store=settings.ROW_STORE_BACKEND,
        )

        owns_services = getattr(app.state, "services", None) is None
        if owns_services:
            app.state.services = await build_services(settings)

        yield

        if owns_services:
            await app.state.services.close()
        await close_redis()
        logger.info("application_shutdown")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Event registration, waitlists and attendance over a spreadsheet-shaped store",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint for Docker and load balancers."""
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "row_store": settings.ROW_STORE_BACKEND,
        }

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return metrics_endpoint()

    return app


app = create_app()
