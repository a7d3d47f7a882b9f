"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from prometheus_sync.api import renewal, subscriptions, webhooks
from prometheus_sync.core.config import settings
from prometheus_sync.services.container import build_services
from prometheus_sync.tasks import RenewalScheduler

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    services = build_services()
    await services.db.create_all()
    app.state.services = services
    logger.info("Database connected successfully")

    scheduler = None
    if settings.enable_scheduler:
        scheduler = RenewalScheduler(services.renewal_service)
        await scheduler.start()

    yield

    # Shutdown
    if scheduler is not None:
        await scheduler.stop()
    await services.close()
    app.state.services = None


app = FastAPI(
    title="Prometheus API",
    description="Microsoft Graph change-notification subscription service",
    version="0.1.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"Incoming request: {request.method} {request.url.path}")
    return await call_next(request)


# Register API routers
app.include_router(renewal.router)
app.include_router(subscriptions.router)
app.include_router(webhooks.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Prometheus API",
        "version": "0.1.0",
        "description": "Microsoft Graph change-notification subscription service",
        "docs_url": "/docs",
    }
