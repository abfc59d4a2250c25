"""
Main FastAPI application for the NFL data sync API.

Run with:
    uvicorn nfl_data_sync.main:app
    python -m nfl_data_sync.main        # honours SSL_CERTFILE / SSL_KEYFILE
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from nfl_data_sync.api.routes import api_router, health
from nfl_data_sync.core.config import Settings, get_settings
from nfl_data_sync.core.database import Database, describe_url
from nfl_data_sync.core.logging import configure_logging, get_logger
from nfl_data_sync.core.middleware import CorrelationIdMiddleware
from nfl_data_sync.core.scheduler import SyncScheduler
from nfl_data_sync.core.tracing import setup_tracing
from nfl_data_sync.services.sportsdata import SportsDataClient
from nfl_data_sync.services.sync.orchestrator import SyncOrchestrator

logger = get_logger(__name__)


def get_rate_limit_key(request: Request) -> str:
    """
    Get the rate limit key for a request.

    Uses IP address, with fallback to X-Forwarded-For for proxied requests.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    settings: Settings = app.state.settings
    database: Database = app.state.database
    orchestrator: SyncOrchestrator = app.state.orchestrator

    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({describe_url(database.url)})")

    # Unreachable database at start-up is fatal
    database.create_collections()

    scheduler: Optional[SyncScheduler] = None
    if settings.RUN_SCHEDULER_IN_API:
        scheduler = SyncScheduler(orchestrator, interval_hours=settings.SYNC_INTERVAL_HOURS)
        await scheduler.start()
    app.state.scheduler = scheduler

    logger.info("Application started")

    yield

    if scheduler is not None:
        await scheduler.stop()
    elif orchestrator.is_running:
        logger.info("Waiting for the in-flight sync to finish before shutdown")
        await orchestrator.wait_until_idle()
    await app.state.client.close()
    database.dispose()
    logger.info("Shutting down application")


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    client: Optional[SportsDataClient] = None,
    orchestrator: Optional[SyncOrchestrator] = None,
) -> FastAPI:
    """
    Build the application around explicitly owned resources.

    Args:
        settings: Application settings (defaults to the cached environment settings)
        database: Database handle (built from settings when omitted)
        client: SportsData.io client (built from settings when omitted)
        orchestrator: Sync orchestrator (built from the above when omitted)

    Returns:
        Configured FastAPI application

    Raises:
        ValueError: In production when required secrets are missing
    """
    settings = settings or get_settings()
    configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
    settings.ensure_startup_secrets()

    database = database or Database.from_settings(settings)
    client = client or SportsDataClient.from_settings(settings)
    orchestrator = orchestrator or SyncOrchestrator(database, client, settings)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        description="NFL data from SportsData.io, synced into a document store and served read-only",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database
    app.state.client = client
    app.state.orchestrator = orchestrator
    app.state.scheduler = None

    limiter = Limiter(
        key_func=get_rate_limit_key,
        default_limits=[settings.RATE_LIMIT_DEFAULT],
        enabled=settings.RATE_LIMIT_ENABLED,
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.add_middleware(CorrelationIdMiddleware)

    if settings.METRICS_ENABLED:
        Instrumentator().instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)
        logger.info("Prometheus metrics initialized at /metrics")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(api_router, prefix="/api/v1")

    setup_tracing(settings, app=app, engine=database.engine, client=client)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = app.state.settings
    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        ssl_certfile=settings.SSL_CERTFILE,
        ssl_keyfile=settings.SSL_KEYFILE,
    )
