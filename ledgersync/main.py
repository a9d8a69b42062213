# ledgersync/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.ext.asyncio import async_sessionmaker

from ledgersync.core.config import Settings, get_settings
from ledgersync.core.enums import Provider
from ledgersync.core.logging_config import configure_logging
from ledgersync.core.utils import Clock, utc_now
from ledgersync.database import create_engine_and_sessionmaker, create_tables
from ledgersync.integrations.platforms.quickbooks import QuickBooksClient
from ledgersync.integrations.registry import ProviderRegistry
from ledgersync.routes import health, scheduler as scheduler_routes, sync as sync_routes, webhooks
from ledgersync.scheduler import ScheduleManager
from ledgersync.services.error_tracking import ErrorTracker
from ledgersync.services.monitoring import MonitoringService
from ledgersync.services.sync_executor import SyncExecutor
from ledgersync.services.webhook_handler import WebhookHandler
from ledgersync.services.webhook_verifier import WebhookVerifier

logger = logging.getLogger(__name__)


def build_registry(settings: Settings) -> ProviderRegistry:
    """Register a client for every provider with credentials present"""
    registry = ProviderRegistry()
    if settings.quickbooks_configured:
        registry.register_provider(Provider.QUICKBOOKS.value, QuickBooksClient.from_settings(settings))
    else:
        logger.warning("QuickBooks credentials not configured - QuickBooks sync disabled")
    return registry


def init_app_state(
    app: FastAPI,
    settings: Settings,
    session_factory: async_sessionmaker,
    registry: ProviderRegistry,
    clock: Clock = utc_now,
    **manager_kwargs,
) -> None:
    """Wire services onto app.state. The scheduler is built but not started."""
    monitoring = MonitoringService(settings=settings, clock=clock)
    error_tracker = ErrorTracker(clock=clock)
    executor = SyncExecutor(session_factory, registry, monitoring=monitoring, error_tracker=error_tracker, clock=clock)
    manager = ScheduleManager(executor, settings=settings, monitoring=monitoring, clock=clock, **manager_kwargs)
    handler = WebhookHandler(
        WebhookVerifier(settings.QBO_WEBHOOK_VERIFIER),
        executor,
        session_factory,
        error_tracker=error_tracker,
    )

    async def database_check() -> bool:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        return True

    async def quickbooks_check() -> bool:
        return Provider.QUICKBOOKS.value in registry

    async def scheduler_check() -> bool:
        return manager.is_running

    monitoring.register_health_check("database", database_check)
    monitoring.register_health_check("quickbooks", quickbooks_check)
    monitoring.register_health_check("sync_scheduler", scheduler_check)

    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.registry = registry
    app.state.monitoring = monitoring
    app.state.error_tracker = error_tracker
    app.state.schedule_manager = manager
    app.state.webhook_handler = handler


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    engine, session_factory = create_engine_and_sessionmaker(settings.DATABASE_URL)
    if engine.dialect.name == "sqlite":
        # Postgres schemas are managed by Alembic
        await create_tables(engine)

    init_app_state(app, settings, session_factory, build_registry(settings))
    await app.state.schedule_manager.start_scheduler()
    logger.info(f"ledgersync started ({settings.ENVIRONMENT})")
    try:
        yield
    finally:
        await app.state.schedule_manager.stop_scheduler()
        await engine.dispose()
        logger.info("ledgersync stopped")


def create_app(lifespan_handler=lifespan) -> FastAPI:
    app = FastAPI(title="ledgersync", lifespan=lifespan_handler)

    app.include_router(webhooks.router)  # Webhooks authenticate by signature
    app.include_router(scheduler_routes.router)
    app.include_router(sync_routes.router)
    app.include_router(health.router)
    return app


app = create_app()
