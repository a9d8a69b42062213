from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from ledgersync.scheduler import ScheduleManager
from ledgersync.services.monitoring import MonitoringService
from ledgersync.services.webhook_handler import WebhookHandler


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with request.app.state.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_schedule_manager(request: Request) -> ScheduleManager:
    return request.app.state.schedule_manager


def get_monitoring(request: Request) -> MonitoringService:
    return request.app.state.monitoring


def get_webhook_handler(request: Request) -> WebhookHandler:
    return request.app.state.webhook_handler
