"""
Manual sync endpoints
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ledgersync.core.enums import EntityType, SyncDirection
from ledgersync.core.exceptions import (
    ProviderNotConfiguredError,
    ProviderRejectedError,
    ProviderUnavailableError,
    ScheduleNotFoundError,
)
from ledgersync.dependencies import get_db, get_schedule_manager
from ledgersync.scheduler import ScheduleManager
from ledgersync.schemas.schedule import SyncHistoryEntry
from ledgersync.schemas.sync import ExternalMappingRead, SyncResult
from ledgersync.services.mapping_store import MappingStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.post("/{provider}/run", response_model=SyncHistoryEntry)
async def run_provider_now(provider: str, manager: ScheduleManager = Depends(get_schedule_manager)):
    """Run every configured entity type for a provider immediately"""
    try:
        entry = await manager.run_now(provider)
    except ScheduleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if entry is None:
        raise HTTPException(status_code=409, detail=f"Sync for {provider} is already running")
    return entry


@router.post("/{provider}/{entity_type}", response_model=SyncResult)
async def run_single_pass(
    provider: str,
    entity_type: EntityType,
    direction: SyncDirection = Query(SyncDirection.BIDIRECTIONAL),
    manager: ScheduleManager = Depends(get_schedule_manager),
):
    """Run one sync pass for a single entity type; 409 while the provider is busy"""
    try:
        result = await manager.run_pass(provider, entity_type.value, direction)
    except ProviderNotConfiguredError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ProviderUnavailableError as e:
        logger.error(f"{provider} unavailable during manual sync: {str(e)}")
        raise HTTPException(status_code=503, detail=f"{provider} is unavailable")
    except ProviderRejectedError as e:
        logger.error(f"{provider} rejected manual sync: {str(e)}")
        raise HTTPException(status_code=502, detail=f"{provider} rejected the request")

    if result is None:
        raise HTTPException(status_code=409, detail=f"Sync for {provider} is already running")
    return result


@router.get("/{provider}/{entity_type}/mappings", response_model=List[ExternalMappingRead])
async def list_mappings(provider: str, entity_type: EntityType, db: AsyncSession = Depends(get_db)):
    return await MappingStore(db).list_for(provider, entity_type.value)
