"""
Scheduler management endpoints
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException

from ledgersync.core.exceptions import RecommendationNotFoundError, ScheduleNotFoundError
from ledgersync.dependencies import get_schedule_manager
from ledgersync.scheduler import ScheduleManager
from ledgersync.schemas.schedule import (
    ScheduleConfig,
    ScheduleConfigUpdate,
    SchedulerStatus,
    SyncRecommendation,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/scheduler", tags=["scheduler"])


@router.get("/status", response_model=SchedulerStatus)
async def scheduler_status(manager: ScheduleManager = Depends(get_schedule_manager)):
    """Schedules, fresh recommendations, recent history and performance metrics"""
    try:
        return manager.get_status()
    except Exception as e:
        logger.error(f"Error getting scheduler status: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to load scheduler status")


@router.patch("/schedules/{provider}", response_model=ScheduleConfig)
async def update_schedule(
    provider: str,
    update: ScheduleConfigUpdate,
    manager: ScheduleManager = Depends(get_schedule_manager),
):
    try:
        return manager.update_config(provider, update)
    except ScheduleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/schedules/{provider}/start", response_model=ScheduleConfig)
async def start_schedule(provider: str, manager: ScheduleManager = Depends(get_schedule_manager)):
    try:
        config = manager.start(provider)
        logger.info(f"Schedule for {provider} started")
        return config
    except ScheduleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/schedules/{provider}/stop", response_model=ScheduleConfig)
async def stop_schedule(provider: str, manager: ScheduleManager = Depends(get_schedule_manager)):
    try:
        config = manager.stop(provider)
        logger.info(f"Schedule for {provider} stopped")
        return config
    except ScheduleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/recommendations", response_model=List[SyncRecommendation])
async def list_recommendations(manager: ScheduleManager = Depends(get_schedule_manager)):
    return manager.refresh_recommendations()


@router.post("/recommendations/{provider}/{recommendation_type}/apply", response_model=Dict[str, Any])
async def apply_recommendation(
    provider: str,
    recommendation_type: str,
    manager: ScheduleManager = Depends(get_schedule_manager),
):
    """Apply a current recommendation. 404 if it was replaced by a newer analysis."""
    try:
        config = manager.apply_recommendation(provider, recommendation_type)
    except (RecommendationNotFoundError, ScheduleNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown recommendation type '{recommendation_type}'")

    return {"status": "success", "message": f"Applied {recommendation_type} recommendation for {provider}",
            "schedule": config.model_dump(mode="json")}
