from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ledgersync.core.enums import (
    EntityType,
    RecommendationType,
    SchedulePriority,
    SyncDirection,
)

DEFAULT_ENTITY_TYPES = [EntityType.CUSTOMER.value, EntityType.PRODUCT.value, EntityType.INVOICE.value]


class ScheduleConfig(BaseModel):
    provider: str
    enabled: bool = False
    interval_minutes: int = Field(60, ge=1)
    business_hours_only: bool = False
    retry_attempts: int = Field(3, ge=0)
    priority: SchedulePriority = SchedulePriority.MEDIUM
    entity_types: List[str] = Field(default_factory=lambda: list(DEFAULT_ENTITY_TYPES))
    direction: SyncDirection = SyncDirection.BIDIRECTIONAL
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None

    model_config = ConfigDict(use_enum_values=True)


class ScheduleConfigUpdate(BaseModel):
    """Partial update; unset fields keep their current value."""
    enabled: Optional[bool] = None
    interval_minutes: Optional[int] = Field(None, ge=1)
    business_hours_only: Optional[bool] = None
    retry_attempts: Optional[int] = Field(None, ge=0)
    priority: Optional[SchedulePriority] = None
    entity_types: Optional[List[str]] = None
    direction: Optional[SyncDirection] = None


class SyncHistoryEntry(BaseModel):
    provider: str
    timestamp: datetime
    duration_ms: int
    success: bool
    data_volume: int = 0
    error_message: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class DataInsights(BaseModel):
    avg_data_volume: float
    peak_sync_times: List[str]
    failure_rate: int  # percent


class SyncRecommendation(BaseModel):
    provider: str
    type: RecommendationType
    recommended_interval: int
    current_interval: int
    reason: str
    confidence: int = Field(ge=0, le=100)
    suggested_business_hours: bool
    estimated_duration_minutes: int
    potential_savings: Optional[str] = None
    data_insights: DataInsights

    model_config = ConfigDict(use_enum_values=True)


class PerformanceMetrics(BaseModel):
    total_syncs: int = 0
    success_rate: float = 0.0  # percent
    avg_duration_ms: float = 0.0
    last_week_syncs: int = 0


class SchedulerStatus(BaseModel):
    is_running: bool
    active_schedules: List[str]
    next_scheduled_sync: Optional[datetime] = None
    schedules: List[ScheduleConfig]
    recommendations: List[SyncRecommendation]
    sync_history: List[SyncHistoryEntry]
    performance_metrics: PerformanceMetrics
