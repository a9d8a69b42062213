"""
Per-provider sync scheduling.

One AsyncIOScheduler runs on the application's event loop. Each enabled
provider gets an interval job ("sync_<provider>") that drives the Sync
Executor over the provider's configured entity types. Two housekeeping jobs
refresh recommendations and run the alert check.

A provider never has more than one run in flight: APScheduler's
max_instances=1 covers timer ticks and the _running set also covers manual
runs. Outcomes go to the sync history and to monitoring whether they succeed
or fail.
"""

import asyncio
import logging
import time
from datetime import timedelta, timezone
from typing import Dict, List, Optional, Union

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MAX_INSTANCES
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ledgersync.core.config import Settings, get_settings
from ledgersync.core.enums import EntityType, Provider, SchedulePriority, ScheduleState, SyncDirection
from ledgersync.core.exceptions import ProviderUnavailableError, ScheduleNotFoundError
from ledgersync.core.utils import Clock, is_business_hours, utc_now
from ledgersync.schemas.schedule import (
    ScheduleConfig,
    ScheduleConfigUpdate,
    SchedulerStatus,
    SyncHistoryEntry,
    SyncRecommendation,
)
from ledgersync.schemas.sync import SyncResult
from ledgersync.services.monitoring import MonitoringService
from ledgersync.services.recommendation_engine import RecommendationEngine
from ledgersync.services.sync_executor import SyncExecutor
from ledgersync.services.sync_history import SyncHistory

logger = logging.getLogger(__name__)

RECOMMENDATION_JOB_ID = "refresh_recommendations"
ALERT_CHECK_JOB_ID = "alert_check"
STATUS_HISTORY_LIMIT = 20


def default_schedules() -> Dict[str, ScheduleConfig]:
    return {
        Provider.QUICKBOOKS.value: ScheduleConfig(
            provider=Provider.QUICKBOOKS.value,
            enabled=False,
            interval_minutes=60,
            business_hours_only=True,
            retry_attempts=3,
            priority=SchedulePriority.HIGH,
        ),
        Provider.GOOGLE_CALENDAR.value: ScheduleConfig(
            provider=Provider.GOOGLE_CALENDAR.value,
            enabled=False,
            interval_minutes=30,
            business_hours_only=False,
            retry_attempts=2,
            priority=SchedulePriority.MEDIUM,
            entity_types=[EntityType.CUSTOMER.value],
        ),
    }


def job_id_for(provider: str) -> str:
    return f"sync_{provider}"


def job_listener(event):
    """Listen to job events for logging"""
    if event.code == EVENT_JOB_MAX_INSTANCES:
        logger.info(f"Job {event.job_id} skipped: previous run still in progress")
    elif event.exception:
        logger.error(f"Job {event.job_id} crashed: {event.exception}")
    else:
        logger.debug(f"Job {event.job_id} executed successfully")


class ScheduleManager:

    def __init__(
        self,
        executor: SyncExecutor,
        settings: Optional[Settings] = None,
        monitoring: Optional[MonitoringService] = None,
        clock: Clock = utc_now,
        scheduler: Optional[AsyncIOScheduler] = None,
        sleep=asyncio.sleep,
    ):
        self.executor = executor
        self.settings = settings or get_settings()
        self.monitoring = monitoring
        self.clock = clock
        self._sleep = sleep

        self.configs: Dict[str, ScheduleConfig] = default_schedules()
        self.history = SyncHistory(limit=self.settings.SYNC_HISTORY_LIMIT, on_notable=self._on_notable_entry)
        self.recommendation_engine = RecommendationEngine(self.history, settings=self.settings, clock=clock)
        self._running: set = set()

        self.scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self.scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR | EVENT_JOB_MAX_INSTANCES)

        if self.settings.SYNC_SCHEDULE_ENABLED:
            for provider in self.executor.registry.names():
                if provider in self.configs:
                    self.configs[provider].enabled = True

    # Lifecycle

    async def start_scheduler(self):
        """Start APScheduler, the housekeeping jobs and every enabled provider."""
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Scheduler started successfully")

        self.scheduler.add_job(
            self._refresh_recommendations_job,
            IntervalTrigger(minutes=self.settings.RECOMMENDATION_REFRESH_MINUTES, timezone=timezone.utc),
            id=RECOMMENDATION_JOB_ID,
            name="Refresh Sync Recommendations",
            replace_existing=True,
            max_instances=1,
        )
        self.scheduler.add_job(
            self._alert_check_job,
            IntervalTrigger(minutes=self.settings.ALERT_CHECK_MINUTES, timezone=timezone.utc),
            id=ALERT_CHECK_JOB_ID,
            name="Sync Alert Check",
            replace_existing=True,
            max_instances=1,
        )

        self.start_all()
        self.refresh_recommendations()

        jobs = self.scheduler.get_jobs()
        logger.info(f"Active scheduled jobs: {len(jobs)}")
        for job in jobs:
            logger.info(f"  - {job.name}: {job.trigger}")

    async def stop_scheduler(self):
        """Stop the scheduler without waiting on in-flight runs."""
        self.stop_all()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped successfully")

    @property
    def is_running(self) -> bool:
        return self.scheduler.running

    # Schedules

    def get_config(self, provider: str) -> ScheduleConfig:
        try:
            return self.configs[provider]
        except KeyError:
            raise ScheduleNotFoundError(f"No schedule configured for provider '{provider}'") from None

    def state(self, provider: str) -> ScheduleState:
        config = self.get_config(provider)
        if provider in self._running:
            return ScheduleState.RUNNING
        if config.enabled and self.scheduler.get_job(job_id_for(provider)):
            return ScheduleState.SCHEDULED
        return ScheduleState.DISABLED

    def start(self, provider: str) -> ScheduleConfig:
        config = self.get_config(provider)
        config.enabled = True
        self._arm(config)
        return config

    def stop(self, provider: str) -> ScheduleConfig:
        """Disable and remove the timer. Idempotent; an in-flight run finishes normally."""
        config = self.get_config(provider)
        config.enabled = False
        self._disarm(provider)
        config.next_run = None
        return config

    def start_all(self) -> List[str]:
        started = []
        for config in self.configs.values():
            if config.enabled:
                self._arm(config)
                started.append(config.provider)
        return started

    def stop_all(self) -> None:
        """Remove every provider timer, leaving the enabled flags as they are."""
        for provider in self.configs:
            self._disarm(provider)

    def update_config(self, provider: str, partial: Union[ScheduleConfigUpdate, dict]) -> ScheduleConfig:
        config = self.get_config(provider)
        if isinstance(partial, dict):
            partial = ScheduleConfigUpdate(**partial)

        changes = partial.model_dump(exclude_unset=True, exclude_none=True)
        updated = ScheduleConfig.model_validate({**config.model_dump(), **changes})
        self.configs[provider] = updated
        logger.info(f"Updated schedule for {provider}: {changes}")

        if updated.enabled:
            self._arm(updated)
        else:
            self._disarm(provider)
            updated.next_run = None
        return updated

    def _arm(self, config: ScheduleConfig) -> None:
        trigger = IntervalTrigger(minutes=config.interval_minutes, timezone=timezone.utc)
        job_id = job_id_for(config.provider)

        if self.scheduler.get_job(job_id):
            self.scheduler.reschedule_job(job_id, trigger=trigger)
        else:
            self.scheduler.add_job(
                self.tick,
                trigger,
                args=[config.provider],
                id=job_id,
                name=f"Sync {config.provider}",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=300,
            )
        config.next_run = self.clock() + timedelta(minutes=config.interval_minutes)
        logger.info(f"Scheduled {config.provider} every {config.interval_minutes} minutes")

    def _disarm(self, provider: str) -> None:
        job_id = job_id_for(provider)
        if self.scheduler.get_job(job_id):
            self.scheduler.remove_job(job_id)
            logger.info(f"Stopped schedule for {provider}")

    # Runs

    async def tick(self, provider: str) -> Optional[SyncHistoryEntry]:
        """Timer callback. Returns the recorded entry, or None when the tick was skipped."""
        config = self.get_config(provider)
        now = self.clock()

        if provider in self._running:
            logger.info(f"Skipping {provider} tick: previous run still in progress")
            return None

        if config.business_hours_only and not is_business_hours(
            now,
            self.settings.BUSINESS_TIMEZONE,
            self.settings.BUSINESS_HOURS_START,
            self.settings.BUSINESS_HOURS_END,
        ):
            config.next_run = now + timedelta(minutes=config.interval_minutes)
            logger.info(f"Skipping {provider} sync: outside business hours")
            return None

        return await self._run(config)

    async def run_now(self, provider: str) -> Optional[SyncHistoryEntry]:
        """Out-of-band run. Ignores business hours; returns None if a run is already in flight."""
        config = self.get_config(provider)
        if provider in self._running:
            logger.info(f"Manual run for {provider} ignored: already running")
            return None
        return await self._run(config)

    async def run_pass(self, provider: str, entity_type: str, direction=SyncDirection.BIDIRECTIONAL) -> Optional[SyncResult]:
        """
        One executor pass for a single entity type under the per-provider guard.

        Returns None when a run for the provider is already in flight. Executor
        errors propagate; the pass reports to monitoring itself.
        """
        if provider in self._running:
            logger.info(f"Single pass for {provider}/{entity_type} ignored: already running")
            return None

        self._running.add(provider)
        try:
            return await self.executor.sync(provider, entity_type, direction)
        finally:
            self._running.discard(provider)

    async def _run(self, config: ScheduleConfig) -> SyncHistoryEntry:
        provider = config.provider
        self._running.add(provider)
        started_at = self.clock()
        config.last_run = started_at
        started = time.monotonic()

        processed = 0
        errors: List[str] = []
        logger.info(f"=== SCHEDULED SYNC STARTING: {provider} ===")
        try:
            for entity_type in config.entity_types:
                result = await self._sync_with_retry(config, entity_type)
                processed += result.records_processed
                errors.extend(f"{entity_type}: {e.error}" for e in result.errors)
        except Exception as e:
            logger.exception(f"Sync run for {provider} failed: {str(e)}")
            errors.append(str(e))
        finally:
            self._running.discard(provider)

        duration_ms = int((time.monotonic() - started) * 1000)
        success = not errors
        entry = SyncHistoryEntry(
            provider=provider,
            timestamp=started_at,
            duration_ms=duration_ms,
            success=success,
            data_volume=processed,
            error_message="; ".join(errors)[:1000] if errors else None,
        )
        if config.enabled:
            config.next_run = self.clock() + timedelta(minutes=config.interval_minutes)

        if self.monitoring:
            self.monitoring.record_sync_job(
                provider, success, duration_ms, records_processed=processed, error=entry.error_message,
            )
        self.history.record(entry)

        logger.info(f"=== SCHEDULED SYNC {'COMPLETED' if success else 'FAILED'}: {provider} "
                    f"({processed} records, {duration_ms}ms) ===")
        return entry

    async def _sync_with_retry(self, config: ScheduleConfig, entity_type: str):
        attempt = 0
        while True:
            try:
                return await self.executor.sync(config.provider, entity_type, config.direction, report=False)
            except ProviderUnavailableError as e:
                if attempt >= config.retry_attempts:
                    raise
                delay = self.settings.SYNC_RETRY_BACKOFF_SECONDS * (2 ** attempt)
                attempt += 1
                logger.warning(
                    f"{config.provider}/{entity_type} unavailable ({str(e)}); "
                    f"retry {attempt}/{config.retry_attempts} in {delay:.1f}s"
                )
                await self._sleep(delay)

    # Recommendations

    def refresh_recommendations(self) -> List[SyncRecommendation]:
        return self.recommendation_engine.analyze(list(self.configs.values()))

    def apply_recommendation(self, provider: str, recommendation_type: str) -> ScheduleConfig:
        recommendation = self.recommendation_engine.find(provider, recommendation_type)
        config = self.update_config(provider, ScheduleConfigUpdate(
            interval_minutes=recommendation.recommended_interval,
            business_hours_only=recommendation.suggested_business_hours,
        ))
        self.recommendation_engine.discard(provider, recommendation_type)
        logger.info(f"Applied {recommendation.type} recommendation for {provider}")
        return config

    def _on_notable_entry(self, entry: SyncHistoryEntry) -> None:
        logger.debug(f"Notable sync entry for {entry.provider}; refreshing recommendations")
        self.refresh_recommendations()

    async def _refresh_recommendations_job(self):
        self.refresh_recommendations()

    async def _alert_check_job(self):
        if self.monitoring:
            self.monitoring.check_alerts()

    # Status

    def get_status(self) -> SchedulerStatus:
        recommendations = self.refresh_recommendations()
        active = [p for p in self.configs if self.scheduler.get_job(job_id_for(p))]
        next_runs = [self.configs[p].next_run for p in active if self.configs[p].next_run]

        return SchedulerStatus(
            is_running=self.is_running,
            active_schedules=active,
            next_scheduled_sync=min(next_runs) if next_runs else None,
            schedules=list(self.configs.values()),
            recommendations=recommendations,
            sync_history=self.history.entries(limit=STATUS_HISTORY_LIMIT),
            performance_metrics=self.history.performance_metrics(self.clock()),
        )
