"""
Monitoring Service

Prometheus counters for sync jobs and API traffic, per-provider outcome
windows used for alerting, and named async health checks.

Alerts:
    sync_job_failed    - any failed run
    high_failure_rate  - more than FAILURE_RATE_THRESHOLD of the recent runs
                         failed, once at least FAILURE_RATE_MIN_RUNS are known
    sync_stalled       - no successful run for STALL_THRESHOLD_MINUTES
    duplicate_mapping  - a create lost the uniqueness race
    api_error          - an HTTP request finished with status >= 400
"""

import logging
from collections import deque
from datetime import timedelta
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from ledgersync.core.config import Settings, get_settings
from ledgersync.core.enums import AlertKind
from ledgersync.core.utils import Clock, utc_now
from ledgersync.schemas.monitoring import Alert

logger = logging.getLogger(__name__)

OUTCOME_WINDOW = 20
MAX_ALERTS = 100

HealthCheck = Callable[[], Awaitable[bool]]
AlertListener = Callable[[Alert], None]


class MonitoringService:

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Clock = utc_now,
        registry: Optional[CollectorRegistry] = None,
    ):
        self.settings = settings or get_settings()
        self.clock = clock
        self.registry = registry or CollectorRegistry()

        self.sync_jobs_total = Counter(
            'sync_jobs_total', 'Total number of sync jobs executed',
            ['provider', 'status'], registry=self.registry,
        )
        self.sync_job_duration = Histogram(
            'sync_job_duration_seconds', 'Duration of sync jobs in seconds',
            ['provider'], buckets=[0.1, 0.5, 1, 5, 10, 30, 60, 300], registry=self.registry,
        )
        self.sync_records_total = Counter(
            'sync_records_processed_total', 'Records processed by sync jobs',
            ['provider'], registry=self.registry,
        )
        self.api_requests_total = Counter(
            'api_requests_total', 'Total number of API requests',
            ['endpoint', 'method', 'status_code'], registry=self.registry,
        )
        self.api_request_duration = Histogram(
            'api_request_duration_seconds', 'Duration of API requests in seconds',
            ['endpoint', 'method'], buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1, 5, 10],
            registry=self.registry,
        )
        self.alerts_total = Counter(
            'alerts_total', 'Alerts raised by kind', ['kind'], registry=self.registry,
        )
        self.last_success_timestamp = Gauge(
            'sync_last_success_timestamp_seconds', 'Unix time of the last successful sync',
            ['provider'], registry=self.registry,
        )

        self._outcomes: Dict[str, Deque[bool]] = {}
        self._first_seen: Dict[str, Any] = {}
        self._last_success: Dict[str, Any] = {}
        self._stalled: set = set()
        self._totals = {"sync_jobs_total": 0, "sync_jobs_successful": 0, "sync_jobs_failed": 0,
                        "api_requests_total": 0, "api_errors_total": 0}
        self._avg_duration_ms = 0.0

        self.alerts: Deque[Alert] = deque(maxlen=MAX_ALERTS)
        self._listeners: List[AlertListener] = []
        self.health_checks: Dict[str, HealthCheck] = {}

    # Recording

    def record_sync_job(
        self,
        provider: str,
        success: bool,
        duration_ms: int,
        records_processed: int = 0,
        error: Optional[str] = None,
    ) -> None:
        now = self.clock()
        status = "success" if success else "failure"

        self.sync_jobs_total.labels(provider=provider, status=status).inc()
        self.sync_job_duration.labels(provider=provider).observe(duration_ms / 1000)
        if records_processed:
            self.sync_records_total.labels(provider=provider).inc(records_processed)

        self._totals["sync_jobs_total"] += 1
        self._totals["sync_jobs_successful" if success else "sync_jobs_failed"] += 1
        total = self._totals["sync_jobs_total"]
        self._avg_duration_ms = ((self._avg_duration_ms * (total - 1)) + duration_ms) / total

        self._first_seen.setdefault(provider, now)
        self._outcomes.setdefault(provider, deque(maxlen=OUTCOME_WINDOW)).append(success)

        logger.info(f"Sync job recorded: {provider} - {status.upper()} ({duration_ms}ms, {records_processed} records)")

        if success:
            self._last_success[provider] = now
            self._stalled.discard(provider)
            self.last_success_timestamp.labels(provider=provider).set(now.timestamp())
        else:
            self.raise_alert(
                AlertKind.SYNC_JOB_FAILED,
                f"Sync job failed for {provider}: {error or 'unknown error'}",
                provider=provider,
                error=error,
            )

        self._check_failure_rate(provider)

    def record_api_request(self, endpoint: str, method: str, status_code: int, duration_ms: float) -> None:
        self.api_requests_total.labels(endpoint=endpoint, method=method, status_code=str(status_code)).inc()
        self.api_request_duration.labels(endpoint=endpoint, method=method).observe(duration_ms / 1000)
        self._totals["api_requests_total"] += 1

        if status_code >= 400:
            self._totals["api_errors_total"] += 1
            self.raise_alert(
                AlertKind.API_ERROR,
                f"{method} {endpoint} returned {status_code}",
                endpoint=endpoint,
                method=method,
                status_code=status_code,
            )

    def record_duplicate_mapping(
        self,
        provider: str,
        entity_type: str,
        internal_id: str = None,
        external_id: str = None,
        orphan_external_id: Optional[str] = None,
    ) -> None:
        """orphan_external_id is a provider record created by a push that lost the race; it has no mapping."""
        message = f"Duplicate mapping for {provider}/{entity_type}"
        details = {}
        if orphan_external_id:
            message += f"; orphaned {provider} record {orphan_external_id} needs review"
            details["orphan_external_id"] = orphan_external_id
        self.raise_alert(
            AlertKind.DUPLICATE_MAPPING,
            message,
            provider=provider,
            entity_type=entity_type,
            internal_id=internal_id,
            external_id=external_id,
            **details,
        )

    # Alerting

    def add_alert_listener(self, listener: AlertListener) -> None:
        self._listeners.append(listener)

    def raise_alert(self, kind: AlertKind, message: str, provider: Optional[str] = None, **details) -> Alert:
        alert = Alert(
            kind=AlertKind(kind).value,
            provider=provider,
            message=message,
            details=details,
            raised_at=self.clock(),
        )
        self.alerts.append(alert)
        self.alerts_total.labels(kind=alert.kind).inc()
        logger.warning(f"ALERT [{alert.kind}] {message}")

        for listener in self._listeners:
            try:
                listener(alert)
            except Exception:
                logger.exception(f"Alert listener failed for {alert.kind}")
        return alert

    def recent_alerts(self, limit: int = 20) -> List[Alert]:
        return list(self.alerts)[-limit:][::-1]

    def _check_failure_rate(self, provider: str) -> None:
        outcomes = self._outcomes.get(provider) or ()
        if len(outcomes) < self.settings.FAILURE_RATE_MIN_RUNS:
            return
        failed = sum(1 for ok in outcomes if not ok)
        rate = failed / len(outcomes)
        if rate > self.settings.FAILURE_RATE_THRESHOLD:
            self.raise_alert(
                AlertKind.HIGH_FAILURE_RATE,
                f"{provider} failure rate {rate:.0%} over last {len(outcomes)} runs",
                provider=provider,
                rate=round(rate, 3),
                failed=failed,
                total=len(outcomes),
            )

    def check_alerts(self) -> List[Alert]:
        """Periodic check: raise sync_stalled once per stall for each provider that has run before."""
        now = self.clock()
        threshold = timedelta(minutes=self.settings.STALL_THRESHOLD_MINUTES)
        raised = []

        for provider, first_seen in self._first_seen.items():
            last = self._last_success.get(provider, first_seen)
            if now - last > threshold and provider not in self._stalled:
                self._stalled.add(provider)
                raised.append(self.raise_alert(
                    AlertKind.SYNC_STALLED,
                    f"No successful sync for {provider} since {last.isoformat()}",
                    provider=provider,
                    last_success=last.isoformat() if provider in self._last_success else None,
                ))
        return raised

    # Health

    def register_health_check(self, name: str, check: HealthCheck) -> None:
        self.health_checks[name] = check

    async def perform_health_check(self) -> Dict[str, Any]:
        checks: Dict[str, bool] = {}
        for name, check in self.health_checks.items():
            try:
                checks[name] = bool(await check())
            except Exception as e:
                logger.error(f"Health check failed for {name}: {str(e)}")
                checks[name] = False

        return {
            "status": "healthy" if all(checks.values()) else "unhealthy",
            "checks": checks,
            "timestamp": self.clock().isoformat(),
        }

    # Reporting

    def get_metrics(self) -> Dict[str, Any]:
        return {
            **self._totals,
            "sync_job_duration_avg_ms": round(self._avg_duration_ms, 1),
            "last_sync_by_provider": {p: t.isoformat() for p, t in self._last_success.items()},
        }

    def export_prometheus(self) -> bytes:
        return generate_latest(self.registry)
