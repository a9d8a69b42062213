import pytest

from ledgersync.core.enums import AlertKind


def _kinds(monitoring):
    return [a.kind for a in monitoring.alerts]


"""
1. Sync job recording
"""

def test_record_sync_job_updates_totals(monitoring, clock):
    monitoring.record_sync_job("quickbooks", True, 1000, records_processed=5)
    monitoring.record_sync_job("quickbooks", True, 3000, records_processed=2)

    metrics = monitoring.get_metrics()
    assert metrics["sync_jobs_total"] == 2
    assert metrics["sync_jobs_successful"] == 2
    assert metrics["sync_jobs_failed"] == 0
    assert metrics["sync_job_duration_avg_ms"] == 2000.0
    assert metrics["last_sync_by_provider"] == {"quickbooks": clock().isoformat()}
    assert list(monitoring.alerts) == []


def test_failed_job_raises_alert(monitoring):
    monitoring.record_sync_job("quickbooks", False, 500, error="QuickBooks returned 503")

    alert = monitoring.recent_alerts()[0]
    assert alert.kind == AlertKind.SYNC_JOB_FAILED.value
    assert alert.provider == "quickbooks"
    assert "QuickBooks returned 503" in alert.message


def test_failure_rate_alert_needs_minimum_runs(monitoring):
    for _ in range(4):
        monitoring.record_sync_job("quickbooks", False, 100)
    assert AlertKind.HIGH_FAILURE_RATE.value not in _kinds(monitoring)

    monitoring.record_sync_job("quickbooks", False, 100)
    assert AlertKind.HIGH_FAILURE_RATE.value in _kinds(monitoring)


def test_failure_rate_at_threshold_does_not_alert(monitoring):
    for _ in range(4):
        monitoring.record_sync_job("quickbooks", True, 100)
    monitoring.record_sync_job("quickbooks", False, 100)

    assert AlertKind.HIGH_FAILURE_RATE.value not in _kinds(monitoring)


def test_duplicate_mapping_alert(monitoring):
    monitoring.record_duplicate_mapping("quickbooks", "customer", internal_id="abc", external_id="42")

    alert = monitoring.recent_alerts()[0]
    assert alert.kind == AlertKind.DUPLICATE_MAPPING.value
    assert alert.details == {"entity_type": "customer", "internal_id": "abc", "external_id": "42"}


def test_api_errors_raise_alerts(monitoring):
    monitoring.record_api_request("/webhooks/quickbooks", "POST", 200, 12.5)
    monitoring.record_api_request("/webhooks/quickbooks", "POST", 401, 3.0)

    metrics = monitoring.get_metrics()
    assert metrics["api_requests_total"] == 2
    assert metrics["api_errors_total"] == 1
    assert _kinds(monitoring) == [AlertKind.API_ERROR.value]


"""
2. Stall detection and listeners
"""

def test_stall_alert_fires_once_per_stall(monitoring, clock):
    assert monitoring.check_alerts() == []

    monitoring.record_sync_job("quickbooks", True, 100)
    clock.advance(minutes=61)

    assert [a.kind for a in monitoring.check_alerts()] == [AlertKind.SYNC_STALLED.value]
    assert monitoring.check_alerts() == []

    monitoring.record_sync_job("quickbooks", True, 100)
    assert monitoring.check_alerts() == []

    clock.advance(minutes=61)
    assert len(monitoring.check_alerts()) == 1


def test_stall_counts_from_first_run_when_never_successful(monitoring, clock):
    monitoring.record_sync_job("quickbooks", False, 100)
    clock.advance(minutes=30)
    assert monitoring.check_alerts() == []

    clock.advance(minutes=31)
    stalled = monitoring.check_alerts()
    assert stalled[0].details["last_success"] is None


def test_alert_listeners_are_notified(monitoring):
    received = []

    def broken(alert):
        raise RuntimeError("listener down")

    monitoring.add_alert_listener(broken)
    monitoring.add_alert_listener(received.append)

    monitoring.raise_alert(AlertKind.API_ERROR, "boom")

    assert [a.message for a in received] == ["boom"]


"""
3. Health and export
"""

@pytest.mark.asyncio
async def test_health_check_aggregation(monitoring, clock):
    async def ok():
        return True

    async def broken():
        raise ConnectionError("database unreachable")

    monitoring.register_health_check("scheduler", ok)
    assert (await monitoring.perform_health_check())["status"] == "healthy"

    monitoring.register_health_check("database", broken)
    report = await monitoring.perform_health_check()

    assert report["status"] == "unhealthy"
    assert report["checks"] == {"scheduler": True, "database": False}
    assert report["timestamp"] == clock().isoformat()


def test_prometheus_export(monitoring):
    monitoring.record_sync_job("quickbooks", True, 250, records_processed=3)

    output = monitoring.export_prometheus().decode()

    assert 'sync_jobs_total{provider="quickbooks",status="success"} 1.0' in output
    assert 'sync_records_processed_total{provider="quickbooks"} 3.0' in output
    assert "sync_job_duration_seconds_bucket" in output
