from fastapi import APIRouter, Depends
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST

from ledgersync.dependencies import get_monitoring
from ledgersync.services.monitoring import MonitoringService

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(monitoring: MonitoringService = Depends(get_monitoring)):
    """Aggregate health checks plus recent alerts"""
    report = await monitoring.perform_health_check()
    report["service"] = "ledgersync"
    report["metrics"] = monitoring.get_metrics()
    report["alerts"] = [a.model_dump(mode="json") for a in monitoring.recent_alerts()]
    return report


@router.get("/metrics")
async def metrics(monitoring: MonitoringService = Depends(get_monitoring)):
    """Prometheus exposition format"""
    return Response(content=monitoring.export_prometheus(), media_type=CONTENT_TYPE_LATEST)
