"""
Inbound provider webhooks.
"""

import logging
import time

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ledgersync.core.exceptions import InvalidPayloadError, InvalidSignatureError
from ledgersync.dependencies import get_monitoring, get_webhook_handler
from ledgersync.services.monitoring import MonitoringService
from ledgersync.services.webhook_handler import WebhookHandler

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["webhooks"])

QUICKBOOKS_ENDPOINT = "/webhooks/quickbooks"


@router.post("/quickbooks")
async def quickbooks_webhook(
    request: Request,
    handler: WebhookHandler = Depends(get_webhook_handler),
    monitoring: MonitoringService = Depends(get_monitoring),
):
    """Receive QuickBooks Online data change notifications"""
    started = time.monotonic()
    signature = request.headers.get("intuit-signature") or request.headers.get("x-intuit-signature") or ""
    body = await request.body()

    try:
        result = await handler.handle(body, signature)
        if result.errors:
            # Non-2xx so QuickBooks redelivers; entities that synced are skipped next time
            logger.error(f"Webhook finished with {len(result.errors)} failed entities: {result.errors}")
            status_code = 500
            content = {
                "error": "Webhook processing failed",
                "eventsProcessed": result.events_processed,
                "errors": len(result.errors),
            }
        else:
            status_code = 200
            content = {"message": result.message, "eventsProcessed": result.events_processed}
    except InvalidSignatureError as e:
        logger.error(f"Webhook signature verification failed: {str(e)}")
        status_code, content = 401, {"error": "Invalid signature"}
    except InvalidPayloadError as e:
        logger.error(f"Invalid webhook payload: {str(e)}")
        status_code, content = 400, {"error": "Invalid payload structure"}
    except Exception as e:
        logger.exception(f"Webhook processing error: {str(e)}")
        status_code, content = 500, {"error": "Webhook processing failed"}

    monitoring.record_api_request(
        QUICKBOOKS_ENDPOINT, "POST", status_code, (time.monotonic() - started) * 1000
    )
    return JSONResponse(status_code=status_code, content=content)
