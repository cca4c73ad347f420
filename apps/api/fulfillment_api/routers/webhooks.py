import logging

from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from fulfillment_api.config import settings
from fulfillment_api.integrations.errors import IntegrationError
from fulfillment_api.integrations.tracking_client import TrackingUpdateClient, get_tracking_client
from fulfillment_api.observability import log_event, metrics_store, observe_timing
from fulfillment_api.schemas.tracking import ErrorResponse
from fulfillment_api.schemas.webhooks import WebhookAckResponse
from fulfillment_api.services.timeline_store import TimelineStoreError
from fulfillment_api.services.webhook_service import WebhookError, process_webhook

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post(
    "/{provider}",
    response_model=WebhookAckResponse,
    summary="Provider webhook receiver",
    responses={
        401: {"model": ErrorResponse, "description": "Invalid signature"},
        404: {"model": ErrorResponse, "description": "Unknown provider"},
        500: {"model": ErrorResponse, "description": "Processing failed; provider retries"},
    },
)
async def provider_webhook_endpoint(
    provider: str,
    request: Request,
    client: TrackingUpdateClient = Depends(get_tracking_client),
    x_provider_signature: str | None = Header(default=None, alias="X-Provider-Signature"),
    x_pfy_signature: str | None = Header(default=None, alias="X-Pfy-Signature"),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
) -> WebhookAckResponse | JSONResponse:
    if provider != settings.provider_name:
        return _error(status.HTTP_404_NOT_FOUND, f"Unknown provider: {provider}")

    # Signature covers the exact bytes, so never let anything parse first.
    raw_body = await request.body()

    try:
        with observe_timing("webhook_processing_seconds"):
            result = await run_in_threadpool(
                process_webhook,
                raw_body,
                x_provider_signature or x_pfy_signature,
                secret=settings.provider_webhook_secret,
                client=client,
                event_id_header=idempotency_key,
            )
    except WebhookError as err:
        if err.status_code >= 500:
            metrics_store.increment("webhook_failed_total")
            log_event("webhook_payload_invalid", level=logging.ERROR, error=err.message)
        return _error(err.status_code, err.message)
    except (IntegrationError, TimelineStoreError) as err:
        metrics_store.increment("webhook_failed_total")
        log_event("webhook_persist_failed", level=logging.ERROR, error=str(err))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Webhook processing failed")
    except Exception:
        metrics_store.increment("webhook_failed_total")
        logger.exception("webhook_processing_error")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Webhook processing failed")

    log_event("webhook_acknowledged", order_id=result.order_id, topic=result.topic)
    return WebhookAckResponse(success=True)
