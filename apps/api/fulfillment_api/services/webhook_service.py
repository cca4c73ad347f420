"""Provider webhook ingestion.

Turns an authenticated provider delivery into a tracking update. Signature
and payload problems are raised as ``WebhookError`` subclasses so the router
can answer 401/500; storage and integration failures propagate unchanged and
also end up as 500 so the provider retries.
"""

import hashlib
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from pydantic import ValidationError

from fulfillment_api.integrations.tracking_client import TrackingUpdateClient
from fulfillment_api.models.domain import UpdateOutcome
from fulfillment_api.models.tracking_record import FulfillmentStatus
from fulfillment_api.observability import log_event, metrics_store
from fulfillment_api.schemas.tracking import (
    CARRIER_MAX_LENGTH,
    ORDER_ID_MAX_LENGTH,
    TRACKING_NUMBER_MAX_LENGTH,
    TRACKING_URL_MAX_LENGTH,
    TrackingUpdateRequest,
)
from fulfillment_api.schemas.webhooks import ProviderOrderData, ProviderWebhookPayload
from fulfillment_api.services.signature import verify_signature
from fulfillment_api.services.status_mapper import map_external_status

MAX_EVENT_ID_LENGTH = 200


@dataclass
class WebhookError(Exception):
    code: str
    message: str
    status_code: int = 500

    def __str__(self) -> str:
        return f"{self.code}:{self.message}"


class WebhookSignatureError(WebhookError):
    def __init__(self, message: str = "Invalid signature") -> None:
        super().__init__(code="INVALID_SIGNATURE", message=message, status_code=401)


class WebhookPayloadError(WebhookError):
    def __init__(self, message: str = "Malformed webhook payload") -> None:
        super().__init__(code="MALFORMED_PAYLOAD", message=message, status_code=500)


@dataclass(frozen=True)
class WebhookResult:
    topic: str
    order_id: str | None
    handled: bool
    outcome: UpdateOutcome | None = None


TopicHandler = Callable[[ProviderOrderData, str], TrackingUpdateRequest]


def _order_created(data: ProviderOrderData, order_id: str) -> TrackingUpdateRequest:
    return TrackingUpdateRequest(
        order_id=order_id,
        status=FulfillmentStatus.PENDING.value,
        description="Order created and received",
    )


def _order_updated(data: ProviderOrderData, order_id: str) -> TrackingUpdateRequest:
    status = map_external_status(data.status, order_id=order_id)
    return TrackingUpdateRequest(
        order_id=order_id,
        status=status.value,
        description=f"Order status updated to {data.status or status.value}",
        details={"vendor_status": data.status},
    )


def _bounded(value: str | None, limit: int, field: str, order_id: str) -> str | None:
    """Drops shipment metadata the tracking record cannot hold; the status change still applies."""
    if value is None or len(value) <= limit:
        return value
    metrics_store.increment("webhook_field_dropped_total")
    log_event(
        "webhook_field_dropped",
        level=logging.WARNING,
        order_id=order_id,
        field=field,
        length=len(value),
        max_length=limit,
    )
    return None


def _shipment_created(data: ProviderOrderData, order_id: str) -> TrackingUpdateRequest:
    return TrackingUpdateRequest(
        order_id=order_id,
        status=FulfillmentStatus.SHIPPED.value,
        carrier=_bounded(data.shipping_tracking_company, CARRIER_MAX_LENGTH, "carrier", order_id),
        tracking_number=_bounded(
            data.shipping_tracking_number, TRACKING_NUMBER_MAX_LENGTH, "tracking_number", order_id
        ),
        tracking_url=_bounded(
            data.shipping_tracking_url, TRACKING_URL_MAX_LENGTH, "tracking_url", order_id
        ),
        estimated_delivery=_parse_timestamp(data.estimated_delivery),
        description="Package shipped and in transit",
    )


def _shipment_delivered(data: ProviderOrderData, order_id: str) -> TrackingUpdateRequest:
    return TrackingUpdateRequest(
        order_id=order_id,
        status=FulfillmentStatus.DELIVERED.value,
        description="Package delivered successfully",
    )


def _order_canceled(data: ProviderOrderData, order_id: str) -> TrackingUpdateRequest:
    return TrackingUpdateRequest(
        order_id=order_id,
        status=FulfillmentStatus.CANCELLED.value,
        description="Order was cancelled",
    )


TOPIC_HANDLERS: dict[str, TopicHandler] = {
    "order:created": _order_created,
    "order:updated": _order_updated,
    "order:shipment:created": _shipment_created,
    "order:shipment:delivered": _shipment_delivered,
    "order:canceled": _order_canceled,
}


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_webhook_payload(raw_body: bytes) -> ProviderWebhookPayload:
    try:
        document = json.loads(raw_body)
    except (UnicodeDecodeError, json.JSONDecodeError) as err:
        raise WebhookPayloadError("Webhook body is not valid JSON") from err

    try:
        return ProviderWebhookPayload.model_validate(document)
    except ValidationError as err:
        raise WebhookPayloadError("Webhook body is missing required fields") from err


def _parse_order_data(payload: ProviderWebhookPayload) -> tuple[ProviderOrderData, str]:
    if payload.data is None:
        raise WebhookPayloadError(f"Webhook {payload.topic} has no data object")
    try:
        data = ProviderOrderData.model_validate(payload.data)
    except ValidationError as err:
        raise WebhookPayloadError(f"Webhook {payload.topic} data is invalid") from err

    order_id = str(data.id).strip()
    if not order_id:
        raise WebhookPayloadError(f"Webhook {payload.topic} has an empty order id")
    if len(order_id) > ORDER_ID_MAX_LENGTH:
        raise WebhookPayloadError(
            f"Webhook {payload.topic} order id exceeds {ORDER_ID_MAX_LENGTH} characters"
        )
    return data, order_id


def _vendor_event_id(payload: ProviderWebhookPayload, header_value: str | None) -> str | None:
    for candidate in (header_value, payload.event_id, payload.id):
        if candidate is None or not str(candidate).strip():
            continue
        event_id = str(candidate).strip()
        if len(event_id) > MAX_EVENT_ID_LENGTH:
            return hashlib.sha256(event_id.encode()).hexdigest()
        return event_id
    return None


def process_webhook(
    raw_body: bytes,
    signature_header: str | None,
    *,
    secret: str | None,
    client: TrackingUpdateClient,
    event_id_header: str | None = None,
) -> WebhookResult:
    metrics_store.increment("webhook_received_total")

    if not verify_signature(raw_body, signature_header, secret):
        metrics_store.increment("webhook_signature_rejected_total")
        log_event(
            "webhook_signature_rejected",
            level=logging.WARNING,
            signature_present=bool(signature_header),
            secret_configured=bool(secret),
        )
        raise WebhookSignatureError()

    payload = parse_webhook_payload(raw_body)
    handler = TOPIC_HANDLERS.get(payload.topic)
    if handler is None:
        metrics_store.increment("webhook_unhandled_topic_total")
        log_event("webhook_topic_unhandled", topic=payload.topic)
        return WebhookResult(topic=payload.topic, order_id=None, handled=False)

    data, order_id = _parse_order_data(payload)
    log_event("webhook_received", order_id=order_id, topic=payload.topic, vendor_status=data.status)

    try:
        update = handler(data, order_id)
    except ValidationError as err:
        raise WebhookPayloadError(f"Webhook {payload.topic} data is invalid") from err
    update = update.model_copy(
        update={
            "event_id": _vendor_event_id(payload, event_id_header),
            "occurred_at": _parse_timestamp(data.updated_at),
            "details": {**update.details, "topic": payload.topic},
        }
    )
    ack = client.send_update(update)

    log_event(
        "webhook_processed",
        order_id=order_id,
        topic=payload.topic,
        outcome=ack.outcome.value,
    )
    return WebhookResult(
        topic=payload.topic,
        order_id=order_id,
        handled=True,
        outcome=ack.outcome,
    )
