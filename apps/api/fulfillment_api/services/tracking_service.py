import hashlib
import json
import logging
from typing import Any

from fulfillment_api.models.domain import (
    AppendResult,
    ShipmentDetails,
    TrackingEvent,
    TrackingRecord,
    UpdateOutcome,
    now_utc,
)
from fulfillment_api.models.tracking_record import FulfillmentStatus
from fulfillment_api.observability import (
    TRANSITIONS_LOGGER_NAME,
    log_event,
    metrics_store,
    observe_timing,
)
from fulfillment_api.schemas.tracking import TrackingUpdateRequest
from fulfillment_api.services.progress import round_progress
from fulfillment_api.services.state_machine import TOTAL_STEPS
from fulfillment_api.services.timeline_store import TimelineStore

VALID_STATUSES: list[str] = [status.value for status in FulfillmentStatus]


class InvalidFulfillmentStatusError(ValueError):
    def __init__(self, value: str) -> None:
        super().__init__(f"Invalid fulfillment status: {value}")
        self.value = value


def parse_status(value: str) -> FulfillmentStatus:
    try:
        return FulfillmentStatus(value.strip().lower())
    except ValueError as err:
        raise InvalidFulfillmentStatusError(value) from err


def build_dedup_key(event_id: str | None, status: FulfillmentStatus) -> str:
    if event_id:
        return f"event:{event_id}"
    return f"status:{status.value}"


def _event_details(update: TrackingUpdateRequest) -> dict[str, Any]:
    details = {
        "carrier": update.carrier,
        "tracking_number": update.tracking_number,
        "tracking_url": update.tracking_url,
    }
    details.update(update.details)
    return {key: value for key, value in details.items() if value is not None}


def record_tracking_update(store: TimelineStore, update: TrackingUpdateRequest) -> AppendResult:
    status = parse_status(update.status)
    event = TrackingEvent(
        status=status,
        timestamp=update.occurred_at or now_utc(),
        description=update.description or f"Status updated to {status.value}",
        location=update.location,
        details=_event_details(update),
        dedup_key=build_dedup_key(update.event_id, status),
    )
    shipment = ShipmentDetails(
        carrier=update.carrier,
        tracking_number=update.tracking_number,
        tracking_url=update.tracking_url,
        estimated_delivery=update.estimated_delivery,
    )

    with observe_timing("tracking_append_seconds"):
        result = store.append(update.order_id, event, shipment=shipment)

    _log_outcome(update.order_id, status, result, shipment)
    return result


def _discarded_shipment_fields(
    shipment: ShipmentDetails, record: TrackingRecord | None
) -> list[str]:
    if record is None:
        return []
    return sorted(
        field
        for field, value in shipment.model_dump(exclude_none=True).items()
        if getattr(record, field) != value
    )


def _log_outcome(
    order_id: str,
    proposed: FulfillmentStatus,
    result: AppendResult,
    shipment: ShipmentDetails,
) -> None:
    current = result.record.current_status.value if result.record else None

    if result.outcome == UpdateOutcome.APPLIED:
        metrics_store.increment("tracking_transition_applied_total")
        log_event("tracking_transition_applied", order_id=order_id, status=proposed.value)
    elif result.outcome == UpdateOutcome.REJECTED:
        # Operational log only; rejected transitions never reach the timeline.
        metrics_store.increment("tracking_transition_rejected_total")
        log_event(
            "tracking_transition_rejected",
            order_id=order_id,
            level=logging.WARNING,
            logger_name=TRANSITIONS_LOGGER_NAME,
            current_status=current,
            proposed_status=proposed.value,
        )
    elif result.outcome == UpdateOutcome.DUPLICATE:
        metrics_store.increment("tracking_duplicate_total")
        log_event("tracking_duplicate_ignored", order_id=order_id, status=proposed.value)
    else:
        log_event("tracking_status_unchanged", order_id=order_id, status=current)
        # An unchanged status leaves the record untouched, shipment details included.
        discarded = _discarded_shipment_fields(shipment, result.record)
        if discarded:
            metrics_store.increment("tracking_shipment_details_discarded_total")
            log_event(
                "tracking_shipment_details_discarded",
                order_id=order_id,
                level=logging.WARNING,
                status=current,
                fields=discarded,
            )


def get_tracking(store: TimelineStore, order_id: str) -> TrackingRecord | None:
    return store.get(order_id)


def build_tracking_payload(record: TrackingRecord) -> dict[str, Any]:
    return {
        "order_id": record.order_id,
        "current_status": record.current_status.value,
        "current_step": record.current_step,
        "total_steps": TOTAL_STEPS,
        "progress_percentage": round_progress(record.progress_percentage),
        "events": [
            {
                "sequence": event.sequence,
                "status": event.status.value,
                "timestamp": event.timestamp.isoformat(),
                "description": event.description,
                "location": event.location,
                "details": event.details,
            }
            for event in record.events
        ],
        "estimated_delivery": (
            record.estimated_delivery.isoformat() if record.estimated_delivery else None
        ),
        "carrier": record.carrier,
        "tracking_number": record.tracking_number,
        "tracking_url": record.tracking_url,
        "last_updated": record.last_updated.isoformat(),
    }


def build_tracking_etag(payload: dict[str, Any]) -> str:
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return f'"{hashlib.sha256(canonical.encode()).hexdigest()}"'


def _split_etag_header(header_value: str) -> list[str]:
    tokens: list[str] = []
    current: list[str] = []
    in_quotes = False
    for char in header_value:
        if char == '"':
            in_quotes = not in_quotes
        if char == "," and not in_quotes:
            tokens.append("".join(current).strip())
            current = []
            continue
        current.append(char)
    tokens.append("".join(current).strip())
    return [token for token in tokens if token]


def etag_matches(if_none_match: str | None, etag: str) -> bool:
    if not if_none_match:
        return False
    for token in _split_etag_header(if_none_match):
        if token == "*":
            return True
        if token.removeprefix("W/") == etag:
            return True
    return False
