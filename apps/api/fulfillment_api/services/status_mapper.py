import logging
from collections.abc import Mapping

from fulfillment_api.models.tracking_record import FulfillmentStatus
from fulfillment_api.observability import log_event, metrics_store

DEFAULT_FULFILLMENT_STATUS = FulfillmentStatus.PENDING

# Provider vocabulary -> internal state. "fulfilled" only means production is
# complete on the provider side but is mapped to delivered.
VENDOR_STATUS_MAP: Mapping[str, FulfillmentStatus] = {
    "draft": FulfillmentStatus.PENDING,
    "pending": FulfillmentStatus.PENDING,
    "on-hold": FulfillmentStatus.PENDING,
    "on_hold": FulfillmentStatus.PENDING,
    "has-issues": FulfillmentStatus.PENDING,
    "confirmed": FulfillmentStatus.CONFIRMED,
    "sending-to-production": FulfillmentStatus.CONFIRMED,
    "in_progress": FulfillmentStatus.PRINTED,
    "failed": FulfillmentStatus.FAILED,
    "fulfilled": FulfillmentStatus.DELIVERED,
    "canceled": FulfillmentStatus.CANCELLED,
    "cancelled": FulfillmentStatus.CANCELLED,
}


def _normalize(vendor_status: str | None) -> str:
    return (vendor_status or "").strip().lower()


def map_external_status(
    vendor_status: str | None,
    *,
    order_id: str | None = None,
) -> FulfillmentStatus:
    mapped = VENDOR_STATUS_MAP.get(_normalize(vendor_status))
    if mapped is not None:
        return mapped

    metrics_store.increment("unknown_vendor_status_total")
    log_event(
        "unknown_vendor_status",
        order_id=order_id,
        level=logging.WARNING,
        vendor_status=vendor_status,
        fallback=DEFAULT_FULFILLMENT_STATUS.value,
    )
    return DEFAULT_FULFILLMENT_STATUS
