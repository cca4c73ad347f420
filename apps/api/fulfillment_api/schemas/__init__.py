from fulfillment_api.schemas.tracking import (
    ErrorResponse,
    TrackingEventResponse,
    TrackingResponse,
    TrackingUpdateRequest,
    TrackingUpdateResponse,
)
from fulfillment_api.schemas.webhooks import (
    ProviderOrderData,
    ProviderWebhookPayload,
    WebhookAckResponse,
)

__all__ = [
    "ErrorResponse",
    "ProviderOrderData",
    "ProviderWebhookPayload",
    "TrackingEventResponse",
    "TrackingResponse",
    "TrackingUpdateRequest",
    "TrackingUpdateResponse",
    "WebhookAckResponse",
]
