from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProviderOrderData(BaseModel):
    """The ``data`` object of a provider order webhook. Unknown keys are kept.

    The provider sends some identifiers as JSON numbers; they are read as strings.
    """

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str
    status: str | None = None
    updated_at: str | None = None
    shipping_tracking_company: str | None = None
    shipping_tracking_number: str | None = None
    shipping_tracking_url: str | None = None
    estimated_delivery: str | None = None
    address_to: dict[str, Any] | None = None


class ProviderWebhookPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    topic: str = Field(min_length=1)
    shop_id: str | int | None = None
    id: str | int | None = None
    event_id: str | int | None = None
    data: dict[str, Any] | None = None


class WebhookAckResponse(BaseModel):
    success: bool = True
