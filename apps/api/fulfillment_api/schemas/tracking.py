from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fulfillment_api.models.domain import UpdateOutcome
from fulfillment_api.models.tracking_record import FulfillmentStatus

ORDER_ID_MAX_LENGTH = 128
CARRIER_MAX_LENGTH = 128
TRACKING_NUMBER_MAX_LENGTH = 128
TRACKING_URL_MAX_LENGTH = 1024


class TrackingEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sequence: int
    status: FulfillmentStatus
    timestamp: datetime
    description: str
    location: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class TrackingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: str
    current_status: FulfillmentStatus
    current_step: int
    total_steps: int
    progress_percentage: float
    events: list[TrackingEventResponse]
    estimated_delivery: datetime | None = None
    carrier: str | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None
    last_updated: datetime


class TrackingUpdateRequest(BaseModel):
    order_id: str = Field(min_length=1, max_length=ORDER_ID_MAX_LENGTH)
    status: str = Field(min_length=1)
    carrier: str | None = Field(default=None, max_length=CARRIER_MAX_LENGTH)
    tracking_number: str | None = Field(default=None, max_length=TRACKING_NUMBER_MAX_LENGTH)
    tracking_url: str | None = Field(default=None, max_length=TRACKING_URL_MAX_LENGTH)
    estimated_delivery: datetime | None = None
    description: str | None = None
    location: str | None = Field(default=None, max_length=255)
    event_id: str | None = Field(default=None, max_length=200)
    occurred_at: datetime | None = None
    details: dict[str, Any] = Field(default_factory=dict)

    @field_validator("order_id", "status", "carrier", "tracking_number", "event_id")
    @classmethod
    def strip_strings(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return value.strip()


class TrackingUpdateResponse(BaseModel):
    success: bool
    order_id: str
    outcome: UpdateOutcome
    message: str
    tracking: TrackingResponse | None = None


class ErrorResponse(BaseModel):
    error: str
    valid_statuses: list[str] | None = None
