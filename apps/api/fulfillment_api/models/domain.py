import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from fulfillment_api.models.tracking_record import FulfillmentStatus


class UpdateOutcome(str, enum.Enum):
    APPLIED = "applied"
    UNCHANGED = "unchanged"
    REJECTED = "rejected"
    DUPLICATE = "duplicate"


class ShipmentDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    carrier: str | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None
    estimated_delivery: datetime | None = None


class TrackingEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: FulfillmentStatus
    timestamp: datetime
    description: str
    location: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    dedup_key: str | None = None
    sequence: int = 0


class TrackingRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: str
    current_status: FulfillmentStatus
    current_step: int
    progress_percentage: float
    carrier: str | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None
    estimated_delivery: datetime | None = None
    created_at: datetime
    last_updated: datetime
    events: tuple[TrackingEvent, ...] = ()


@dataclass(frozen=True)
class AppendResult:
    outcome: UpdateOutcome
    record: TrackingRecord | None
    event: TrackingEvent | None = None


def now_utc() -> datetime:
    return datetime.now(timezone.utc)
