import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, Float, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from fulfillment_api.db.base import Base


class FulfillmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PRINTED = "printed"
    QUALITY_CHECK = "quality_check"
    PACKAGED = "packaged"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    FAILED = "failed"
    CANCELLED = "cancelled"


# Shared by both tables so postgres only ever sees one enum type.
fulfillment_status_type = Enum(
    FulfillmentStatus,
    name="fulfillment_status",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
)


class FulfillmentRecord(Base):
    __tablename__ = "tracking_records"

    order_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    current_status: Mapped[FulfillmentStatus] = mapped_column(
        fulfillment_status_type, nullable=False
    )
    current_step: Mapped[int] = mapped_column(Integer, nullable=False)
    last_sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    progress_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    carrier: Mapped[str | None] = mapped_column(String(128), nullable=True)
    tracking_number: Mapped[str | None] = mapped_column(String(128), nullable=True)
    tracking_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    estimated_delivery: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
