import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from fulfillment_api.db.base import Base
from fulfillment_api.models.tracking_record import FulfillmentStatus, fulfillment_status_type


class FulfillmentEvent(Base):
    __tablename__ = "tracking_events"
    __table_args__ = (
        UniqueConstraint("order_id", "sequence", name="uq_tracking_events_order_sequence"),
        UniqueConstraint("order_id", "dedup_key", name="uq_tracking_events_order_dedup_key"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("tracking_records.order_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[FulfillmentStatus] = mapped_column(fulfillment_status_type, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    details: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    dedup_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
