from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

from sqlalchemy import delete, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fulfillment_api.models.domain import (
    AppendResult,
    ShipmentDetails,
    TrackingEvent,
    TrackingRecord,
    UpdateOutcome,
)
from fulfillment_api.models.tracking_event import FulfillmentEvent
from fulfillment_api.models.tracking_record import FulfillmentRecord
from fulfillment_api.services.timeline_store import (
    OrderLockRegistry,
    TimelineStoreError,
    apply_event,
)


def _as_utc(value: datetime | None) -> datetime | None:
    # sqlite drops tzinfo on the way back out
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _event_from_row(row: FulfillmentEvent) -> TrackingEvent:
    return TrackingEvent(
        status=row.status,
        timestamp=_as_utc(row.occurred_at),
        description=row.description,
        location=row.location,
        details=dict(row.details or {}),
        dedup_key=row.dedup_key,
        sequence=row.sequence,
    )


class SqlTimelineStore:
    """Durable timeline backed by SQLAlchemy.

    Every append is a single transaction: the record row is locked
    (``SELECT ... FOR UPDATE`` where the dialect supports it), the event row is
    inserted and the record's status, step and progress are updated together.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        lock_timeout_s: float = 5.0,
    ) -> None:
        self._session_factory = session_factory
        self.lock_timeout_s = lock_timeout_s
        self._locks = OrderLockRegistry()

    def append(
        self,
        order_id: str,
        event: TrackingEvent,
        *,
        shipment: ShipmentDetails | None = None,
    ) -> AppendResult:
        with self._locks.hold(order_id, self.lock_timeout_s):
            try:
                with self._session_factory() as db:
                    with db.begin():
                        self._apply_statement_timeout(db)
                        row = db.scalar(
                            select(FulfillmentRecord)
                            .where(FulfillmentRecord.order_id == order_id)
                            .with_for_update()
                        )
                        current = self._load_record(db, row) if row is not None else None
                        result = apply_event(current, order_id, event, shipment)
                        if result.outcome == UpdateOutcome.APPLIED:
                            self._persist(db, row, result)
                    return result
            except SQLAlchemyError as err:
                raise TimelineStoreError(order_id, f"append failed: {err}") from err

    def get(self, order_id: str) -> TrackingRecord | None:
        try:
            with self._session_factory() as db:
                row = db.get(FulfillmentRecord, order_id)
                if row is None:
                    return None
                return self._load_record(db, row)
        except SQLAlchemyError as err:
            raise TimelineStoreError(order_id, f"read failed: {err}") from err

    def reset(self) -> None:
        with self._session_factory() as db:
            with db.begin():
                db.execute(delete(FulfillmentEvent))
                db.execute(delete(FulfillmentRecord))

    def _apply_statement_timeout(self, db: Session) -> None:
        if db.get_bind().dialect.name != "postgresql":
            return
        timeout_ms = int(self.lock_timeout_s * 1000)
        db.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))

    def _load_record(self, db: Session, row: FulfillmentRecord) -> TrackingRecord:
        # Bounded by last_sequence so a concurrent append never shows up as
        # an event without its matching status.
        event_rows = db.scalars(
            select(FulfillmentEvent)
            .where(
                FulfillmentEvent.order_id == row.order_id,
                FulfillmentEvent.sequence <= row.last_sequence,
            )
            .order_by(FulfillmentEvent.sequence.asc())
        )
        return TrackingRecord(
            order_id=row.order_id,
            current_status=row.current_status,
            current_step=row.current_step,
            progress_percentage=row.progress_percentage,
            carrier=row.carrier,
            tracking_number=row.tracking_number,
            tracking_url=row.tracking_url,
            estimated_delivery=_as_utc(row.estimated_delivery),
            created_at=_as_utc(row.created_at),
            last_updated=_as_utc(row.last_updated),
            events=tuple(_event_from_row(event_row) for event_row in event_rows),
        )

    def _persist(
        self,
        db: Session,
        row: FulfillmentRecord | None,
        result: AppendResult,
    ) -> None:
        record = result.record
        event = result.event
        if record is None or event is None:
            return

        if row is None:
            row = FulfillmentRecord(order_id=record.order_id, created_at=record.created_at)
            db.add(row)

        row.current_status = record.current_status
        row.current_step = record.current_step
        row.last_sequence = event.sequence
        row.progress_percentage = record.progress_percentage
        row.carrier = record.carrier
        row.tracking_number = record.tracking_number
        row.tracking_url = record.tracking_url
        row.estimated_delivery = record.estimated_delivery
        row.last_updated = record.last_updated
        db.flush()

        db.add(
            FulfillmentEvent(
                order_id=record.order_id,
                sequence=event.sequence,
                status=event.status,
                description=event.description,
                location=event.location,
                details=event.details,
                dedup_key=event.dedup_key,
                occurred_at=event.timestamp,
            )
        )
        db.flush()
