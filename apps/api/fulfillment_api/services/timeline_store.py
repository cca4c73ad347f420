from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock
from typing import Protocol

from fulfillment_api.models.domain import (
    AppendResult,
    ShipmentDetails,
    TrackingEvent,
    TrackingRecord,
    UpdateOutcome,
    now_utc,
)
from fulfillment_api.services.progress import progress_for_status
from fulfillment_api.services.state_machine import evaluate_transition, step_for_status


class TimelineStoreError(RuntimeError):
    def __init__(self, order_id: str, message: str) -> None:
        super().__init__(f"{order_id}: {message}")
        self.order_id = order_id
        self.message = message


class TimelineStoreTimeoutError(TimelineStoreError):
    def __init__(self, order_id: str, timeout_s: float) -> None:
        super().__init__(order_id, f"timed out after {timeout_s}s waiting for order lock")
        self.timeout_s = timeout_s


class TimelineStore(Protocol):
    def append(
        self,
        order_id: str,
        event: TrackingEvent,
        *,
        shipment: ShipmentDetails | None = None,
    ) -> AppendResult: ...

    def get(self, order_id: str) -> TrackingRecord | None: ...

    def reset(self) -> None: ...


@dataclass
class _LockEntry:
    lock: Lock = field(default_factory=Lock)
    holders: int = 0


class OrderLockRegistry:
    """Mutual exclusion keyed by order id.

    Only the registry bookkeeping is global; work for different orders runs in
    parallel. Entries are dropped once nobody holds or waits on them.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._entries: dict[str, _LockEntry] = {}

    @contextmanager
    def hold(self, order_id: str, timeout_s: float) -> Iterator[None]:
        with self._guard:
            entry = self._entries.setdefault(order_id, _LockEntry())
            entry.holders += 1

        acquired = entry.lock.acquire(timeout=timeout_s)
        try:
            if not acquired:
                raise TimelineStoreTimeoutError(order_id, timeout_s)
            yield
        finally:
            if acquired:
                entry.lock.release()
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    self._entries.pop(order_id, None)

    def active_keys(self) -> int:
        with self._guard:
            return len(self._entries)


def apply_event(
    record: TrackingRecord | None,
    order_id: str,
    event: TrackingEvent,
    shipment: ShipmentDetails | None = None,
) -> AppendResult:
    """Run dedup and the state machine against ``record`` and build its successor.

    Pure: callers are responsible for holding the order lock and for
    persisting ``result.record`` when the outcome is APPLIED.
    """
    if record is not None and event.dedup_key is not None:
        if any(existing.dedup_key == event.dedup_key for existing in record.events):
            return AppendResult(outcome=UpdateOutcome.DUPLICATE, record=record)

    outcome = evaluate_transition(record.current_status if record else None, event.status)
    if outcome != UpdateOutcome.APPLIED:
        return AppendResult(outcome=outcome, record=record)

    previous_events = record.events if record else ()
    stored_event = event.model_copy(update={"sequence": len(previous_events) + 1})
    shipment = shipment or ShipmentDetails()
    now = now_utc()

    next_record = TrackingRecord(
        order_id=order_id,
        current_status=event.status,
        current_step=step_for_status(event.status),
        progress_percentage=progress_for_status(
            event.status, record.progress_percentage if record else 0.0
        ),
        carrier=shipment.carrier or (record.carrier if record else None),
        tracking_number=shipment.tracking_number or (record.tracking_number if record else None),
        tracking_url=shipment.tracking_url or (record.tracking_url if record else None),
        estimated_delivery=shipment.estimated_delivery
        or (record.estimated_delivery if record else None),
        created_at=record.created_at if record else now,
        last_updated=now,
        events=(*previous_events, stored_event),
    )
    return AppendResult(outcome=UpdateOutcome.APPLIED, record=next_record, event=stored_event)


class InMemoryTimelineStore:
    """Process-local store used in tests and demo mode.

    Records are immutable and swapped in whole, so readers never need a lock.
    """

    def __init__(self, lock_timeout_s: float = 5.0) -> None:
        self.lock_timeout_s = lock_timeout_s
        self._records: dict[str, TrackingRecord] = {}
        self._locks = OrderLockRegistry()

    def append(
        self,
        order_id: str,
        event: TrackingEvent,
        *,
        shipment: ShipmentDetails | None = None,
    ) -> AppendResult:
        with self._locks.hold(order_id, self.lock_timeout_s):
            result = apply_event(self._records.get(order_id), order_id, event, shipment)
            if result.outcome == UpdateOutcome.APPLIED and result.record is not None:
                self._records[order_id] = result.record
            return result

    def get(self, order_id: str) -> TrackingRecord | None:
        return self._records.get(order_id)

    def reset(self) -> None:
        self._records.clear()
