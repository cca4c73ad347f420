from fulfillment_api.models.domain import UpdateOutcome
from fulfillment_api.models.tracking_record import FulfillmentStatus

MAIN_SEQUENCE: tuple[FulfillmentStatus, ...] = (
    FulfillmentStatus.PENDING,
    FulfillmentStatus.CONFIRMED,
    FulfillmentStatus.PRINTED,
    FulfillmentStatus.QUALITY_CHECK,
    FulfillmentStatus.PACKAGED,
    FulfillmentStatus.SHIPPED,
    FulfillmentStatus.IN_TRANSIT,
    FulfillmentStatus.OUT_FOR_DELIVERY,
    FulfillmentStatus.DELIVERED,
)
TOTAL_STEPS = len(MAIN_SEQUENCE)

ABSORBING: frozenset[FulfillmentStatus] = frozenset(
    {FulfillmentStatus.FAILED, FulfillmentStatus.CANCELLED}
)
TERMINAL: frozenset[FulfillmentStatus] = ABSORBING | {FulfillmentStatus.DELIVERED}

# current_step for statuses outside the main sequence
ABSORBING_STEP = -1

_STEP_INDEX: dict[FulfillmentStatus, int] = {
    status: index for index, status in enumerate(MAIN_SEQUENCE)
}


def step_for_status(status: FulfillmentStatus) -> int:
    return _STEP_INDEX.get(status, ABSORBING_STEP)


def is_terminal(status: FulfillmentStatus) -> bool:
    return status in TERMINAL


def is_absorbing(status: FulfillmentStatus) -> bool:
    return status in ABSORBING


def evaluate_transition(
    current: FulfillmentStatus | None,
    proposed: FulfillmentStatus,
) -> UpdateOutcome:
    """Decide whether ``proposed`` may replace ``current``.

    Progress along the main sequence never goes backwards and nothing leaves
    a terminal state. Re-applying the current status is a no-op.
    """
    if current is None:
        return UpdateOutcome.APPLIED
    if proposed == current:
        return UpdateOutcome.UNCHANGED
    if is_terminal(current):
        return UpdateOutcome.REJECTED
    if is_absorbing(proposed):
        return UpdateOutcome.APPLIED
    if step_for_status(proposed) >= step_for_status(current):
        return UpdateOutcome.APPLIED
    return UpdateOutcome.REJECTED
