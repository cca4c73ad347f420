from fulfillment_api.models.tracking_record import FulfillmentStatus
from fulfillment_api.services.state_machine import TOTAL_STEPS, is_absorbing, step_for_status

DISPLAY_PRECISION = 2


def compute_progress(step: int, total_steps: int = TOTAL_STEPS) -> float:
    if total_steps <= 0:
        return 0.0
    value = (step / total_steps) * 100
    return min(100.0, max(0.0, value))


def progress_for_status(status: FulfillmentStatus, previous_progress: float = 0.0) -> float:
    """Progress to store once ``status`` becomes current.

    Main-sequence statuses count themselves as a completed step, so the first
    step is already partial progress and delivered is 100. Failed and cancelled
    keep whatever was shown before.
    """
    if is_absorbing(status):
        return previous_progress
    return compute_progress(step_for_status(status) + 1, TOTAL_STEPS)


def round_progress(value: float) -> float:
    return round(value, DISPLAY_PRECISION)
