import pytest

from fulfillment_api.models.domain import UpdateOutcome
from fulfillment_api.models.tracking_record import FulfillmentStatus as S
from fulfillment_api.services.state_machine import (
    ABSORBING_STEP,
    MAIN_SEQUENCE,
    TOTAL_STEPS,
    evaluate_transition,
    is_terminal,
    step_for_status,
)


def test_main_sequence_has_nine_steps_in_order():
    assert TOTAL_STEPS == 9
    assert [step_for_status(status) for status in MAIN_SEQUENCE] == list(range(9))
    assert MAIN_SEQUENCE[0] == S.PENDING
    assert MAIN_SEQUENCE[-1] == S.DELIVERED


def test_absorbing_statuses_sit_outside_the_sequence():
    assert step_for_status(S.FAILED) == ABSORBING_STEP
    assert step_for_status(S.CANCELLED) == ABSORBING_STEP


@pytest.mark.parametrize("status", [S.DELIVERED, S.FAILED, S.CANCELLED])
def test_terminal_statuses(status):
    assert is_terminal(status)


def test_non_terminal_statuses():
    assert not any(is_terminal(status) for status in MAIN_SEQUENCE[:-1])


def test_any_status_creates_a_new_record():
    for status in S:
        assert evaluate_transition(None, status) == UpdateOutcome.APPLIED


def test_forward_and_skipping_transitions_are_applied():
    assert evaluate_transition(S.PENDING, S.CONFIRMED) == UpdateOutcome.APPLIED
    assert evaluate_transition(S.CONFIRMED, S.SHIPPED) == UpdateOutcome.APPLIED
    assert evaluate_transition(S.PENDING, S.DELIVERED) == UpdateOutcome.APPLIED


def test_same_status_is_unchanged():
    assert evaluate_transition(S.SHIPPED, S.SHIPPED) == UpdateOutcome.UNCHANGED
    assert evaluate_transition(S.DELIVERED, S.DELIVERED) == UpdateOutcome.UNCHANGED


def test_backward_transition_is_rejected():
    assert evaluate_transition(S.SHIPPED, S.PRINTED) == UpdateOutcome.REJECTED
    assert evaluate_transition(S.CONFIRMED, S.PENDING) == UpdateOutcome.REJECTED


def test_absorbing_status_reachable_from_any_non_terminal_status():
    for status in MAIN_SEQUENCE[:-1]:
        assert evaluate_transition(status, S.FAILED) == UpdateOutcome.APPLIED
        assert evaluate_transition(status, S.CANCELLED) == UpdateOutcome.APPLIED


@pytest.mark.parametrize("terminal", [S.DELIVERED, S.FAILED, S.CANCELLED])
def test_nothing_leaves_a_terminal_status(terminal):
    for status in S:
        if status == terminal:
            continue
        assert evaluate_transition(terminal, status) == UpdateOutcome.REJECTED
