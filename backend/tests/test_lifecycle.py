import pytest

from courierhub.errors import InvalidTransitionError
from courierhub.models.shipment import ShipmentStatus as S
from courierhub.services.lifecycle import (
    RANK,
    TRANSITIONS,
    allowed_next,
    check_staff_transition,
    check_transition,
    is_terminal,
)


def test_forward_path_for_inter_branch_shipment():
    check_transition(S.AT_ORIGIN_BRANCH, S.IN_TRANSIT_TO_DESTINATION, is_local=False, via_manifest=True)
    check_transition(S.IN_TRANSIT_TO_DESTINATION, S.AT_DESTINATION_BRANCH, is_local=False, via_manifest=True)
    check_transition(S.AT_DESTINATION_BRANCH, S.ASSIGNED, is_local=False)
    check_transition(S.ASSIGNED, S.OUT_FOR_DELIVERY, is_local=False)
    check_transition(S.OUT_FOR_DELIVERY, S.DELIVERED, is_local=False)


def test_local_shipment_skips_transit():
    check_transition(S.AT_ORIGIN_BRANCH, S.ASSIGNED, is_local=True)
    with pytest.raises(InvalidTransitionError):
        check_transition(S.AT_ORIGIN_BRANCH, S.IN_TRANSIT_TO_DESTINATION, is_local=True, via_manifest=True)


def test_inter_branch_cannot_be_assigned_at_origin():
    with pytest.raises(InvalidTransitionError):
        check_transition(S.AT_ORIGIN_BRANCH, S.ASSIGNED, is_local=False)


def test_transit_moves_need_a_manifest():
    with pytest.raises(InvalidTransitionError):
        check_transition(S.AT_ORIGIN_BRANCH, S.IN_TRANSIT_TO_DESTINATION, is_local=False)
    with pytest.raises(InvalidTransitionError):
        check_transition(S.IN_TRANSIT_TO_DESTINATION, S.AT_DESTINATION_BRANCH, is_local=False)
    with pytest.raises(InvalidTransitionError):
        check_transition(S.ASSIGNED, S.OUT_FOR_DELIVERY, is_local=False, via_manifest=True)


@pytest.mark.parametrize("terminal", [S.DELIVERED, S.FAILED])
def test_terminal_states_accept_nothing(terminal):
    assert is_terminal(terminal)
    for target in S:
        with pytest.raises(InvalidTransitionError):
            check_transition(terminal, target, is_local=True)


def test_no_backward_moves_in_table():
    for current, targets in TRANSITIONS.items():
        for target in targets:
            assert RANK[target] >= RANK[current]
    with pytest.raises(InvalidTransitionError):
        check_transition(S.OUT_FOR_DELIVERY, S.ASSIGNED, is_local=False)
    with pytest.raises(InvalidTransitionError):
        check_transition(S.AT_DESTINATION_BRANCH, S.AT_ORIGIN_BRANCH, is_local=False)


def test_reassignment_allowed_while_assigned():
    check_transition(S.ASSIGNED, S.ASSIGNED, is_local=False)
    assert S.ASSIGNED in allowed_next(S.ASSIGNED)


def test_staff_transitions():
    assert check_staff_transition(S.ASSIGNED, S.OUT_FOR_DELIVERY)
    assert check_staff_transition(S.OUT_FOR_DELIVERY, S.FAILED)
    assert not check_staff_transition(S.ASSIGNED, S.ASSIGNED)
    assert not check_staff_transition(S.AT_DESTINATION_BRANCH, S.ASSIGNED)
