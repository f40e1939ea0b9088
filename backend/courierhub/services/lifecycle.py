"""
Shipment status machine.

The transition table below is the single source of truth for which status may
follow which. It has no database access; services call `check_transition`
before mutating anything.
"""
from typing import Dict, FrozenSet

from courierhub.errors import InvalidTransitionError
from courierhub.models.shipment import ShipmentStatus

S = ShipmentStatus

# canonical order; Delivered and Failed share the terminal rank
RANK: Dict[ShipmentStatus, int] = {
    S.AT_ORIGIN_BRANCH: 0,
    S.IN_TRANSIT_TO_DESTINATION: 1,
    S.AT_DESTINATION_BRANCH: 2,
    S.ASSIGNED: 3,
    S.OUT_FOR_DELIVERY: 4,
    S.DELIVERED: 5,
    S.FAILED: 5,
}

TERMINAL: FrozenSet[ShipmentStatus] = frozenset({S.DELIVERED, S.FAILED})

TRANSITIONS: Dict[ShipmentStatus, FrozenSet[ShipmentStatus]] = {
    S.AT_ORIGIN_BRANCH: frozenset({S.IN_TRANSIT_TO_DESTINATION, S.ASSIGNED}),
    S.IN_TRANSIT_TO_DESTINATION: frozenset({S.AT_DESTINATION_BRANCH}),
    S.AT_DESTINATION_BRANCH: frozenset({S.ASSIGNED}),
    S.ASSIGNED: frozenset({S.ASSIGNED, S.OUT_FOR_DELIVERY, S.DELIVERED, S.FAILED}),
    S.OUT_FOR_DELIVERY: frozenset({S.DELIVERED, S.FAILED}),
    S.DELIVERED: frozenset(),
    S.FAILED: frozenset(),
}

# transitions that only manifest dispatch / receive may perform
MANIFEST_ONLY = frozenset(
    {
        (S.AT_ORIGIN_BRANCH, S.IN_TRANSIT_TO_DESTINATION),
        (S.IN_TRANSIT_TO_DESTINATION, S.AT_DESTINATION_BRANCH),
    }
)

# what an assigned delivery staff member may do on their own shipment
STAFF_TRANSITIONS: Dict[ShipmentStatus, FrozenSet[ShipmentStatus]] = {
    S.ASSIGNED: frozenset({S.OUT_FOR_DELIVERY, S.DELIVERED, S.FAILED}),
    S.OUT_FOR_DELIVERY: frozenset({S.DELIVERED, S.FAILED}),
}


def is_terminal(status: ShipmentStatus) -> bool:
    return status in TERMINAL


def allowed_next(status: ShipmentStatus) -> FrozenSet[ShipmentStatus]:
    return TRANSITIONS[status]


def check_transition(
    current: ShipmentStatus,
    target: ShipmentStatus,
    is_local: bool,
    via_manifest: bool = False,
) -> None:
    """
    Raise InvalidTransitionError unless `current -> target` is legal.

    `is_local` is True when origin and destination branch are the same; only
    local shipments may go straight from AtOriginBranch to Assigned, and they
    never travel on a manifest.
    """
    current, target = ShipmentStatus(current), ShipmentStatus(target)
    if current in TERMINAL:
        raise InvalidTransitionError(f"Shipment is {current.value}; no further status changes allowed")
    if target not in TRANSITIONS[current]:
        raise InvalidTransitionError(f"Cannot change status from {current.value} to {target.value}")

    pair = (current, target)
    if pair in MANIFEST_ONLY and not via_manifest:
        raise InvalidTransitionError(
            f"{current.value} -> {target.value} only happens through manifest dispatch/receive"
        )
    if via_manifest and pair not in MANIFEST_ONLY:
        raise InvalidTransitionError(f"Manifests cannot move a shipment to {target.value}")
    if current == S.AT_ORIGIN_BRANCH:
        if target == S.ASSIGNED and not is_local:
            raise InvalidTransitionError(
                "Inter-branch shipments must be dispatched and received before assignment"
            )
        if target == S.IN_TRANSIT_TO_DESTINATION and is_local:
            raise InvalidTransitionError("Local deliveries are not dispatched on manifests")


def check_staff_transition(current: ShipmentStatus, target: ShipmentStatus) -> bool:
    return ShipmentStatus(target) in STAFF_TRANSITIONS.get(ShipmentStatus(current), frozenset())
