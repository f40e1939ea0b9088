import re

import pytest

from conftest import PACKAGE, PARTY_A, PARTY_B, PASSWORD, actor_for
from courierhub.errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from courierhub.models.shipment import ShipmentStatus as S
from courierhub.services.shipment_service import ShipmentService
from courierhub.services.user_service import UserService

PHOTO = {"type": "photo", "url": "/static/delivery-proofs/1-photo.jpg"}


def _local(db, world, assignee=None):
    svc = ShipmentService(db)
    return svc.create_shipment(
        actor_for(db, world.a_disp), world.branch_a, PARTY_A, PARTY_B, PACKAGE, assigned_to_id=assignee
    )


def _history(shipment):
    return [e.status for e in shipment.status_history]


def test_create_inter_branch_shipment(db, world):
    svc = ShipmentService(db)
    s = svc.create_shipment(actor_for(db, world.a_mgr), world.branch_b, PARTY_A, PARTY_B, PACKAGE)
    assert s.status == S.AT_ORIGIN_BRANCH
    assert s.origin_branch_id == world.branch_a
    assert s.current_branch_id == world.branch_a
    assert s.destination_branch_id == world.branch_b
    assert re.fullmatch(r"TRK-[0-9A-F]{10}", s.tracking_id)
    assert _history(s) == [S.AT_ORIGIN_BRANCH]


def test_local_delivery_with_inline_assignee_has_two_entries(db, world):
    s = _local(db, world, assignee=world.staff_y)
    assert s.status == S.ASSIGNED
    assert s.assigned_to_id == world.staff_y
    assert _history(s) == [S.AT_ORIGIN_BRANCH, S.ASSIGNED]


def test_inline_assignee_only_for_local(db, world):
    svc = ShipmentService(db)
    with pytest.raises(ValidationError):
        svc.create_shipment(
            actor_for(db, world.a_disp), world.branch_b, PARTY_A, PARTY_B, PACKAGE, assigned_to_id=world.staff_y
        )


def test_assignee_must_be_staff_of_current_branch(db, world):
    with pytest.raises(ValidationError):
        _local(db, world, assignee=world.staff_x)


@pytest.mark.parametrize(
    "field, value",
    [
        ("address", "abc"),
        ("address", "x" * 201),
        ("phone", "555-12"),
        ("phone", "call me maybe"),
        ("name", "   "),
    ],
)
def test_create_rejects_bad_party_fields(db, world, field, value):
    bad = dict(PARTY_B, **{field: value})
    svc = ShipmentService(db)
    with pytest.raises(ValidationError):
        svc.create_shipment(actor_for(db, world.a_disp), world.branch_b, PARTY_A, bad, PACKAGE)


def test_create_rejects_unknown_destination(db, world):
    svc = ShipmentService(db)
    with pytest.raises(ValidationError):
        svc.create_shipment(actor_for(db, world.a_disp), 9999, PARTY_A, PARTY_B, PACKAGE)


def test_create_sanitizes_free_text(db, world):
    svc = ShipmentService(db)
    sender = dict(PARTY_A, name="<b>Bob</b> & Co")
    s = svc.create_shipment(actor_for(db, world.a_disp), world.branch_b, sender, PARTY_B, PACKAGE)
    assert s.sender["name"] == "Bob &amp; Co"


def test_staff_and_superadmin_cannot_create(db, world):
    svc = ShipmentService(db)
    for uid in (world.staff_y, world.root):
        with pytest.raises(ForbiddenError):
            svc.create_shipment(actor_for(db, uid), world.branch_a, PARTY_A, PARTY_B, PACKAGE)


def test_delivered_requires_proof_and_is_terminal(db, world):
    s = _local(db, world, assignee=world.staff_y)
    svc = ShipmentService(db)
    staff = actor_for(db, world.staff_y)
    with pytest.raises(ValidationError):
        svc.update_status(staff, s.id, "Delivered")
    svc.update_status(staff, s.id, "OutForDelivery")
    s = svc.update_status(staff, s.id, "Delivered", proof=PHOTO)
    assert s.status == S.DELIVERED
    assert s.delivery_proof == PHOTO
    assert _history(s)[-1] == S.DELIVERED

    for target in ("Failed", "OutForDelivery", "Assigned"):
        with pytest.raises(InvalidTransitionError):
            svc.update_status(actor_for(db, world.a_disp), s.id, target, failure_reason="x", assigned_to_id=world.staff_y)


def test_failed_requires_reason(db, world):
    s = _local(db, world, assignee=world.staff_y)
    svc = ShipmentService(db)
    staff = actor_for(db, world.staff_y)
    with pytest.raises(ValidationError):
        svc.update_status(staff, s.id, "Failed")
    with pytest.raises(ValidationError):
        svc.update_status(staff, s.id, "Failed", failure_reason="   ")
    s = svc.update_status(staff, s.id, "Failed", failure_reason="Nobody home")
    assert s.status == S.FAILED
    assert s.failure_reason == "Nobody home"
    assert s.status_history[-1].notes.endswith("Reason: Nobody home")
    with pytest.raises(InvalidTransitionError):
        svc.update_status(staff, s.id, "Delivered", proof=PHOTO)


def test_history_grows_by_one_per_change(db, world):
    s = _local(db, world, assignee=world.staff_y)
    svc = ShipmentService(db)
    admin = actor_for(db, world.a_disp)
    before = len(s.status_history)
    s = svc.update_status(admin, s.id, "OutForDelivery")
    assert len(s.status_history) == before + 1
    assert s.status_history[-1].status == s.status


def test_backward_and_skipped_moves_rejected(db, world):
    svc = ShipmentService(db)
    admin = actor_for(db, world.a_disp)
    s = svc.create_shipment(admin, world.branch_b, PARTY_A, PARTY_B, PACKAGE)
    with pytest.raises(InvalidTransitionError):
        svc.update_status(admin, s.id, "AtDestinationBranch")
    with pytest.raises(InvalidTransitionError):
        svc.update_status(admin, s.id, "InTransitToDestination")
    with pytest.raises(InvalidTransitionError):
        svc.update_status(admin, s.id, "Assigned", assigned_to_id=world.staff_y)

    local = _local(db, world, assignee=world.staff_y)
    svc.update_status(admin, local.id, "OutForDelivery")
    with pytest.raises(InvalidTransitionError):
        svc.update_status(admin, local.id, "Assigned", assigned_to_id=world.staff_y)


def test_unknown_status_is_validation_error(db, world):
    s = _local(db, world)
    with pytest.raises(ValidationError):
        ShipmentService(db).update_status(actor_for(db, world.a_disp), s.id, "Teleported")


def test_staff_limits(db, world):
    s = _local(db, world, assignee=world.staff_y)
    svc = ShipmentService(db)
    staff = actor_for(db, world.staff_y)
    with pytest.raises(ForbiddenError):
        svc.update_status(staff, s.id, "Assigned", assigned_to_id=world.staff_y)

    other = _local(db, world)
    with pytest.raises(ForbiddenError):
        svc.update_status(staff, other.id, "OutForDelivery")


def test_other_branch_cannot_touch_shipment(db, world):
    s = _local(db, world, assignee=world.staff_y)
    svc = ShipmentService(db)
    with pytest.raises(ForbiddenError):
        svc.update_status(actor_for(db, world.b_mgr), s.id, "OutForDelivery")
    with pytest.raises(ForbiddenError):
        svc.get_shipment(actor_for(db, world.b_mgr), s.id)
    assert svc.get_shipment(actor_for(db, world.root), s.id).id == s.id


def test_reassign_while_assigned(db, world):
    svc = ShipmentService(db)
    admin = actor_for(db, world.a_disp)
    s = _local(db, world, assignee=world.staff_y)
    with pytest.raises(ValidationError):
        svc.assign(admin, s.id, world.staff_y)
    with pytest.raises(ValidationError):
        svc.assign(admin, s.id, world.staff_x)

    zed = UserService(db).create_user(
        actor_for(db, world.a_mgr), "Zed Courier", "zed@alpha.example.com", PASSWORD, "staff"
    )
    s = svc.assign(admin, s.id, zed.id)
    assert s.assigned_to_id == zed.id
    assert _history(s) == [S.AT_ORIGIN_BRANCH, S.ASSIGNED, S.ASSIGNED]
    assert s.status_history[-1].notes == "Reassigned to Zed Courier"


def test_stale_version_is_conflict(db, world):
    s = _local(db, world, assignee=world.staff_y)
    svc = ShipmentService(db)
    with pytest.raises(ConflictError):
        svc.update_status(actor_for(db, world.a_disp), s.id, "OutForDelivery", expected_version=s.version - 1)


def test_only_origin_creator_can_delete(db, world):
    svc = ShipmentService(db)
    s = svc.create_shipment(actor_for(db, world.a_disp), world.branch_a, PARTY_A, PARTY_B, PACKAGE)
    with pytest.raises(ForbiddenError):
        svc.delete_shipment(actor_for(db, world.a_mgr), s.id)
    with pytest.raises(ForbiddenError):
        svc.delete_shipment(actor_for(db, world.staff_y), s.id)
    svc.delete_shipment(actor_for(db, world.a_disp), s.id)
    with pytest.raises(NotFoundError):
        svc.get_shipment(actor_for(db, world.a_disp), s.id)


def test_update_details_by_creator(db, world):
    svc = ShipmentService(db)
    creator = actor_for(db, world.a_disp)
    s = svc.create_shipment(creator, world.branch_b, PARTY_A, PARTY_B, PACKAGE)
    with pytest.raises(ForbiddenError):
        svc.update_details(actor_for(db, world.a_mgr), s.id, package_info={"weight": 3, "type": "box"})
    version = s.version
    s = svc.update_details(creator, s.id, package_info={"weight": 3, "type": "box"})
    assert s.package_info == {"weight": 3.0, "type": "box"}
    assert s.status == S.AT_ORIGIN_BRANCH
    assert s.version == version + 1
    # history records status changes only
    assert _history(s) == [S.AT_ORIGIN_BRANCH]


def test_list_views_and_search(db, world):
    svc = ShipmentService(db)
    a = actor_for(db, world.a_disp)
    out = svc.create_shipment(a, world.branch_b, PARTY_A, PARTY_B, PACKAGE)
    local = svc.create_shipment(a, world.branch_a, PARTY_A, dict(PARTY_B, name="Lola Local"), PACKAGE)

    items, total = svc.list_shipments(a, view="outgoing")
    assert [s.id for s in items] == [out.id] and total == 1
    items, _ = svc.list_shipments(a, view="local")
    assert [s.id for s in items] == [local.id]
    items, _ = svc.list_shipments(a, q="lola")
    assert [s.id for s in items] == [local.id]
    items, _ = svc.list_shipments(a, q=out.tracking_id)
    assert [s.id for s in items] == [out.id]

    items, _ = svc.list_shipments(actor_for(db, world.b_mgr), view="incoming")
    assert [s.id for s in items] == [out.id]

    with pytest.raises(ValidationError):
        svc.list_shipments(a, view="sideways")
