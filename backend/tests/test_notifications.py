from datetime import datetime, timedelta, timezone

import pytest

from conftest import PACKAGE, PARTY_A, PARTY_B, actor_for
from courierhub.adapters.push_notifier import RecordingPushNotifier
from courierhub.errors import NotFoundError
from courierhub.models.notification import Notification, NotificationEvent
from courierhub.services.manifest_service import ManifestService
from courierhub.services.notification_service import NotificationService
from courierhub.services.shipment_service import ShipmentService


def test_shipment_created_notifies_origin_admins(db, world):
    ShipmentService(db).create_shipment(actor_for(db, world.a_disp), world.branch_b, PARTY_A, PARTY_B, PACKAGE)
    svc = NotificationService(db)
    for uid in (world.a_mgr, world.a_disp):
        items = svc.list_for_user(uid)
        assert [n.type for n in items] == [NotificationEvent.SHIPMENT_CREATED]
        assert items[0].reference.startswith("TRK-")
    assert svc.list_for_user(world.b_mgr) == []


def test_manifest_events_reach_both_branches(db, world):
    a = actor_for(db, world.a_disp)
    s = ShipmentService(db).create_shipment(a, world.branch_b, PARTY_A, PARTY_B, PACKAGE)
    svc = ManifestService(db)
    m = svc.dispatch(a, world.branch_a, world.branch_b, [s.id])
    svc.receive(actor_for(db, world.b_mgr), m.id)

    notes = NotificationService(db)
    incoming = notes.list_for_user(world.b_mgr)
    assert [n.type for n in incoming] == [NotificationEvent.MANIFEST_DISPATCHED]
    assert incoming[0].reference == f"MAN-{m.id}"
    assert "Alpha" in incoming[0].message

    types = [n.type for n in notes.list_for_user(world.a_mgr)]
    assert NotificationEvent.MANIFEST_ARRIVED in types


def test_assignment_pushes_to_staff(db, world):
    push = RecordingPushNotifier()
    svc = ShipmentService(db, notifications=NotificationService(db, push=push))
    s = svc.create_shipment(
        actor_for(db, world.a_disp), world.branch_a, PARTY_A, PARTY_B, PACKAGE, assigned_to_id=world.staff_y
    )
    assert push.sent == [
        (world.staff_y, "delivery_assigned", {"shipment_id": s.id, "tracking_id": s.tracking_id})
    ]
    mine = NotificationService(db).list_for_user(world.staff_y)
    assert [n.type for n in mine] == [NotificationEvent.DELIVERY_ASSIGNED]


def test_push_failure_does_not_break_workflow(db, world):
    class BrokenPush(RecordingPushNotifier):
        def notify(self, user_id, event, payload=None):
            raise RuntimeError("push gateway down")

    svc = ShipmentService(db, notifications=NotificationService(db, push=BrokenPush()))
    s = svc.create_shipment(
        actor_for(db, world.a_disp), world.branch_a, PARTY_A, PARTY_B, PACKAGE, assigned_to_id=world.staff_y
    )
    assert s.assigned_to_id == world.staff_y


def test_read_flags_and_counts(db, world):
    shipments = ShipmentService(db)
    a = actor_for(db, world.a_disp)
    for _ in range(3):
        shipments.create_shipment(a, world.branch_b, PARTY_A, PARTY_B, PACKAGE)

    svc = NotificationService(db)
    assert svc.unread_count(world.a_mgr) == 3
    first = svc.list_for_user(world.a_mgr)[0]
    svc.mark_read(world.a_mgr, first.id)
    assert svc.unread_count(world.a_mgr) == 2

    with pytest.raises(NotFoundError):
        svc.mark_read(world.b_mgr, first.id)

    assert svc.mark_all_read(world.a_mgr) == 2
    assert svc.unread_count(world.a_mgr) == 0
    assert svc.unread_count(world.a_disp) == 3


def test_purge_removes_old_read_notifications(db, world):
    ShipmentService(db).create_shipment(actor_for(db, world.a_disp), world.branch_b, PARTY_A, PARTY_B, PACKAGE)
    svc = NotificationService(db)
    svc.mark_all_read(world.a_mgr)

    old = datetime.now(timezone.utc) - timedelta(days=45)
    db.query(Notification).update({Notification.created_at: old}, synchronize_session=False)
    db.commit()

    assert svc.purge_read(older_than_days=30) == 1
    assert svc.list_for_user(world.a_mgr) == []
    assert svc.unread_count(world.a_disp) == 1
