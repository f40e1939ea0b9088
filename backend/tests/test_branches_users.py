import pytest

from conftest import PACKAGE, PARTY_A, PARTY_B, PASSWORD, actor_for
from courierhub.db import SessionLocal
from courierhub.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from courierhub.models.branch import Branch
from courierhub.models.manifest import Manifest
from courierhub.models.notification import Notification
from courierhub.models.shipment import Shipment, ShipmentStatusEntry
from courierhub.models.user import Role, User
from courierhub.repositories.user_repo import UserRepository
from courierhub.services.auth_service import AuthService
from courierhub.services.branch_service import BranchService
from courierhub.services.manifest_service import ManifestService
from courierhub.services.shipment_service import ShipmentService
from courierhub.services.stats_service import StatsService
from courierhub.services.user_service import UserService


def test_create_branch_with_manager(db, world):
    svc = BranchService(db)
    branch, manager = svc.create_branch(
        actor_for(db, world.root), "Charlie", "Cara Manager", "Cara@Charlie.example.com", PASSWORD
    )
    assert manager.is_manager and manager.role == Role.ADMIN
    assert manager.branch_id == branch.id
    assert manager.email == "cara@charlie.example.com"

    user, token = AuthService(db).login("cara@charlie.example.com", PASSWORD)
    assert user.id == manager.id and token


def test_create_branch_rolls_back_on_bad_manager(db, world):
    svc = BranchService(db)
    with pytest.raises(ConflictError):
        svc.create_branch(actor_for(db, world.root), "Charlie", "Dup", "mgr@alpha.example.com", PASSWORD)
    with pytest.raises(ValidationError):
        svc.create_branch(actor_for(db, world.root), "Charlie", "Short", "short@charlie.example.com", "short")
    assert db.query(Branch).filter(Branch.name == "Charlie").count() == 0


def test_branch_management_is_super_admin_only(db, world):
    svc = BranchService(db)
    with pytest.raises(ForbiddenError):
        svc.create_branch(actor_for(db, world.a_mgr), "Nope", "N", "n@nope.example.com", PASSWORD)
    with pytest.raises(ForbiddenError):
        svc.delete_branch(actor_for(db, world.a_mgr), world.branch_b)
    with pytest.raises(ConflictError):
        svc.create_branch(actor_for(db, world.root), "Alpha", "A", "a2@alpha.example.com", PASSWORD)


def test_list_and_update_branches(db, world):
    svc = BranchService(db)
    root = actor_for(db, world.root)
    rows = svc.list_branches(root)
    managers = {b.name: m.email for b, m in rows}
    assert managers == {"Alpha": "mgr@alpha.example.com", "Bravo": "mgr@bravo.example.com"}

    branch, manager = svc.update_branch(root, world.branch_b, name="Bravo East", manager_name="Bea")
    assert branch.name == "Bravo East" and manager.name == "Bea"
    with pytest.raises(ConflictError):
        svc.update_branch(root, world.branch_b, manager_email="mgr@alpha.example.com")
    with pytest.raises(NotFoundError):
        svc.get_branch(root, 9999)


def test_delete_branch_cascades(db, world):
    a = actor_for(db, world.a_disp)
    shipments = ShipmentService(db)
    to_b = shipments.create_shipment(a, world.branch_b, PARTY_A, PARTY_B, PACKAGE)
    local = shipments.create_shipment(a, world.branch_a, PARTY_A, PARTY_B, PACKAGE)
    ManifestService(db).dispatch(a, world.branch_a, world.branch_b, [to_b.id])
    local_id = local.id

    counts = BranchService(db).delete_branch(actor_for(db, world.root), world.branch_b)
    assert counts["shipments"] == 1
    assert counts["manifests"] == 1
    assert counts["users"] == 2

    assert db.query(Branch).filter(Branch.id == world.branch_b).count() == 0
    assert db.query(User).filter(User.branch_id == world.branch_b).count() == 0
    assert db.query(Manifest).count() == 0
    assert [s.id for s in db.query(Shipment).all()] == [local_id]
    assert db.query(ShipmentStatusEntry).filter(ShipmentStatusEntry.shipment_id != local_id).count() == 0
    assert db.query(Notification).filter(Notification.branch_id == world.branch_b).count() == 0


def test_delete_branch_failure_changes_nothing(db, world, monkeypatch):
    a = actor_for(db, world.a_disp)
    shipment = ShipmentService(db).create_shipment(a, world.branch_b, PARTY_A, PARTY_B, PACKAGE)
    ManifestService(db).dispatch(a, world.branch_a, world.branch_b, [shipment.id])

    def broken_delete(self, user_ids):
        raise RuntimeError("disk full")

    monkeypatch.setattr(UserRepository, "delete_many", broken_delete)
    with pytest.raises(RuntimeError):
        BranchService(db).delete_branch(actor_for(db, world.root), world.branch_b)

    check = SessionLocal()
    try:
        assert check.query(Branch).filter(Branch.id == world.branch_b).count() == 1
        assert check.query(User).filter(User.branch_id == world.branch_b).count() == 2
        assert check.query(Manifest).count() == 1
        assert check.query(Shipment).filter(Shipment.id == shipment.id).count() == 1
        assert check.query(ShipmentStatusEntry).filter(ShipmentStatusEntry.shipment_id == shipment.id).count() == 2
    finally:
        check.close()


def test_manager_creates_admin_and_staff(db, world):
    svc = UserService(db)
    mgr = actor_for(db, world.a_mgr)
    admin = svc.create_user(mgr, "New Dispatcher", "nd@alpha.example.com", PASSWORD, "admin")
    assert admin.role == Role.ADMIN and not admin.is_manager and admin.branch_id == world.branch_a
    staff = svc.create_user(mgr, "New Staff", "ns@alpha.example.com", PASSWORD, "staff")
    assert staff.role == Role.STAFF

    with pytest.raises(ForbiddenError):
        svc.create_user(mgr, "Root 2", "r2@example.com", PASSWORD, "superAdmin")
    with pytest.raises(ConflictError):
        svc.create_user(mgr, "Dup", "NS@alpha.example.com", PASSWORD, "staff")
    with pytest.raises(ValidationError):
        svc.create_user(mgr, "Bad", "not-an-email", PASSWORD, "staff")


def test_dispatcher_creates_staff_only(db, world):
    svc = UserService(db)
    disp = actor_for(db, world.a_disp)
    svc.create_user(disp, "Staffer", "st@alpha.example.com", PASSWORD, "staff")
    with pytest.raises(ForbiddenError):
        svc.create_user(disp, "Admin", "ad@alpha.example.com", PASSWORD, "admin")
    with pytest.raises(ForbiddenError):
        svc.create_user(actor_for(db, world.staff_y), "X", "x2@alpha.example.com", PASSWORD, "staff")


def test_only_manager_edits_and_deletes(db, world):
    svc = UserService(db)
    mgr = actor_for(db, world.a_mgr)
    with pytest.raises(ForbiddenError):
        svc.update_user(actor_for(db, world.a_disp), world.staff_y, name="Y")
    with pytest.raises(ForbiddenError):
        svc.update_user(mgr, world.a_mgr, name="Me")
    with pytest.raises(NotFoundError):
        svc.update_user(mgr, world.staff_x, name="Other branch")

    updated = svc.update_user(mgr, world.a_disp, name="Renamed")
    assert updated.name == "Renamed"

    svc.delete_user(mgr, world.a_disp)
    assert db.query(User).filter(User.id == world.a_disp).count() == 0


def test_staff_with_active_delivery_cannot_be_deleted(db, world):
    ShipmentService(db).create_shipment(
        actor_for(db, world.a_disp), world.branch_a, PARTY_A, PARTY_B, PACKAGE, assigned_to_id=world.staff_y
    )
    with pytest.raises(ConflictError):
        UserService(db).delete_user(actor_for(db, world.a_mgr), world.staff_y)


def test_ensure_superadmin_is_idempotent(db, world):
    svc = UserService(db)
    assert svc.ensure_superadmin("boot@example.com", PASSWORD) is True
    assert svc.ensure_superadmin("boot@example.com", PASSWORD) is False


def test_stats(db, world):
    a = actor_for(db, world.a_disp)
    shipments = ShipmentService(db)
    s = shipments.create_shipment(a, world.branch_a, PARTY_A, PARTY_B, PACKAGE, assigned_to_id=world.staff_y)
    shipments.update_status(actor_for(db, world.staff_y), s.id, "Failed", failure_reason="Closed")
    shipments.create_shipment(a, world.branch_b, PARTY_A, PARTY_B, PACKAGE)

    root = actor_for(db, world.root)
    summary = StatsService(db).summary(root)
    assert summary["total_staff"] == 5
    assert summary["failed_count"] == 1
    assert summary["delivered_count"] == 0
    assert summary["by_status"]["AtOriginBranch"] == 1

    summary = StatsService(db).summary(root, branch_id=world.branch_b)
    assert summary["total_staff"] == 2
    assert summary["total_shipments"] == 0

    with pytest.raises(ForbiddenError):
        StatsService(db).summary(a)
