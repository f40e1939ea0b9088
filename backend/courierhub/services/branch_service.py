from typing import Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from courierhub.errors import ConflictError, NotFoundError, ValidationError
from courierhub.models.branch import Branch
from courierhub.models.manifest import Manifest
from courierhub.models.notification import Notification
from courierhub.models.shipment import Shipment, ShipmentStatusEntry
from courierhub.models.user import Role, User
from courierhub.repositories.branch_repo import BranchRepository
from courierhub.repositories.user_repo import UserRepository
from courierhub.services import authz
from courierhub.services.authz import Actor
from courierhub.services.pricing_service import PricingService
from courierhub.services.user_service import UserService, clean_email, clean_name
from courierhub.utils.log import get_logger
from courierhub.utils.sanitize import NAME_MAX, sanitize_input
from courierhub.utils.transactions import smart_transaction

log = get_logger("courierhub.branches", "branches")

# distinguishes "leave the zone alone" from "clear the zone"
UNSET = object()


class BranchService:
    """Tenant management. Every operation here is SuperAdmin only."""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BranchRepository(db)
        self.users = UserRepository(db)
        self.user_service = UserService(db)

    def _clean_branch_name(self, name, exclude_id: Optional[int] = None) -> str:
        name = sanitize_input(name, NAME_MAX)
        if not name:
            raise ValidationError("Branch name is required")
        if self.repo.name_taken(name, exclude_id=exclude_id):
            raise ConflictError("A branch with this name already exists")
        return name

    def _get_or_404(self, branch_id: int) -> Branch:
        branch = self.repo.get(branch_id)
        if not branch:
            raise NotFoundError("Branch not found")
        return branch

    def create_branch(
        self, actor: Actor, name, manager_name, manager_email, manager_password
    ) -> Tuple[Branch, User]:
        """Create a branch and its Branch Manager together, or neither."""
        authz.require_super_admin(actor)
        name = self._clean_branch_name(name)
        with smart_transaction(self.db):
            branch = Branch(name=name)
            self.db.add(branch)
            self.db.flush()
            manager = self.user_service.new_user(
                manager_name, manager_email, manager_password, Role.ADMIN, branch.id, is_manager=True
            )
        log.info("branch %s (%s) created with manager %s", branch.id, branch.name, manager.id)
        return branch, manager

    def list_branches(self, actor: Actor) -> List[Tuple[Branch, Optional[User]]]:
        authz.require_super_admin(actor)
        return [(b, self.users.manager_of(b.id)) for b in self.repo.list()]

    def get_branch(self, actor: Actor, branch_id: int) -> Tuple[Branch, Optional[User]]:
        authz.require_super_admin(actor)
        branch = self._get_or_404(branch_id)
        return branch, self.users.manager_of(branch.id)

    def update_branch(
        self,
        actor: Actor,
        branch_id: int,
        name=None,
        manager_name=None,
        manager_email=None,
        zone_id=UNSET,
    ) -> Tuple[Branch, Optional[User]]:
        authz.require_super_admin(actor)
        branch = self._get_or_404(branch_id)
        manager = self.users.manager_of(branch.id)

        if name is not None:
            name = self._clean_branch_name(name, exclude_id=branch.id)
        if (manager_name is not None or manager_email is not None) and manager is None:
            raise NotFoundError("Branch has no manager to update")
        if manager_name is not None:
            manager_name = clean_name(manager_name)
        if manager_email is not None:
            manager_email = clean_email(manager_email)
            if self.users.email_taken(manager_email, exclude_id=manager.id):
                raise ConflictError("A user with this email already exists")

        with smart_transaction(self.db):
            if name is not None:
                branch.name = name
            if manager_name is not None:
                manager.name = manager_name
            if manager_email is not None:
                manager.email = manager_email
            if zone_id is not UNSET:
                PricingService(self.db).assign_zone(branch, zone_id)
        log.info("branch %s updated", branch.id)
        return branch, manager

    def delete_branch(self, actor: Actor, branch_id: int) -> Dict[str, int]:
        """
        Remove a branch and everything hanging off it in one transaction:
        notifications, manifests touching the branch, shipments whose origin,
        destination or current branch it is (with their history), its users.
        """
        authz.require_super_admin(actor)
        branch = self._get_or_404(branch_id)

        with smart_transaction(self.db):
            shipment_ids = [
                r[0]
                for r in self.db.query(Shipment.id)
                .filter(
                    or_(
                        Shipment.origin_branch_id == branch.id,
                        Shipment.destination_branch_id == branch.id,
                        Shipment.current_branch_id == branch.id,
                    )
                )
                .all()
            ]
            manifest_ids = [
                r[0]
                for r in self.db.query(Manifest.id)
                .filter(or_(Manifest.from_branch_id == branch.id, Manifest.to_branch_id == branch.id))
                .all()
            ]
            user_ids = [r[0] for r in self.db.query(User.id).filter(User.branch_id == branch.id).all()]

            counts = {}
            counts["notifications"] = (
                self.db.query(Notification)
                .filter(
                    or_(
                        Notification.branch_id == branch.id,
                        Notification.user_id.in_(user_ids),
                        Notification.shipment_id.in_(shipment_ids),
                        Notification.manifest_id.in_(manifest_ids),
                    )
                )
                .delete(synchronize_session=False)
            )
            counts["manifests"] = (
                self.db.query(Manifest).filter(Manifest.id.in_(manifest_ids)).delete(synchronize_session=False)
            )
            counts["status_entries"] = (
                self.db.query(ShipmentStatusEntry)
                .filter(ShipmentStatusEntry.shipment_id.in_(shipment_ids))
                .delete(synchronize_session=False)
            )
            counts["shipments"] = (
                self.db.query(Shipment).filter(Shipment.id.in_(shipment_ids)).delete(synchronize_session=False)
            )
            counts["users"] = self.users.delete_many(user_ids)
            self.db.query(Branch).filter(Branch.id == branch.id).delete(synchronize_session=False)

        self.db.expire_all()
        log.info("branch %s deleted: %s", branch_id, counts)
        return counts
