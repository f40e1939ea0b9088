from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from courierhub.adapters.proof_storage import LocalProofStorage, ProofStorageError
from courierhub.errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from courierhub.models.notification import NotificationEvent
from courierhub.models.shipment import ProofType, Shipment, ShipmentStatus, ShipmentStatusEntry
from courierhub.models.user import Role, User
from courierhub.repositories.branch_repo import BranchRepository
from courierhub.repositories.shipment_repo import VIEWS, ShipmentRepository
from courierhub.repositories.user_repo import UserRepository
from courierhub.services import authz, lifecycle
from courierhub.services.authz import Actor
from courierhub.services.notification_service import NotificationService
from courierhub.utils.log import get_logger
from courierhub.utils.sanitize import (
    ADDRESS_MAX,
    NAME_MAX,
    NOTES_MAX,
    is_valid_address,
    is_valid_phone,
    sanitize_input,
)
from courierhub.utils.transactions import smart_transaction

log = get_logger("courierhub.shipments", "shipments")

S = ShipmentStatus

_PROGRESS_EVENTS = {
    S.OUT_FOR_DELIVERY: NotificationEvent.OUT_FOR_DELIVERY,
    S.DELIVERED: NotificationEvent.DELIVERED,
    S.FAILED: NotificationEvent.DELIVERY_FAILED,
}


def clean_party(label: str, party: Optional[Dict]) -> Dict:
    """Validate and sanitize a sender/recipient block {name, address, phone}."""
    party = party or {}
    name = sanitize_input(party.get("name"), NAME_MAX)
    address = (party.get("address") or "").strip()
    phone = (party.get("phone") or "").strip()
    if not name:
        raise ValidationError(f"{label} name is required")
    if not is_valid_address(address):
        raise ValidationError(f"{label} address must be between 5 and 200 characters")
    if not is_valid_phone(phone):
        raise ValidationError(f"{label} phone number is invalid")
    return {"name": name, "address": sanitize_input(address, ADDRESS_MAX), "phone": phone}


def clean_package(info: Optional[Dict]) -> Dict:
    info = info or {}
    try:
        weight = float(info.get("weight"))
    except (TypeError, ValueError):
        raise ValidationError("Package weight must be a number")
    if weight <= 0:
        raise ValidationError("Package weight must be positive")
    kind = sanitize_input(info.get("type"), NAME_MAX)
    if not kind:
        raise ValidationError("Package type is required")
    cleaned = {"weight": weight, "type": kind}
    details = sanitize_input(info.get("details"), NOTES_MAX)
    if details:
        cleaned["details"] = details
    return cleaned


def clean_proof(proof: Optional[Dict]) -> Dict:
    if not proof:
        raise ValidationError("Delivery proof is required to mark a shipment Delivered")
    try:
        kind = ProofType(proof.get("type"))
    except ValueError:
        raise ValidationError("Delivery proof type must be 'signature' or 'photo'")
    url = (proof.get("url") or "").strip()
    if not url:
        raise ValidationError("Delivery proof url is required")
    return {"type": kind.value, "url": url}


class ShipmentService:
    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.repo = ShipmentRepository(db)
        self.branches = BranchRepository(db)
        self.users = UserRepository(db)
        self.notifications = notifications or NotificationService(db)

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _gen_tracking_id(self) -> str:
        for _ in range(5):
            tracking_id = f"TRK-{uuid4().hex[:10].upper()}"
            if not self.repo.tracking_id_exists(tracking_id):
                return tracking_id
        raise ConflictError("Could not allocate a unique tracking id, try again")

    def _append(self, shipment: Shipment, status: ShipmentStatus, notes: Optional[str]) -> None:
        shipment.status = status
        shipment.status_history.append(
            ShipmentStatusEntry(status=status, timestamp=self._now(), notes=notes)
        )

    def _require_branch_staff(self, user_id: int, branch_id: int) -> User:
        user = self.users.get(user_id)
        if not user or user.role != Role.STAFF or user.branch_id != branch_id:
            raise ValidationError("Assignee must be a delivery staff member of the shipment's current branch")
        return user

    def _get_or_404(self, shipment_id: int) -> Shipment:
        shipment = self.repo.get(shipment_id)
        if not shipment:
            raise NotFoundError("Shipment not found")
        return shipment

    # --- queries -----------------------------------------------------------

    def get_shipment(self, actor: Actor, shipment_id: int) -> Shipment:
        shipment = self._get_or_404(shipment_id)
        if not authz.can_view_shipment(actor, shipment):
            raise ForbiddenError("You do not have access to this shipment")
        return shipment

    def list_shipments(
        self,
        actor: Actor,
        view: str = "all",
        status: Optional[str] = None,
        q: Optional[str] = None,
        branch_id: Optional[int] = None,
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[Shipment], int]:
        if view not in VIEWS:
            raise ValidationError(f"view must be one of {', '.join(VIEWS)}")
        status_filter = None
        if status:
            try:
                status_filter = ShipmentStatus(status)
            except ValueError:
                raise ValidationError(f"Unknown status: {status}")
        if actor.is_staff:
            return self.repo.list_for_branch(
                None, status=status_filter, q=q, assigned_to_id=actor.user_id, page=page, size=size
            )
        if not actor.is_super_admin:
            branch_id = actor.branch_id
        return self.repo.list_for_branch(branch_id, view=view, status=status_filter, q=q, page=page, size=size)

    # --- mutations ---------------------------------------------------------

    def create_shipment(
        self,
        actor: Actor,
        destination_branch_id: int,
        sender: Dict,
        recipient: Dict,
        package_info: Dict,
        assigned_to_id: Optional[int] = None,
    ) -> Shipment:
        """
        Create a shipment at the actor's branch in AtOriginBranch.

        A local delivery (origin == destination) created with an assignee is
        moved to Assigned straight away, as a second history entry.
        """
        authz.require_branch_admin(actor)
        origin_id = actor.branch_id
        if not self.branches.exists(destination_branch_id):
            raise ValidationError("Destination branch does not exist")

        sender = clean_party("Sender", sender)
        recipient = clean_party("Recipient", recipient)
        package_info = clean_package(package_info)

        assignee = None
        if assigned_to_id is not None:
            if origin_id != destination_branch_id:
                raise ValidationError("Only local deliveries can be assigned when they are created")
            assignee = self._require_branch_staff(assigned_to_id, origin_id)

        with smart_transaction(self.db):
            shipment = Shipment(
                tracking_id=self._gen_tracking_id(),
                sender=sender,
                recipient=recipient,
                package_info=package_info,
                origin_branch_id=origin_id,
                destination_branch_id=destination_branch_id,
                current_branch_id=origin_id,
                created_by_id=actor.user_id,
            )
            self._append(shipment, S.AT_ORIGIN_BRANCH, "Shipment created at origin branch")
            self.db.add(shipment)
            self.db.flush()

            if assignee is not None:
                lifecycle.check_transition(shipment.status, S.ASSIGNED, is_local=True)
                shipment.assigned_to_id = assignee.id
                self._append(shipment, S.ASSIGNED, f"Assigned to {assignee.name}")
                self.db.flush()

        log.info(
            "created %s origin=%s destination=%s by user=%s",
            shipment.tracking_id,
            origin_id,
            destination_branch_id,
            actor.user_id,
        )
        self.notifications.shipment_created(shipment)
        if assignee is not None:
            self.notifications.delivery_assigned(shipment)
        return shipment

    def update_status(
        self,
        actor: Actor,
        shipment_id: int,
        new_status,
        notes: Optional[str] = None,
        proof: Optional[Dict] = None,
        failure_reason: Optional[str] = None,
        assigned_to_id: Optional[int] = None,
        expected_version: Optional[int] = None,
    ) -> Shipment:
        """
        Move a shipment along the status machine.

        Authority: the origin-branch creator, an admin of the current branch,
        or the assigned delivery staff member (delivery progress only).
        Every accepted call appends exactly one status history entry.
        """
        shipment = self._get_or_404(shipment_id)
        try:
            target = ShipmentStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown status: {new_status}")

        is_creator = authz.is_origin_creator(actor, shipment)
        is_custodian = authz.is_current_custodian(actor, shipment)
        is_staff = authz.is_assigned_staff(actor, shipment)
        if not (is_creator or is_custodian or is_staff):
            log.warning("user=%s denied status change on %s", actor.user_id, shipment.tracking_id)
            raise ForbiddenError("You are not allowed to update this shipment")
        if expected_version is not None and expected_version != shipment.version:
            raise ConflictError("Shipment was modified by another request; reload and retry")

        previous = ShipmentStatus(shipment.status)
        lifecycle.check_transition(previous, target, is_local=shipment.is_local)

        if not (is_creator or is_custodian):
            if target == S.ASSIGNED or assigned_to_id is not None:
                raise ForbiddenError("Delivery staff cannot assign shipments")
            if not lifecycle.check_staff_transition(previous, target):
                raise ForbiddenError(f"Delivery staff cannot change status from {previous.value} to {target.value}")

        if target != S.ASSIGNED and assigned_to_id is not None:
            raise ValidationError("assigned_to can only be set together with the Assigned status")
        if target != S.DELIVERED and proof:
            raise ValidationError("Delivery proof can only be attached when marking Delivered")
        if target != S.FAILED and failure_reason:
            raise ValidationError("A failure reason can only be given when marking Failed")

        notes = sanitize_input(notes, NOTES_MAX) or None
        assignee = None
        if target == S.ASSIGNED:
            if assigned_to_id is None:
                raise ValidationError("assigned_to is required to assign a shipment")
            assignee = self._require_branch_staff(assigned_to_id, shipment.current_branch_id)
            if previous == S.ASSIGNED and shipment.assigned_to_id == assignee.id:
                raise ValidationError("Shipment is already assigned to that staff member")
            verb = "Reassigned" if previous == S.ASSIGNED else "Assigned"
            notes = notes or f"{verb} to {assignee.name}"
        elif target == S.DELIVERED:
            proof = clean_proof(proof)
        elif target == S.FAILED:
            failure_reason = sanitize_input(failure_reason, NOTES_MAX)
            if not failure_reason:
                raise ValidationError("A failure reason is required to mark a shipment Failed")
            notes = f"{notes or 'Delivery failed'} - Reason: {failure_reason}"

        try:
            with smart_transaction(self.db):
                if assignee is not None:
                    shipment.assigned_to_id = assignee.id
                if target == S.DELIVERED:
                    shipment.delivery_proof = proof
                if target == S.FAILED:
                    shipment.failure_reason = failure_reason
                self._append(shipment, target, notes or f"Status updated to {target.value}")
                self.db.flush()
        except StaleDataError:
            raise ConflictError("Shipment was modified by another request; reload and retry")

        log.info(
            "%s %s -> %s by user=%s",
            shipment.tracking_id,
            previous.value,
            target.value,
            actor.user_id,
        )
        if assignee is not None:
            self.notifications.delivery_assigned(shipment)
        elif target in _PROGRESS_EVENTS:
            self.notifications.delivery_progress(shipment, _PROGRESS_EVENTS[target])
        return shipment

    def assign(self, actor: Actor, shipment_id: int, staff_id: int, notes: Optional[str] = None) -> Shipment:
        if not actor.is_admin:
            raise ForbiddenError("Only branch admins can assign shipments")
        return self.update_status(actor, shipment_id, S.ASSIGNED, notes=notes, assigned_to_id=staff_id)

    def update_details(
        self,
        actor: Actor,
        shipment_id: int,
        sender: Optional[Dict] = None,
        recipient: Optional[Dict] = None,
        package_info: Optional[Dict] = None,
    ) -> Shipment:
        """Origin-branch creator edits the parties or package of a live shipment."""
        shipment = self._get_or_404(shipment_id)
        if not authz.is_origin_creator(actor, shipment):
            raise ForbiddenError("Only the origin-branch creator can edit shipment details")
        if lifecycle.is_terminal(shipment.status):
            raise InvalidTransitionError(f"Shipment is {shipment.status.value}; it can no longer be edited")

        changes = {}
        if sender is not None:
            changes["sender"] = clean_party("Sender", sender)
        if recipient is not None:
            changes["recipient"] = clean_party("Recipient", recipient)
        if package_info is not None:
            changes["package_info"] = clean_package(package_info)
        if not changes:
            raise ValidationError("Nothing to update")

        try:
            with smart_transaction(self.db):
                for field, value in changes.items():
                    setattr(shipment, field, value)
                self.db.flush()
        except StaleDataError:
            raise ConflictError("Shipment was modified by another request; reload and retry")
        log.info("%s details updated (%s) by user=%s", shipment.tracking_id, ", ".join(changes), actor.user_id)
        return shipment

    def store_proof(
        self,
        actor: Actor,
        shipment_id: int,
        proof_type,
        content: bytes,
        content_type: Optional[str],
        storage: Optional[LocalProofStorage] = None,
    ) -> Dict:
        """
        Save an uploaded photo or signature for a shipment out with the caller
        and return the {type, url} block to send with the Delivered update.
        """
        shipment = self._get_or_404(shipment_id)
        if not (authz.is_assigned_staff(actor, shipment) or authz.is_current_custodian(actor, shipment)):
            raise ForbiddenError("You are not allowed to upload proof for this shipment")
        if shipment.status not in (S.ASSIGNED, S.OUT_FOR_DELIVERY):
            raise InvalidTransitionError(f"Shipment is {shipment.status.value}; proof can only be added during delivery")
        try:
            kind = ProofType(proof_type)
        except ValueError:
            raise ValidationError("Delivery proof type must be 'signature' or 'photo'")

        storage = storage or LocalProofStorage()
        try:
            url = storage.save(shipment.id, kind.value, content, content_type)
        except ProofStorageError as e:
            raise ValidationError(str(e))
        log.info("%s proof (%s) stored by user=%s", shipment.tracking_id, kind.value, actor.user_id)
        return {"type": kind.value, "url": url}

    def delete_shipment(self, actor: Actor, shipment_id: int) -> None:
        shipment = self._get_or_404(shipment_id)
        authz.authorize_delete(actor, shipment)
        if self.repo.is_in_open_manifest(shipment.id):
            raise ConflictError("Shipment is on a manifest that is still in transit")
        tracking_id = shipment.tracking_id
        with smart_transaction(self.db):
            self.db.delete(shipment)
        log.info("deleted %s by user=%s", tracking_id, actor.user_id)
