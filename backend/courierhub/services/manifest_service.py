from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from courierhub.errors import (
    AlreadyCompletedError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from courierhub.models.manifest import Manifest, ManifestStatus, manifest_shipments
from courierhub.models.shipment import Shipment, ShipmentStatus, ShipmentStatusEntry
from courierhub.repositories.branch_repo import BranchRepository
from courierhub.repositories.manifest_repo import ManifestRepository
from courierhub.repositories.shipment_repo import ShipmentRepository
from courierhub.services import authz, lifecycle
from courierhub.services.authz import Actor
from courierhub.services.notification_service import NotificationService
from courierhub.utils.log import get_logger
from courierhub.utils.sanitize import NAME_MAX, NOTES_MAX, VEHICLE_MAX, sanitize_input
from courierhub.utils.transactions import smart_transaction

log = get_logger("courierhub.manifests", "manifests")

S = ShipmentStatus


class ManifestService:
    """
    Batches shipments for branch-to-branch transport.

    dispatch and receive are all-or-nothing. Each runs in one transaction and
    claims rows with a status-guarded UPDATE whose rowcount must match.
    """

    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.repo = ManifestRepository(db)
        self.shipments = ShipmentRepository(db)
        self.branches = BranchRepository(db)
        self.notifications = notifications or NotificationService(db)

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _branch_name(self, branch_id: int, fallback: str) -> str:
        branch = self.branches.get(branch_id)
        return branch.name if branch else fallback

    # --- queries -----------------------------------------------------------

    def list_available_shipments(
        self,
        actor: Actor,
        destination_branch_id: Optional[int] = None,
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[Shipment], int]:
        """Shipments at the actor's branch that a new manifest could pick up."""
        authz.require_branch_admin(actor)
        return self.shipments.list_available(actor.branch_id, destination_branch_id, page=page, size=size)

    def get_manifest(self, actor: Actor, manifest_id: int) -> Manifest:
        manifest = self.repo.get(manifest_id, with_shipments=True)
        if not manifest:
            raise NotFoundError("Manifest not found")
        if actor.is_super_admin:
            return manifest
        authz.require_branch_admin(actor)
        if actor.branch_id not in (manifest.from_branch_id, manifest.to_branch_id):
            raise ForbiddenError("You do not have access to this manifest")
        return manifest

    def list_manifests(
        self,
        actor: Actor,
        direction: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[Manifest], int]:
        authz.require_branch_admin(actor)
        if direction not in (None, "incoming", "outgoing"):
            raise ValidationError("type must be 'incoming' or 'outgoing'")
        status_filter = None
        if status:
            try:
                status_filter = ManifestStatus(status)
            except ValueError:
                raise ValidationError(f"Unknown manifest status: {status}")
        return self.repo.list_for_branch(actor.branch_id, direction, status_filter, page=page, size=size)

    # --- dispatch ----------------------------------------------------------

    def _validate_selection(self, from_branch_id: int, to_branch_id: int, ids: List[int]) -> None:
        found = {s.id: s for s in self.shipments.get_many(ids)}
        missing = [i for i in ids if i not in found]
        if missing:
            raise NotFoundError(f"Shipments not found: {', '.join(map(str, missing))}")

        mixed = [s.tracking_id for s in found.values() if s.destination_branch_id != to_branch_id]
        if mixed:
            raise ValidationError(
                f"Shipments not destined for the manifest's branch: {', '.join(sorted(mixed))}"
            )

        claimable = self.shipments.claimable_ids(from_branch_id, ids)
        unavailable = [s.tracking_id for s in found.values() if s.id not in claimable]
        if unavailable:
            raise ConflictError(
                f"Shipments no longer available for dispatch: {', '.join(sorted(unavailable))}"
            )

    def dispatch(
        self,
        actor: Actor,
        from_branch_id: int,
        to_branch_id: int,
        shipment_ids: Iterable[int],
        vehicle_number: Optional[str] = None,
        driver_name: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Manifest:
        """
        Create an InTransit manifest and move every listed shipment to
        InTransitToDestination, or change nothing at all.
        """
        authz.require_branch_admin(actor, from_branch_id)
        if from_branch_id == to_branch_id:
            raise ValidationError("A manifest must go to a different branch")
        if not self.branches.exists(to_branch_id):
            raise ValidationError("Destination branch does not exist")

        ids = [int(i) for i in (shipment_ids or [])]
        if not ids:
            raise ValidationError("At least one shipment is required")
        if len(set(ids)) != len(ids):
            raise ValidationError("Duplicate shipment ids in manifest")
        lifecycle.check_transition(S.AT_ORIGIN_BRANCH, S.IN_TRANSIT_TO_DESTINATION, is_local=False, via_manifest=True)
        self._validate_selection(from_branch_id, to_branch_id, ids)

        now = self._now()
        with smart_transaction(self.db):
            manifest = Manifest(
                from_branch_id=from_branch_id,
                to_branch_id=to_branch_id,
                status=ManifestStatus.IN_TRANSIT,
                vehicle_number=sanitize_input(vehicle_number, VEHICLE_MAX) or None,
                driver_name=sanitize_input(driver_name, NAME_MAX) or None,
                notes=sanitize_input(notes, NOTES_MAX) or None,
                dispatched_by_id=actor.user_id,
                dispatched_at=now,
            )
            self.db.add(manifest)
            self.db.flush()

            # only rows still waiting at the origin are claimed
            claimed = (
                self.db.query(Shipment)
                .filter(
                    Shipment.id.in_(ids),
                    Shipment.destination_branch_id == to_branch_id,
                    *self.shipments.available_criteria(from_branch_id),
                )
                .update(
                    {
                        Shipment.status: S.IN_TRANSIT_TO_DESTINATION,
                        Shipment.version: Shipment.version + 1,
                        Shipment.updated_at: now,
                    },
                    synchronize_session=False,
                )
            )
            if claimed != len(ids):
                log.warning(
                    "dispatch %s->%s lost the race: claimed %s of %s shipments",
                    from_branch_id,
                    to_branch_id,
                    claimed,
                    len(ids),
                )
                raise ConflictError("Some shipments were claimed by another manifest; nothing was dispatched")

            self.db.execute(
                manifest_shipments.insert(),
                [{"manifest_id": manifest.id, "shipment_id": sid} for sid in ids],
            )
            self.db.add_all(
                [
                    ShipmentStatusEntry(
                        shipment_id=sid,
                        status=S.IN_TRANSIT_TO_DESTINATION,
                        timestamp=now,
                        notes=f"Dispatched via manifest {manifest.id}",
                    )
                    for sid in ids
                ]
            )

        log.info(
            "manifest %s dispatched %s->%s with %s shipments by user=%s",
            manifest.id,
            from_branch_id,
            to_branch_id,
            len(ids),
            actor.user_id,
        )
        self.notifications.manifest_dispatched(
            manifest,
            self._branch_name(from_branch_id, "origin"),
            self._branch_name(to_branch_id, "destination"),
        )
        return manifest

    # --- receive -----------------------------------------------------------

    def receive(self, actor: Actor, manifest_id: int) -> Manifest:
        """
        Close an InTransit manifest at its destination branch and move its
        shipments to AtDestinationBranch there. A second call fails with
        AlreadyCompletedError and changes nothing.
        """
        manifest = self.repo.get(manifest_id)
        if not manifest:
            raise NotFoundError("Manifest not found")
        authz.require_branch_admin(actor)
        if actor.branch_id != manifest.to_branch_id:
            raise ForbiddenError("You can only receive manifests addressed to your branch")
        if manifest.status == ManifestStatus.COMPLETED:
            raise AlreadyCompletedError(f"Manifest {manifest.id} was already received")

        to_branch_id = manifest.to_branch_id
        now = self._now()
        with smart_transaction(self.db):
            if not self.repo.mark_completed(manifest.id, actor.user_id, now):
                raise AlreadyCompletedError(f"Manifest {manifest.id} was already received")

            ids = [
                row[0]
                for row in self.db.query(manifest_shipments.c.shipment_id)
                .filter(manifest_shipments.c.manifest_id == manifest.id)
                .all()
            ]
            lifecycle.check_transition(
                S.IN_TRANSIT_TO_DESTINATION, S.AT_DESTINATION_BRANCH, is_local=False, via_manifest=True
            )
            moved = (
                self.db.query(Shipment)
                .filter(Shipment.id.in_(ids), Shipment.status == S.IN_TRANSIT_TO_DESTINATION)
                .update(
                    {
                        Shipment.status: S.AT_DESTINATION_BRANCH,
                        Shipment.current_branch_id: to_branch_id,
                        Shipment.version: Shipment.version + 1,
                        Shipment.updated_at: now,
                    },
                    synchronize_session=False,
                )
            )
            if moved != len(ids):
                raise ConflictError("Some shipments on this manifest are no longer in transit")
            self.db.add_all(
                [
                    ShipmentStatusEntry(
                        shipment_id=sid,
                        status=S.AT_DESTINATION_BRANCH,
                        timestamp=now,
                        notes=f"Received via manifest {manifest.id}",
                    )
                    for sid in ids
                ]
            )

        self.db.refresh(manifest)
        log.info("manifest %s received at branch %s by user=%s", manifest.id, to_branch_id, actor.user_id)
        self.notifications.manifest_arrived(manifest, self._branch_name(to_branch_id, "destination"))
        return manifest
