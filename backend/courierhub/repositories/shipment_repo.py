from typing import Iterable, List, Optional, Tuple

from sqlalchemy import exists, func, or_
from sqlalchemy.orm import Session, selectinload

from courierhub.models.manifest import Manifest, ManifestStatus, manifest_shipments
from courierhub.models.shipment import Shipment, ShipmentStatus

VIEWS = ("all", "incoming", "outgoing", "local")


class ShipmentRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, shipment_id: int) -> Optional[Shipment]:
        return (
            self.db.query(Shipment)
            .options(selectinload(Shipment.status_history))
            .filter(Shipment.id == shipment_id)
            .first()
        )

    def get_many(self, ids: Iterable[int]) -> List[Shipment]:
        ids = list(ids)
        if not ids:
            return []
        return self.db.query(Shipment).filter(Shipment.id.in_(ids)).all()

    def tracking_id_exists(self, tracking_id: str) -> bool:
        return self.db.query(exists().where(Shipment.tracking_id == tracking_id)).scalar()

    def in_open_manifest(self):
        """Correlated EXISTS: the shipment sits on a manifest that is still InTransit."""
        return (
            exists()
            .where(manifest_shipments.c.shipment_id == Shipment.id)
            .where(manifest_shipments.c.manifest_id == Manifest.id)
            .where(Manifest.status == ManifestStatus.IN_TRANSIT)
        )

    def is_in_open_manifest(self, shipment_id: int) -> bool:
        return (
            self.db.query(Shipment.id)
            .filter(Shipment.id == shipment_id, self.in_open_manifest())
            .first()
            is not None
        )

    def available_criteria(self, branch_id: int) -> tuple:
        """
        Where-clauses for shipments waiting at `branch_id` that a new manifest
        may claim. Shared by the available list and the dispatch UPDATE.
        """
        return (
            Shipment.current_branch_id == branch_id,
            Shipment.origin_branch_id == branch_id,
            Shipment.destination_branch_id != branch_id,
            Shipment.status == ShipmentStatus.AT_ORIGIN_BRANCH,
            ~self.in_open_manifest(),
        )

    def available_query(self, branch_id: int, destination_branch_id: Optional[int] = None):
        q = self.db.query(Shipment).filter(*self.available_criteria(branch_id))
        if destination_branch_id is not None:
            q = q.filter(Shipment.destination_branch_id == destination_branch_id)
        return q

    def claimable_ids(self, branch_id: int, ids: Iterable[int]) -> set:
        ids = list(ids)
        if not ids:
            return set()
        rows = (
            self.db.query(Shipment.id)
            .filter(Shipment.id.in_(ids), *self.available_criteria(branch_id))
            .all()
        )
        return {r[0] for r in rows}

    def list_available(
        self, branch_id: int, destination_branch_id: Optional[int] = None, page: int = 1, size: int = 20
    ) -> Tuple[List[Shipment], int]:
        q = self.available_query(branch_id, destination_branch_id)
        total = q.with_entities(func.count(Shipment.id)).scalar() or 0
        items = q.order_by(Shipment.created_at.desc(), Shipment.id.desc()).offset((page - 1) * size).limit(size).all()
        return items, total

    def list_for_branch(
        self,
        branch_id: Optional[int],
        view: str = "all",
        status: Optional[ShipmentStatus] = None,
        q: Optional[str] = None,
        assigned_to_id: Optional[int] = None,
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[Shipment], int]:
        query = self.db.query(Shipment)
        if branch_id is not None:
            if view == "incoming":
                query = query.filter(
                    Shipment.destination_branch_id == branch_id,
                    Shipment.origin_branch_id != branch_id,
                )
            elif view == "outgoing":
                query = query.filter(
                    Shipment.origin_branch_id == branch_id,
                    Shipment.destination_branch_id != branch_id,
                )
            elif view == "local":
                query = query.filter(
                    Shipment.origin_branch_id == branch_id,
                    Shipment.destination_branch_id == branch_id,
                )
            else:
                query = query.filter(
                    or_(
                        Shipment.current_branch_id == branch_id,
                        Shipment.origin_branch_id == branch_id,
                        Shipment.destination_branch_id == branch_id,
                    )
                )
        if assigned_to_id is not None:
            query = query.filter(Shipment.assigned_to_id == assigned_to_id)
        if status is not None:
            query = query.filter(Shipment.status == status)
        if q:
            like = f"%{q}%"
            query = query.filter(
                or_(
                    Shipment.tracking_id.ilike(like),
                    Shipment.recipient["name"].as_string().ilike(like),
                )
            )
        total = query.with_entities(func.count(Shipment.id)).scalar() or 0
        items = (
            query.order_by(Shipment.created_at.desc(), Shipment.id.desc())
            .offset((page - 1) * size)
            .limit(size)
            .all()
        )
        return items, total

    def count_active_assignments(self, user_id: int) -> int:
        return (
            self.db.query(func.count(Shipment.id))
            .filter(
                Shipment.assigned_to_id == user_id,
                Shipment.status.notin_([ShipmentStatus.DELIVERED, ShipmentStatus.FAILED]),
            )
            .scalar()
            or 0
        )

