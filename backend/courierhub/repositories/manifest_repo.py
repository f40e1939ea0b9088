from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from courierhub.models.manifest import Manifest, ManifestStatus


class ManifestRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, manifest_id: int, with_shipments: bool = False) -> Optional[Manifest]:
        q = self.db.query(Manifest).filter(Manifest.id == manifest_id)
        if with_shipments:
            q = q.options(selectinload(Manifest.shipments))
        return q.first()

    def list_for_branch(
        self,
        branch_id: int,
        direction: Optional[str] = None,
        status: Optional[ManifestStatus] = None,
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[Manifest], int]:
        query = self.db.query(Manifest)
        if direction == "incoming":
            query = query.filter(Manifest.to_branch_id == branch_id)
        elif direction == "outgoing":
            query = query.filter(Manifest.from_branch_id == branch_id)
        else:
            query = query.filter(
                or_(Manifest.to_branch_id == branch_id, Manifest.from_branch_id == branch_id)
            )
        if status is not None:
            query = query.filter(Manifest.status == status)
        total = query.with_entities(func.count(Manifest.id)).scalar() or 0
        items = (
            query.options(selectinload(Manifest.shipments))
            .order_by(Manifest.dispatched_at.desc(), Manifest.id.desc())
            .offset((page - 1) * size)
            .limit(size)
            .all()
        )
        return items, total

    def mark_completed(self, manifest_id: int, received_by_id: int, received_at) -> bool:
        """
        Conditional InTransit -> Completed flip. Returns False when another
        request already completed the manifest.
        """
        updated = (
            self.db.query(Manifest)
            .filter(Manifest.id == manifest_id, Manifest.status == ManifestStatus.IN_TRANSIT)
            .update(
                {
                    Manifest.status: ManifestStatus.COMPLETED,
                    Manifest.received_at: received_at,
                    Manifest.received_by_id: received_by_id,
                },
                synchronize_session=False,
            )
        )
        return updated == 1
