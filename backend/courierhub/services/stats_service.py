from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from courierhub.errors import NotFoundError, ValidationError
from courierhub.models.shipment import Shipment, ShipmentStatus
from courierhub.models.user import Role, User
from courierhub.repositories.branch_repo import BranchRepository
from courierhub.services import authz
from courierhub.services.authz import Actor


class StatsService:
    def __init__(self, db: Session):
        self.db = db
        self.branches = BranchRepository(db)

    def summary(
        self,
        actor: Actor,
        branch_id: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict:
        """Cross-tenant counts; the date range filters shipments by creation time."""
        authz.require_super_admin(actor)
        if branch_id is not None and not self.branches.exists(branch_id):
            raise NotFoundError("Branch not found")
        if start and end and start > end:
            raise ValidationError("start must not be after end")

        staff_q = self.db.query(func.count(User.id)).filter(User.role.in_([Role.ADMIN, Role.STAFF]))
        if branch_id is not None:
            staff_q = staff_q.filter(User.branch_id == branch_id)

        shipments_q = self.db.query(Shipment.status, func.count(Shipment.id))
        if branch_id is not None:
            shipments_q = shipments_q.filter(Shipment.origin_branch_id == branch_id)
        if start is not None:
            shipments_q = shipments_q.filter(Shipment.created_at >= start)
        if end is not None:
            shipments_q = shipments_q.filter(Shipment.created_at <= end)

        by_status = {s.value: 0 for s in ShipmentStatus}
        for status, count in shipments_q.group_by(Shipment.status).all():
            by_status[ShipmentStatus(status).value] = count

        return {
            "total_staff": staff_q.scalar() or 0,
            "delivered_count": by_status[ShipmentStatus.DELIVERED.value],
            "failed_count": by_status[ShipmentStatus.FAILED.value],
            "total_shipments": sum(by_status.values()),
            "by_status": by_status,
        }
