from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from courierhub.models.shipment import ShipmentStatus


class StatusEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    status: ShipmentStatus
    timestamp: datetime
    notes: Optional[str] = None


class ShipmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    tracking_id: str
    sender: Dict[str, Any]
    recipient: Dict[str, Any]
    package_info: Dict[str, Any]
    origin_branch_id: int
    destination_branch_id: int
    current_branch_id: int
    status: ShipmentStatus
    assigned_to_id: Optional[int] = None
    created_by_id: Optional[int] = None
    delivery_proof: Optional[Dict[str, Any]] = None
    failure_reason: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: Optional[datetime] = None


class ShipmentDetailOut(ShipmentOut):
    status_history: List[StatusEntryOut] = []

