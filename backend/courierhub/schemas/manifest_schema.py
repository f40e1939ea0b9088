from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from courierhub.models.manifest import ManifestStatus


class ManifestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    from_branch_id: int
    to_branch_id: int
    status: ManifestStatus
    shipment_ids: List[int]
    vehicle_number: Optional[str] = None
    driver_name: Optional[str] = None
    notes: Optional[str] = None
    dispatched_by_id: Optional[int] = None
    received_by_id: Optional[int] = None
    dispatched_at: datetime
    received_at: Optional[datetime] = None

