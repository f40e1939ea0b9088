from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from courierhub.models.notification import NotificationEvent


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    type: NotificationEvent
    reference: str
    message: str
    shipment_id: Optional[int] = None
    manifest_id: Optional[int] = None
    read: bool
    created_at: datetime
