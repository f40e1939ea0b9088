from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from courierhub.schemas.user_schema import UserOut


class BranchOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    zone_id: Optional[int] = None
    created_at: datetime
    manager: Optional[UserOut] = None
