from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from courierhub.models.user import Role


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    email: str
    role: Role
    branch_id: Optional[int] = None
    is_manager: bool
    created_at: datetime
