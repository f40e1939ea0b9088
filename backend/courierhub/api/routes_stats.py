from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from courierhub.api.deps import get_current_actor, http_error
from courierhub.db import get_db
from courierhub.errors import CourierHubError
from courierhub.services.authz import Actor
from courierhub.services.stats_service import StatsService

router = APIRouter(tags=["stats"])


@router.get("", summary="Cross-branch delivery statistics")
def stats(
    branch_id: Optional[int] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        return StatsService(db).summary(actor, branch_id=branch_id, start=start, end=end)
    except CourierHubError as e:
        raise http_error(e)
