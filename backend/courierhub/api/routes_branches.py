from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from courierhub.api.deps import get_current_actor, http_error
from courierhub.db import get_db
from courierhub.errors import CourierHubError
from courierhub.schemas.branch_schema import BranchOut
from courierhub.schemas.user_schema import UserOut
from courierhub.services.authz import Actor
from courierhub.services.branch_service import UNSET, BranchService

router = APIRouter(tags=["branches"])


class CreateBranchIn(BaseModel):
    name: str
    manager_name: str
    manager_email: str
    manager_password: str


class UpdateBranchIn(BaseModel):
    name: Optional[str] = None
    manager_name: Optional[str] = None
    manager_email: Optional[str] = None
    # send null to clear the zone
    zone_id: Optional[int] = None


def _out(branch, manager) -> dict:
    return BranchOut(
        id=branch.id,
        name=branch.name,
        zone_id=branch.zone_id,
        created_at=branch.created_at,
        manager=UserOut.model_validate(manager) if manager else None,
    ).model_dump(mode="json")


@router.get("", summary="List branches with their managers")
def list_branches(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        rows = BranchService(db).list_branches(actor)
    except CourierHubError as e:
        raise http_error(e)
    return {"items": [_out(b, m) for b, m in rows], "total": len(rows)}


@router.post("", status_code=201, summary="Create a branch and its manager")
def create_branch(payload: CreateBranchIn, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        branch, manager = BranchService(db).create_branch(
            actor, payload.name, payload.manager_name, payload.manager_email, payload.manager_password
        )
    except CourierHubError as e:
        raise http_error(e)
    return _out(branch, manager)


@router.get("/{branch_id}")
def get_branch(branch_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        branch, manager = BranchService(db).get_branch(actor, branch_id)
    except CourierHubError as e:
        raise http_error(e)
    return _out(branch, manager)


@router.patch("/{branch_id}")
def update_branch(
    branch_id: int,
    payload: UpdateBranchIn,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        branch, manager = BranchService(db).update_branch(
            actor,
            branch_id,
            name=payload.name,
            manager_name=payload.manager_name,
            manager_email=payload.manager_email,
            zone_id=payload.zone_id if "zone_id" in payload.model_fields_set else UNSET,
        )
    except CourierHubError as e:
        raise http_error(e)
    return _out(branch, manager)


@router.delete("/{branch_id}", summary="Delete a branch and everything under it")
def delete_branch(branch_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        counts = BranchService(db).delete_branch(actor, branch_id)
    except CourierHubError as e:
        raise http_error(e)
    return {"ok": True, "deleted": counts}
