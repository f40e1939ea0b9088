from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from courierhub.api.deps import Pagination, get_current_actor, http_error
from courierhub.db import get_db
from courierhub.errors import CourierHubError
from courierhub.schemas.shipment_schema import ShipmentDetailOut, ShipmentOut
from courierhub.services.authz import Actor
from courierhub.services.shipment_service import ShipmentService

router = APIRouter(tags=["shipments"])


class CreateShipmentIn(BaseModel):
    destination_branch_id: int
    sender: Dict[str, Any]
    recipient: Dict[str, Any]
    package_info: Dict[str, Any]
    assigned_to: Optional[int] = None


class UpdateStatusIn(BaseModel):
    status: str
    notes: Optional[str] = None
    proof: Optional[Dict[str, Any]] = None
    failure_reason: Optional[str] = None
    assigned_to: Optional[int] = None
    version: Optional[int] = None


class AssignIn(BaseModel):
    staff_id: int
    notes: Optional[str] = None


class UpdateDetailsIn(BaseModel):
    sender: Optional[Dict[str, Any]] = None
    recipient: Optional[Dict[str, Any]] = None
    package_info: Optional[Dict[str, Any]] = None


def _detail(shipment) -> dict:
    return ShipmentDetailOut.model_validate(shipment).model_dump(mode="json")


@router.get("", summary="List shipments for the caller's branch")
def list_shipments(
    view: str = Query("all", description="all | incoming | outgoing | local"),
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="tracking id or recipient name"),
    branch_id: Optional[int] = Query(None, description="super admin only"),
    paging: Pagination = Depends(),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    svc = ShipmentService(db)
    try:
        items, total = svc.list_shipments(
            actor, view=view, status=status, q=search, branch_id=branch_id, page=paging.page, size=paging.size
        )
    except CourierHubError as e:
        raise http_error(e)
    return {
        "items": [ShipmentOut.model_validate(s).model_dump(mode="json") for s in items],
        "total": total,
        "page": paging.page,
        "size": paging.size,
    }


@router.post("", status_code=201, summary="Create a shipment at the caller's branch")
def create_shipment(
    payload: CreateShipmentIn,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    svc = ShipmentService(db)
    try:
        shipment = svc.create_shipment(
            actor,
            payload.destination_branch_id,
            payload.sender,
            payload.recipient,
            payload.package_info,
            assigned_to_id=payload.assigned_to,
        )
    except CourierHubError as e:
        raise http_error(e)
    return _detail(shipment)


@router.get("/{shipment_id}", summary="Shipment with its status history")
def get_shipment(shipment_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        shipment = ShipmentService(db).get_shipment(actor, shipment_id)
    except CourierHubError as e:
        raise http_error(e)
    return _detail(shipment)


@router.patch("/{shipment_id}/status", summary="Advance the shipment status")
def update_status(
    shipment_id: int,
    payload: UpdateStatusIn,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    svc = ShipmentService(db)
    try:
        shipment = svc.update_status(
            actor,
            shipment_id,
            payload.status,
            notes=payload.notes,
            proof=payload.proof,
            failure_reason=payload.failure_reason,
            assigned_to_id=payload.assigned_to,
            expected_version=payload.version,
        )
    except CourierHubError as e:
        raise http_error(e)
    return _detail(shipment)


@router.post("/{shipment_id}/assign", summary="Assign a delivery staff member")
def assign(
    shipment_id: int,
    payload: AssignIn,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        shipment = ShipmentService(db).assign(actor, shipment_id, payload.staff_id, notes=payload.notes)
    except CourierHubError as e:
        raise http_error(e)
    return _detail(shipment)


@router.patch("/{shipment_id}", summary="Edit sender, recipient or package details")
def update_details(
    shipment_id: int,
    payload: UpdateDetailsIn,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        shipment = ShipmentService(db).update_details(
            actor, shipment_id, sender=payload.sender, recipient=payload.recipient, package_info=payload.package_info
        )
    except CourierHubError as e:
        raise http_error(e)
    return _detail(shipment)


@router.delete("/{shipment_id}", summary="Delete a shipment (origin creator only)")
def delete_shipment(shipment_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        ShipmentService(db).delete_shipment(actor, shipment_id)
    except CourierHubError as e:
        raise http_error(e)
    return {"ok": True}
