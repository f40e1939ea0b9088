from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from courierhub.api.deps import Pagination, get_current_actor, http_error
from courierhub.db import get_db
from courierhub.errors import CourierHubError
from courierhub.schemas.manifest_schema import ManifestOut
from courierhub.schemas.shipment_schema import ShipmentOut
from courierhub.services.authz import Actor
from courierhub.services.manifest_service import ManifestService

router = APIRouter(tags=["manifests"])


class DispatchIn(BaseModel):
    to_branch_id: int
    shipment_ids: List[int]
    vehicle_number: Optional[str] = None
    driver_name: Optional[str] = None
    notes: Optional[str] = None


def _out(manifest) -> dict:
    return ManifestOut.model_validate(manifest).model_dump(mode="json")


@router.get("/available-shipments", summary="Shipments ready to be put on a manifest")
def available_shipments(
    destination_branch_id: Optional[int] = Query(None),
    paging: Pagination = Depends(),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        items, total = ManifestService(db).list_available_shipments(
            actor, destination_branch_id, page=paging.page, size=paging.size
        )
    except CourierHubError as e:
        raise http_error(e)
    return {
        "items": [ShipmentOut.model_validate(s).model_dump(mode="json") for s in items],
        "total": total,
        "page": paging.page,
        "size": paging.size,
    }


@router.get("", summary="Manifests touching the caller's branch")
def list_manifests(
    direction: Optional[str] = Query(None, alias="type", description="incoming | outgoing"),
    status: Optional[str] = Query(None),
    paging: Pagination = Depends(),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        items, total = ManifestService(db).list_manifests(
            actor, direction=direction, status=status, page=paging.page, size=paging.size
        )
    except CourierHubError as e:
        raise http_error(e)
    return {"items": [_out(m) for m in items], "total": total, "page": paging.page, "size": paging.size}


@router.post("", status_code=201, summary="Dispatch a manifest from the caller's branch")
def dispatch(payload: DispatchIn, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    svc = ManifestService(db)
    try:
        manifest = svc.dispatch(
            actor,
            actor.branch_id,
            payload.to_branch_id,
            payload.shipment_ids,
            vehicle_number=payload.vehicle_number,
            driver_name=payload.driver_name,
            notes=payload.notes,
        )
    except CourierHubError as e:
        raise http_error(e)
    return _out(manifest)


@router.get("/{manifest_id}", summary="Manifest with its shipments")
def get_manifest(manifest_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        manifest = ManifestService(db).get_manifest(actor, manifest_id)
    except CourierHubError as e:
        raise http_error(e)
    body = _out(manifest)
    body["shipments"] = [ShipmentOut.model_validate(s).model_dump(mode="json") for s in manifest.shipments]
    return body


@router.post("/{manifest_id}/receive", summary="Receive a manifest at the destination branch")
def receive(manifest_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        manifest = ManifestService(db).receive(actor, manifest_id)
    except CourierHubError as e:
        raise http_error(e)
    return _out(manifest)
