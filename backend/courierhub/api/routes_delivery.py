from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from courierhub.api.deps import get_current_actor, http_error
from courierhub.db import get_db
from courierhub.errors import CourierHubError
from courierhub.services.authz import Actor
from courierhub.services.shipment_service import ShipmentService

router = APIRouter(tags=["delivery"])


@router.post("/{shipment_id}/proof", status_code=201, summary="Upload a delivery photo or signature")
def upload_proof(
    shipment_id: int,
    proof_type: str = Form(..., description="signature | photo"),
    file: UploadFile = File(...),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    content = file.file.read()
    try:
        return ShipmentService(db).store_proof(actor, shipment_id, proof_type, content, file.content_type)
    except CourierHubError as e:
        raise http_error(e)
