from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from courierhub.api.deps import get_current_actor, http_error
from courierhub.db import get_db
from courierhub.errors import CourierHubError
from courierhub.schemas.notification_schema import NotificationOut
from courierhub.services.authz import Actor
from courierhub.services.notification_service import NotificationService

router = APIRouter(tags=["notifications"])


@router.get("", summary="Latest notifications for the caller")
def list_notifications(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    svc = NotificationService(db)
    items = svc.list_for_user(actor.user_id)
    return {
        "items": [NotificationOut.model_validate(n).model_dump(mode="json") for n in items],
        "unread": svc.unread_count(actor.user_id),
    }


@router.get("/unread-count")
def unread_count(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    return {"unread": NotificationService(db).unread_count(actor.user_id)}


@router.post("/read-all")
def mark_all_read(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    updated = NotificationService(db).mark_all_read(actor.user_id)
    return {"ok": True, "updated": updated}


@router.post("/{notification_id}/read")
def mark_read(notification_id: int, actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    try:
        NotificationService(db).mark_read(actor.user_id, notification_id)
    except CourierHubError as e:
        raise http_error(e)
    return {"ok": True}
