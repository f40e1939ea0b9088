from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from courierhub.adapters.push_notifier import LoggingPushNotifier
from courierhub.config import settings
from courierhub.errors import NotFoundError
from courierhub.models.notification import Notification, NotificationEvent
from courierhub.repositories.notification_repo import NotificationRepository
from courierhub.repositories.user_repo import UserRepository
from courierhub.utils.log import get_logger
from courierhub.utils.transactions import smart_transaction

log = get_logger("courierhub.notifications", "notify")

E = NotificationEvent


def manifest_ref(manifest_id: int) -> str:
    return f"MAN-{manifest_id}"


class NotificationService:
    """
    Records per-user notifications for workflow events and pushes the ones
    aimed at delivery staff. Called after the workflow has committed: any
    failure here is logged and never propagates into the workflow.
    """

    def __init__(self, db: Session, push=None):
        self.db = db
        self.repo = NotificationRepository(db)
        self.users = UserRepository(db)
        self.push = push or LoggingPushNotifier()

    # --- reading -----------------------------------------------------------

    def list_for_user(self, user_id: int, limit: Optional[int] = None) -> List[Notification]:
        return self.repo.latest_for_user(user_id, limit or settings.NOTIFICATION_LIST_LIMIT)

    def unread_count(self, user_id: int) -> int:
        return self.repo.unread_count(user_id)

    def mark_read(self, user_id: int, notification_id: int) -> None:
        with smart_transaction(self.db):
            if not self.repo.mark_read(user_id, notification_id):
                raise NotFoundError("Notification not found")

    def mark_all_read(self, user_id: int) -> int:
        with smart_transaction(self.db):
            return self.repo.mark_all_read(user_id)

    def purge_read(self, older_than_days: Optional[int] = None) -> int:
        days = settings.NOTIFICATION_RETENTION_DAYS if older_than_days is None else older_than_days
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        with smart_transaction(self.db):
            return self.repo.purge_read_before(cutoff)

    # --- recording ---------------------------------------------------------

    def _record(
        self,
        event: NotificationEvent,
        branch_id: int,
        user_ids: Iterable[int],
        message: str,
        reference: str,
        shipment_id: Optional[int] = None,
        manifest_id: Optional[int] = None,
    ) -> int:
        rows = [
            Notification(
                branch_id=branch_id,
                user_id=uid,
                type=event,
                shipment_id=shipment_id,
                manifest_id=manifest_id,
                reference=reference,
                message=message[:255],
            )
            for uid in dict.fromkeys(user_ids)
            if uid is not None
        ]
        self.db.add_all(rows)
        return len(rows)

    def _emit(self, event: NotificationEvent, build) -> None:
        try:
            with smart_transaction(self.db):
                count = build()
            log.debug("event=%s notifications=%s", event.value, count)
        except Exception:
            log.exception("failed to record %s notifications", event.value)

    def _push(self, user_id: Optional[int], event: NotificationEvent, payload: dict) -> None:
        if user_id is None:
            return
        try:
            self.push.notify(user_id, event.value, payload)
        except Exception:
            log.exception("push for %s to user %s failed", event.value, user_id)

    def shipment_created(self, shipment) -> None:
        def build():
            return self._record(
                E.SHIPMENT_CREATED,
                shipment.origin_branch_id,
                self.users.branch_admin_ids(shipment.origin_branch_id),
                f"New shipment created - {shipment.tracking_id}",
                shipment.tracking_id,
                shipment_id=shipment.id,
            )

        self._emit(E.SHIPMENT_CREATED, build)

    def manifest_dispatched(self, manifest, from_name: str, to_name: str) -> None:
        ref = manifest_ref(manifest.id)

        def build():
            n = self._record(
                E.MANIFEST_DISPATCHED,
                manifest.from_branch_id,
                self.users.branch_admin_ids(manifest.from_branch_id),
                f"Manifest dispatched to {to_name} - {ref}",
                ref,
                manifest_id=manifest.id,
            )
            return n + self._record(
                E.MANIFEST_DISPATCHED,
                manifest.to_branch_id,
                self.users.branch_admin_ids(manifest.to_branch_id),
                f"Manifest arriving from {from_name} - {ref}",
                ref,
                manifest_id=manifest.id,
            )

        self._emit(E.MANIFEST_DISPATCHED, build)

    def manifest_arrived(self, manifest, to_name: str) -> None:
        ref = manifest_ref(manifest.id)

        def build():
            return self._record(
                E.MANIFEST_ARRIVED,
                manifest.from_branch_id,
                self.users.branch_admin_ids(manifest.from_branch_id),
                f"Manifest arrived at {to_name} - {ref}",
                ref,
                manifest_id=manifest.id,
            )

        self._emit(E.MANIFEST_ARRIVED, build)

    def delivery_assigned(self, shipment) -> None:
        staff_id = shipment.assigned_to_id

        def build():
            n = self._record(
                E.DELIVERY_ASSIGNED,
                shipment.current_branch_id,
                self.users.branch_admin_ids(shipment.current_branch_id),
                f"Delivery assigned to staff - {shipment.tracking_id}",
                shipment.tracking_id,
                shipment_id=shipment.id,
            )
            return n + self._record(
                E.DELIVERY_ASSIGNED,
                shipment.current_branch_id,
                [staff_id],
                f"New delivery assigned to you - {shipment.tracking_id}",
                shipment.tracking_id,
                shipment_id=shipment.id,
            )

        self._emit(E.DELIVERY_ASSIGNED, build)
        self._push(
            staff_id,
            E.DELIVERY_ASSIGNED,
            {"shipment_id": shipment.id, "tracking_id": shipment.tracking_id},
        )

    _OUTCOME_MESSAGES = {
        E.OUT_FOR_DELIVERY: "Shipment out for delivery",
        E.DELIVERED: "Delivery completed",
        E.DELIVERY_FAILED: "Delivery failed",
    }

    def delivery_progress(self, shipment, event: NotificationEvent) -> None:
        text = self._OUTCOME_MESSAGES[event]

        def build():
            return self._record(
                event,
                shipment.current_branch_id,
                list(self.users.branch_admin_ids(shipment.current_branch_id)) + [shipment.assigned_to_id],
                f"{text} - {shipment.tracking_id}",
                shipment.tracking_id,
                shipment_id=shipment.id,
            )

        self._emit(event, build)
