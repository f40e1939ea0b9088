from datetime import datetime
from typing import List

from sqlalchemy import func
from sqlalchemy.orm import Session

from courierhub.models.notification import Notification


class NotificationRepository:
    def __init__(self, db: Session):
        self.db = db

    def latest_for_user(self, user_id: int, limit: int = 50) -> List[Notification]:
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
            .all()
        )

    def unread_count(self, user_id: int) -> int:
        return (
            self.db.query(func.count(Notification.id))
            .filter(Notification.user_id == user_id, Notification.read.is_(False))
            .scalar()
            or 0
        )

    def mark_read(self, user_id: int, notification_id: int) -> int:
        return (
            self.db.query(Notification)
            .filter(Notification.id == notification_id, Notification.user_id == user_id)
            .update({Notification.read: True}, synchronize_session=False)
        )

    def mark_all_read(self, user_id: int) -> int:
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.read.is_(False))
            .update({Notification.read: True}, synchronize_session=False)
        )

    def purge_read_before(self, cutoff: datetime) -> int:
        return (
            self.db.query(Notification)
            .filter(Notification.read.is_(True), Notification.created_at < cutoff)
            .delete(synchronize_session=False)
        )
