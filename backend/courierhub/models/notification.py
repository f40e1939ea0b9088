import enum
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Index, Integer, String

from courierhub.db import Base


class NotificationEvent(str, enum.Enum):
    SHIPMENT_CREATED = "shipment_created"
    MANIFEST_DISPATCHED = "manifest_dispatched"
    MANIFEST_ARRIVED = "manifest_arrived"
    DELIVERY_ASSIGNED = "delivery_assigned"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    DELIVERY_FAILED = "delivery_failed"


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(Integer, primary_key=True, autoincrement=True)
    branch_id = Column(Integer, ForeignKey("branches.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(
        Enum(
            NotificationEvent,
            values_callable=lambda e: [m.value for m in e],
            native_enum=False,
            length=32,
            name="notification_event",
        ),
        nullable=False,
    )
    shipment_id = Column(Integer, ForeignKey("shipments.id", ondelete="CASCADE"), nullable=True)
    manifest_id = Column(Integer, ForeignKey("manifests.id", ondelete="CASCADE"), nullable=True)
    # tracking id for shipments, "MAN-<id>" for manifests
    reference = Column(String(32), nullable=False)
    message = Column(String(255), nullable=False)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (Index("ix_notifications_user_read_created", "user_id", "read", "created_at"),)
