import enum
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from courierhub.db import Base


class ShipmentStatus(str, enum.Enum):
    AT_ORIGIN_BRANCH = "AtOriginBranch"
    IN_TRANSIT_TO_DESTINATION = "InTransitToDestination"
    AT_DESTINATION_BRANCH = "AtDestinationBranch"
    ASSIGNED = "Assigned"
    OUT_FOR_DELIVERY = "OutForDelivery"
    DELIVERED = "Delivered"
    FAILED = "Failed"


class ProofType(str, enum.Enum):
    SIGNATURE = "signature"
    PHOTO = "photo"


def _status_column_type():
    return Enum(
        ShipmentStatus,
        values_callable=lambda e: [m.value for m in e],
        native_enum=False,
        length=32,
        name="shipment_status",
    )


class Shipment(Base):
    __tablename__ = "shipments"
    id = Column(Integer, primary_key=True, autoincrement=True)
    tracking_id = Column(String(32), unique=True, nullable=False, index=True)

    # {name, address, phone}
    sender = Column(JSON, nullable=False)
    recipient = Column(JSON, nullable=False)
    # {weight, type, details}
    package_info = Column(JSON, nullable=False)

    origin_branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False, index=True)
    destination_branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False, index=True)
    current_branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False, index=True)

    status = Column(
        _status_column_type(), nullable=False, default=ShipmentStatus.AT_ORIGIN_BRANCH, index=True
    )
    assigned_to_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # {type: signature|photo, url}, only set on Delivered
    delivery_proof = Column(JSON, nullable=True)
    failure_reason = Column(Text, nullable=True)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False, index=True)
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    status_history = relationship(
        "ShipmentStatusEntry",
        back_populates="shipment",
        order_by="ShipmentStatusEntry.id",
        cascade="all, delete-orphan",
    )
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])
    created_by = relationship("User", foreign_keys=[created_by_id])

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_local(self) -> bool:
        return self.origin_branch_id == self.destination_branch_id

    def __repr__(self):
        return f"<Shipment {self.tracking_id} status={self.status}>"


class ShipmentStatusEntry(Base):
    """Append-only audit trail: one row per status change."""

    __tablename__ = "shipment_status_history"
    id = Column(Integer, primary_key=True, autoincrement=True)
    shipment_id = Column(
        Integer, ForeignKey("shipments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(_status_column_type(), nullable=False)
    timestamp = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
    notes = Column(Text, nullable=True)

    shipment = relationship("Shipment", back_populates="status_history")
