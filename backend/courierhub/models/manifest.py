import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import relationship

from courierhub.db import Base


class ManifestStatus(str, enum.Enum):
    IN_TRANSIT = "InTransit"
    COMPLETED = "Completed"


manifest_shipments = Table(
    "manifest_shipments",
    Base.metadata,
    Column("manifest_id", Integer, ForeignKey("manifests.id", ondelete="CASCADE"), primary_key=True),
    Column("shipment_id", Integer, ForeignKey("shipments.id", ondelete="CASCADE"), primary_key=True),
)


class Manifest(Base):
    __tablename__ = "manifests"
    id = Column(Integer, primary_key=True, autoincrement=True)
    from_branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False, index=True)
    to_branch_id = Column(Integer, ForeignKey("branches.id"), nullable=False, index=True)
    status = Column(
        Enum(
            ManifestStatus,
            values_callable=lambda e: [m.value for m in e],
            native_enum=False,
            length=16,
            name="manifest_status",
        ),
        nullable=False,
        default=ManifestStatus.IN_TRANSIT,
        index=True,
    )
    vehicle_number = Column(String(50), nullable=True)
    driver_name = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    dispatched_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    received_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    dispatched_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)
    received_at = Column(DateTime, nullable=True)

    shipments = relationship("Shipment", secondary=manifest_shipments, order_by="Shipment.id")
    from_branch = relationship("Branch", foreign_keys=[from_branch_id])
    to_branch = relationship("Branch", foreign_keys=[to_branch_id])

    @property
    def shipment_ids(self):
        return [s.id for s in self.shipments]

    def __repr__(self):
        return f"<Manifest id={self.id} {self.from_branch_id}->{self.to_branch_id} status={self.status}>"
